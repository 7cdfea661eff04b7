from .config_validators import to_uppercase, to_lowercase, empty_to_none

__all__ = ["to_uppercase", "to_lowercase", "empty_to_none"]
