from .user_service import User, UserRepository, UserService

__all__ = ["User", "UserRepository", "UserService"]
