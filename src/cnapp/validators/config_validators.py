def to_uppercase(value: str | None) -> str | None:
    """
    Converts a string to uppercase if it's not None.
    """
    if value is None:
        return None
    return value.upper()


def to_lowercase(value: str | None) -> str | None:
    """
    Converts a string to lowercase if it's not None.
    """
    if value is None:
        return None
    return value.lower()


def empty_to_none(value: str | None) -> str | None:
    """
    Treat blank strings (e.g. `DB_SSL_CERT=` in a .env file) as unset.
    """
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value
