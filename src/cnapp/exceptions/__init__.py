# cnapp/
# │
# ├── exceptions/
# │   ├── __init__.py
# │   ├── base.py                    # Classified app-level errors (AppError, DatabaseError, NotFoundError, ...)
# │   └── mapper.py                  # Map driver / SQLAlchemy / timeout faults to DatabaseError

from .base import (
    ErrorKind,
    AppError,
    ValidationError,
    DatabaseError,
    NotFoundError,
    new_error,
    new_validation_error,
    new_database_error,
    new_not_found_error,
)

__all__ = [
    "ErrorKind",
    "AppError",
    "ValidationError",
    "DatabaseError",
    "NotFoundError",
    "new_error",
    "new_validation_error",
    "new_database_error",
    "new_not_found_error",
]
