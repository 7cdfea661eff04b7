"""
Classified application errors.

Every layer above the storage drivers reports failures through `AppError`
and its subclasses. An error carries three things:

    - kind:    what class of failure this is (see `ErrorKind`)
    - message: a short, human-friendly description (safe for logs and API bodies)
    - cause:   the optional lower-level exception that was wrapped

The classification is assigned where the fact is first known. For example the
user repository decides `NOT_FOUND` from a rows-affected count; nothing
downstream tries to infer it again from a generic error.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Canonical error kinds. The value doubles as the API error code."""

    UNKNOWN = "unknown"
    VALIDATION = "validation"
    DATABASE = "database"
    NOT_FOUND = "not_found"


class AppError(Exception):
    """
    Base class for classified errors.

    - message: human-friendly message (safe to show to clients)
    - cause: optional wrapped exception (kept for logs, never put in payloads)

    Instances are immutable once constructed.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN

    # Map kind -> HTTP status for the (separate) API layer.
    KIND_TO_STATUS = {
        ErrorKind.VALIDATION: 400,
        ErrorKind.NOT_FOUND: 404,
        ErrorKind.DATABASE: 500,
        ErrorKind.UNKNOWN: 500,
    }

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self._message = message
        self._cause = cause
        if cause is not None:
            self.__cause__ = cause
        self._frozen = True

    def __setattr__(self, name, value):
        # traceback machinery writes dunder attributes after raise
        if getattr(self, "_frozen", False) and not name.startswith("__"):
            raise AttributeError(f"{type(self).__name__} is immutable")
        super().__setattr__(name, value)

    def __reduce__(self):
        # copy/pickle rebuild through __init__; restoring __dict__ would trip the freeze
        return type(self), (self._message, self._cause)

    @property
    def message(self) -> str:
        return self._message

    @property
    def cause(self) -> BaseException | None:
        return self._cause

    def __str__(self) -> str:
        if self._cause is not None:
            return f"{self._message}: {self._cause}"
        return self._message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self._message!r}, cause={self._cause!r})"

    def to_payload(self) -> dict:
        """
        Return a JSON-serializable dict suitable for HTTP responses.

        Shape:
            {
                "detail": "user not found",
                "code": "not_found",
            }

        The wrapped cause is left out: it may contain raw driver
        messages, statements or connection details.
        """
        return {"detail": self._message, "code": self.kind.value}

    def http_status(self) -> int:
        """Return the HTTP status code conventionally paired with this error kind."""
        return self.KIND_TO_STATUS.get(self.kind, 500)


class ValidationError(AppError):
    """Caller input was rejected before reaching storage."""

    kind = ErrorKind.VALIDATION


class DatabaseError(AppError):
    """Storage engine or transport fault (including expired deadlines)."""

    kind = ErrorKind.DATABASE


class NotFoundError(AppError):
    """The target entity does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str = "Not found", cause: BaseException | None = None):
        super().__init__(message, cause)


_KIND_TO_CLASS = {
    ErrorKind.UNKNOWN: AppError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.DATABASE: DatabaseError,
    ErrorKind.NOT_FOUND: NotFoundError,
}


def new_error(kind: ErrorKind, message: str, cause: BaseException | None = None) -> AppError:
    """Build the error class matching `kind`."""
    return _KIND_TO_CLASS[kind](message, cause)


def new_validation_error(message: str, cause: BaseException | None = None) -> ValidationError:
    return ValidationError(message, cause)


def new_database_error(message: str, cause: BaseException | None = None) -> DatabaseError:
    return DatabaseError(message, cause)


def new_not_found_error(message: str, cause: BaseException | None = None) -> NotFoundError:
    return NotFoundError(message, cause)


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
