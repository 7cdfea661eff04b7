"""
Driver-level exceptions raised by the connection/transaction abstraction.

These describe *what the storage layer observed*; they are not classified
application errors. Repositories catch them at the point where they are first
observed and re-express them with the classified taxonomy in
`cnapp.exceptions` (for example `NoRowsError` -> `NotFoundError`).

`NoRowsError` is a distinct type: callers match it with
`except NoRowsError`, never by comparing against a shared instance.
"""


class DriverError(Exception):
    """Base for faults raised by the storage abstraction itself."""
    pass


class NoRowsError(DriverError):
    """A single-row query produced no row."""

    def __init__(self, message: str = "no rows in result set"):
        super().__init__(message)


class TransactionDoneError(DriverError):
    """The transaction has already been committed or rolled back."""

    def __init__(self, message: str = "transaction has already been committed or rolled back"):
        super().__init__(message)


class ConnectionClosedError(DriverError):
    """The connection was closed; it cannot serve further operations."""

    def __init__(self, message: str = "connection is closed"):
        super().__init__(message)


__all__ = [
    "DriverError",
    "NoRowsError",
    "TransactionDoneError",
    "ConnectionClosedError",
]
