"""
Logging filters.

CorrelationIdFilter
    Stamps every LogRecord with `correlation_id`, read from a ContextVar so
    the id follows an operation across `await` boundaries and into tasks
    created from the same context. Format strings can reference
    `%(correlation_id)s` safely: records without an id get "-".

RedactFilter
    Masks credential-like attributes attached via `extra={...}` (passwords,
    DSNs, TLS private key paths, tokens) before any handler formats them.

Usage:

    token = set_correlation_id("op-42")
    try:
        await service.create_user(user)   # every log line carries correlation_id="op-42"
    finally:
        reset_correlation_id(token)
"""

import contextvars
import logging
from logging import LogRecord

# Default is None: "no correlation id set in this context".
_correlation_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)


def set_correlation_id(correlation_id: str | None) -> contextvars.Token:
    """
    Set the correlation id for the current context.

    Returns:
        token to pass to reset_correlation_id()
    """
    return _correlation_id_ctx.set(correlation_id)


def reset_correlation_id(token: contextvars.Token) -> None:
    _correlation_id_ctx.reset(token)


def get_correlation_id() -> str | None:
    return _correlation_id_ctx.get()


class CorrelationIdFilter(logging.Filter):
    """
    Guarantee a `correlation_id` attribute on every record.

    Precedence: an explicit `extra={"correlation_id": ...}`, then the
    ContextVar, then "-". Never drops a record.
    """

    def filter(self, record: LogRecord) -> bool:
        record.correlation_id = (
            getattr(record, "correlation_id", None) or get_correlation_id() or "-"
        )
        return True


class RedactFilter(logging.Filter):
    """Replace values of sensitive record attributes with a fixed mask."""

    MASK = "***REDACTED***"
    SENSITIVE = {
        "password",
        "secret",
        "token",
        "access_token",
        "refresh_token",
        "authorization",
        "dsn",
        "database_url",
        "ssl_key",
    }

    def filter(self, record: LogRecord) -> bool:
        for key in list(record.__dict__.keys()):
            if key.lower() in self.SENSITIVE:
                record.__dict__[key] = self.MASK
        return True
