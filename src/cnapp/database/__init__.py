# cnapp/
# │
# ├── database/
# │   ├── __init__.py
# │   ├── base.py                    # Contracts: Provider, Connection, Transaction, Result, Row, Rows, DatabaseConfig
# │   ├── errors.py                  # Driver-level faults (NoRowsError, TransactionDoneError, ConnectionClosedError)
# │   ├── registry.py                # ProviderRegistry (engine name -> Provider)
# │   └── sqlalchemy_provider.py     # Async SQLAlchemy implementation (postgres / sqlite)

from .base import (
    Statement,
    Params,
    DatabaseConfig,
    Result,
    Row,
    Rows,
    TransactionState,
    Transaction,
    Connection,
    Provider,
)
from .errors import (
    DriverError,
    NoRowsError,
    TransactionDoneError,
    ConnectionClosedError,
)
from .registry import ProviderRegistry
from .sqlalchemy_provider import (
    SQLAlchemyProvider,
    SQLAlchemyConnection,
    SQLAlchemyTransaction,
    SQLAlchemyRows,
    PostgresProvider,
    SQLiteProvider,
    build_ssl_context,
)

__all__ = [
    "Statement",
    "Params",
    "DatabaseConfig",
    "Result",
    "Row",
    "Rows",
    "TransactionState",
    "Transaction",
    "Connection",
    "Provider",
    "DriverError",
    "NoRowsError",
    "TransactionDoneError",
    "ConnectionClosedError",
    "ProviderRegistry",
    "SQLAlchemyProvider",
    "SQLAlchemyConnection",
    "SQLAlchemyTransaction",
    "SQLAlchemyRows",
    "PostgresProvider",
    "SQLiteProvider",
    "build_ssl_context",
]
