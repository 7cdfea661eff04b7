"""A Connection whose statements take longer than any test deadline."""

import asyncio

from cnapp.database.base import Connection, Result, Row, Rows, Transaction


class SlowTransaction(Transaction):
    def __init__(self, delay: float):
        super().__init__()
        self.delay = delay
        self.rolled_back = False

    async def _execute(self, statement, params) -> Result:
        await asyncio.sleep(self.delay)
        return Result(rows_affected=1)

    async def _query(self, statement, params) -> Rows:
        raise NotImplementedError

    async def _query_row(self, statement, params) -> Row:
        await asyncio.sleep(self.delay)
        return Row(None)

    async def _commit(self) -> None:
        pass

    async def _rollback(self) -> None:
        self.rolled_back = True


class SlowConnection(Connection):
    def __init__(self, delay: float):
        self.delay = delay
        self.transaction: SlowTransaction | None = None

    @property
    def closed(self) -> bool:
        return False

    async def execute(self, statement, params=None) -> Result:
        await asyncio.sleep(self.delay)
        return Result(rows_affected=0)

    async def query(self, statement, params=None) -> Rows:
        raise NotImplementedError

    async def query_row(self, statement, params=None) -> Row:
        await asyncio.sleep(self.delay)
        return Row(None)

    async def begin(self) -> Transaction:
        self.transaction = SlowTransaction(self.delay)
        return self.transaction

    async def health(self, timeout=None) -> None:
        pass

    async def close(self) -> None:
        pass
