import pytest

from cnapp.database.base import Result, Row, Rows, Transaction, TransactionState
from cnapp.database.errors import DriverError, NoRowsError, TransactionDoneError


class ListRows(Rows):
    def __init__(self, rows):
        self._rows = list(rows)
        self.close_calls = 0

    async def fetch(self):
        return self._rows.pop(0) if self._rows else None

    async def close(self):
        self.close_calls += 1


class RecordingTransaction(Transaction):
    """Transaction whose engine hooks only record what was asked of them."""

    def __init__(self, *, fail_commit: bool = False, fail_rollback: bool = False):
        super().__init__()
        self.calls: list[str] = []
        self.fail_commit = fail_commit
        self.fail_rollback = fail_rollback

    async def _execute(self, statement, params):
        self.calls.append(f"execute:{statement}")
        return Result(rows_affected=1)

    async def _query(self, statement, params):
        self.calls.append(f"query:{statement}")
        return ListRows([(1,), (2,)])

    async def _query_row(self, statement, params):
        self.calls.append(f"query_row:{statement}")
        return Row(None)

    async def _commit(self):
        self.calls.append("commit")
        if self.fail_commit:
            raise RuntimeError("commit failed")

    async def _rollback(self):
        self.calls.append("rollback")
        if self.fail_rollback:
            raise RuntimeError("rollback failed")


@pytest.mark.asyncio
class TestTransactionGuard:
    """
    Behavior:
      - exactly one terminal outcome per transaction
      - a late rollback is a no-op, a late commit or statement is an error
      - `async with tx` always rolls back on exit unless committed
    """

    async def test_commit_then_rollback_is_noop(self):
        tx = RecordingTransaction()
        await tx.execute("INSERT")
        await tx.commit()

        assert await tx.rollback() is False
        assert tx.calls == ["execute:INSERT", "commit"]
        assert tx.state is TransactionState.COMMITTED

    async def test_rollback_then_commit_raises(self):
        tx = RecordingTransaction()
        assert await tx.rollback() is True

        with pytest.raises(TransactionDoneError):
            await tx.commit()
        assert tx.state is TransactionState.ROLLED_BACK
        assert tx.calls == ["rollback"]

    async def test_double_commit_raises(self):
        tx = RecordingTransaction()
        await tx.commit()
        with pytest.raises(TransactionDoneError):
            await tx.commit()
        assert tx.calls == ["commit"]

    @pytest.mark.parametrize("method", ["execute", "query", "query_row"])
    async def test_statements_after_terminal_outcome_raise(self, method):
        tx = RecordingTransaction()
        await tx.commit()
        with pytest.raises(TransactionDoneError):
            await getattr(tx, method)("SELECT 1")

    async def test_failed_commit_leaves_transaction_terminal(self):
        tx = RecordingTransaction(fail_commit=True)
        with pytest.raises(RuntimeError):
            await tx.commit()

        assert tx.done
        assert tx.state is TransactionState.ROLLED_BACK
        assert await tx.rollback() is False

    async def test_context_exit_rolls_back_uncommitted_work(self):
        tx = RecordingTransaction()
        async with tx:
            await tx.execute("UPDATE")
        assert tx.calls == ["execute:UPDATE", "rollback"]
        assert tx.state is TransactionState.ROLLED_BACK

    async def test_context_exit_after_commit_does_not_roll_back(self):
        tx = RecordingTransaction()
        async with tx:
            await tx.execute("UPDATE")
            await tx.commit()
        assert tx.calls == ["execute:UPDATE", "commit"]

    async def test_context_exit_on_error_rolls_back_and_propagates(self):
        tx = RecordingTransaction()
        with pytest.raises(ValueError):
            async with tx:
                await tx.execute("DELETE")
                raise ValueError("bad input")
        assert tx.calls[-1] == "rollback"

    async def test_failing_rollback_does_not_mask_original_error(self):
        tx = RecordingTransaction(fail_rollback=True)
        with pytest.raises(ValueError, match="original"):
            async with tx:
                raise ValueError("original")

    async def test_failing_rollback_without_error_propagates(self):
        tx = RecordingTransaction(fail_rollback=True)
        with pytest.raises(RuntimeError, match="rollback failed"):
            async with tx:
                pass


@pytest.mark.asyncio
class TestRowAndRows:
    async def test_row_scan_without_row_raises_no_rows(self):
        with pytest.raises(NoRowsError) as exc_info:
            Row(None).scan()
        assert isinstance(exc_info.value, DriverError)
        assert str(exc_info.value) == "no rows in result set"

    async def test_no_rows_is_matched_by_type(self):
        first, second = NoRowsError(), NoRowsError()
        assert first is not second
        assert isinstance(second, NoRowsError)

    async def test_row_scan_and_scan_one(self):
        row = Row([7, "alice"])
        assert row.scan() == (7, "alice")
        assert row.scan_one() == 7

    async def test_rows_iterate_and_close_on_exit(self):
        rows = ListRows([(1,), (2,), (3,)])
        async with rows:
            collected = [values async for values in rows]
        assert collected == [(1,), (2,), (3,)]
        assert rows.close_calls == 1

    async def test_rows_closed_when_iteration_fails(self):
        rows = ListRows([(1,), (2,)])
        with pytest.raises(RuntimeError):
            async with rows:
                async for _ in rows:
                    raise RuntimeError("decode failed")
        assert rows.close_calls == 1
