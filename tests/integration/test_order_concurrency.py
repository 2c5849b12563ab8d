"""
Integration Tests for concurrent orders and the retry boundary

✅ Racing orders for one user serialize (no double spend, no oversell)
✅ Optimistic conflicts are retried, then surfaced
✅ Storage errors leave no partial write
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.orm.exc import StaleDataError

from portfolio_ledger.domain.errors import (
    ConcurrentModification,
    InsufficientFunds,
    InsufficientHoldings,
    StorageFailure,
)
from portfolio_ledger.domain.models.money import money
from portfolio_ledger.domain.services.ledger_engine import LedgerEngine
from portfolio_ledger.domain.services.position_accounting import apply_buy
from portfolio_ledger.domain.services.reconciliation_service import ReconciliationService
from portfolio_ledger.domain.services.user_locks import UserLockRegistry
from portfolio_ledger.infrastructure.db.repositories.account_repository import AccountRepository
from portfolio_ledger.infrastructure.db.repositories.ledger_repository import LedgerRepository


async def _ledger_total(session_factory, user_id="user-1"):
    async with session_factory() as session:
        _, total = await LedgerRepository(session).list_for_user(user_id)
    return total


def _fail_first(engine, monkeypatch, exc, times=1):
    original = engine._execute_once
    calls = {"count": 0}

    async def flaky(order):
        calls["count"] += 1
        if calls["count"] <= times:
            raise exc
        return await original(order)

    monkeypatch.setattr(engine, "_execute_once", flaky)
    return calls


@pytest.mark.asyncio
@pytest.mark.integration
async def test_racing_sells_of_last_unit_succeed_once(ledger_engine, open_account, session_factory):
    await open_account(balance="1000")
    await ledger_engine.buy("user-1", "TCS", 1, 100)

    results = await asyncio.gather(
        *(ledger_engine.sell("user-1", "TCS", 1, 100) for _ in range(5)),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(failures) == 4
    assert all(isinstance(f, InsufficientHoldings) for f in failures)
    assert await _ledger_total(session_factory) == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_racing_buys_never_overdraw(ledger_engine, open_account, session_factory):
    await open_account(balance="1000")

    results = await asyncio.gather(
        *(ledger_engine.buy("user-1", "INFY", 1, 300) for _ in range(5)),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 3
    assert all(isinstance(r, InsufficientFunds) for r in results if isinstance(r, Exception))

    async with session_factory() as session:
        account = await AccountRepository(session).get("user-1")
        report = await ReconciliationService(session).reconcile_account("user-1")
    assert account.wallet_balance == Decimal("100.00")
    assert report.is_valid


@pytest.mark.asyncio
@pytest.mark.integration
async def test_stale_write_is_retried(ledger_engine, open_account, session_factory, monkeypatch):
    await open_account(balance="1000")
    calls = _fail_first(ledger_engine, monkeypatch, StaleDataError("version mismatch"))

    outcome = await ledger_engine.buy("user-1", "TCS", 1, 100)

    assert calls["count"] == 2
    assert outcome.updated_balance == Decimal("900.00")
    assert await _ledger_total(session_factory) == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_duplicate_position_insert_is_retried(ledger_engine, open_account, monkeypatch):
    await open_account(balance="1000")
    error = IntegrityError("INSERT INTO position", {}, Exception("UNIQUE constraint failed"))
    calls = _fail_first(ledger_engine, monkeypatch, error)

    await ledger_engine.buy("user-1", "TCS", 1, 100)

    assert calls["count"] == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_conflict_surfaces_after_max_attempts(ledger_engine, open_account, session_factory, monkeypatch):
    await open_account(balance="1000")
    calls = _fail_first(ledger_engine, monkeypatch, StaleDataError("version mismatch"), times=99)

    with pytest.raises(ConcurrentModification) as exc_info:
        await ledger_engine.buy("user-1", "TCS", 1, 100)

    assert calls["count"] == ledger_engine.max_attempts
    assert exc_info.value.retryable
    assert await _ledger_total(session_factory) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unavailable_storage_becomes_storage_failure(ledger_engine, open_account, monkeypatch):
    await open_account(balance="1000")
    error = OperationalError("SELECT", {}, Exception("database is locked"))
    calls = _fail_first(ledger_engine, monkeypatch, error, times=99)

    with pytest.raises(StorageFailure):
        await ledger_engine.buy("user-1", "TCS", 1, 100)

    assert calls["count"] == ledger_engine.max_attempts


@pytest.mark.asyncio
@pytest.mark.integration
async def test_other_storage_errors_are_not_retried(ledger_engine, open_account, monkeypatch):
    await open_account(balance="1000")
    error = ProgrammingError("SELECT", {}, Exception("no such table"))
    calls = _fail_first(ledger_engine, monkeypatch, error, times=99)

    with pytest.raises(StorageFailure):
        await ledger_engine.buy("user-1", "TCS", 1, 100)

    assert calls["count"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_failure_mid_transaction_rolls_back_everything(
    ledger_engine, open_account, session_factory, monkeypatch
):
    await open_account(balance="1000")

    async def broken_append(self, record):
        raise OperationalError("INSERT INTO ledger_record", {}, Exception("disk I/O error"))

    monkeypatch.setattr(LedgerRepository, "append", broken_append)

    with pytest.raises(StorageFailure):
        await ledger_engine.buy("user-1", "TCS", 1, 100)

    monkeypatch.undo()
    async with session_factory() as session:
        account = await AccountRepository(session).get("user-1")
        _, total = await LedgerRepository(session).list_for_user("user-1")
    assert account.wallet_balance == Decimal("1000.00")
    assert account.version == 1
    assert total == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_independent_engines_cannot_oversell(session_factory, catalog, open_account):
    # One engine per simulated process: no shared lock registry
    engines = [
        LedgerEngine(
            session_factory=session_factory,
            product_catalog=catalog,
            lock_registry=UserLockRegistry(),
            retry_backoff_seconds=0,
        )
        for _ in range(4)
    ]
    await open_account(balance="1000")
    await engines[0].buy("user-1", "TCS", 1, 100)

    results = await asyncio.gather(
        *(engine.sell("user-1", "TCS", 1, 100) for engine in engines),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, Exception)]
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(successes) == 1
    assert all(isinstance(f, (InsufficientHoldings, ConcurrentModification)) for f in failures)

    async with session_factory() as session:
        account = await AccountRepository(session).get("user-1")
        report = await ReconciliationService(session).reconcile_account("user-1")
    assert account.wallet_balance == Decimal("1000.00")
    assert report.is_valid
    assert await _ledger_total(session_factory) == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_check_constraint_violation_is_not_retried(ledger_engine, open_account, session_factory, monkeypatch):
    await open_account(balance="50")
    calls = {"count": 0}

    def overdraw(order, balance, current, executed_at):
        calls["count"] += 1
        position = apply_buy(current, order.user_id, order.product_id, order.units, order.unit_price)
        return money(balance - order.total_amount), position, money(0)

    monkeypatch.setattr(LedgerEngine, "_apply_buy", staticmethod(overdraw))

    with pytest.raises(StorageFailure):
        await ledger_engine.buy("user-1", "TCS", 1, 100)

    assert calls["count"] == 1
    monkeypatch.undo()
    async with session_factory() as session:
        account = await AccountRepository(session).get("user-1")
    assert account.wallet_balance == Decimal("50.00")
    assert await _ledger_total(session_factory) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_non_unique_integrity_error_is_storage_failure(ledger_engine, open_account, monkeypatch):
    await open_account(balance="1000")
    error = IntegrityError(
        "UPDATE account", {}, Exception("CHECK constraint failed: ck_account_wallet_non_negative")
    )
    calls = _fail_first(ledger_engine, monkeypatch, error, times=99)

    with pytest.raises(StorageFailure):
        await ledger_engine.buy("user-1", "TCS", 1, 100)

    assert calls["count"] == 1
