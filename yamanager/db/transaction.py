"""
Serializable, owner-locked transactions with bounded retries.

Every read-then-write operation runs through :func:`run_in_transaction`:

1. an in-process lock keyed by the affected owner id is taken;
2. a transaction is opened (SERIALIZABLE on PostgreSQL) and, on PostgreSQL,
   ``pg_advisory_xact_lock(owner_id)`` is taken inside it;
3. the operation runs under the transaction deadline;
4. serialization failures are retried with jittered exponential backoff,
   then surface as ``CONCURRENT_MODIFICATION``.

Domain errors raised by the operation roll the transaction back and
propagate unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.core.config import settings
from yamanager.core.exceptions import DomainError, ErrorCode

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SERIALIZATION_SQLSTATES = {"40001", "40P01"}


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.05
    max_delay: float = 1.0
    exponential_base: float = 2.0

    def delay(self, attempt: int) -> float:
        # attempt is 1-based
        delay = min(self.base_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)
        return delay * (0.5 + random.random())


class _OwnerLocks:
    """asyncio locks keyed by owner id, dropped once nobody holds or waits."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._users: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, key: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


owner_locks = _OwnerLocks()


def is_serialization_failure(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _SERIALIZATION_SQLSTATES:
        return True
    # SQLite reports writer contention as OperationalError
    return "database is locked" in str(orig).lower()


async def _prepare(session: AsyncSession, lock_key: int | None) -> None:
    if session.bind.dialect.name != "postgresql":
        return
    await session.connection(execution_options={"isolation_level": "SERIALIZABLE"})
    if lock_key is not None:
        await session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": lock_key})


async def _attempt(
    session: AsyncSession,
    operation: Callable[[AsyncSession], Awaitable[T]],
    lock_key: int | None,
) -> T:
    async with session.begin():
        await _prepare(session, lock_key)
        return await operation(session)


async def run_in_transaction(
    session: AsyncSession,
    operation: Callable[[AsyncSession], Awaitable[T]],
    *,
    lock_key: int | None = None,
    retry: RetryPolicy | None = None,
    timeout: float | None = None,
) -> T:
    """Run ``operation(session)`` atomically; see the module docstring."""
    retry = retry or RetryPolicy(
        max_attempts=settings.TRANSACTION_MAX_ATTEMPTS,
        base_delay=settings.TRANSACTION_RETRY_BASE_DELAY,
    )
    timeout = timeout if timeout is not None else settings.TRANSACTION_TIMEOUT_SECONDS

    # Close out any implicit transaction opened by earlier reads
    if session.in_transaction():
        await session.commit()

    for attempt in range(1, retry.max_attempts + 1):
        try:
            if lock_key is None:
                return await asyncio.wait_for(_attempt(session, operation, lock_key), timeout)
            async with owner_locks.hold(lock_key):
                return await asyncio.wait_for(_attempt(session, operation, lock_key), timeout)
        except asyncio.TimeoutError:
            logger.warning("Transaction exceeded %.1fs deadline (owner=%s)", timeout, lock_key)
            raise DomainError(ErrorCode.TIMEOUT, f"transaction exceeded {timeout}s") from None
        except DBAPIError as exc:
            if not is_serialization_failure(exc):
                raise
            if attempt >= retry.max_attempts:
                logger.warning(
                    "Giving up after %d attempts on owner %s: %s", attempt, lock_key, exc.orig
                )
                raise DomainError(
                    ErrorCode.CONCURRENT_MODIFICATION, "serialization retries exhausted"
                ) from exc
            delay = retry.delay(attempt)
            logger.info(
                "Serialization failure on owner %s (attempt %d/%d), retrying in %.3fs",
                lock_key, attempt, retry.max_attempts, delay,
            )
            await asyncio.sleep(delay)

    raise DomainError(ErrorCode.CONCURRENT_MODIFICATION)  # pragma: no cover
