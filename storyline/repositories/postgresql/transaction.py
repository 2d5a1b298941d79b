"""
asyncpg-backed transaction handle.

A ``PostgreSQLTransaction`` owns one pooled connection for its whole
lifetime. Repositories route writes through ``connection_for`` so that
every statement issued with the same handle runs on that connection and
inside the same database transaction.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from asyncpg import Connection, Pool
from asyncpg.transaction import Transaction as PgTransaction

logger = logging.getLogger(__name__)


class PostgreSQLTransaction:
    def __init__(self, pool: Pool, conn: Connection, tx: PgTransaction):
        self.pool = pool
        self.connection = conn
        self._tx = tx
        self._finished = False

    @classmethod
    async def begin(cls, pool: Pool) -> "PostgreSQLTransaction":
        conn = await pool.acquire()
        tx = conn.transaction()
        try:
            await tx.start()
        except Exception:
            await pool.release(conn)
            raise
        logger.debug("PostgreSQL transaction started")
        return cls(pool, conn, tx)

    async def commit(self) -> None:
        if self._finished:
            raise RuntimeError("Transaction already finished")
        try:
            await self._tx.commit()
        finally:
            await self._release()
        logger.debug("PostgreSQL transaction committed")

    async def rollback(self) -> None:
        if self._finished:
            return
        try:
            await self._tx.rollback()
        finally:
            await self._release()
        logger.debug("PostgreSQL transaction rolled back")

    async def _release(self) -> None:
        self._finished = True
        await self.pool.release(self.connection)


@asynccontextmanager
async def connection_for(
    pool: Pool, tx: Optional[object] = None
) -> AsyncIterator[Connection]:
    """Yield the transaction's connection, or a pooled one for reads."""
    if isinstance(tx, PostgreSQLTransaction):
        yield tx.connection
        return
    async with pool.acquire() as conn:
        yield conn


def affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command tag like ``UPDATE 1``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0
