"""
UserStat singleton access.

There is exactly one live user_stats row. It is created lazily and always
reached through the session (or session factory) the caller passes in, so
tests can hand over an isolated database.

Writers use user_stat_transaction(): the row is locked first (a no-op
UPDATE, which takes the SQLite write lock and the PostgreSQL row lock) and
then re-read with SELECT ... FOR UPDATE, so concurrent read-modify-write
cycles serialise instead of losing updates.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from decisionlab.db.models import USER_STAT_KEY, UserStat

logger = structlog.get_logger(__name__)


async def get_or_create_user_stat(session: AsyncSession, for_update: bool = False) -> UserStat:
    """Return the singleton row, inserting it if absent.

    The insert is flushed but not committed; the caller owns the transaction.
    """
    stmt = select(UserStat).where(UserStat.singleton_key == USER_STAT_KEY)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    stat = result.scalar_one_or_none()
    if stat is None:
        stat = UserStat(singleton_key=USER_STAT_KEY, badges=[])
        session.add(stat)
        await session.flush()
        logger.info("user_stat_created", id=str(stat.id))
    return stat


async def _ensure_user_stat(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Make sure the row exists. A concurrent creator winning the race is fine."""
    async with session_factory() as session:
        result = await session.execute(
            select(UserStat.id).where(UserStat.singleton_key == USER_STAT_KEY)
        )
        if result.scalar_one_or_none() is not None:
            return
        session.add(UserStat(singleton_key=USER_STAT_KEY, badges=[]))
        try:
            await session.commit()
            logger.info("user_stat_created")
        except IntegrityError:
            await session.rollback()
            logger.debug("user_stat_create_raced")


@asynccontextmanager
async def user_stat_transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[UserStat, None]:
    """Yield the locked singleton inside one transaction.

    Changes made to the yielded row are committed when the block exits
    normally and rolled back if it raises.
    """
    await _ensure_user_stat(session_factory)
    async with session_factory() as session:
        async with session.begin():
            await session.execute(
                update(UserStat)
                .where(UserStat.singleton_key == USER_STAT_KEY)
                .values(singleton_key=USER_STAT_KEY)
                .execution_options(synchronize_session=False)
            )
            stat = await get_or_create_user_stat(session, for_update=True)
            yield stat


async def read_user_stat(session_factory: async_sessionmaker[AsyncSession]) -> UserStat:
    """Read-only snapshot of the singleton (created if absent)."""
    await _ensure_user_stat(session_factory)
    async with session_factory() as session:
        return await get_or_create_user_stat(session)
