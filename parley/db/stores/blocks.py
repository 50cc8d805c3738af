"""Block edges between users."""

import logging

from sqlalchemy import and_, delete, exists, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parley.db.models import UserBlock
from parley.lib.results import ErrorKind, Result

logger = logging.getLogger(__name__)

SELF_BLOCK_ERROR = "You cannot block yourself."


class SqlBlockStore:
    """BlockStore backed by the ``user_blocks`` table."""

    def __init__(self, db_session: AsyncSession) -> None:
        self.db_session = db_session

    async def block(self, blocker_id: int, blocked_id: int) -> Result[bool]:
        if blocker_id == blocked_id:
            return Result.failure(ErrorKind.SELF_REFERENCE, SELF_BLOCK_ERROR)

        if await self.is_blocked(blocker_id, blocked_id):
            return Result.success(False)

        self.db_session.add(UserBlock(blocker_id=blocker_id, blocked_id=blocked_id))
        try:
            await self.db_session.commit()
        except IntegrityError:
            await self.db_session.rollback()
            if not await self.is_blocked(blocker_id, blocked_id):
                raise
            logger.debug("Block %s -> %s was inserted concurrently", blocker_id, blocked_id)
            return Result.success(False)

        return Result.success(True)

    async def unblock(self, blocker_id: int, blocked_id: int) -> Result[bool]:
        result = await self.db_session.execute(
            delete(UserBlock).where(
                and_(UserBlock.blocker_id == blocker_id, UserBlock.blocked_id == blocked_id)
            )
        )
        await self.db_session.commit()
        return Result.success(result.rowcount > 0)

    async def is_blocked(self, blocker_id: int, blocked_id: int) -> bool:
        result = await self.db_session.execute(
            select(
                exists().where(
                    and_(UserBlock.blocker_id == blocker_id, UserBlock.blocked_id == blocked_id)
                )
            )
        )
        return bool(result.scalar())

    async def has_block_between(self, user_a: int, user_b: int) -> bool:
        """True if either user has blocked the other."""
        result = await self.db_session.execute(
            select(
                exists().where(
                    or_(
                        and_(UserBlock.blocker_id == user_a, UserBlock.blocked_id == user_b),
                        and_(UserBlock.blocker_id == user_b, UserBlock.blocked_id == user_a),
                    )
                )
            )
        )
        return bool(result.scalar())

    async def get_blocked_ids(self, blocker_id: int) -> list[int]:
        result = await self.db_session.execute(
            select(UserBlock.blocked_id).where(UserBlock.blocker_id == blocker_id)
        )
        return list(result.scalars().all())

    async def get_blocker_ids(self, blocked_id: int) -> list[int]:
        result = await self.db_session.execute(
            select(UserBlock.blocker_id).where(UserBlock.blocked_id == blocked_id)
        )
        return list(result.scalars().all())
