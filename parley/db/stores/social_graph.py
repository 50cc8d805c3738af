"""Follow edges between users."""

import logging

from sqlalchemy import and_, delete, exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from parley.db.models import UserFollow
from parley.lib.results import ErrorKind, Result

logger = logging.getLogger(__name__)

SELF_FOLLOW_ERROR = "You cannot follow yourself."


class SqlSocialGraphStore:
    """SocialGraphStore backed by the ``user_follows`` table."""

    def __init__(self, db_session: AsyncSession) -> None:
        self.db_session = db_session

    async def follow(self, follower_id: int, followed_id: int) -> Result[bool]:
        """Create the follow edge. Following twice is a successful no-op."""
        if follower_id == followed_id:
            return Result.failure(ErrorKind.SELF_REFERENCE, SELF_FOLLOW_ERROR)

        if await self.is_following(follower_id, followed_id):
            return Result.success(False)

        self.db_session.add(UserFollow(follower_id=follower_id, followed_id=followed_id))
        try:
            await self.db_session.commit()
        except IntegrityError:
            await self.db_session.rollback()
            if not await self.is_following(follower_id, followed_id):
                raise
            logger.debug("Follow %s -> %s was inserted concurrently", follower_id, followed_id)
            return Result.success(False)

        return Result.success(True)

    async def unfollow(self, follower_id: int, followed_id: int) -> Result[bool]:
        """Remove the follow edge. A missing edge is also success."""
        result = await self.db_session.execute(
            delete(UserFollow).where(
                and_(UserFollow.follower_id == follower_id, UserFollow.followed_id == followed_id)
            )
        )
        await self.db_session.commit()
        return Result.success(result.rowcount > 0)

    async def is_following(self, follower_id: int, followed_id: int) -> bool:
        result = await self.db_session.execute(
            select(
                exists().where(
                    and_(UserFollow.follower_id == follower_id, UserFollow.followed_id == followed_id)
                )
            )
        )
        return bool(result.scalar())

    async def are_mutual_follows(self, user_a: int, user_b: int) -> bool:
        """Check both directions with one self-joined query."""
        forward = aliased(UserFollow)
        backward = aliased(UserFollow)
        result = await self.db_session.execute(
            select(func.count())
            .select_from(forward)
            .join(
                backward,
                and_(
                    forward.follower_id == backward.followed_id,
                    forward.followed_id == backward.follower_id,
                ),
            )
            .where(and_(forward.follower_id == user_a, forward.followed_id == user_b))
        )
        return (result.scalar() or 0) > 0

    async def get_follower_ids(self, user_id: int) -> list[int]:
        result = await self.db_session.execute(
            select(UserFollow.follower_id)
            .where(UserFollow.followed_id == user_id)
            .order_by(UserFollow.created_at.desc(), UserFollow.id.desc())
        )
        return list(result.scalars().all())

    async def get_following_ids(self, user_id: int) -> list[int]:
        result = await self.db_session.execute(
            select(UserFollow.followed_id)
            .where(UserFollow.follower_id == user_id)
            .order_by(UserFollow.created_at.desc(), UserFollow.id.desc())
        )
        return list(result.scalars().all())

    async def count_followers(self, user_id: int) -> int:
        result = await self.db_session.execute(
            select(func.count()).select_from(UserFollow).where(UserFollow.followed_id == user_id)
        )
        return result.scalar() or 0

    async def count_following(self, user_id: int) -> int:
        result = await self.db_session.execute(
            select(func.count()).select_from(UserFollow).where(UserFollow.follower_id == user_id)
        )
        return result.scalar() or 0
