"""Read-only view of user accounts."""

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from parley.db.models import User
from parley.db.stores.base import UserRecord


def _to_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        username=user.username,
        display_name=user.display_name,
        is_disabled=user.is_disabled,
        is_pending=user.is_pending,
    )


class SqlUserDirectory:
    """UserDirectory backed by the ``users`` table.

    Returns detached :class:`UserRecord` snapshots so callers never hold ORM
    state across the stores' commits and rollbacks.
    """

    def __init__(self, db_session: AsyncSession) -> None:
        self.db_session = db_session

    async def load(self, user_id: int) -> UserRecord | None:
        user = await self.db_session.get(User, user_id)
        return _to_record(user) if user is not None else None

    async def load_by_username(self, username: str) -> UserRecord | None:
        result = await self.db_session.execute(
            select(User).where(User.username == username.strip())
        )
        user = result.scalar_one_or_none()
        return _to_record(user) if user is not None else None

    async def search(self, query: str, limit: int = 20) -> list[UserRecord]:
        """Case-insensitive match on username or display name.

        Ranked exact username, username prefix, then anything containing the
        query, newest accounts first within a rank.
        """
        query = query.strip()
        if not query:
            return []

        rank = case(
            (func.lower(User.username) == query.lower(), 0),
            (User.username.istartswith(query, autoescape=True), 1),
            else_=2,
        )
        result = await self.db_session.execute(
            select(User)
            .where(
                or_(
                    User.username.icontains(query, autoescape=True),
                    User.display_name.icontains(query, autoescape=True),
                )
            )
            .order_by(rank, User.created_at.desc(), User.id.desc())
            .limit(limit)
        )
        return [_to_record(user) for user in result.scalars().all()]
