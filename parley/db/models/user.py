from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from parley.db.base import Base


class User(Base):
    """Account record owned by the user directory.

    Only the fields the messaging rules depend on are mapped here; profile
    data lives with whatever service manages accounts.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_pending: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
