from datetime import datetime
from typing import TYPE_CHECKING

from advanced_alchemy.types import DateTimeUTC
from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parley.db.base import Base

if TYPE_CHECKING:
    from parley.db.models.message import Message


class Conversation(Base):
    """Two-party conversation, stored with the smaller user id first."""

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_conversations_user_low_user_high"),
        CheckConstraint("user_low_id < user_high_id", name="ck_conversations_canonical_pair"),
        Index("ix_conversations_user_low_last_message", "user_low_id", "last_message_at"),
        Index("ix_conversations_user_high_last_message", "user_high_id", "last_message_at"),
    )

    user_low_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_high_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    last_message_at: Mapped[datetime] = mapped_column(DateTimeUTC(timezone=True), nullable=False)

    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    @property
    def participant_ids(self) -> tuple[int, int]:
        return (self.user_low_id, self.user_high_id)

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.user_low_id, self.user_high_id)

    def other_participant_id(self, user_id: int) -> int:
        """Return the id of the participant that is not ``user_id``."""
        return self.user_high_id if user_id == self.user_low_id else self.user_low_id
