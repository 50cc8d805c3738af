from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parley.db.base import Base

if TYPE_CHECKING:
    from parley.db.models.conversation import Conversation


class Message(Base):
    """A message inside a conversation.

    Deletion is per participant: ``deleted_by_sender`` hides the message from
    its author, ``deleted_by_recipient`` hides it from the other participant.
    The row stays stored either way.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at", "id"),
    )

    conversation_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    conversation: Mapped["Conversation"] = relationship(
        "Conversation", back_populates="messages", lazy="raise"
    )

    sender_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    body: Mapped[str] = mapped_column(Text, nullable=False)

    # Only meaningful from the recipient's side
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    deleted_by_sender: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_by_recipient: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def is_visible_to(self, viewer_id: int) -> bool:
        if viewer_id == self.sender_id:
            return not self.deleted_by_sender
        return not self.deleted_by_recipient
