from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from parley.db.base import Base


class Setting(Base):
    """Admin-controlled key/value setting."""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
