from advanced_alchemy.base import BigIntAuditBase


class Base(BigIntAuditBase):
    """Base model with integer primary key and audit timestamps."""

    __abstract__ = True
