# src/threadline/models/connection.py
"""Model for the mutual "contact" relationship between two users."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from threadline.db.session import Base
from threadline.db.time import utcnow

from .user import User


class ConnectionStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    BLOCKED = "BLOCKED"


class Connection(Base):
    """Directed requester -> target record, at most one per unordered pair.

    ``low_user_id``/``high_user_id`` hold the pair sorted so the unique
    constraint covers both orderings.
    """

    __tablename__ = "connection"
    __table_args__ = (
        UniqueConstraint("low_user_id", "high_user_id", name="uq_connection_pair"),
        CheckConstraint("requester_id <> target_id", name="ck_connection_not_self"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, index=True
    )
    low_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    high_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=ConnectionStatus.PENDING.value,
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    requester: Mapped[User] = relationship("User", foreign_keys=[requester_id])
    target: Mapped[User] = relationship("User", foreign_keys=[target_id])

    @classmethod
    def between(cls, requester_id: int, target_id: int) -> Connection:
        """Build a PENDING record with the sorted pair columns filled in."""
        low, high = sorted((requester_id, target_id))
        return cls(
            requester_id=requester_id,
            target_id=target_id,
            low_user_id=low,
            high_user_id=high,
            status=ConnectionStatus.PENDING.value,
        )

    def other_party(self, user_id: int) -> User:
        """Return the user on the opposite side of ``user_id``."""
        return self.target if self.requester_id == user_id else self.requester
