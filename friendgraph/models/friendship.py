import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from friendgraph.models.base import Base, utcnow


def canonical_pair(user_a: uuid.UUID, user_b: uuid.UUID) -> tuple[uuid.UUID, uuid.UUID]:
    """Order an unordered pair the way it is stored: lower id first."""
    return (min(user_a, user_b), max(user_a, user_b))


class Friendship(Base):
    __tablename__ = "friendships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Canonical ordering: user_id_1 < user_id_2 to prevent duplicates
    user_id_1: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id_2: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("user_id_1", "user_id_2", name="uq_friendships_pair"),
        CheckConstraint("user_id_1 < user_id_2", name="ck_friendships_canonical_order"),
    )

    def other(self, user_id: uuid.UUID) -> uuid.UUID:
        return self.user_id_2 if self.user_id_1 == user_id else self.user_id_1
