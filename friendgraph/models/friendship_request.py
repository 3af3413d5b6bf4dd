import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from friendgraph.models.base import Base, utcnow

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
DELETED = "deleted"

REQUEST_STATUSES = (PENDING, ACCEPTED, REJECTED, DELETED)
RESPONSE_DECISIONS = (ACCEPTED, REJECTED)
TERMINATED_STATUSES = (REJECTED, DELETED)


class FriendshipRequest(Base):
    __tablename__ = "friendship_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    receiver_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PENDING
    )  # pending, accepted, rejected, deleted
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    # One row per ordered pair; terminated rows are reactivated, never duplicated.
    __table_args__ = (
        UniqueConstraint("requester_id", "receiver_id", name="uq_friendship_requests_pair"),
        CheckConstraint("requester_id <> receiver_id", name="ck_friendship_requests_not_self"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'deleted')",
            name="ck_friendship_requests_status",
        ),
    )
