from __future__ import annotations

from datetime import datetime
from typing import Any, Dict
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .session import Base

GOAL_STATUS_PENDING = "pending"
GOAL_STATUS_ACTIVE = "active"


def _new_goal_id() -> str:
    return uuid4().hex


class Goal(Base):
    __tablename__ = "goals"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_goal_id)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    deadline: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=GOAL_STATUS_PENDING, index=True)
    # Indexed but not unique: duplicates per session are prevented by the
    # completion handler's lookup, not by the schema.
    stripe_session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    payment_method_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_setup_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attributes: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def to_document(self) -> Dict[str, Any]:
        """Render the row with the same field names the hosted store returns."""
        document: Dict[str, Any] = dict(self.attributes or {})
        document.update(
            {
                "_id": self.id,
                "userId": self.user_id,
                "title": self.title,
                "description": self.description,
                "deadline": self.deadline,
                "status": self.status,
                "stripeSessionId": self.stripe_session_id,
                "paymentMethodId": self.payment_method_id,
                "paymentSetupComplete": self.payment_setup_complete,
            }
        )
        return document
