from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import GOAL_STATUS_PENDING, Goal

_COLUMN_FIELDS = {
    "userId": "user_id",
    "title": "title",
    "description": "description",
    "deadline": "deadline",
    "status": "status",
    "stripeSessionId": "stripe_session_id",
    "paymentMethodId": "payment_method_id",
    "paymentSetupComplete": "payment_setup_complete",
}


def _deadline_key(deadline: Any) -> Optional[str]:
    if deadline is None:
        return None
    return str(deadline)


def get_goal(db: Session, goal_id: str) -> Optional[Goal]:
    return db.execute(select(Goal).where(Goal.id == goal_id)).scalar_one_or_none()


def _require_goal(db: Session, goal_id: str) -> Goal:
    goal = get_goal(db, goal_id)
    if goal is None:
        raise LookupError(f"Goal {goal_id} does not exist.")
    return goal


def get_goal_by_session_id(db: Session, session_id: str) -> Optional[Goal]:
    return (
        db.execute(select(Goal).where(Goal.stripe_session_id == session_id).order_by(Goal.created_at))
        .scalars()
        .first()
    )


def get_pending_goal_by_user(db: Session, *, user_id: Any, title: Any, deadline: Any) -> Optional[Goal]:
    statement = (
        select(Goal)
        .where(
            Goal.user_id == user_id,
            Goal.title == title,
            Goal.deadline == _deadline_key(deadline),
            Goal.status == GOAL_STATUS_PENDING,
        )
        .order_by(Goal.created_at.desc())
    )
    return db.execute(statement).scalars().first()


def create_goal(db: Session, goal_data: Dict[str, Any]) -> Goal:
    columns: Dict[str, Any] = {}
    attributes: Dict[str, Any] = {}
    for key, value in goal_data.items():
        column = _COLUMN_FIELDS.get(key)
        if column is None:
            attributes[key] = value
        else:
            columns[column] = value

    if not columns.get("user_id") or not columns.get("title"):
        raise ValueError("Goal data requires userId and title.")
    columns["deadline"] = _deadline_key(columns.get("deadline"))

    goal = Goal(**columns, attributes=attributes)
    db.add(goal)
    db.commit()
    db.refresh(goal)
    return goal


def update_goal_status(db: Session, *, goal_id: str, status: str) -> Goal:
    goal = _require_goal(db, goal_id)
    goal.status = status
    db.commit()
    db.refresh(goal)
    return goal


def update_goal_with_session(db: Session, *, goal_id: str, stripe_session_id: str) -> Goal:
    goal = _require_goal(db, goal_id)
    goal.stripe_session_id = stripe_session_id
    db.commit()
    db.refresh(goal)
    return goal


def save_payment_method_id(db: Session, *, goal_id: str, payment_method_id: str) -> Goal:
    goal = _require_goal(db, goal_id)
    goal.payment_method_id = payment_method_id
    db.commit()
    db.refresh(goal)
    return goal


def update_payment_setup_complete(db: Session, *, goal_id: str) -> Goal:
    goal = _require_goal(db, goal_id)
    goal.payment_setup_complete = True
    db.commit()
    db.refresh(goal)
    return goal
