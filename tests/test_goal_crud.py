from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from database import crud
from database.session import _resolve_database_url

GOAL_DATA = {"userId": "u1", "title": "Run 5k", "deadline": "2025-01-01"}


def test_create_goal_maps_columns_and_attributes(db: Session) -> None:
    goal = crud.create_goal(db, {**GOAL_DATA, "status": "active", "stripeSessionId": "cs_1", "stakeAmount": 20})

    assert goal.id
    assert goal.user_id == "u1"
    assert goal.status == "active"
    assert goal.stripe_session_id == "cs_1"
    assert goal.payment_setup_complete is False
    assert goal.attributes == {"stakeAmount": 20}

    document = goal.to_document()
    assert document["_id"] == goal.id
    assert document["stripeSessionId"] == "cs_1"
    assert document["stakeAmount"] == 20


def test_create_goal_requires_user_and_title(db: Session) -> None:
    with pytest.raises(ValueError):
        crud.create_goal(db, {"title": "No owner"})


def test_numeric_deadline_matches_pending_lookup(db: Session) -> None:
    pending = crud.create_goal(db, {"userId": "u1", "title": "Read", "deadline": 1735689600000, "status": "pending"})

    found = crud.get_pending_goal_by_user(db, user_id="u1", title="Read", deadline=1735689600000)

    assert found is not None
    assert found.id == pending.id


def test_pending_lookup_ignores_active_and_mismatched_goals(db: Session) -> None:
    crud.create_goal(db, {**GOAL_DATA, "status": "active"})
    crud.create_goal(db, {**GOAL_DATA, "title": "Run 10k", "status": "pending"})
    crud.create_goal(db, {**GOAL_DATA, "userId": "u2", "status": "pending"})

    assert crud.get_pending_goal_by_user(db, user_id="u1", title="Run 5k", deadline="2025-01-01") is None


def test_pending_lookup_prefers_most_recent(db: Session) -> None:
    older = crud.create_goal(db, {**GOAL_DATA, "status": "pending"})
    newer = crud.create_goal(db, {**GOAL_DATA, "status": "pending"})
    older.created_at = datetime.utcnow() - timedelta(hours=1)
    db.commit()

    found = crud.get_pending_goal_by_user(db, user_id="u1", title="Run 5k", deadline="2025-01-01")

    assert found.id == newer.id


def test_targeted_mutations(db: Session) -> None:
    goal = crud.create_goal(db, {**GOAL_DATA, "status": "pending"})

    crud.update_goal_status(db, goal_id=goal.id, status="active")
    crud.update_goal_with_session(db, goal_id=goal.id, stripe_session_id="cs_2")
    crud.save_payment_method_id(db, goal_id=goal.id, payment_method_id="pm_2")
    crud.update_payment_setup_complete(db, goal_id=goal.id)

    stored = crud.get_goal_by_session_id(db, "cs_2")
    assert stored.id == goal.id
    assert stored.status == "active"
    assert stored.payment_method_id == "pm_2"
    assert stored.payment_setup_complete is True


def test_mutating_unknown_goal_raises(db: Session) -> None:
    with pytest.raises(LookupError):
        crud.update_payment_setup_complete(db, goal_id="missing")


def test_resolve_database_url_defaults_to_sqlite() -> None:
    url, connect_args = _resolve_database_url(None)

    assert url.drivername == "sqlite"
    assert connect_args == {"check_same_thread": False}


def test_resolve_database_url_upgrades_postgres() -> None:
    url, connect_args = _resolve_database_url("postgres://user:pw@db.example.com/goals")

    assert url.drivername == "postgresql+psycopg"
    assert url.query["sslmode"] == "require"
    assert connect_args == {}


def test_resolve_database_url_keeps_explicit_sslmode() -> None:
    url, _ = _resolve_database_url("postgresql://user:pw@localhost/goals?sslmode=disable")

    assert url.query["sslmode"] == "disable"
