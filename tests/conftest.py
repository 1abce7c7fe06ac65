from __future__ import annotations

import asyncio
import os
from typing import Any, Awaitable, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

os.environ.pop("CONVEX_URL", None)
os.environ.pop("NEXT_PUBLIC_CONVEX_URL", None)

from database import models  # noqa: E402,F401
from database.session import Base, build_engine, build_session_factory  # noqa: E402
from main import app, get_checkout_client, get_goal_store  # noqa: E402
from svc.goal_store import SqlGoalStore  # noqa: E402


class FakeCheckout:
    """Stands in for the Stripe session lookup."""

    def __init__(self, payment_method_id: Optional[str] = "pm_123", error: Optional[Exception] = None) -> None:
        self.payment_method_id = payment_method_id
        self.error = error
        self.calls: List[str] = []

    async def get_payment_method_id(self, session_id: str) -> Optional[str]:
        self.calls.append(session_id)
        if self.error is not None:
            raise self.error
        return self.payment_method_id


class RecordingGoalStore:
    """In-memory goal store that records every call it receives."""

    def __init__(self) -> None:
        self.goals: Dict[str, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail_on: set[str] = set()
        self._next_id = 0

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    def add_goal(self, **fields: Any) -> str:
        self._next_id += 1
        goal_id = f"goal_{self._next_id}"
        self.goals[goal_id] = {"_id": goal_id, **fields}
        return goal_id

    async def get_goal_by_session_id(self, session_id: str) -> Optional[Dict[str, Any]]:
        self._record("get_goal_by_session_id", session_id)
        for goal in self.goals.values():
            if goal.get("stripeSessionId") == session_id:
                return dict(goal)
        return None

    async def get_pending_goal(self, *, user_id: Any, title: Any, deadline: Any) -> Optional[Dict[str, Any]]:
        self._record("get_pending_goal", user_id, title, deadline)
        for goal in self.goals.values():
            if (
                goal.get("status") == "pending"
                and goal.get("userId") == user_id
                and goal.get("title") == title
                and goal.get("deadline") == deadline
            ):
                return dict(goal)
        return None

    async def create_goal(self, goal_data: Dict[str, Any]) -> str:
        self._record("create_goal", dict(goal_data))
        return self.add_goal(**goal_data)

    async def update_goal_status(self, goal_id: str, status: str) -> None:
        self._record("update_goal_status", goal_id, status)
        self.goals[goal_id]["status"] = status

    async def update_goal_with_session(self, goal_id: str, stripe_session_id: str) -> None:
        self._record("update_goal_with_session", goal_id, stripe_session_id)
        self.goals[goal_id]["stripeSessionId"] = stripe_session_id

    async def save_payment_method_id(self, goal_id: str, payment_method_id: str) -> None:
        self._record("save_payment_method_id", goal_id, payment_method_id)
        self.goals[goal_id]["paymentMethodId"] = payment_method_id

    async def update_payment_setup_complete(self, goal_id: str) -> None:
        self._record("update_payment_setup_complete", goal_id)
        self.goals[goal_id]["paymentSetupComplete"] = True


async def largest_loop_gap(operation: Awaitable[Any], tick: float = 0.02) -> tuple[Any, float]:
    """Await ``operation`` while a ticker runs; return its result and the longest tick gap."""
    loop = asyncio.get_running_loop()
    ticks: List[float] = []
    done = asyncio.Event()

    async def ticker() -> None:
        while not done.is_set():
            ticks.append(loop.time())
            await asyncio.sleep(tick)

    task = asyncio.create_task(ticker())
    await asyncio.sleep(0)
    try:
        result = await operation
    finally:
        done.set()
        await task
    ticks.append(loop.time())
    gaps = [later - earlier for earlier, later in zip(ticks, ticks[1:])]
    return result, max(gaps)


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine) -> Session:
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def checkout() -> FakeCheckout:
    return FakeCheckout()


@pytest.fixture()
def store() -> RecordingGoalStore:
    return RecordingGoalStore()


@pytest.fixture()
def client(db: Session, checkout: FakeCheckout) -> TestClient:
    app.dependency_overrides[get_goal_store] = lambda: SqlGoalStore(db)
    app.dependency_overrides[get_checkout_client] = lambda: checkout
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def recording_client(store: RecordingGoalStore, checkout: FakeCheckout) -> TestClient:
    app.dependency_overrides[get_goal_store] = lambda: store
    app.dependency_overrides[get_checkout_client] = lambda: checkout
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
