# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

import httpx
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from database import crud
from utils.logger import get_logger

logger = get_logger()

GoalDocument = Dict[str, Any]

DEFAULT_CONVEX_TIMEOUT_SECONDS = 20.0


class GoalStore(Protocol):
    """Targeted goal queries and mutations, each one remote round trip."""

    async def get_goal_by_session_id(self, session_id: str) -> Optional[GoalDocument]: ...

    async def get_pending_goal(self, *, user_id: Any, title: Any, deadline: Any) -> Optional[GoalDocument]: ...

    async def create_goal(self, goal_data: Dict[str, Any]) -> str: ...

    async def update_goal_status(self, goal_id: str, status: str) -> None: ...

    async def update_goal_with_session(self, goal_id: str, stripe_session_id: str) -> None: ...

    async def save_payment_method_id(self, goal_id: str, payment_method_id: str) -> None: ...

    async def update_payment_setup_complete(self, goal_id: str) -> None: ...


class SqlGoalStore:
    """GoalStore backed by the SQLAlchemy session of the current request."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def _run_sync(self, operation, *args: Any, **kwargs: Any) -> Any:
        try:
            return operation(self._db, *args, **kwargs)
        except Exception:
            self._db.rollback()
            raise

    async def _run(self, operation, *args: Any, **kwargs: Any) -> Any:
        # Session calls block on the database driver; keep them off the event loop.
        return await run_in_threadpool(self._run_sync, operation, *args, **kwargs)

    async def get_goal_by_session_id(self, session_id: str) -> Optional[GoalDocument]:
        goal = await self._run(crud.get_goal_by_session_id, session_id)
        return goal.to_document() if goal else None

    async def get_pending_goal(self, *, user_id: Any, title: Any, deadline: Any) -> Optional[GoalDocument]:
        goal = await self._run(crud.get_pending_goal_by_user, user_id=user_id, title=title, deadline=deadline)
        return goal.to_document() if goal else None

    async def create_goal(self, goal_data: Dict[str, Any]) -> str:
        goal = await self._run(crud.create_goal, goal_data)
        return goal.id

    async def update_goal_status(self, goal_id: str, status: str) -> None:
        await self._run(crud.update_goal_status, goal_id=goal_id, status=status)

    async def update_goal_with_session(self, goal_id: str, stripe_session_id: str) -> None:
        await self._run(crud.update_goal_with_session, goal_id=goal_id, stripe_session_id=stripe_session_id)

    async def save_payment_method_id(self, goal_id: str, payment_method_id: str) -> None:
        await self._run(crud.save_payment_method_id, goal_id=goal_id, payment_method_id=payment_method_id)

    async def update_payment_setup_complete(self, goal_id: str) -> None:
        await self._run(crud.update_payment_setup_complete, goal_id=goal_id)


class ConvexError(RuntimeError):
    pass


def _compact_args(args: Dict[str, Any]) -> Dict[str, Any]:
    # Convex validators reject null for optional lookup fields; omit them instead.
    # Mutation arguments are forwarded unchanged.
    return {key: value for key, value in args.items() if value is not None}


class ConvexGoalStore:
    """GoalStore backed by a hosted Convex deployment's HTTP function API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        deployment_url: str,
        auth_token: str | None = None,
    ) -> None:
        self._client = client
        self.base_url = deployment_url.strip().rstrip("/")
        self.common_headers = {"Content-Type": "application/json"}
        if auth_token:
            self.common_headers["Authorization"] = f"Bearer {auth_token.strip()}"

    async def _call(self, kind: str, path: str, args: Dict[str, Any]) -> Any:
        payload = {"path": path, "args": args, "format": "json"}
        try:
            response = await self._client.post(
                f"{self.base_url}/api/{kind}",
                json=payload,
                headers=self.common_headers,
            )
        except httpx.HTTPError as exc:
            raise ConvexError(f"Convex {kind} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            snippet = response.text[:1200]
            raise ConvexError(f"Convex {kind} {path} failed ({response.status_code}): {snippet}")

        try:
            body = response.json()
        except ValueError as exc:
            raise ConvexError(f"Convex {kind} {path} returned a non-JSON body") from exc

        if not isinstance(body, dict) or body.get("status") != "success":
            message = body.get("errorMessage") if isinstance(body, dict) else None
            raise ConvexError(f"Convex {kind} {path} returned an error: {message or body!r}")
        return body.get("value")

    async def query(self, path: str, args: Dict[str, Any]) -> Any:
        return await self._call("query", path, args)

    async def mutation(self, path: str, args: Dict[str, Any]) -> Any:
        return await self._call("mutation", path, args)

    async def get_goal_by_session_id(self, session_id: str) -> Optional[GoalDocument]:
        return await self.query("goals:getGoalBySessionId", {"sessionId": session_id})

    async def get_pending_goal(self, *, user_id: Any, title: Any, deadline: Any) -> Optional[GoalDocument]:
        return await self.query(
            "goals:getPendingGoalByUser",
            _compact_args({"userId": user_id, "title": title, "deadline": deadline}),
        )

    async def create_goal(self, goal_data: Dict[str, Any]) -> str:
        goal_id = await self.mutation("goals:createGoal", goal_data)
        if not isinstance(goal_id, str) or not goal_id:
            raise ConvexError(f"Convex mutation goals:createGoal returned no goal id: {goal_id!r}")
        return goal_id

    async def update_goal_status(self, goal_id: str, status: str) -> None:
        await self.mutation("goals:updateGoalStatus", {"goalId": goal_id, "status": status})

    async def update_goal_with_session(self, goal_id: str, stripe_session_id: str) -> None:
        await self.mutation(
            "goals:updateGoalWithSession",
            {"goalId": goal_id, "stripeSessionId": stripe_session_id},
        )

    async def save_payment_method_id(self, goal_id: str, payment_method_id: str) -> None:
        await self.mutation(
            "goals:savePaymentMethodId",
            {"goalId": goal_id, "paymentMethodId": payment_method_id},
        )

    async def update_payment_setup_complete(self, goal_id: str) -> None:
        await self.mutation("goals:updatePaymentSetupComplete", {"goalId": goal_id})


def build_convex_client(timeout: float = DEFAULT_CONVEX_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    logger.info("Creating Convex HTTP client with %.1fs timeout", timeout)
    return httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))
