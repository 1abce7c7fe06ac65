# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from database.models import GOAL_STATUS_ACTIVE
from svc.goal_store import GoalStore
from utils.logger import get_logger

logger = get_logger()

# Caller-supplied identifiers never reach the create call.
_STRIPPED_ID_FIELDS = ("goalId", "_id")


class PaymentMethodSource(Protocol):
    async def get_payment_method_id(self, session_id: str) -> Optional[str]: ...


@dataclass(frozen=True)
class EnrichmentOutcome:
    """Result of attaching the checkout's payment method to a goal.

    ``error`` is set when the lookup or the save failed; the failure is
    recoverable and the goal is still completed without a payment method.
    """

    payment_method_id: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def recovered(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class GoalCompletionResult:
    goal_id: str
    already_exists: bool
    payment_method_id: Optional[str] = None


def _document_id(document: Dict[str, Any]) -> str:
    goal_id = document.get("_id") or document.get("id")
    if not goal_id:
        raise ValueError("Goal record is missing an identifier.")
    return str(goal_id)


def build_new_goal(goal_data: Dict[str, Any], session_id: str) -> Dict[str, Any]:
    new_goal = {key: value for key, value in goal_data.items() if key not in _STRIPPED_ID_FIELDS}
    new_goal["stripeSessionId"] = session_id
    new_goal["status"] = GOAL_STATUS_ACTIVE
    return new_goal


class GoalCompletionService:
    """Reconcile a completed checkout session with exactly one active goal.

    Resolution order, first match wins:

    1. a goal already carrying the session id is returned untouched;
    2. a pending goal with the same ``(userId, title, deadline)`` is activated
       and linked to the session;
    3. otherwise a new active goal is created from ``goal_data``.

    Paths 2 and 3 then attach the payment method (best effort) and mark the
    payment setup complete. The lookup and the write are separate round trips,
    so two concurrent calls for a brand new session can both create a goal.
    """

    def __init__(self, store: GoalStore, checkout: PaymentMethodSource) -> None:
        self._store = store
        self._checkout = checkout

    async def complete(self, session_id: str, goal_data: Dict[str, Any]) -> GoalCompletionResult:
        logger.info("Processing goal completion for session: %s", session_id)

        existing_goal = await self._store.get_goal_by_session_id(session_id)
        if existing_goal:
            goal_id = _document_id(existing_goal)
            logger.info("Goal already exists for session %s, returning existing goal: %s", session_id, goal_id)
            return GoalCompletionResult(goal_id=goal_id, already_exists=True)

        pending_goal = await self._store.get_pending_goal(
            user_id=goal_data.get("userId"),
            title=goal_data.get("title"),
            deadline=goal_data.get("deadline"),
        )

        if pending_goal:
            goal_id = _document_id(pending_goal)
            logger.info("Found pending goal: %s, updating it", goal_id)
            await self._store.update_goal_status(goal_id, GOAL_STATUS_ACTIVE)
            await self._store.update_goal_with_session(goal_id, session_id)
        else:
            logger.info("No pending goal found for user %s, creating a new goal", goal_data.get("userId"))
            goal_id = await self._store.create_goal(build_new_goal(goal_data, session_id))
            logger.info("Created new goal: %s", goal_id)

        outcome = await self._attach_payment_method(goal_id, session_id)
        if outcome.recovered:
            logger.info("Completing goal %s without a payment method", goal_id)

        # The setup flag is what makes the goal visible in the feed.
        await self._store.update_payment_setup_complete(goal_id)

        logger.info("Successfully completed goal %s for session %s", goal_id, session_id)
        return GoalCompletionResult(
            goal_id=goal_id,
            already_exists=False,
            payment_method_id=outcome.payment_method_id,
        )

    async def _attach_payment_method(self, goal_id: str, session_id: str) -> EnrichmentOutcome:
        try:
            payment_method_id = await self._checkout.get_payment_method_id(session_id)
            if payment_method_id:
                await self._store.save_payment_method_id(goal_id, payment_method_id)
                logger.info("Payment method ID saved for goal: %s", goal_id)
        except Exception as exc:
            logger.warning("Could not retrieve payment method ID for goal %s: %s", goal_id, exc)
            return EnrichmentOutcome(error=exc)
        return EnrichmentOutcome(payment_method_id=payment_method_id)
