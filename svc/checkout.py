# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

from typing import Any, Optional

import stripe
from fastapi.concurrency import run_in_threadpool

from utils.logger import get_logger

logger = get_logger()

PAYMENT_METHOD_EXPANSION = ["setup_intent.payment_method"]


class CheckoutNotConfiguredError(RuntimeError):
    """Raised when no Stripe API key is available for session lookups."""


def _stripe_get(obj: Any, key: str) -> Any:
    """Safely fetch a key from Stripe objects, dicts, or plain attrs."""
    if obj is None or isinstance(obj, str):
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    getter = getattr(obj, "get", None)
    if callable(getter):
        try:
            return getter(key)
        except (KeyError, TypeError):
            pass
    return getattr(obj, key, None)


def _coerce_stripe_id(value: Any) -> Optional[str]:
    """Ensure Stripe identifiers are returned as plain strings."""
    if not value:
        return None
    if isinstance(value, str):
        return value
    potential_id = _stripe_get(value, "id")
    if isinstance(potential_id, str) and potential_id:
        return potential_id
    return None


def extract_payment_method_id(session_obj: Any) -> Optional[str]:
    """Return ``session.setup_intent.payment_method.id`` when Stripe attached one.

    An unexpanded setup intent is only an id string and carries no payment
    method, so it yields ``None``.
    """
    setup_intent = _stripe_get(session_obj, "setup_intent")
    if not setup_intent:
        return None
    return _coerce_stripe_id(_stripe_get(setup_intent, "payment_method"))


class CheckoutSessionClient:
    def __init__(self, api_key: str | None) -> None:
        self._api_key = api_key

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def retrieve_session(self, session_id: str) -> Any:
        if not self._api_key:
            raise CheckoutNotConfiguredError("Stripe API key is not configured.")
        # Blocking SDK call; keep it off the event loop.
        return await run_in_threadpool(
            stripe.checkout.Session.retrieve,
            session_id,
            api_key=self._api_key,
            expand=PAYMENT_METHOD_EXPANSION,
        )

    async def get_payment_method_id(self, session_id: str) -> Optional[str]:
        session = await self.retrieve_session(session_id)
        payment_method_id = extract_payment_method_id(session)
        if payment_method_id is None:
            logger.info("Stripe session %s has no payment method attached", session_id)
        return payment_method_id
