# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

import os
from typing import Any, Dict, List, Optional

import httpx
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.orm import Session

from database.session import Base, engine, get_db
from svc.checkout import CheckoutSessionClient
from svc.goal_completion import GoalCompletionService
from svc.goal_store import (
    DEFAULT_CONVEX_TIMEOUT_SECONDS,
    ConvexGoalStore,
    GoalStore,
    SqlGoalStore,
    build_convex_client,
)
from utils.logger import setup_logger


class CompleteGoalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    goal_data: Any = Field(default=None, alias="goalData")


class CompleteGoalResponse(BaseModel):
    success: bool
    goalId: str
    alreadyExists: bool


class ErrorResponse(BaseModel):
    error: str


load_dotenv()

logger = setup_logger()

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
CONVEX_URL = os.getenv("CONVEX_URL") or os.getenv("NEXT_PUBLIC_CONVEX_URL")
CONVEX_AUTH_TOKEN = os.getenv("CONVEX_AUTH_TOKEN")

MISSING_FIELDS_MESSAGE = "Missing sessionId or goalData"
COMPLETION_FAILED_MESSAGE = "Failed to complete goal creation"

_DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "https://localhost:3000",
    "https://127.0.0.1:3000",
]


def _load_convex_timeout() -> float:
    raw_timeout = os.getenv("CONVEX_TIMEOUT_SECONDS")
    if not raw_timeout:
        return DEFAULT_CONVEX_TIMEOUT_SECONDS
    try:
        parsed = float(raw_timeout)
    except ValueError:
        return DEFAULT_CONVEX_TIMEOUT_SECONDS
    return max(parsed, 1.0)


def _load_cors_origins() -> List[str]:
    raw_origins = os.getenv("CORS_ALLOW_ORIGINS")
    if not raw_origins:
        return list(_DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw_origins.split(",") if origin.strip()]


CONVEX_TIMEOUT_SECONDS = _load_convex_timeout()
_convex_http_client: Optional[httpx.AsyncClient] = None

app = FastAPI(title="goal-checkout", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_load_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    if CONVEX_URL:
        logger.info("Using Convex goal store at %s", CONVEX_URL)
        return
    Base.metadata.create_all(bind=engine)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    global _convex_http_client
    if _convex_http_client is not None:
        await _convex_http_client.aclose()
        _convex_http_client = None


def _get_convex_http_client() -> httpx.AsyncClient:
    global _convex_http_client
    if _convex_http_client is None:
        _convex_http_client = build_convex_client(CONVEX_TIMEOUT_SECONDS)
    return _convex_http_client


def get_goal_store(db: Session = Depends(get_db)) -> GoalStore:
    if CONVEX_URL:
        return ConvexGoalStore(
            _get_convex_http_client(),
            deployment_url=CONVEX_URL,
            auth_token=CONVEX_AUTH_TOKEN,
        )
    return SqlGoalStore(db)


def get_checkout_client() -> CheckoutSessionClient:
    return CheckoutSessionClient(STRIPE_SECRET_KEY)


def get_goal_completion_service(
    store: GoalStore = Depends(get_goal_store),
    checkout: CheckoutSessionClient = Depends(get_checkout_client),
) -> GoalCompletionService:
    return GoalCompletionService(store, checkout)


@app.get("/api/health")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint that reports which collaborators are configured."""
    return {
        "status": "ok",
        "goal_store": "convex" if CONVEX_URL else "sql",
        "stripe_configured": get_checkout_client().configured,
    }


def _is_absent(value: Any) -> bool:
    # Only null and empty scalars count as missing; an empty object is still goal data.
    if value is None:
        return True
    return isinstance(value, (str, int, float)) and not value


def _parse_completion_request(payload: Any) -> Optional[CompleteGoalRequest]:
    if not isinstance(payload, dict):
        return None
    try:
        parsed = CompleteGoalRequest.model_validate(payload)
    except ValidationError:
        return None
    if not parsed.session_id or _is_absent(parsed.goal_data):
        return None
    return parsed


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.post(
    "/api/stripe/complete-goal",
    response_model=CompleteGoalResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def complete_goal(
    request: Request,
    service: GoalCompletionService = Depends(get_goal_completion_service),
) -> JSONResponse:
    """
    Finish goal creation once the Stripe checkout session has completed.
    Safe to call repeatedly for the same session.
    """
    try:
        payload = await request.json()
        parsed = _parse_completion_request(payload)

        if parsed is None:
            logger.warning("Goal completion request missing sessionId or goalData")
            return _error_response(status.HTTP_400_BAD_REQUEST, MISSING_FIELDS_MESSAGE)

        if not isinstance(parsed.goal_data, dict):
            raise ValueError(f"goalData must be an object, got {type(parsed.goal_data).__name__}")

        result = await service.complete(parsed.session_id, parsed.goal_data)
    except Exception as exc:
        logger.error("Error completing goal creation: %s", exc, exc_info=True)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, COMPLETION_FAILED_MESSAGE)

    response = CompleteGoalResponse(
        success=True,
        goalId=result.goal_id,
        alreadyExists=result.already_exists,
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=response.model_dump())
