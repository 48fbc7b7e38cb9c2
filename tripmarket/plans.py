"""
AI travel plans: request intake, reading, editing, sharing and favorites.

Generation itself happens in ``tripmarket.worker``; requests only create a
queued placeholder row and hand its id to the queue.
"""

from __future__ import annotations

import logging
from typing import Optional

from planner.base import PlanRequest
from shared import constants
from shared.types import PlanStatus
from shared.validation import is_valid_date
from tripmarket import credits
from tripmarket.auth import AuthUser
from tripmarket.db import DbClient
from tripmarket.errors import (
    ConflictError,
    InsufficientCreditsError,
    NotFoundError,
    PermissionDeniedError,
    ServiceUnavailableError,
    ValidationError,
)
from tripmarket.filters import eq, in_
from tripmarket.queue import JobQueue
from tripmarket.resilience import CircuitBreaker

logger = logging.getLogger(__name__)


def build_request(
    from_location: str,
    to_location: str,
    travel_date: str,
    days: int,
    preferences: Optional[list] = None,
) -> PlanRequest:
    if not (from_location or "").strip() or not (to_location or "").strip():
        raise ValidationError("Departure and destination are required")
    if not is_valid_date(travel_date):
        raise ValidationError("A valid travel date is required")
    if isinstance(days, bool) or not isinstance(days, int) or not 1 <= days <= constants.PLAN_MAX_DAYS:
        raise ValidationError(f"days must be between 1 and {constants.PLAN_MAX_DAYS}")
    if preferences is None:
        preferences = []
    if not isinstance(preferences, list) or not all(isinstance(p, str) for p in preferences):
        raise ValidationError("preferences must be a list of strings")
    return PlanRequest(
        from_location=from_location.strip(),
        to_location=to_location.strip(),
        travel_date=travel_date,
        days=days,
        preferences=preferences,
    )


def request_plan(
    db: DbClient,
    user: AuthUser,
    request: PlanRequest,
    *,
    breaker: CircuitBreaker,
    queue: Optional[JobQueue],
    cost: int = constants.PLAN_GENERATION_COST,
) -> dict:
    """
    Creates the queued plan row and enqueues it.

    Credits are only checked here; the worker charges them once the plan is
    generated. Pass queue=None when the caller schedules generation itself.
    """
    balance = credits.get_balance(db, user.id)
    if balance < cost:
        raise InsufficientCreditsError(cost, balance)
    if breaker.is_open():
        raise ServiceUnavailableError(
            "Plan generation is temporarily unavailable, please try again shortly"
        )
    plan = db.insert(
        "travel_plan_logs",
        {
            "user_id": user.id,
            "title": f"{request.to_location} {request.days}-day trip",
            "from_location": request.from_location,
            "to_location": request.to_location,
            "travel_date": request.travel_date,
            "days": request.days,
            "preferences": list(request.preferences),
            "plan_text": constants.PLAN_PLACEHOLDER_TEXT,
            "status": PlanStatus.QUEUED.value,
        },
    )
    if queue is not None:
        queue.enqueue(plan["id"])
    logger.info("[%s] Plan queued for %s", plan["id"], user.id)
    return plan


def list_plans(db: DbClient, user: AuthUser, *, limit: int = 50, offset: int = 0) -> list[dict]:
    return db.select(
        "travel_plan_logs",
        filters={"user_id": eq(user.id)},
        order="created_at.desc",
        limit=limit,
        offset=offset,
    )


def _get(db: DbClient, plan_id: str) -> dict:
    rows = db.select("travel_plan_logs", filters={"id": eq(plan_id)})
    if not rows:
        raise NotFoundError("Plan not found")
    return rows[0]


def get_plan(db: DbClient, user: AuthUser, plan_id: str) -> dict:
    plan = _get(db, plan_id)
    if plan["user_id"] != user.id and not user.is_admin:
        raise PermissionDeniedError("You cannot view this plan")
    return plan


def get_shared_plan(db: DbClient, plan_id: str) -> dict:
    """Public read used by share links; only finished plans are exposed."""
    plan = _get(db, plan_id)
    if plan["status"] != PlanStatus.COMPLETED.value:
        raise NotFoundError("Plan not found")
    return {
        key: plan[key]
        for key in (
            "id",
            "title",
            "from_location",
            "to_location",
            "travel_date",
            "days",
            "preferences",
            "plan_text",
            "poi_list",
            "created_at",
        )
    }


def update_plan(
    db: DbClient,
    user: AuthUser,
    plan_id: str,
    *,
    title: Optional[str] = None,
    plan_text: Optional[str] = None,
) -> dict:
    plan = get_plan(db, user, plan_id)
    values = {}
    if title is not None:
        title = title.strip()
        if not title or len(title) > constants.MAX_TITLE_LENGTH:
            raise ValidationError("Invalid title")
        values["title"] = title
    if plan_text is not None:
        if plan["status"] != PlanStatus.COMPLETED.value:
            raise ConflictError("Only completed plans can be edited")
        if not plan_text.strip():
            raise ValidationError("Plan text cannot be empty")
        values["plan_text"] = plan_text
    if not values:
        return plan
    return db.update("travel_plan_logs", {"id": eq(plan_id)}, values)[0]


def toggle_favorite(db: DbClient, user: AuthUser, plan_id: str) -> bool:
    get_plan(db, user, plan_id)
    key = {"user_id": eq(user.id), "plan_id": eq(plan_id)}
    if db.remove("plan_favorites", key):
        return False
    try:
        db.insert("plan_favorites", {"user_id": user.id, "plan_id": plan_id})
    except ConflictError:
        return True
    return True


def list_favorites(db: DbClient, user: AuthUser) -> list[dict]:
    favorites = db.select(
        "plan_favorites", filters={"user_id": eq(user.id)}, order="created_at.desc"
    )
    if not favorites:
        return []
    plans = {
        p["id"]: p
        for p in db.select(
            "travel_plan_logs", filters={"id": in_([f["plan_id"] for f in favorites])}
        )
    }
    return [plans[f["plan_id"]] for f in favorites if f["plan_id"] in plans]
