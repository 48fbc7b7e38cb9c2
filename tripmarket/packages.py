"""
Travel packages: catalogue browsing, publishing, moderation, favorites and
reviews.
"""

from __future__ import annotations

import logging
from typing import Optional

from shared import constants
from shared.types import PACKAGE_TRANSITIONS, PackageStatus
from tripmarket import credits
from tripmarket.auth import AuthUser
from tripmarket.db import DbClient
from tripmarket.errors import (
    ConflictError,
    InvalidTransitionError,
    LimitExceededError,
    MarketplaceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from tripmarket.filters import eq, gte, ilike, in_, is_
from tripmarket.profiles import get_system_settings

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20

EDITABLE_FIELDS = (
    "title",
    "description",
    "content",
    "destination",
    "departure",
    "duration",
    "original_price",
    "discount_price",
    "discount_expires_at",
    "is_discounted",
    "is_international",
    "image",
    "expire_at",
)
# Changing any of these sends an agent's package back to review.
CONTENT_FIELDS = frozenset(EDITABLE_FIELDS) - {"image"}

SORTS = ("hot", "discount", "international", "newest")
ACTIVE_STATUSES = (PackageStatus.PENDING.value, PackageStatus.APPROVED.value)
AGENT_SUMMARY_COLUMNS = ["id", "full_name", "username", "avatar_url", "agency_id"]


def _attach_agents(db: DbClient, rows: list[dict]) -> list[dict]:
    agent_ids = sorted({r["agent_id"] for r in rows if r.get("agent_id")})
    agents = {}
    if agent_ids:
        for profile in db.select(
            "profiles", filters={"id": in_(agent_ids)}, columns=AGENT_SUMMARY_COLUMNS
        ):
            agents[profile["id"]] = profile
    for row in rows:
        row["agent"] = agents.get(row.get("agent_id"))
    return rows


def list_packages(
    db: DbClient,
    *,
    status: Optional[str] = PackageStatus.APPROVED.value,
    destination: Optional[str] = None,
    departure: Optional[str] = None,
    sort: Optional[str] = None,
    agent_id: Optional[str] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> list[dict]:
    filters = {}
    if status:
        filters["status"] = eq(PackageStatus(status).value)
    if destination:
        filters["destination"] = ilike(destination)
    if departure:
        filters["departure"] = ilike(departure)
    if agent_id:
        filters["agent_id"] = eq(agent_id)

    order = "created_at.desc"
    if sort == "hot":
        order = "hot_score.desc,created_at.desc"
    elif sort == "discount":
        filters["is_discounted"] = is_(True)
        order = "discount_price.asc"
    elif sort == "international":
        filters["is_international"] = is_(True)
    elif sort not in (None, "newest"):
        raise ValidationError(f"Unknown sort {sort}")

    rows = db.select(
        "travel_packages", filters=filters, order=order, limit=limit, offset=offset
    )
    return _attach_agents(db, rows)


def _get(db: DbClient, package_id: str) -> dict:
    rows = db.select("travel_packages", filters={"id": eq(package_id)})
    if not rows:
        raise NotFoundError("Travel package not found")
    return rows[0]


def get_package(db: DbClient, package_id: str, *, count_view: bool = True) -> dict:
    package = _get(db, package_id)
    if count_view:
        try:
            package["views"] = db.rpc("increment_package_views", {"package_id": package_id})
        except MarketplaceError as exc:
            logger.warning("Failed to count view for package %s: %s", package_id, exc)
    return _attach_agents(db, [package])[0]


def apply_pricing(values: dict) -> dict:
    """Derives `price` from original/discount prices."""
    original = values.get("original_price")
    if original is None or original <= 0:
        raise ValidationError("original_price must be positive")
    if values.get("is_discounted"):
        discount = values.get("discount_price")
        if discount is None or discount <= 0 or discount >= original:
            raise ValidationError("discount_price must be below original_price")
        values["price"] = discount
    else:
        values["is_discounted"] = False
        values["discount_price"] = None
        values["discount_expires_at"] = None
        values["price"] = original
    return values


def _validate_content(values: dict) -> None:
    title = (values.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required")
    if len(title) > constants.MAX_TITLE_LENGTH:
        raise ValidationError("Title is too long")
    if not (values.get("destination") or "").strip():
        raise ValidationError("Destination is required")
    duration = values.get("duration")
    if not isinstance(duration, int) or duration < 1:
        raise ValidationError("Duration must be at least one day")


def publish_package(db: DbClient, user: AuthUser, data: dict) -> dict:
    if not (user.is_agent or user.is_admin):
        raise PermissionDeniedError("Only agents can publish packages")
    values = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
    _validate_content(values)
    apply_pricing(values)
    settings = get_system_settings(db)

    if not user.is_admin:
        active = db.count(
            "travel_packages",
            filters={"agent_id": eq(user.id), "status": in_(ACTIVE_STATUSES)},
        )
        limit = settings["max_travel_packages_per_agent"]
        if active >= limit:
            raise LimitExceededError(f"Agents may have at most {limit} active packages")

    cost = settings["package_publish_cost"] if settings["is_publish_package_charged"] else 0
    if cost and not user.is_admin:
        credits.consume(db, user.id, cost, constants.PACKAGE_PUBLISH_REMARK)
    else:
        cost = 0

    values["agent_id"] = user.id
    values["status"] = (
        PackageStatus.APPROVED.value if user.is_admin else PackageStatus.PENDING.value
    )
    try:
        package = db.insert("travel_packages", values)
    except MarketplaceError:
        if cost:
            credits.grant(db, user.id, cost, constants.PACKAGE_PUBLISH_REFUND_REMARK)
            logger.warning("Refunded %d credits to %s after failed publish", cost, user.id)
        raise
    logger.info("Package %s published by %s (%s)", package["id"], user.id, package["status"])
    return package


def _check_owner(package: dict, user: AuthUser) -> None:
    if not (user.is_admin or package.get("agent_id") == user.id):
        raise PermissionDeniedError("You do not own this package")


def update_package(db: DbClient, user: AuthUser, package_id: str, changes: dict) -> dict:
    package = _get(db, package_id)
    _check_owner(package, user)
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be changed: {', '.join(sorted(unknown))}")
    merged = {k: package.get(k) for k in EDITABLE_FIELDS}
    merged.update(changes)
    _validate_content(merged)
    apply_pricing(merged)
    values = {k: merged[k] for k in set(changes) | {"price", "discount_price", "is_discounted", "discount_expires_at"}}
    if not user.is_admin and CONTENT_FIELDS & set(changes):
        values["status"] = PackageStatus.PENDING.value
        values["review_note"] = None
    return db.update("travel_packages", {"id": eq(package_id)}, values)[0]


def delete_package(db: DbClient, user: AuthUser, package_id: str) -> None:
    package = _get(db, package_id)
    _check_owner(package, user)
    db.remove("package_favorites", {"package_id": eq(package_id)})
    db.remove("package_reviews", {"package_id": eq(package_id)})
    db.remove("travel_packages", {"id": eq(package_id)})
    logger.info("Package %s deleted by %s", package_id, user.id)


def moderate_package(db: DbClient, package_id: str, status: str, note: Optional[str] = None) -> dict:
    target = PackageStatus(status)
    package = _get(db, package_id)
    current = PackageStatus(package["status"])
    if target not in PACKAGE_TRANSITIONS[current]:
        raise InvalidTransitionError("package", current.value, target.value)
    if target is PackageStatus.REJECTED and not (note and note.strip()):
        raise ValidationError("A review note is required when rejecting")
    rows = db.update(
        "travel_packages",
        {"id": eq(package_id), "status": eq(current.value)},
        {"status": target.value, "review_note": note},
    )
    if not rows:
        raise ConflictError("Package was moderated concurrently")
    return rows[0]


def is_favorite(db: DbClient, user_id: str, package_id: str) -> bool:
    return bool(
        db.count(
            "package_favorites",
            {"user_id": eq(user_id), "package_id": eq(package_id)},
        )
    )


def toggle_favorite(db: DbClient, user_id: str, package_id: str) -> bool:
    """Returns True when the package is now a favorite."""
    _get(db, package_id)
    key = {"user_id": eq(user_id), "package_id": eq(package_id)}
    if db.remove("package_favorites", key):
        db.rpc(
            "adjust_package_counter",
            {"package_id": package_id, "counter": "favorites", "delta": -1},
        )
        return False
    try:
        db.insert("package_favorites", {"user_id": user_id, "package_id": package_id})
    except ConflictError:
        return True
    db.rpc(
        "adjust_package_counter",
        {"package_id": package_id, "counter": "favorites", "delta": 1},
    )
    return True


def list_favorites(db: DbClient, user_id: str) -> list[dict]:
    favorites = db.select(
        "package_favorites", filters={"user_id": eq(user_id)}, order="created_at.desc"
    )
    if not favorites:
        return []
    packages = {
        p["id"]: p
        for p in db.select(
            "travel_packages",
            filters={"id": in_([f["package_id"] for f in favorites])},
        )
    }
    return [packages[f["package_id"]] for f in favorites if f["package_id"] in packages]


def list_reviews(db: DbClient, package_id: str) -> list[dict]:
    return db.select(
        "package_reviews", filters={"package_id": eq(package_id)}, order="created_at.desc"
    )


def list_user_reviews(db: DbClient, user_id: str) -> list[dict]:
    return db.select(
        "package_reviews", filters={"user_id": eq(user_id)}, order="created_at.desc"
    )


def upsert_review(
    db: DbClient, user: AuthUser, package_id: str, rating: int, comment: Optional[str] = None
) -> dict:
    if not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")
    if comment and len(comment) > constants.MAX_COMMENT_LENGTH:
        raise ValidationError("Comment is too long")
    _get(db, package_id)
    key = {"user_id": eq(user.id), "package_id": eq(package_id)}
    rows = db.update("package_reviews", key, {"rating": rating, "comment": comment})
    if rows:
        review = rows[0]
    else:
        review = db.insert(
            "package_reviews",
            {"user_id": user.id, "package_id": package_id, "rating": rating, "comment": comment},
        )
    db.rpc("refresh_package_rating", {"package_id": package_id})
    return review


def recent_discounts(db: DbClient, now_iso: str, limit: int = DEFAULT_PAGE_SIZE) -> list[dict]:
    """Approved discounted packages whose discount has not expired."""
    return db.select(
        "travel_packages",
        filters={
            "status": eq(PackageStatus.APPROVED.value),
            "is_discounted": is_(True),
            "discount_expires_at": gte(now_iso),
        },
        order="discount_price.asc",
        limit=limit,
    )
