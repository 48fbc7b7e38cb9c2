"""
Enterprise group-travel requests and agent applications to serve them.
"""

from __future__ import annotations

import logging
from typing import Optional

from shared import constants
from shared.types import (
    ENTERPRISE_TRANSITIONS,
    ApplicationStatus,
    EnterpriseOrderStatus,
)
from shared.utils import mask_phone
from shared.validation import is_valid_date, is_valid_phone, normalize_phone
from tripmarket.auth import AuthUser
from tripmarket.db import DbClient
from tripmarket.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from tripmarket.filters import eq, gte, lte

logger = logging.getLogger(__name__)


def create_request(
    db: DbClient,
    user: AuthUser,
    *,
    contact_name: str,
    contact_phone: str,
    departure_location: str,
    destination_location: str,
    travel_date: str,
    people_count: int = 1,
    requirements: Optional[str] = None,
) -> dict:
    if not (contact_name or "").strip():
        raise ValidationError("Contact name is required")
    phone = normalize_phone(contact_phone)
    if not is_valid_phone(phone):
        raise ValidationError("Invalid phone number")
    if not (departure_location or "").strip() or not (destination_location or "").strip():
        raise ValidationError("Departure and destination are required")
    if not is_valid_date(travel_date):
        raise ValidationError("Invalid travel date")
    if not isinstance(people_count, int) or people_count < 1:
        raise ValidationError("people_count must be at least 1")
    if requirements and len(requirements) > constants.MAX_REQUIREMENTS_LENGTH:
        raise ValidationError("Requirements are too long")
    return db.insert(
        "enterprise_orders",
        {
            "user_id": user.id,
            "contact_name": contact_name.strip(),
            "contact_phone": phone,
            "departure_location": departure_location.strip(),
            "destination_location": destination_location.strip(),
            "travel_date": travel_date,
            "people_count": people_count,
            "requirements": requirements,
        },
    )


def _paid_order_ids(db: DbClient, agent_id: str) -> set:
    logs = db.select(
        "info_fee_logs",
        filters={
            "agent_id": eq(agent_id),
            "remark": eq(constants.ENTERPRISE_INFO_FEE_REMARK),
        },
        columns=["order_id"],
    )
    return {log["order_id"] for log in logs}


def list_requests(
    db: DbClient,
    user: AuthUser,
    *,
    status: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> list[dict]:
    filters = {}
    if user.is_admin:
        if status:
            filters["status"] = eq(EnterpriseOrderStatus(status).value)
    elif user.is_agent:
        filters["status"] = eq(EnterpriseOrderStatus.APPROVED.value)
    else:
        filters["user_id"] = eq(user.id)
        if status:
            filters["status"] = eq(EnterpriseOrderStatus(status).value)
    dates = []
    if date_from:
        dates.append(gte(date_from))
    if date_to:
        dates.append(lte(date_to))
    if dates:
        filters["travel_date"] = dates

    rows = db.select("enterprise_orders", filters=filters, order="created_at.desc")
    if user.is_agent and not user.is_admin:
        paid = _paid_order_ids(db, user.id)
        for row in rows:
            row["contact_visible"] = row["id"] in paid
            if not row["contact_visible"]:
                row["contact_phone"] = mask_phone(row["contact_phone"])
    return rows


def _get(db: DbClient, order_id: str) -> dict:
    rows = db.select("enterprise_orders", filters={"id": eq(order_id)})
    if not rows:
        raise NotFoundError("Enterprise request not found")
    return rows[0]


def get_request(db: DbClient, user: AuthUser, order_id: str) -> dict:
    row = _get(db, order_id)
    if user.is_admin or row["user_id"] == user.id:
        return row
    if user.is_agent and row["status"] == EnterpriseOrderStatus.APPROVED.value:
        if order_id not in _paid_order_ids(db, user.id):
            row["contact_phone"] = mask_phone(row["contact_phone"])
        return row
    raise PermissionDeniedError("You cannot view this request")


def review_request(db: DbClient, order_id: str, status: str, reason: Optional[str] = None) -> dict:
    row = _get(db, order_id)
    current = EnterpriseOrderStatus(row["status"])
    target = EnterpriseOrderStatus(status)
    if target not in ENTERPRISE_TRANSITIONS[current]:
        raise InvalidTransitionError("enterprise order", current.value, target.value)
    values = {"status": target.value}
    if target is EnterpriseOrderStatus.REJECTED:
        if not (reason and reason.strip()):
            raise ValidationError("A reason is required to reject a request")
        values["review_reason"] = reason.strip()
    elif reason:
        values["review_reason"] = reason.strip()
    rows = db.update(
        "enterprise_orders", {"id": eq(order_id), "status": eq(current.value)}, values
    )
    if not rows:
        raise ConflictError("Request was reviewed concurrently")
    return rows[0]


def apply(
    db: DbClient,
    agent: AuthUser,
    order_id: str,
    *,
    license_image: str,
    qualification_image: str,
    note: Optional[str] = None,
) -> dict:
    row = _get(db, order_id)
    if row["status"] != EnterpriseOrderStatus.APPROVED.value:
        raise ConflictError("Only approved requests accept applications")
    if not license_image or not qualification_image:
        raise ValidationError("License and qualification images are required")
    existing = db.count(
        "enterprise_order_applications",
        {"order_id": eq(order_id), "agent_id": eq(agent.id)},
    )
    if existing:
        raise ConflictError("You have already applied for this request")
    return db.insert(
        "enterprise_order_applications",
        {
            "order_id": order_id,
            "agent_id": agent.id,
            "license_image": license_image,
            "qualification_image": qualification_image,
            "note": note,
        },
    )


def list_applications(
    db: DbClient, *, order_id: Optional[str] = None, agent_id: Optional[str] = None
) -> list[dict]:
    filters = {}
    if order_id:
        filters["order_id"] = eq(order_id)
    if agent_id:
        filters["agent_id"] = eq(agent_id)
    return db.select(
        "enterprise_order_applications", filters=filters, order="created_at.desc"
    )


def review_application(
    db: DbClient, application_id: str, approve: bool, reason: Optional[str] = None
) -> dict:
    rows = db.select(
        "enterprise_order_applications", filters={"id": eq(application_id)}
    )
    if not rows:
        raise NotFoundError("Application not found")
    application = rows[0]
    target = ApplicationStatus.APPROVED if approve else ApplicationStatus.REJECTED
    if application["status"] != ApplicationStatus.PENDING.value:
        raise InvalidTransitionError("application", application["status"], target.value)
    if not approve and not (reason and reason.strip()):
        raise ValidationError("A reason is required to reject an application")
    if approve:
        already = db.count(
            "enterprise_order_applications",
            {
                "order_id": eq(application["order_id"]),
                "status": eq(ApplicationStatus.APPROVED.value),
            },
        )
        if already:
            raise ConflictError("Another agent was already approved for this request")
    updated = db.update(
        "enterprise_order_applications",
        {"id": eq(application_id), "status": eq(ApplicationStatus.PENDING.value)},
        {"status": target.value, "review_reason": (reason or "").strip() or None},
    )
    if not updated:
        raise ConflictError("Application was reviewed concurrently")
    return updated[0]


def pay_info_fee(db: DbClient, agent: AuthUser, order_id: str, amount: float) -> dict:
    """Idempotent: a second payment by the same agent returns the first log."""
    _get(db, order_id)
    if amount is None or amount < 0:
        raise ValidationError("Amount cannot be negative")
    approved = db.count(
        "enterprise_order_applications",
        {
            "order_id": eq(order_id),
            "agent_id": eq(agent.id),
            "status": eq(ApplicationStatus.APPROVED.value),
        },
    )
    if not approved:
        raise PermissionDeniedError("Your application for this request is not approved")
    existing = db.select(
        "info_fee_logs",
        filters={
            "order_id": eq(order_id),
            "agent_id": eq(agent.id),
            "remark": eq(constants.ENTERPRISE_INFO_FEE_REMARK),
        },
    )
    if existing:
        return existing[0]
    log = db.insert(
        "info_fee_logs",
        {
            "order_id": order_id,
            "agent_id": agent.id,
            "amount": amount,
            "remark": constants.ENTERPRISE_INFO_FEE_REMARK,
        },
    )
    db.update("enterprise_orders", {"id": eq(order_id)}, {"has_paid_info_fee": True})
    logger.info("Enterprise info fee paid on %s by %s", order_id, agent.id)
    return log


def list_info_fee_logs(db: DbClient, agent_id: str) -> list[dict]:
    return db.select(
        "info_fee_logs",
        filters={
            "agent_id": eq(agent_id),
            "remark": eq(constants.ENTERPRISE_INFO_FEE_REMARK),
        },
        order="created_at.desc",
    )
