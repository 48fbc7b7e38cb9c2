"""
User profiles, agent applications, system settings and admin dashboard.
"""

from __future__ import annotations

import logging
from typing import Optional

from shared import constants
from shared.types import (
    ApplicationStatus,
    ContractStatus,
    EnterpriseOrderStatus,
    PackageStatus,
    UserRole,
)
from shared.validation import is_valid_email, is_valid_phone, normalize_phone
from tripmarket.auth import AuthUser
from tripmarket.db import DbClient, get_table
from tripmarket.errors import ConflictError, NotFoundError, ValidationError
from tripmarket.filters import eq, ilike

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {
    "full_name": constants.MAX_NAME_LENGTH,
    "username": constants.MAX_NAME_LENGTH,
    "phone": None,
    "avatar_url": None,
    "bio": constants.MAX_BIO_LENGTH,
    "email": None,
}

SETTINGS_FIELDS = (
    "commission_rate",
    "email_registration_enabled",
    "is_publish_package_charged",
    "package_publish_cost",
    "max_travel_packages_per_agent",
    "maintenance_mode",
)


def get_profile(db: DbClient, user_id: str) -> dict:
    rows = db.select("profiles", filters={"id": eq(user_id)})
    if not rows:
        raise NotFoundError("Profile not found")
    return rows[0]


def update_profile(db: DbClient, user: AuthUser, changes: dict) -> dict:
    values = {}
    for key, value in changes.items():
        if key not in PROFILE_FIELDS:
            raise ValidationError(f"Field {key} cannot be changed")
        limit = PROFILE_FIELDS[key]
        if value is not None and limit is not None and len(value) > limit:
            raise ValidationError(f"{key} must be at most {limit} characters")
        values[key] = value
    if values.get("phone"):
        phone = normalize_phone(values["phone"])
        if not is_valid_phone(phone):
            raise ValidationError("Invalid phone number")
        values["phone"] = phone
    if values.get("email") and not is_valid_email(values["email"]):
        raise ValidationError("Invalid email address")
    if not values:
        return get_profile(db, user.id)
    rows = db.update("profiles", {"id": eq(user.id)}, values)
    if not rows:
        raise NotFoundError("Profile not found")
    return rows[0]


def list_users(
    db: DbClient,
    *,
    role: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[dict]:
    filters = {}
    if role:
        filters["user_role"] = eq(UserRole(role).value)
    if search:
        filters["email"] = ilike(search)
    return db.select(
        "profiles", filters=filters, order="created_at.desc", limit=limit, offset=offset
    )


def set_user_role(db: DbClient, admin: AuthUser, user_id: str, role: str) -> dict:
    try:
        new_role = UserRole(role)
    except ValueError as exc:
        raise ValidationError(f"Unknown role {role}") from exc
    if user_id == admin.id and new_role is not UserRole.ADMIN:
        raise ValidationError("Admins cannot demote themselves")
    rows = db.update("profiles", {"id": eq(user_id)}, {"user_role": new_role.value})
    if not rows:
        raise NotFoundError("Profile not found")
    logger.info("Admin %s set role of %s to %s", admin.id, user_id, new_role.value)
    return rows[0]


def submit_agent_application(
    db: DbClient,
    user: AuthUser,
    *,
    company_name: str,
    contact_person: str,
    contact_phone: str,
    license_image: str,
) -> dict:
    if user.is_agent:
        raise ConflictError("You are already an agent")
    if not company_name.strip() or not contact_person.strip():
        raise ValidationError("Company name and contact person are required")
    if len(company_name) > constants.MAX_TITLE_LENGTH:
        raise ValidationError("Company name is too long")
    phone = normalize_phone(contact_phone)
    if not is_valid_phone(phone):
        raise ValidationError("Invalid phone number")
    if not license_image:
        raise ValidationError("Business license image is required")
    pending = db.count(
        "agent_applications",
        filters={"user_id": eq(user.id), "status": eq(ApplicationStatus.PENDING.value)},
    )
    if pending:
        raise ConflictError("An application is already under review")
    return db.insert(
        "agent_applications",
        {
            "user_id": user.id,
            "company_name": company_name.strip(),
            "contact_person": contact_person.strip(),
            "contact_phone": phone,
            "license_image": license_image,
        },
    )


def list_agent_applications(
    db: DbClient, *, user_id: Optional[str] = None, status: Optional[str] = None
) -> list[dict]:
    filters = {}
    if user_id:
        filters["user_id"] = eq(user_id)
    if status:
        filters["status"] = eq(ApplicationStatus(status).value)
    return db.select("agent_applications", filters=filters, order="created_at.desc")


def _get_application(db: DbClient, application_id: str) -> dict:
    rows = db.select("agent_applications", filters={"id": eq(application_id)})
    if not rows:
        raise NotFoundError("Agent application not found")
    return rows[0]


def approve_agent_application(db: DbClient, application_id: str, note: str = "") -> dict:
    application = _get_application(db, application_id)
    return db.rpc(
        "approve_agent_application",
        {
            "application_id": application_id,
            "user_id": application["user_id"],
            "review_note": note,
        },
    )


def reject_agent_application(db: DbClient, application_id: str, reason: str) -> dict:
    if not reason or not reason.strip():
        raise ValidationError("A rejection reason is required")
    application = _get_application(db, application_id)
    if application["status"] != ApplicationStatus.PENDING.value:
        raise ConflictError("Only pending applications can be rejected")
    rows = db.update(
        "agent_applications",
        {"id": eq(application_id), "status": eq(ApplicationStatus.PENDING.value)},
        {"status": ApplicationStatus.REJECTED.value, "review_reason": reason.strip()},
    )
    if not rows:
        raise ConflictError("Application was reviewed concurrently")
    return rows[0]


def _settings_defaults() -> dict:
    table = get_table("system_settings")
    return {
        column.name: column.default.arg
        for column in table.columns
        if column.default is not None and column.default.is_scalar
    }


def get_system_settings(db: DbClient) -> dict:
    rows = db.select("system_settings", filters={"id": eq(constants.SYSTEM_SETTINGS_ID)})
    if rows:
        return rows[0]
    defaults = _settings_defaults()
    defaults["id"] = constants.SYSTEM_SETTINGS_ID
    return defaults


def update_system_settings(db: DbClient, changes: dict) -> dict:
    values = {}
    for key, value in changes.items():
        if key not in SETTINGS_FIELDS:
            raise ValidationError(f"Unknown setting {key}")
        if value is None:
            raise ValidationError(f"{key} cannot be null")
        values[key] = value
    rate = values.get("commission_rate")
    if rate is not None and not 0 <= rate <= 1:
        raise ValidationError("commission_rate must be between 0 and 1")
    for key in ("package_publish_cost", "max_travel_packages_per_agent"):
        if key in values and values[key] < 0:
            raise ValidationError(f"{key} must be zero or more")
    key_filter = {"id": eq(constants.SYSTEM_SETTINGS_ID)}
    if db.select("system_settings", filters=key_filter):
        return db.update("system_settings", key_filter, values)[0]
    return db.insert("system_settings", {"id": constants.SYSTEM_SETTINGS_ID, **values})


def dashboard_counts(db: DbClient) -> dict:
    return {
        "pending_agent_applications": db.count(
            "agent_applications", {"status": eq(ApplicationStatus.PENDING.value)}
        ),
        "pending_packages": db.count(
            "travel_packages", {"status": eq(PackageStatus.PENDING.value)}
        ),
        "pending_contracts": db.count(
            "orders", {"contract_status": eq(ContractStatus.PENDING.value)}
        ),
        "pending_enterprise_orders": db.count(
            "enterprise_orders", {"status": eq(EnterpriseOrderStatus.PENDING.value)}
        ),
    }
