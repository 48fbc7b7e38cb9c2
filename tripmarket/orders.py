"""
Package bookings: creation, agent handling, the offline contract dispute
flow, per-order messages and info fees.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from shared import constants
from shared.types import (
    ORDER_TRANSITIONS,
    ContractStatus,
    OrderStatus,
    PackageStatus,
    UserRole,
)
from shared.utils import random_suffix
from shared.validation import is_valid_date, is_valid_id_card, is_valid_phone, normalize_phone
from tripmarket.auth import AuthUser
from tripmarket.db import DbClient
from tripmarket.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from tripmarket.filters import eq, in_, is_, neq
from tripmarket.profiles import get_system_settings

logger = logging.getLogger(__name__)


def make_order_number() -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"TM{stamp}{random_suffix(6).upper()}"


def _get_package(db: DbClient, package_id: str) -> dict:
    rows = db.select("travel_packages", filters={"id": eq(package_id)})
    if not rows:
        raise NotFoundError("Travel package not found")
    return rows[0]


def create_order(
    db: DbClient,
    user: AuthUser,
    *,
    package_id: str,
    contact_name: str,
    contact_phone: str,
    id_card: str,
    travel_date: str,
) -> dict:
    package = _get_package(db, package_id)
    if package["status"] != PackageStatus.APPROVED.value:
        raise ConflictError("This package is not open for booking")
    name = (contact_name or "").strip()
    if not name or len(name) > constants.MAX_NAME_LENGTH:
        raise ValidationError("Contact name is required")
    phone = normalize_phone(contact_phone)
    if not is_valid_phone(phone):
        raise ValidationError("Invalid phone number")
    if not is_valid_id_card(id_card):
        raise ValidationError("Invalid ID card number")
    if not is_valid_date(travel_date):
        raise ValidationError("Invalid travel date")

    order = db.insert(
        "orders",
        {
            "user_id": user.id,
            "package_id": package_id,
            "contact_name": name,
            "contact_phone": phone,
            "id_card": id_card.upper(),
            "travel_date": travel_date,
            "order_number": make_order_number(),
        },
    )
    db.rpc(
        "adjust_package_counter",
        {"package_id": package_id, "counter": "orders", "delta": 1},
    )
    logger.info("Order %s created for package %s", order["order_number"], package_id)
    return order


def _attach_packages(db: DbClient, orders: list[dict]) -> list[dict]:
    ids = sorted({o["package_id"] for o in orders if o.get("package_id")})
    packages = {}
    if ids:
        packages = {
            p["id"]: p
            for p in db.select(
                "travel_packages",
                filters={"id": in_(ids)},
                columns=["id", "title", "destination", "price", "agent_id", "image"],
            )
        }
    for order in orders:
        order["package"] = packages.get(order.get("package_id"))
    return orders


def _status_filters(status: Optional[str]) -> dict:
    return {"status": eq(OrderStatus(status).value)} if status else {}


def list_user_orders(db: DbClient, user: AuthUser, status: Optional[str] = None) -> list[dict]:
    filters = {"user_id": eq(user.id), **_status_filters(status)}
    rows = db.select("orders", filters=filters, order="created_at.desc")
    return _attach_packages(db, rows)


def _agent_package_ids(db: DbClient, agent_id: str) -> list[str]:
    return [
        p["id"]
        for p in db.select(
            "travel_packages", filters={"agent_id": eq(agent_id)}, columns=["id"]
        )
    ]


def list_agent_orders(db: DbClient, agent: AuthUser, status: Optional[str] = None) -> list[dict]:
    package_ids = _agent_package_ids(db, agent.id)
    if not package_ids:
        return []
    filters = {"package_id": in_(package_ids), **_status_filters(status)}
    rows = db.select("orders", filters=filters, order="created_at.desc")
    return _attach_packages(db, rows)


def list_all_orders(
    db: DbClient,
    *,
    status: Optional[str] = None,
    contract_status: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[dict]:
    filters = _status_filters(status)
    if contract_status:
        filters["contract_status"] = eq(ContractStatus(contract_status).value)
    rows = db.select(
        "orders", filters=filters, order="created_at.desc", limit=limit, offset=offset
    )
    return _attach_packages(db, rows)


def _order_role(db: DbClient, order: dict, user: AuthUser) -> UserRole:
    """The capacity in which the caller may act on this order."""
    if user.is_admin:
        return UserRole.ADMIN
    if order.get("user_id") == user.id:
        return UserRole.USER
    if order.get("package_id"):
        package = db.select(
            "travel_packages", filters={"id": eq(order["package_id"])}, columns=["agent_id"]
        )
        if package and package[0]["agent_id"] == user.id:
            return UserRole.AGENT
    raise PermissionDeniedError("You cannot access this order")


def _get_order(db: DbClient, order_id: str) -> dict:
    rows = db.select("orders", filters={"id": eq(order_id)})
    if not rows:
        raise NotFoundError("Order not found")
    return rows[0]


def get_order(db: DbClient, user: AuthUser, order_id: str) -> dict:
    order = _get_order(db, order_id)
    _order_role(db, order, user)
    return _attach_packages(db, [order])[0]


def update_status(
    db: DbClient, user: AuthUser, order_id: str, status: str, reason: Optional[str] = None
) -> dict:
    order = _get_order(db, order_id)
    if _order_role(db, order, user) is UserRole.USER:
        raise PermissionDeniedError("Only the agent or an admin can change order status")
    current = OrderStatus(order["status"])
    target = OrderStatus(status)
    if target not in ORDER_TRANSITIONS[current]:
        raise InvalidTransitionError("order", current.value, target.value)
    values = {"status": target.value}
    if target is OrderStatus.REJECTED:
        if not (reason and reason.strip()):
            raise ValidationError("A reason is required to reject an order")
        values["reject_reason"] = reason.strip()
    rows = db.update(
        "orders", {"id": eq(order_id), "status": eq(current.value)}, values
    )
    if not rows:
        raise ConflictError("Order status changed concurrently")
    logger.info("Order %s: %s -> %s", order_id, current.value, target.value)
    return rows[0]


def claim_contract(db: DbClient, user: AuthUser, order_id: str) -> dict:
    """The customer reports that the offline contract was signed."""
    order = _get_order(db, order_id)
    if order["user_id"] != user.id:
        raise PermissionDeniedError("Only the customer can claim a signed contract")
    if order["status"] != OrderStatus.CONTACTED.value:
        raise ConflictError("The agent has not contacted you about this order yet")
    current = order["contract_status"]
    if current not in (None, ContractStatus.REJECTED.value):
        raise InvalidTransitionError("contract", current, ContractStatus.PENDING.value)
    filters = {"id": eq(order_id)}
    filters["contract_status"] = is_(None) if current is None else eq(current)
    rows = db.update("orders", filters, {"contract_status": ContractStatus.PENDING.value})
    if not rows:
        raise ConflictError("Contract status changed concurrently")
    return rows[0]


def review_contract(
    db: DbClient, admin: AuthUser, order_id: str, approve: bool, reason: Optional[str] = None
) -> dict:
    order = _get_order(db, order_id)
    if approve:
        if not db.rpc("confirm_contract", {"p_order_id": order_id, "p_admin_id": admin.id}):
            raise ConflictError("Contract already confirmed")
        return _get_order(db, order_id)

    if not (reason and reason.strip()):
        raise ValidationError("A reason is required to reject a contract claim")
    if order["contract_status"] != ContractStatus.PENDING.value:
        raise InvalidTransitionError(
            "contract", order["contract_status"], ContractStatus.REJECTED.value
        )
    rows = db.update(
        "orders",
        {"id": eq(order_id), "contract_status": eq(ContractStatus.PENDING.value)},
        {"contract_status": ContractStatus.REJECTED.value},
    )
    if not rows:
        raise ConflictError("Contract status changed concurrently")
    db.insert(
        "message_logs",
        {
            "order_id": order_id,
            "from_role": UserRole.ADMIN.value,
            "message": f"Your contract claim was rejected: {reason.strip()}",
        },
    )
    return rows[0]


def list_order_messages(db: DbClient, user: AuthUser, order_id: str) -> list[dict]:
    _order_role(db, _get_order(db, order_id), user)
    return db.select(
        "message_logs", filters={"order_id": eq(order_id)}, order="created_at.asc"
    )


def send_order_message(db: DbClient, user: AuthUser, order_id: str, message: str) -> dict:
    role = _order_role(db, _get_order(db, order_id), user)
    text = (message or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    if len(text) > constants.MAX_MESSAGE_LENGTH:
        raise ValidationError("Message is too long")
    return db.insert(
        "message_logs", {"order_id": order_id, "from_role": role.value, "message": text}
    )


def mark_order_messages_read(db: DbClient, user: AuthUser, order_id: str) -> int:
    """Marks the other parties' messages on this order as read."""
    role = _order_role(db, _get_order(db, order_id), user)
    rows = db.update(
        "message_logs",
        {"order_id": eq(order_id), "from_role": neq(role.value), "read": is_(False)},
        {"read": True},
    )
    return len(rows)


def pay_info_fee(
    db: DbClient, agent: AuthUser, order_id: str, amount: Optional[float] = None
) -> dict:
    order = _get_order(db, order_id)
    if _order_role(db, order, agent) is UserRole.USER:
        raise PermissionDeniedError("Only the package's agent pays the info fee")
    if order["status"] != OrderStatus.CONTACTED.value:
        raise ConflictError("Info fees are paid on contacted orders")
    if order["has_paid_info_fee"]:
        raise ConflictError("Info fee already paid")
    if amount is None:
        package = _get_package(db, order["package_id"])
        amount = round(package["price"] * get_system_settings(db)["commission_rate"], 2)
    if amount < 0:
        raise ValidationError("Amount cannot be negative")
    rows = db.update(
        "orders",
        {"id": eq(order_id), "has_paid_info_fee": is_(False)},
        {"has_paid_info_fee": True},
    )
    if not rows:
        raise ConflictError("Info fee already paid")
    log = db.insert(
        "info_fee_logs",
        {
            "order_id": order_id,
            "agent_id": agent.id,
            "amount": amount,
            "remark": constants.INFO_FEE_REMARK,
        },
    )
    logger.info("Info fee %.2f paid on order %s by %s", amount, order_id, agent.id)
    return log


def list_info_fee_logs(
    db: DbClient, *, agent_id: Optional[str] = None, remark: Optional[str] = None
) -> list[dict]:
    filters = {}
    if agent_id:
        filters["agent_id"] = eq(agent_id)
    if remark:
        filters["remark"] = eq(remark)
    return db.select("info_fee_logs", filters=filters, order="created_at.desc")
