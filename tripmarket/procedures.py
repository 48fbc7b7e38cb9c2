"""
Server-side procedures (the RPC surface).

Each procedure is written once against a table-ops object exposing
``select``/``insert``/``update``. ``PostgresDbClient`` hands in ops bound to
a single transaction, and ``select(..., for_update=True)`` takes row locks.
``InMemoryDbClient`` runs procedures under its re-entrant lock. The Supabase
deployment defines remote functions with the same names and parameters.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict

from shared import constants
from shared.types import (
    ApplicationStatus,
    ContractStatus,
    PaymentStatus,
    TransactionType,
    UserRole,
)
from tripmarket.errors import NotFoundError, ValidationError
from tripmarket.filters import eq

logger = logging.getLogger(__name__)

_PROCEDURES: Dict[str, Callable[..., Any]] = {}

COUNTER_COLUMNS = ("views", "favorites", "orders")


def procedure(name: str):
    def register(fn):
        _PROCEDURES[name] = fn
        return fn

    return register


def procedure_names() -> list[str]:
    return sorted(_PROCEDURES)


def call_procedure(ops, name: str, params: dict) -> Any:
    fn = _PROCEDURES.get(name)
    if fn is None:
        raise NotFoundError(f"Unknown procedure {name}")
    try:
        inspect.signature(fn).bind(ops, **params)
    except TypeError as exc:
        raise ValidationError(f"Bad parameters for {name}: {exc}") from exc
    return fn(ops, **params)


def _positive_int(value, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return value


def _ensure_credits(ops, user_id: str) -> dict:
    rows = ops.select("user_credits", filters={"user_id": eq(user_id)}, for_update=True)
    if rows:
        return rows[0]
    return ops.insert(
        "user_credits", {"user_id": user_id, "total": constants.INITIAL_CREDITS}
    )


def _ledger(ops, user_id: str, kind: TransactionType, amount: int, remark: str):
    ops.insert(
        "credit_transactions",
        {"user_id": user_id, "type": kind.value, "amount": amount, "remark": remark},
    )


@procedure("add_credits")
def add_credits(ops, p_user_id: str, p_amount: int, p_remark: str = constants.ADMIN_GRANT_REMARK) -> int:
    amount = _positive_int(p_amount, "p_amount")
    row = _ensure_credits(ops, p_user_id)
    total = row["total"] + amount
    ops.update("user_credits", {"user_id": eq(p_user_id)}, {"total": total})
    _ledger(ops, p_user_id, TransactionType.GRANT, amount, p_remark)
    return total


@procedure("consume_credits")
def consume_credits(ops, p_user_id: str, p_amount: int, p_remark: str = "") -> bool:
    amount = _positive_int(p_amount, "p_amount")
    row = _ensure_credits(ops, p_user_id)
    if row["total"] < amount:
        return False
    ops.update("user_credits", {"user_id": eq(p_user_id)}, {"total": row["total"] - amount})
    _ledger(ops, p_user_id, TransactionType.CONSUME, amount, p_remark)
    return True


@procedure("purchase_credits")
def purchase_credits(ops, p_user_id: str, p_credits: int, p_description: str = "") -> int:
    credits = _positive_int(p_credits, "p_credits")
    row = _ensure_credits(ops, p_user_id)
    total = row["total"] + credits
    ops.update("user_credits", {"user_id": eq(p_user_id)}, {"total": total})
    ops.insert(
        "credit_purchases",
        {"user_id": p_user_id, "credits": credits, "description": p_description},
    )
    _ledger(ops, p_user_id, TransactionType.PURCHASE, credits, p_description)
    return total


def _hot_score(row: dict) -> float:
    return float(row["views"] + 5 * row["favorites"] + 10 * row["orders"])


def _locked_package(ops, package_id: str) -> dict:
    rows = ops.select("travel_packages", filters={"id": eq(package_id)}, for_update=True)
    if not rows:
        raise NotFoundError("Travel package not found")
    return rows[0]


@procedure("increment_package_views")
def increment_package_views(ops, package_id: str) -> int:
    row = _locked_package(ops, package_id)
    row["views"] += 1
    ops.update(
        "travel_packages",
        {"id": eq(package_id)},
        {"views": row["views"], "hot_score": _hot_score(row)},
    )
    return row["views"]


@procedure("adjust_package_counter")
def adjust_package_counter(ops, package_id: str, counter: str, delta: int) -> int:
    """Adds delta to views/favorites/orders (floored at 0) and refreshes the hot score."""
    if counter not in COUNTER_COLUMNS:
        raise ValidationError(f"Unknown counter {counter}")
    row = _locked_package(ops, package_id)
    row[counter] = max(0, row[counter] + int(delta))
    ops.update(
        "travel_packages",
        {"id": eq(package_id)},
        {counter: row[counter], "hot_score": _hot_score(row)},
    )
    return row[counter]


@procedure("refresh_package_rating")
def refresh_package_rating(ops, package_id: str):
    reviews = ops.select("package_reviews", filters={"package_id": eq(package_id)})
    average = None
    if reviews:
        average = round(sum(r["rating"] for r in reviews) / len(reviews), 2)
    ops.update("travel_packages", {"id": eq(package_id)}, {"average_rating": average})
    return average


@procedure("generate_agency_id")
def generate_agency_id(ops) -> str:
    rows = ops.select(
        "profiles", filters={"agency_id": "like.TA%"}, columns=["agency_id"], for_update=True
    )
    highest = 0
    for row in rows:
        suffix = (row["agency_id"] or "")[2:]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return "TA%06d" % (highest + 1)


@procedure("approve_agent_application")
def approve_agent_application(ops, application_id: str, user_id: str, review_note: str = "") -> dict:
    rows = ops.select(
        "agent_applications", filters={"id": eq(application_id)}, for_update=True
    )
    if not rows:
        raise NotFoundError("Agent application not found")
    application = rows[0]
    if application["status"] != ApplicationStatus.PENDING.value:
        raise ValidationError("Only pending applications can be approved")
    if application["user_id"] != user_id:
        raise ValidationError("Application does not belong to this user")

    agency_id = generate_agency_id(ops)
    updated = ops.update(
        "agent_applications",
        {"id": eq(application_id)},
        {
            "status": ApplicationStatus.APPROVED.value,
            "review_reason": review_note or None,
            "agency_id": agency_id,
        },
    )[0]
    profile_values = {"user_role": UserRole.AGENT.value, "agency_id": agency_id}
    if ops.select("profiles", filters={"id": eq(user_id)}):
        ops.update("profiles", {"id": eq(user_id)}, profile_values)
    else:
        ops.insert("profiles", {"id": user_id, **profile_values})
    logger.info("Approved agent application %s as %s", application_id, agency_id)
    return updated


@procedure("confirm_contract")
def confirm_contract(ops, p_order_id: str, p_admin_id: str) -> bool:
    rows = ops.select("orders", filters={"id": eq(p_order_id)}, for_update=True)
    if not rows:
        raise NotFoundError("Order not found")
    order = rows[0]
    if order["contract_status"] == ContractStatus.CONFIRMED.value:
        return False
    if order["contract_status"] != ContractStatus.PENDING.value:
        raise ValidationError("Contract is not awaiting confirmation")

    ops.update(
        "orders",
        {"id": eq(p_order_id)},
        {"contract_status": ContractStatus.CONFIRMED.value},
    )
    ops.insert(
        "message_logs",
        {
            "order_id": p_order_id,
            "from_role": UserRole.ADMIN.value,
            "message": (
                "The platform confirmed your offline contract. "
                f"{constants.CONTRACT_SIGNING_REWARD} credits have been added to your account."
            ),
        },
    )
    if order["user_id"]:
        add_credits(
            ops,
            p_user_id=order["user_id"],
            p_amount=constants.CONTRACT_SIGNING_REWARD,
            p_remark=constants.CONTRACT_SIGNING_REMARK,
        )
    logger.info("Contract for order %s confirmed by %s", p_order_id, p_admin_id)
    return True


@procedure("mark_order_paid")
def mark_order_paid(ops, p_order_id: str, p_trade_no: str) -> bool:
    rows = ops.select("orders", filters={"id": eq(p_order_id)}, for_update=True)
    if not rows:
        raise NotFoundError("Order not found")
    order = rows[0]
    if order["payment_status"] == PaymentStatus.PAID.value:
        return False
    values = {"payment_status": PaymentStatus.PAID.value, "trade_no": p_trade_no}
    if not order["order_number"]:
        values["order_number"] = p_trade_no
    changed = ops.update(
        "orders",
        {"id": eq(p_order_id), "payment_status": eq(PaymentStatus.UNPAID.value)},
        values,
    )
    return bool(changed)

