"""
Post-payment handling for package orders (the ``process-alipay-payment``
endpoint). Gateway signing and redirects are out of scope: the caller
reports a trade status and this marks the order paid exactly once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from shared import constants
from shared.types import PaymentStatus
from shared.utils import iso_in, utc_now_iso
from tripmarket.auth import AuthUser
from tripmarket.db import DbClient
from tripmarket.errors import (
    MarketplaceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from tripmarket.filters import eq

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    success: bool
    message: str
    order: dict
    session_updated: bool = False


def _update_session(
    db: DbClient, session_id: str, out_trade_no: str, trade_no: str
) -> bool:
    try:
        rows = db.update(
            "session_tokens",
            {"session_id": eq(session_id)},
            {
                "trade_status": "SUCCESS",
                "out_trade_no": out_trade_no,
                "trade_no": trade_no,
                "inserted_at": utc_now_iso(),
                "expires_at": iso_in(constants.PAYMENT_SESSION_TTL_SECONDS),
            },
        )
    except MarketplaceError as exc:
        logger.warning("Failed to update payment session %s: %s", session_id, exc)
        return False
    if not rows:
        logger.warning("Payment session %s not found", session_id)
        return False
    return True


def process_payment(
    db: DbClient,
    user: AuthUser,
    *,
    order_id: str,
    trade_no: str = constants.DEFAULT_ALIPAY_TRADE_NO,
    trade_status: str = "TRADE_SUCCESS",
    session_id: Optional[str] = None,
) -> PaymentResult:
    if not order_id:
        raise ValidationError("orderId is required")
    rows = db.select("orders", filters={"id": eq(order_id)})
    if not rows:
        raise NotFoundError("Order not found")
    order = rows[0]
    if order["user_id"] != user.id:
        raise PermissionDeniedError("This order does not belong to you")
    if trade_status not in constants.SUCCESS_TRADE_STATUSES:
        raise ValidationError(f"Payment not successful: {trade_status}")

    if order["payment_status"] == PaymentStatus.PAID.value:
        logger.info("Order %s already paid", order_id)
        return PaymentResult(success=True, message="Order already paid", order=order)

    transitioned = db.rpc("mark_order_paid", {"p_order_id": order_id, "p_trade_no": trade_no})
    order = db.select("orders", filters={"id": eq(order_id)})[0]
    if not transitioned:
        return PaymentResult(success=True, message="Order already paid", order=order)

    session_updated = False
    if session_id:
        session_updated = _update_session(
            db, session_id, order["order_number"] or trade_no, trade_no
        )
    logger.info("Order %s paid (trade %s)", order_id, trade_no)
    return PaymentResult(
        success=True,
        message="Payment processed",
        order=order,
        session_updated=session_updated,
    )
