"""
Credit balances and the credit ledger.

Balance changes only happen through the ``add_credits``, ``consume_credits``
and ``purchase_credits`` procedures so each one is atomic with its ledger
entry.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from shared import constants
from tripmarket.db import DbClient
from tripmarket.errors import ConflictError, InsufficientCreditsError, UpstreamError, ValidationError
from tripmarket.filters import eq
from tripmarket.resilience import RetryPolicy, call_with_retries

logger = logging.getLogger(__name__)

BALANCE_RETRY_POLICY = RetryPolicy(max_attempts=3, initial_delay=1.0, max_delay=10.0)


def _read_or_create_balance(db: DbClient, user_id: str) -> int:
    rows = db.select("user_credits", filters={"user_id": eq(user_id)})
    if rows:
        return rows[0]["total"]
    try:
        row = db.insert(
            "user_credits", {"user_id": user_id, "total": constants.INITIAL_CREDITS}
        )
        logger.info("Initialized credits for %s", user_id)
        return row["total"]
    except ConflictError:
        # Another request initialized the row first.
        rows = db.select("user_credits", filters={"user_id": eq(user_id)})
        if not rows:
            raise
        return rows[0]["total"]


def get_balance(
    db: DbClient, user_id: str, *, sleep: Callable[[float], None] = time.sleep
) -> int:
    return call_with_retries(
        lambda: _read_or_create_balance(db, user_id),
        BALANCE_RETRY_POLICY,
        retry_on=(UpstreamError,),
        sleep=sleep,
        label=f"credit balance for {user_id}",
    )


def list_transactions(db: DbClient, user_id: str, *, limit: int = 50, offset: int = 0) -> list[dict]:
    return db.select(
        "credit_transactions",
        filters={"user_id": eq(user_id)},
        order="created_at.desc",
        limit=limit,
        offset=offset,
    )


def list_purchases(db: DbClient, user_id: str) -> list[dict]:
    return db.select(
        "credit_purchases", filters={"user_id": eq(user_id)}, order="created_at.desc"
    )


def has_enough(db: DbClient, user_id: str, amount: int) -> bool:
    return get_balance(db, user_id) >= amount


def consume(db: DbClient, user_id: str, amount: int, remark: str) -> None:
    """Debits the balance or raises InsufficientCreditsError without changing anything."""
    if not db.rpc(
        "consume_credits",
        {"p_user_id": user_id, "p_amount": amount, "p_remark": remark},
    ):
        raise InsufficientCreditsError(amount, get_balance(db, user_id))


def purchase(db: DbClient, user_id: str, credits: int, description: str) -> int:
    _check_amount(credits)
    return db.rpc(
        "purchase_credits",
        {"p_user_id": user_id, "p_credits": credits, "p_description": description},
    )


def grant(db: DbClient, user_id: str, amount: int, remark: str = constants.ADMIN_GRANT_REMARK) -> int:
    _check_amount(amount)
    total = db.rpc(
        "add_credits", {"p_user_id": user_id, "p_amount": amount, "p_remark": remark}
    )
    logger.info("Granted %d credits to %s", amount, user_id)
    return total


def _check_amount(amount) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Amount must be a positive integer")
