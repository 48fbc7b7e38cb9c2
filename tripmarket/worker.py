"""
Worker loop that generates queued travel plans.

Run with ``python -m tripmarket.worker``. Each plan is claimed with a
compare-and-set on its status so concurrent workers never process the same
row, generated with retries under an overall deadline, and only charged
once the text is stored.
"""

from __future__ import annotations

import argparse
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Optional

from planner.base import PlanGenerationError, PlanGenerator, PlanRequest
from shared import constants
from shared.types import PlanStatus
from tripmarket.config import get_settings
from tripmarket.db import DbClient
from tripmarket.dependencies import (
    get_circuit_breaker,
    get_db_client,
    get_plan_generator,
    get_queue_client,
)
from tripmarket.errors import MarketplaceError
from tripmarket.filters import eq, lt
from tripmarket.queue import JobQueue
from tripmarket.resilience import CircuitBreaker, RetryPolicy

logger = logging.getLogger(__name__)


def _claim(db: DbClient, plan_id: str, now: float) -> Optional[dict]:
    rows = db.update(
        "travel_plan_logs",
        {"id": eq(plan_id), "status": eq(PlanStatus.QUEUED.value)},
        {"status": PlanStatus.GENERATING.value, "locked_at": now},
    )
    return rows[0] if rows else None


def _request_from_row(row: dict) -> PlanRequest:
    return PlanRequest(
        from_location=row["from_location"],
        to_location=row["to_location"],
        travel_date=row["travel_date"],
        days=row["days"],
        preferences=list(row.get("preferences") or []),
    )


def generate_with_retries(
    plan_id: str,
    generator: PlanGenerator,
    request: PlanRequest,
    *,
    policy: RetryPolicy,
    timeout: float,
    on_attempt: Callable[[int], None] = lambda attempt: None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> str:
    """
    Calls the generator up to policy.max_attempts times within `timeout`
    seconds overall. Text of PLAN_MIN_TEXT_LENGTH characters or fewer counts
    as a failed attempt.
    """
    deadline = clock() + timeout
    last_error: Exception = PlanGenerationError("No generation attempt was made")
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"plan-{plan_id[:8]}")
    try:
        for attempt in range(1, policy.max_attempts + 1):
            remaining = deadline - clock()
            if remaining <= 0:
                last_error = PlanGenerationError(f"Generation timed out after {timeout:.0f}s")
                break
            on_attempt(attempt)
            try:
                text = executor.submit(generator.generate, request).result(timeout=remaining)
                if not text or len(text.strip()) <= constants.PLAN_MIN_TEXT_LENGTH:
                    raise PlanGenerationError("Generated plan text was empty or too short")
                return text
            except FutureTimeoutError:
                last_error = PlanGenerationError(f"Generation timed out after {timeout:.0f}s")
                logger.warning("[%s] Attempt %d timed out", plan_id, attempt)
                break
            except Exception as exc:  # provider errors are retried
                last_error = exc
                logger.warning("[%s] Attempt %d/%d failed: %s", plan_id, attempt, policy.max_attempts, exc)
            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                if clock() + delay >= deadline:
                    last_error = PlanGenerationError(f"Generation timed out after {timeout:.0f}s")
                    break
                sleep(delay)
    finally:
        executor.shutdown(wait=False)
    raise last_error


def _charge(db: DbClient, plan: dict, cost: int) -> bool:
    try:
        charged = db.rpc(
            "consume_credits",
            {
                "p_user_id": plan["user_id"],
                "p_amount": cost,
                "p_remark": constants.PLAN_GENERATION_REMARK,
            },
        )
    except MarketplaceError as exc:
        logger.error("[%s] Charging credits failed: %s", plan["id"], exc)
        return False
    if not charged:
        logger.error("[%s] Insufficient credits at charge time; plan kept uncharged", plan["id"])
        return False
    db.update("travel_plan_logs", {"id": eq(plan["id"])}, {"credits_charged": True})
    return True


def process_plan(
    plan_id: str,
    *,
    db: DbClient,
    generator: PlanGenerator,
    breaker: CircuitBreaker,
    settings=None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """
    Generates one plan. Returns False when the plan could not be claimed.
    """
    settings = settings or get_settings()
    plan = _claim(db, plan_id, time.time())
    if plan is None:
        logger.info("[%s] Not claimable (missing or already taken)", plan_id)
        return False
    logger.info("[%s] Generating %s -> %s", plan_id, plan["from_location"], plan["to_location"])

    def record_attempt(attempt: int) -> None:
        db.update("travel_plan_logs", {"id": eq(plan_id)}, {"attempts": attempt})

    policy = RetryPolicy(
        max_attempts=settings.plan_max_retries,
        initial_delay=settings.plan_retry_delay_seconds,
    )
    try:
        text = generate_with_retries(
            plan_id,
            generator,
            _request_from_row(plan),
            policy=policy,
            timeout=settings.plan_generation_timeout_seconds,
            on_attempt=record_attempt,
            sleep=sleep,
            clock=clock,
        )
    except Exception as exc:  # every provider failure ends in a failed plan
        breaker.record_failure()
        db.update(
            "travel_plan_logs",
            {"id": eq(plan_id)},
            {
                "status": PlanStatus.FAILED.value,
                "error": str(exc) or exc.__class__.__name__,
                "locked_at": None,
            },
        )
        logger.error("[%s] Generation failed: %s", plan_id, exc)
        return True

    db.update(
        "travel_plan_logs",
        {"id": eq(plan_id)},
        {
            "plan_text": text,
            "status": PlanStatus.COMPLETED.value,
            "error": None,
            "locked_at": None,
        },
    )
    breaker.record_success()
    charged = _charge(db, plan, settings.plan_generation_cost)
    logger.info("[%s] Completed (charged=%s)", plan_id, charged)
    return True


def requeue_stale(db: DbClient, queue: JobQueue, *, lock_timeout: float, now: Optional[float] = None) -> int:
    """Puts plans stuck in `generating` longer than lock_timeout back on the queue."""
    now = time.time() if now is None else now
    stale = db.select(
        "travel_plan_logs",
        filters={
            "status": eq(PlanStatus.GENERATING.value),
            "locked_at": lt(now - lock_timeout),
        },
        columns=["id", "locked_at"],
    )
    requeued = 0
    for row in stale:
        released = db.update(
            "travel_plan_logs",
            {
                "id": eq(row["id"]),
                "status": eq(PlanStatus.GENERATING.value),
                "locked_at": eq(row["locked_at"]),
            },
            {"status": PlanStatus.QUEUED.value, "locked_at": None},
        )
        if released:
            queue.enqueue(row["id"])
            requeued += 1
            logger.warning("[%s] Re-queued stale plan", row["id"])
    return requeued


def process_next(
    *,
    db: Optional[DbClient] = None,
    queue: Optional[JobQueue] = None,
    generator: Optional[PlanGenerator] = None,
    breaker: Optional[CircuitBreaker] = None,
    block: bool = True,
    timeout: int | None = 5,
    settings=None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Pop one plan id from the queue and process it. Returns True if a plan was taken.
    """
    db = db if db is not None else get_db_client()
    queue = queue if queue is not None else get_queue_client()
    generator = generator if generator is not None else get_plan_generator()
    breaker = breaker if breaker is not None else get_circuit_breaker()

    plan_id = queue.dequeue(block=block, timeout=timeout)
    if not plan_id:
        return False
    process_plan(
        plan_id,
        db=db,
        generator=generator,
        breaker=breaker,
        settings=settings,
        sleep=sleep,
    )
    return True


def run_loop(poll_interval: float = 1.0, stale_check_interval: float = 60.0) -> None:
    settings = get_settings()
    db = get_db_client()
    queue = get_queue_client()
    logger.info("Plan worker started (provider=%s)", settings.plan_provider)
    last_stale_check = 0.0
    while True:
        if time.monotonic() - last_stale_check >= stale_check_interval:
            requeue_stale(db, queue, lock_timeout=settings.plan_lock_timeout_seconds)
            last_stale_check = time.monotonic()
        processed = process_next(db=db, queue=queue, block=True, timeout=5, settings=settings)
        if not processed:
            time.sleep(poll_interval)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Travel plan generation worker")
    parser.add_argument("--once", action="store_true", help="Process at most one plan and exit")
    parser.add_argument("--poll-interval", type=float, default=1.0)
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.once:
        process_next(block=False, settings=settings)
        return
    run_loop(poll_interval=args.poll_interval)


if __name__ == "__main__":
    main()
