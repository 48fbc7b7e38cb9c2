"""
Direct and system messages, plus the unread badge count.
"""

from __future__ import annotations

import logging

from shared import constants
from shared.types import EnterpriseOrderStatus, MessageType, UserRole
from tripmarket.auth import AuthUser
from tripmarket.db import DbClient
from tripmarket.errors import NotFoundError, PermissionDeniedError, ValidationError
from tripmarket.filters import eq, in_, is_, neq

logger = logging.getLogger(__name__)


def _check_content(content: str) -> str:
    text = (content or "").strip()
    if not text:
        raise ValidationError("Message cannot be empty")
    if len(text) > constants.MAX_MESSAGE_LENGTH:
        raise ValidationError("Message is too long")
    return text


def inbox(db: DbClient, user: AuthUser, *, limit: int = 50, offset: int = 0) -> list[dict]:
    return db.select(
        "messages",
        filters={"receiver_id": eq(user.id)},
        order="created_at.desc",
        limit=limit,
        offset=offset,
    )


def system_messages(db: DbClient, *, limit: int = 50) -> list[dict]:
    return db.select(
        "messages",
        filters={"type": eq(MessageType.SYSTEM.value)},
        order="created_at.desc",
        limit=limit,
    )


def _agent_order_ids(db: DbClient, agent_id: str) -> list[str]:
    package_ids = [
        p["id"]
        for p in db.select(
            "travel_packages", filters={"agent_id": eq(agent_id)}, columns=["id"]
        )
    ]
    if not package_ids:
        return []
    return [
        o["id"]
        for o in db.select(
            "orders", filters={"package_id": in_(package_ids)}, columns=["id"]
        )
    ]


def agent_order_feed(db: DbClient, agent: AuthUser, *, limit: int = 50) -> list[dict]:
    """Order messages on the agent's packages, newest first."""
    order_ids = _agent_order_ids(db, agent.id)
    if not order_ids:
        return []
    return db.select(
        "message_logs",
        filters={"order_id": in_(order_ids)},
        order="created_at.desc",
        limit=limit,
    )


def send(db: DbClient, sender: AuthUser, receiver_id: str, content: str) -> dict:
    text = _check_content(content)
    if not db.select("profiles", filters={"id": eq(receiver_id)}, columns=["id"]):
        raise NotFoundError("Recipient not found")
    return db.insert(
        "messages",
        {
            "sender_id": sender.id,
            "receiver_id": receiver_id,
            "content": text,
            "type": MessageType.DIRECT.value,
        },
    )


def broadcast(db: DbClient, admin: AuthUser, content: str) -> dict:
    if not admin.is_admin:
        raise PermissionDeniedError("Only admins can broadcast")
    text = _check_content(content)
    message = db.insert(
        "messages",
        {"sender_id": admin.id, "content": text, "type": MessageType.SYSTEM.value},
    )
    logger.info("System message %s broadcast by %s", message["id"], admin.id)
    return message


def mark_read(db: DbClient, user: AuthUser, message_id: str) -> dict:
    rows = db.select("messages", filters={"id": eq(message_id)})
    if not rows:
        raise NotFoundError("Message not found")
    message = rows[0]
    is_system = message["type"] == MessageType.SYSTEM.value
    if message["receiver_id"] != user.id and not (is_system and (user.is_admin or user.is_agent)):
        raise PermissionDeniedError("You cannot change this message")
    return db.update("messages", {"id": eq(message_id)}, {"read": True})[0]


def mark_all_read(db: DbClient, user: AuthUser) -> int:
    rows = db.update(
        "messages", {"receiver_id": eq(user.id), "read": is_(False)}, {"read": True}
    )
    return len(rows)


def unread_count(db: DbClient, user: AuthUser) -> int:
    total = db.count("messages", {"receiver_id": eq(user.id), "read": is_(False)})
    if user.role in (UserRole.ADMIN, UserRole.AGENT):
        total += db.count(
            "messages", {"type": eq(MessageType.SYSTEM.value), "read": is_(False)}
        )
    if user.role is UserRole.AGENT:
        order_ids = _agent_order_ids(db, user.id)
        if order_ids:
            total += db.count(
                "message_logs",
                {
                    "order_id": in_(order_ids),
                    "from_role": neq(UserRole.AGENT.value),
                    "read": is_(False),
                },
            )
        total += db.count(
            "enterprise_orders",
            {
                "status": eq(EnterpriseOrderStatus.APPROVED.value),
                "has_paid_info_fee": is_(False),
            },
        )
    return total
