"""
Admin-managed home page content: banners and popular destinations.

Both tables are shown in ``sort_order`` (ascending); admins create, edit,
toggle, delete and reorder rows.
"""

from __future__ import annotations

import logging
from typing import Optional

from shared.types import BannerType
from tripmarket.db import DbClient
from tripmarket.errors import NotFoundError, ValidationError
from tripmarket.filters import eq, is_

logger = logging.getLogger(__name__)

BANNERS = "banners"
DESTINATIONS = "popular_destinations"

# Required text field per table, and the fields admins may set.
_TITLE_FIELD = {BANNERS: "title", DESTINATIONS: "name"}
_FIELDS = {
    BANNERS: ("title", "description", "image_url", "link_url", "is_active", "banner_type"),
    DESTINATIONS: ("name", "description", "image_url", "link_url", "is_active"),
}
MOVES = ("up", "down")
ORDER = "sort_order.asc,created_at.asc"


def _clean(table: str, data: dict, *, creating: bool) -> dict:
    values = {key: value for key, value in data.items() if key in _FIELDS[table]}
    unknown = set(data) - set(values)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
    required = (_TITLE_FIELD[table], "image_url")
    for key in required:
        if key in values or creating:
            value = values.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{key} is required")
            values[key] = value.strip()
    for key in ("description", "link_url"):
        if key in values and not values[key]:
            values[key] = None
    if "is_active" in values and not isinstance(values["is_active"], bool):
        raise ValidationError("is_active must be true or false")
    if "banner_type" in values:
        try:
            values["banner_type"] = BannerType(values["banner_type"]).value
        except ValueError as exc:
            raise ValidationError(f"Unknown banner type {values['banner_type']}") from exc
    return values


def _get(db: DbClient, table: str, item_id: str) -> dict:
    rows = db.select(table, filters={"id": eq(item_id)})
    if not rows:
        raise NotFoundError(f"{table} row {item_id} not found")
    return rows[0]


def list_items(
    db: DbClient, table: str, *, active_only: bool = True, banner_type: Optional[str] = None
) -> list[dict]:
    filters = {}
    if active_only:
        filters["is_active"] = is_(True)
    if banner_type:
        filters["banner_type"] = eq(banner_type)
    return db.select(table, filters=filters, order=ORDER)


def home_content(db: DbClient) -> dict:
    """Active banners split into travel and enterprise carousels, plus destinations."""
    banners = list_items(db, BANNERS)
    enterprise = BannerType.ENTERPRISE.value
    return {
        "banners": [b for b in banners if b["banner_type"] != enterprise],
        "enterprise_banners": [b for b in banners if b["banner_type"] == enterprise],
        "destinations": list_items(db, DESTINATIONS),
    }


def create_item(db: DbClient, table: str, data: dict) -> dict:
    values = _clean(table, data, creating=True)
    values["sort_order"] = db.count(table)
    row = db.insert(table, values)
    logger.info("Created %s row %s", table, row["id"])
    return row


def update_item(db: DbClient, table: str, item_id: str, changes: dict) -> dict:
    _get(db, table, item_id)
    values = _clean(table, changes, creating=False)
    if not values:
        raise ValidationError("Nothing to update")
    return db.update(table, {"id": eq(item_id)}, values)[0]


def delete_item(db: DbClient, table: str, item_id: str) -> None:
    if not db.remove(table, {"id": eq(item_id)}):
        raise NotFoundError(f"{table} row {item_id} not found")


def move_item(db: DbClient, table: str, item_id: str, direction: str) -> list[dict]:
    """
    Swaps a row with its neighbour and renumbers ``sort_order`` from zero so
    ties left by older rows are resolved. Moving past either end is a no-op.
    Returns the full list in its new order.
    """
    if direction not in MOVES:
        raise ValidationError(f"direction must be one of {', '.join(MOVES)}")
    rows = db.select(table, order=ORDER)
    ids = [row["id"] for row in rows]
    if item_id not in ids:
        raise NotFoundError(f"{table} row {item_id} not found")
    index = ids.index(item_id)
    target = index - 1 if direction == "up" else index + 1
    if 0 <= target < len(rows):
        rows[index], rows[target] = rows[target], rows[index]
    for position, row in enumerate(rows):
        if row["sort_order"] != position:
            row.update(db.update(table, {"id": eq(row["id"])}, {"sort_order": position})[0])
    return rows
