"""
Table-level data access: an in-memory test implementation, a SQLAlchemy
implementation for Postgres (or SQLite in tests), and the schema both share.

The interface mirrors the BaaS REST wrapper (select/insert/update/remove/
rpc/count) so the Supabase REST client in ``tripmarket.rest`` is a drop-in
third implementation.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, Optional, Protocol, Sequence

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from shared import constants
from shared.utils import utc_now_iso
from shared.validation import new_id
from tripmarket import procedures
from tripmarket.errors import ConflictError
from tripmarket.filters import Filters, matches, parse_filters, parse_order, sort_rows

logger = logging.getLogger(__name__)


class DbClient(Protocol):
    """Interface for table access and server-side procedures."""

    def select(
        self,
        table: str,
        *,
        filters: Optional[Filters] = None,
        columns: Optional[Sequence[str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[dict]:
        ...

    def insert(self, table: str, values: dict) -> dict:
        ...

    def update(self, table: str, filters: Filters, values: dict) -> list[dict]:
        ...

    def remove(self, table: str, filters: Filters) -> list[dict]:
        ...

    def rpc(self, name: str, params: Optional[dict] = None) -> Any:
        ...

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        ...


def get_table(name: str) -> sa.Table:
    table = Base.metadata.tables.get(name)
    if table is None:
        raise ValueError(f"Unknown table {name!r}")
    return table


def _check_columns(table: sa.Table, names) -> None:
    unknown = [n for n in names if n not in table.c]
    if unknown:
        raise ValueError(f"Unknown column(s) for {table.name}: {', '.join(unknown)}")


def _default_value(default) -> Any:
    if default is None:
        return None
    if default.is_callable:
        # SQLAlchemy wraps zero-arg callables to accept an execution context.
        return default.arg(None)
    if default.is_scalar:
        return default.arg
    return None


def with_defaults(table: sa.Table, values: dict) -> dict:
    """Returns a full row: given values plus column defaults for the rest."""
    row = {}
    for column in table.columns:
        if column.name in values:
            row[column.name] = values[column.name]
        else:
            row[column.name] = _default_value(column.default)
    return row


def _primary_key(table: sa.Table, row: dict) -> tuple:
    return tuple(row[c.name] for c in table.primary_key.columns)


def _project(row: dict, columns: Optional[Sequence[str]]) -> dict:
    if not columns:
        return row
    return {name: row.get(name) for name in columns}


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.tables: Dict[str, Dict[tuple, dict]] = {
            name: {} for name in Base.metadata.tables
        }
        self._lock = threading.RLock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            for rows in self.tables.values():
                rows.clear()

    def _rows(self, table: str) -> Dict[tuple, dict]:
        get_table(table)
        return self.tables[table]

    def select(
        self,
        table: str,
        *,
        filters: Optional[Filters] = None,
        columns: Optional[Sequence[str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        for_update: bool = False,
    ) -> list[dict]:
        conditions = parse_filters(filters)
        with self._lock:
            rows = [
                copy.deepcopy(row)
                for row in self._rows(table).values()
                if matches(row, conditions)
            ]
        rows = sort_rows(rows, parse_order(order))
        if offset:
            rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]
        return [_project(row, columns) for row in rows]

    def insert(self, table: str, values: dict) -> dict:
        schema = get_table(table)
        _check_columns(schema, values)
        row = with_defaults(schema, copy.deepcopy(values))
        with self._lock:
            rows = self._rows(table)
            key = _primary_key(schema, row)
            if key in rows:
                raise ConflictError(f"Duplicate key {key} in {table}")
            self._check_unique(schema, row, rows)
            rows[key] = row
            return copy.deepcopy(row)

    def _check_unique(self, schema: sa.Table, row: dict, rows: Dict[tuple, dict]):
        for constraint in schema.constraints:
            if not isinstance(constraint, UniqueConstraint):
                continue
            names = [c.name for c in constraint.columns]
            for existing in rows.values():
                if all(existing.get(n) == row.get(n) for n in names):
                    raise ConflictError(
                        f"Duplicate value for ({', '.join(names)}) in {schema.name}"
                    )

    def update(self, table: str, filters: Filters, values: dict) -> list[dict]:
        schema = get_table(table)
        _check_columns(schema, values)
        conditions = parse_filters(filters)
        updated = []
        with self._lock:
            for row in self._rows(table).values():
                if not matches(row, conditions):
                    continue
                row.update(copy.deepcopy(values))
                for column in schema.columns:
                    if column.onupdate is not None and column.name not in values:
                        row[column.name] = _default_value(column.onupdate)
                updated.append(copy.deepcopy(row))
        return updated

    def remove(self, table: str, filters: Filters) -> list[dict]:
        conditions = parse_filters(filters)
        removed = []
        with self._lock:
            rows = self._rows(table)
            for key in [k for k, row in rows.items() if matches(row, conditions)]:
                removed.append(rows.pop(key))
        return removed

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        conditions = parse_filters(filters)
        with self._lock:
            return sum(1 for row in self._rows(table).values() if matches(row, conditions))

    def rpc(self, name: str, params: Optional[dict] = None) -> Any:
        with self._lock:
            return procedures.call_procedure(self, name, params or {})


class _ConnectionOps:
    """Table operations bound to one open SQLAlchemy connection/transaction."""

    def __init__(self, conn: sa.Connection):
        self.conn = conn

    def _where(self, table: sa.Table, filters: Optional[Filters]) -> list:
        clauses = []
        for condition in parse_filters(filters):
            if condition.column not in table.c:
                raise ValueError(
                    f"Unknown column {condition.column!r} for {table.name}"
                )
            column = table.c[condition.column]
            clauses.append(_clause(column, condition.op, condition.value))
        return clauses

    def select(
        self,
        table: str,
        *,
        filters: Optional[Filters] = None,
        columns: Optional[Sequence[str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        for_update: bool = False,
    ) -> list[dict]:
        schema = get_table(table)
        if columns:
            _check_columns(schema, columns)
            stmt = sa.select(*[schema.c[name] for name in columns])
        else:
            stmt = sa.select(schema)
        stmt = stmt.where(*self._where(schema, filters))
        for term in parse_order(order):
            column = schema.c[term.column]
            stmt = stmt.order_by(
                column.desc().nulls_last() if term.descending else column.asc().nulls_last()
            )
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        if for_update:
            stmt = stmt.with_for_update()
        return [dict(row._mapping) for row in self.conn.execute(stmt)]

    def _by_keys(self, schema: sa.Table, keys: list[tuple]) -> list[dict]:
        if not keys:
            return []
        stmt = sa.select(schema).where(_pk_in(schema, keys))
        return [dict(row._mapping) for row in self.conn.execute(stmt)]

    def insert(self, table: str, values: dict) -> dict:
        schema = get_table(table)
        _check_columns(schema, values)
        row = with_defaults(schema, values)
        try:
            self.conn.execute(sa.insert(schema).values(**row))
        except IntegrityError as exc:
            raise ConflictError(f"Integrity error inserting into {table}") from exc
        return self._by_keys(schema, [_primary_key(schema, row)])[0]

    def update(self, table: str, filters: Filters, values: dict) -> list[dict]:
        schema = get_table(table)
        _check_columns(schema, values)
        where = self._where(schema, filters)
        matched = self.conn.execute(
            sa.select(*schema.primary_key.columns).where(*where).with_for_update()
        ).all()
        keys = [tuple(row) for row in matched]
        if not keys:
            return []
        try:
            self.conn.execute(
                sa.update(schema)
                .where(_pk_in(schema, keys), *where)
                .values(**values)
            )
        except IntegrityError as exc:
            raise ConflictError(f"Integrity error updating {table}") from exc
        return self._by_keys(schema, keys)

    def remove(self, table: str, filters: Filters) -> list[dict]:
        schema = get_table(table)
        where = self._where(schema, filters)
        rows = [dict(row._mapping) for row in self.conn.execute(sa.select(schema).where(*where))]
        if rows:
            self.conn.execute(sa.delete(schema).where(*where))
        return rows

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        schema = get_table(table)
        stmt = sa.select(sa.func.count()).select_from(schema).where(
            *self._where(schema, filters)
        )
        return int(self.conn.execute(stmt).scalar_one())


def _pk_in(schema: sa.Table, keys: list[tuple]):
    pk_columns = list(schema.primary_key.columns)
    if len(pk_columns) == 1:
        return pk_columns[0].in_([key[0] for key in keys])
    return sa.tuple_(*pk_columns).in_(keys)


def _coerce(column: sa.Column, raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    if isinstance(column.type, Boolean):
        return raw.lower() == "true"
    if isinstance(column.type, Integer):
        return int(raw)
    if isinstance(column.type, Float):
        return float(raw)
    return raw


def _clause(column: sa.Column, op: str, value: Any):
    if op == "is":
        return column.is_(value)
    if op == "in":
        return column.in_([_coerce(column, v) for v in value])
    if op in ("like", "ilike"):
        pattern = value.replace("*", "%")
        return column.ilike(pattern) if op == "ilike" else column.like(pattern)
    coerced = _coerce(column, value)
    if op == "eq":
        return column == coerced
    if op == "neq":
        return column != coerced
    if op == "gt":
        return column > coerced
    if op == "gte":
        return column >= coerced
    if op == "lt":
        return column < coerced
    return column <= coerced


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    Each call runs in its own transaction; procedures run in a single one.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            self.engine = create_engine(
                database_url,
                future=True,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                database_url,
                future=True,
                pool_pre_ping=True,
                pool_recycle=1800,
            )
        Base.metadata.create_all(self.engine)

    def select(self, table: str, **kwargs) -> list[dict]:
        with self.engine.begin() as conn:
            return _ConnectionOps(conn).select(table, **kwargs)

    def insert(self, table: str, values: dict) -> dict:
        with self.engine.begin() as conn:
            return _ConnectionOps(conn).insert(table, values)

    def update(self, table: str, filters: Filters, values: dict) -> list[dict]:
        with self.engine.begin() as conn:
            return _ConnectionOps(conn).update(table, filters, values)

    def remove(self, table: str, filters: Filters) -> list[dict]:
        with self.engine.begin() as conn:
            return _ConnectionOps(conn).remove(table, filters)

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        with self.engine.begin() as conn:
            return _ConnectionOps(conn).count(table, filters)

    def rpc(self, name: str, params: Optional[dict] = None) -> Any:
        with self.engine.begin() as conn:
            return procedures.call_procedure(_ConnectionOps(conn), name, params or {})


Base = declarative_base()


def _id_column():
    return Column(String, primary_key=True, default=new_id)


def _created_at():
    return Column(String, nullable=False, default=utc_now_iso)


def _updated_at():
    return Column(String, nullable=False, default=utc_now_iso, onupdate=utc_now_iso)


class ProfileRow(Base):
    __tablename__ = "profiles"

    id = _id_column()
    email = Column(String, nullable=True, index=True)
    full_name = Column(String, nullable=True)
    username = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    user_role = Column(String, nullable=False, default="user", index=True)
    agency_id = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = _created_at()
    updated_at = _updated_at()


class UserCreditsRow(Base):
    __tablename__ = "user_credits"

    user_id = Column(String, primary_key=True)
    total = Column(Integer, nullable=False, default=constants.INITIAL_CREDITS)
    created_at = _created_at()
    updated_at = _updated_at()


class CreditTransactionRow(Base):
    __tablename__ = "credit_transactions"

    id = _id_column()
    user_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)
    amount = Column(Integer, nullable=False)
    remark = Column(String, nullable=True)
    created_at = _created_at()


class CreditPurchaseRow(Base):
    __tablename__ = "credit_purchases"

    id = _id_column()
    user_id = Column(String, nullable=False, index=True)
    credits = Column(Integer, nullable=False)
    description = Column(String, nullable=True)
    created_at = _created_at()


class TravelPackageRow(Base):
    __tablename__ = "travel_packages"

    id = _id_column()
    agent_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    destination = Column(String, nullable=False)
    departure = Column(String, nullable=True)
    duration = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    original_price = Column(Float, nullable=True)
    discount_price = Column(Float, nullable=True)
    discount_expires_at = Column(String, nullable=True)
    is_discounted = Column(Boolean, nullable=False, default=False)
    is_international = Column(Boolean, nullable=False, default=False)
    image = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)
    review_note = Column(String, nullable=True)
    views = Column(Integer, nullable=False, default=0)
    favorites = Column(Integer, nullable=False, default=0)
    orders = Column(Integer, nullable=False, default=0)
    hot_score = Column(Float, nullable=False, default=0.0)
    average_rating = Column(Float, nullable=True)
    expire_at = Column(String, nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()


class PackageFavoriteRow(Base):
    __tablename__ = "package_favorites"
    __table_args__ = (UniqueConstraint("user_id", "package_id"),)

    id = _id_column()
    user_id = Column(String, nullable=False, index=True)
    package_id = Column(String, nullable=False, index=True)
    created_at = _created_at()


class PackageReviewRow(Base):
    __tablename__ = "package_reviews"
    __table_args__ = (UniqueConstraint("user_id", "package_id"),)

    id = _id_column()
    package_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()


class OrderRow(Base):
    __tablename__ = "orders"

    id = _id_column()
    user_id = Column(String, nullable=True, index=True)
    package_id = Column(String, nullable=True, index=True)
    contact_name = Column(String, nullable=False)
    contact_phone = Column(String, nullable=False)
    id_card = Column(String, nullable=False)
    travel_date = Column(String, nullable=False)
    order_number = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)
    reject_reason = Column(String, nullable=True)
    contract_status = Column(String, nullable=True)
    has_paid_info_fee = Column(Boolean, nullable=False, default=False)
    payment_status = Column(String, nullable=False, default="unpaid")
    trade_no = Column(String, nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()


class MessageLogRow(Base):
    __tablename__ = "message_logs"

    id = _id_column()
    order_id = Column(String, nullable=True, index=True)
    from_role = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = _created_at()


class InfoFeeLogRow(Base):
    __tablename__ = "info_fee_logs"

    id = _id_column()
    order_id = Column(String, nullable=True, index=True)
    agent_id = Column(String, nullable=True, index=True)
    amount = Column(Float, nullable=False)
    remark = Column(String, nullable=True)
    created_at = _created_at()


class EnterpriseOrderRow(Base):
    __tablename__ = "enterprise_orders"

    id = _id_column()
    user_id = Column(String, nullable=True, index=True)
    contact_name = Column(String, nullable=False)
    contact_phone = Column(String, nullable=False)
    departure_location = Column(String, nullable=False)
    destination_location = Column(String, nullable=False)
    travel_date = Column(String, nullable=False)
    people_count = Column(Integer, nullable=False, default=1)
    requirements = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)
    review_reason = Column(String, nullable=True)
    has_paid_info_fee = Column(Boolean, nullable=False, default=False)
    created_at = _created_at()
    updated_at = _updated_at()


class EnterpriseApplicationRow(Base):
    __tablename__ = "enterprise_order_applications"
    __table_args__ = (UniqueConstraint("order_id", "agent_id"),)

    id = _id_column()
    order_id = Column(String, nullable=False, index=True)
    agent_id = Column(String, nullable=False, index=True)
    license_image = Column(String, nullable=False)
    qualification_image = Column(String, nullable=False)
    note = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="pending")
    review_reason = Column(String, nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()


class MessageRow(Base):
    __tablename__ = "messages"

    id = _id_column()
    sender_id = Column(String, nullable=True)
    receiver_id = Column(String, nullable=True, index=True)
    content = Column(Text, nullable=False)
    type = Column(String, nullable=False, default="direct", index=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = _created_at()
    updated_at = _updated_at()


class TravelPlanRow(Base):
    __tablename__ = "travel_plan_logs"

    id = _id_column()
    user_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=True)
    from_location = Column(String, nullable=False)
    to_location = Column(String, nullable=False)
    travel_date = Column(String, nullable=False)
    days = Column(Integer, nullable=False)
    preferences = Column(JSON, nullable=True)
    plan_text = Column(Text, nullable=False)
    poi_list = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default="queued", index=True)
    attempts = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=True)
    credits_charged = Column(Boolean, nullable=False, default=False)
    locked_at = Column(Float, nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()


class PlanFavoriteRow(Base):
    __tablename__ = "plan_favorites"
    __table_args__ = (UniqueConstraint("user_id", "plan_id"),)

    id = _id_column()
    user_id = Column(String, nullable=False, index=True)
    plan_id = Column(String, nullable=False)
    created_at = _created_at()


class AgentApplicationRow(Base):
    __tablename__ = "agent_applications"

    id = _id_column()
    user_id = Column(String, nullable=True, index=True)
    company_name = Column(String, nullable=False)
    contact_person = Column(String, nullable=False)
    contact_phone = Column(String, nullable=False)
    license_image = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending", index=True)
    review_reason = Column(String, nullable=True)
    agency_id = Column(String, nullable=True)
    created_at = _created_at()
    updated_at = _updated_at()


class SystemSettingsRow(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, autoincrement=False)
    commission_rate = Column(Float, nullable=False, default=constants.DEFAULT_COMMISSION_RATE)
    email_registration_enabled = Column(Boolean, nullable=False, default=True)
    is_publish_package_charged = Column(Boolean, nullable=False, default=False)
    package_publish_cost = Column(
        Integer, nullable=False, default=constants.DEFAULT_PACKAGE_PUBLISH_COST
    )
    max_travel_packages_per_agent = Column(
        Integer, nullable=False, default=constants.DEFAULT_MAX_PACKAGES_PER_AGENT
    )
    maintenance_mode = Column(Boolean, nullable=False, default=False)
    updated_at = _updated_at()


class SessionTokenRow(Base):
    __tablename__ = "session_tokens"

    session_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True)
    order_id = Column(String, nullable=True)
    trade_status = Column(String, nullable=True)
    out_trade_no = Column(String, nullable=True)
    trade_no = Column(String, nullable=True)
    inserted_at = Column(String, nullable=True)
    expires_at = Column(String, nullable=True)


class BannerRow(Base):
    __tablename__ = "banners"

    id = _id_column()
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=False)
    link_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    banner_type = Column(String, nullable=False, default="travel", index=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = _created_at()
    updated_at = _updated_at()


class PopularDestinationRow(Base):
    __tablename__ = "popular_destinations"

    id = _id_column()
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=False)
    link_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = _created_at()
    updated_at = _updated_at()
