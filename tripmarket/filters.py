"""
PostgREST-style filter and ordering expressions.

Filters are a mapping of column -> ``"<op>.<value>"`` (or a list of those for
several conditions on one column), e.g. ``{"status": "eq.approved",
"travel_date": ["gte.2025-01-01", "lte.2025-02-01"]}``. The same mapping is
evaluated in memory, translated to SQLAlchemy, or sent verbatim as query
parameters to a Supabase REST endpoint.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

OPERATORS = frozenset(
    {"eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike", "is", "in"}
)
IS_VALUES = {"null": None, "true": True, "false": False}

FilterSpec = Union[str, Sequence[str]]
Filters = Mapping[str, FilterSpec]


@dataclass(frozen=True)
class Condition:
    column: str
    op: str
    value: Any


@dataclass(frozen=True)
class OrderTerm:
    column: str
    descending: bool = False


def _format(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def eq(value: Any) -> str:
    return f"eq.{_format(value)}"


def neq(value: Any) -> str:
    return f"neq.{_format(value)}"


def gte(value: Any) -> str:
    return f"gte.{_format(value)}"


def lte(value: Any) -> str:
    return f"lte.{_format(value)}"


def lt(value: Any) -> str:
    return f"lt.{_format(value)}"


def ilike(fragment: str) -> str:
    """Case-insensitive substring match."""
    return f"ilike.%{fragment}%"


def is_(value: Optional[bool]) -> str:
    return f"is.{_format(value)}"


def in_(values: Iterable[Any]) -> str:
    return "in.(" + ",".join(_format(v) for v in values) + ")"


def parse_condition(column: str, spec: str) -> Condition:
    if not isinstance(spec, str) or "." not in spec:
        raise ValueError(f"Malformed filter for {column!r}: {spec!r}")
    op, _, raw = spec.partition(".")
    if op not in OPERATORS:
        raise ValueError(f"Unsupported filter operator {op!r} for {column!r}")
    if op == "is":
        key = raw.lower()
        if key not in IS_VALUES:
            raise ValueError(f"'is' filter expects null/true/false, got {raw!r}")
        return Condition(column, op, IS_VALUES[key])
    if op == "in":
        inner = raw.strip()
        if inner.startswith("(") and inner.endswith(")"):
            inner = inner[1:-1]
        values = tuple(v.strip() for v in inner.split(",") if v.strip())
        return Condition(column, op, values)
    return Condition(column, op, raw)


def parse_filters(filters: Optional[Filters]) -> list[Condition]:
    conditions: list[Condition] = []
    for column, spec in (filters or {}).items():
        specs = [spec] if isinstance(spec, str) else list(spec)
        for item in specs:
            conditions.append(parse_condition(column, item))
    return conditions


def parse_order(order: Optional[str]) -> list[OrderTerm]:
    """Parses ``"created_at.desc,title.asc"``. Direction defaults to asc."""
    terms: list[OrderTerm] = []
    if not order:
        return terms
    for part in order.split(","):
        part = part.strip()
        if not part:
            continue
        column, _, direction = part.partition(".")
        direction = direction.lower() or "asc"
        if direction not in ("asc", "desc"):
            raise ValueError(f"Invalid order direction {direction!r}")
        terms.append(OrderTerm(column, direction == "desc"))
    return terms


def to_query_params(filters: Optional[Filters]) -> list[tuple[str, str]]:
    params: list[tuple[str, str]] = []
    for column, spec in (filters or {}).items():
        specs = [spec] if isinstance(spec, str) else list(spec)
        for item in specs:
            params.append((column, item))
    return params


def _pattern_to_regex(pattern: str, ignore_case: bool) -> re.Pattern:
    parts = []
    for ch in pattern:
        if ch in ("%", "*"):
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE if ignore_case else 0)


def _equal(actual: Any, raw: str) -> bool:
    if isinstance(actual, bool):
        return raw.lower() == ("true" if actual else "false")
    if isinstance(actual, (int, float)):
        try:
            return float(raw) == float(actual)
        except ValueError:
            return False
    return str(actual) == raw


def _compare(actual: Any, raw: str) -> int:
    if isinstance(actual, (int, float)) and not isinstance(actual, bool):
        try:
            other = float(raw)
        except ValueError:
            other = None
        if other is not None:
            return (actual > other) - (actual < other)
    left = str(actual)
    return (left > raw) - (left < raw)


def _match(actual: Any, condition: Condition) -> bool:
    op = condition.op
    if op == "is":
        if condition.value is None:
            return actual is None
        return actual is condition.value or (
            isinstance(actual, bool) and actual == condition.value
        )
    # SQL semantics: comparisons against NULL never match.
    if actual is None:
        return False
    if op == "eq":
        return _equal(actual, condition.value)
    if op == "neq":
        return not _equal(actual, condition.value)
    if op == "in":
        return any(_equal(actual, v) for v in condition.value)
    if op in ("like", "ilike"):
        regex = _pattern_to_regex(condition.value, ignore_case=op == "ilike")
        return bool(regex.match(str(actual)))
    cmp = _compare(actual, condition.value)
    if op == "gt":
        return cmp > 0
    if op == "gte":
        return cmp >= 0
    if op == "lt":
        return cmp < 0
    return cmp <= 0


def matches(row: Mapping[str, Any], conditions: Iterable[Condition]) -> bool:
    return all(_match(row.get(c.column), c) for c in conditions)


def sort_rows(rows: list[dict], terms: Sequence[OrderTerm]) -> list[dict]:
    """Returns rows sorted by terms, most significant first. NULLs sort last."""
    result = list(rows)
    for term in reversed(terms):
        present = [r for r in result if r.get(term.column) is not None]
        missing = [r for r in result if r.get(term.column) is None]
        present.sort(key=lambda r: r[term.column], reverse=term.descending)
        result = present + missing
    return result
