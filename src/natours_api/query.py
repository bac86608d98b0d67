"""Query feature composer: raw query string -> QuerySpec -> composed Select.

The query string is translated in two steps. ``parse_query`` turns the raw
key/value pairs into an immutable :class:`QuerySpec`; :class:`APIFeatures`
then applies the spec to a SQLAlchemy ``Select`` (filter, sort, field
projection, pagination). Execution is left to the caller.

Filter syntax::

    ?difficulty=easy              difficulty == 'easy'
    ?price[lt]=500&duration[gte]=5
    ?duration=5&duration=7        duration IN (5, 7), whitelisted fields only

Reserved keys (``page``, ``sort``, ``limit``, ``fields``) never become
filters.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import Select
from sqlalchemy.orm import load_only

from natours_api.database import Base
from natours_api.exceptions import CastError, ValidationFailed

logger = logging.getLogger(__name__)

RESERVED = frozenset({"page", "sort", "limit", "fields"})
OPERATORS = frozenset({"eq", "gt", "gte", "lt", "lte", "in"})
DEFAULT_LIMIT = 100
MAX_LIMIT = 100

_OPERATOR_KEY = re.compile(r"^(?P<field>[A-Za-z_]\w*)\[(?P<op>\w+)\]$")


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Condition:
    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class QuerySpec:
    """Filter, sort, projection and pagination parameters for one read."""

    filters: tuple[Condition, ...] = ()
    sort: tuple[tuple[str, SortDirection], ...] = (
        ("created_at", SortDirection.DESC),
    )
    fields: tuple[str, ...] = ()
    excluded: tuple[str, ...] = ()
    page: int = 1
    limit: int = DEFAULT_LIMIT

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def take(self) -> int:
        return self.limit

    def filter_mapping(self) -> dict[str, dict[str, Any]]:
        """``{field: {op: value}}`` view of the conditions."""
        out: dict[str, dict[str, Any]] = {}
        for cond in self.filters:
            out.setdefault(cond.field, {})[cond.op] = cond.value
        return out


def _group(items: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for key, value in items:
        grouped.setdefault(key, []).append(value)
    return grouped


def parse_filters(
    items: Iterable[tuple[str, str]], *, whitelist: frozenset[str] = frozenset()
) -> tuple[Condition, ...]:
    """Build conditions from every non-reserved key.

    A repeated key keeps its last value unless its field is whitelisted, in
    which case plain equality turns into an ``in`` condition.
    """
    conditions: list[Condition] = []
    for key, values in _group(items).items():
        if key in RESERVED:
            continue
        match = _OPERATOR_KEY.match(key)
        if match:
            field, op = match.group("field"), match.group("op")
            if field in RESERVED:
                continue
        else:
            field, op = key, "eq"
        if op not in OPERATORS:
            raise ValidationFailed(f"Unsupported filter operator '{op}' on '{field}'")

        if op == "in":
            value: Any = [v for raw in values for v in raw.split(",") if v]
        elif op == "eq" and len(values) > 1 and field in whitelist:
            op, value = "in", values
        else:
            value = values[-1]
        conditions.append(Condition(field, op, value))
    return tuple(conditions)


def parse_sort(raw: str | None) -> tuple[tuple[str, SortDirection], ...]:
    if not raw:
        return QuerySpec.sort
    keys: list[tuple[str, SortDirection]] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("-"):
            keys.append((part[1:], SortDirection.DESC))
        else:
            keys.append((part.lstrip("+"), SortDirection.ASC))
    return tuple(keys) or QuerySpec.sort


def parse_fields(raw: str | None) -> tuple[tuple[str, ...], tuple[str, ...]]:
    """Return ``(included, excluded)``; ``-name`` marks an exclusion."""
    if not raw:
        return (), ()
    included: list[str] = []
    excluded: list[str] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("-"):
            excluded.append(part[1:])
        elif part not in included:
            included.append(part)
    return tuple(included), tuple(excluded)


def _positive_int(name: str, raw: str | None, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationFailed(f"Invalid {name} parameter: {raw}") from None
    if value < 1:
        raise ValidationFailed(f"{name.capitalize()} must be a positive integer")
    return value


def parse_page(
    raw_page: str | None,
    raw_limit: str | None,
    *,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> tuple[int, int]:
    page = _positive_int("page", raw_page, 1)
    limit = _positive_int("limit", raw_limit, default_limit)
    if limit > max_limit:
        raise ValidationFailed(f"Limit must not exceed {max_limit}")
    return page, limit


def parse_query(
    items: Iterable[tuple[str, str]],
    *,
    whitelist: frozenset[str] = frozenset(),
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> QuerySpec:
    """Translate raw query pairs into a complete :class:`QuerySpec`."""
    items = list(items)
    last = {key: value for key, value in items}
    fields, excluded = parse_fields(last.get("fields"))
    page, limit = parse_page(
        last.get("page"),
        last.get("limit"),
        default_limit=default_limit,
        max_limit=max_limit,
    )
    return QuerySpec(
        filters=parse_filters(items, whitelist=whitelist),
        sort=parse_sort(last.get("sort")),
        fields=fields,
        excluded=excluded,
        page=page,
        limit=limit,
    )


def apply_overrides(
    items: Iterable[tuple[str, str]], overrides: Mapping[str, str]
) -> list[tuple[str, str]]:
    """Replace every occurrence of an overridden key with its preset value."""
    kept = [(k, v) for k, v in items if k not in overrides]
    return kept + list(overrides.items())


def _coerce(model: type[Base], field: str, raw: Any) -> Any:
    column = model.__table__.c[field]
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return raw
    if not isinstance(raw, str):
        return raw
    try:
        if python_type is bool:
            lowered = raw.lower()
            if lowered in ("true", "1"):
                return True
            if lowered in ("false", "0"):
                return False
            raise ValueError(raw)
        if python_type is datetime:
            return datetime.fromisoformat(raw)
        if python_type is uuid.UUID:
            return uuid.UUID(raw)
        if python_type in (int, float):
            return python_type(raw)
    except (TypeError, ValueError):
        raise CastError(field, raw) from None
    return raw


class APIFeatures:
    """Chainable composer applying a QuerySpec to a ``Select``.

    >>> features = APIFeatures(select(Tour), Tour, spec)
    >>> stmt = features.filter().sort().limit_fields().paginate().statement
    """

    def __init__(self, statement: Select[Any], model: type[Base], spec: QuerySpec):
        self.statement = statement
        self.model = model
        self.spec = spec
        self.projection: tuple[str, ...] = tuple(model.visible_columns())
        self._visible = set(self.projection)

    def _usable(self, field: str, purpose: str) -> bool:
        if field in self._visible:
            return True
        logger.debug(
            "ignoring %s on unknown field %r of %s", purpose, field, self.model.__name__
        )
        return False

    def filter(self) -> APIFeatures:
        for cond in self.spec.filters:
            if not self._usable(cond.field, "filter"):
                continue
            column = getattr(self.model, cond.field)
            if cond.op == "in":
                values = [_coerce(self.model, cond.field, v) for v in cond.value]
                self.statement = self.statement.where(column.in_(values))
                continue
            value = _coerce(self.model, cond.field, cond.value)
            if cond.op == "eq":
                clause = column == value
            elif cond.op == "gt":
                clause = column > value
            elif cond.op == "gte":
                clause = column >= value
            elif cond.op == "lt":
                clause = column < value
            else:
                clause = column <= value
            self.statement = self.statement.where(clause)
        return self

    def sort(self) -> APIFeatures:
        order = []
        for field, direction in self.spec.sort:
            if not self._usable(field, "sort"):
                continue
            column = getattr(self.model, field)
            order.append(
                column.desc() if direction is SortDirection.DESC else column.asc()
            )
        # id as tie-breaker keeps pages stable
        order.append(self.model.id.asc())
        self.statement = self.statement.order_by(*order)
        return self

    def limit_fields(self) -> APIFeatures:
        if self.spec.fields:
            wanted = [f for f in self.spec.fields if f in self._visible and f != "id"]
            self.projection = ("id", *wanted)
        elif self.spec.excluded:
            self.projection = tuple(
                f for f in self.projection if f == "id" or f not in self.spec.excluded
            )
        self.statement = self.statement.options(
            load_only(*(getattr(self.model, f) for f in self.projection))
        )
        return self

    def paginate(self) -> APIFeatures:
        self.statement = self.statement.offset(self.spec.skip).limit(self.spec.take)
        return self
