"""
Parsing and normalization of story list queries.

Query parameters arrive as loosely typed values (query-string scalars,
comma separated strings, JSON arrays, real lists). The helpers here turn
them into a ``StoryListQuery`` whose contents are deterministic, so that
equal requests produce equal cache keys.
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field

from storyline.errors import InvalidArgument
from storyline.settings import ListSettings

from .story import OrderBy, ensure_utc

_TAG_PATTERN = re.compile(r"^[a-z0-9\-_]+$")
_TRUE_VALUES = ("true", "1", "yes", "y")
_FALSE_VALUES = ("false", "0", "no", "n")

FilterValue = Optional[Union[str, List[str]]]


class StoryListQuery(BaseModel):
    """Normalized list query."""

    page: int
    limit: int
    order_by: OrderBy
    include: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    status: FilterValue = None
    type: FilterValue = None
    priority: FilterValue = None
    country_id: Optional[int] = None
    user_id: Optional[str] = None
    term: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    include_deleted: bool = False
    no_cache: bool = False

    def cache_fingerprint(self) -> Dict[str, Any]:
        """Return the query as a sorted, JSON-ready structure.

        ``no_cache`` is excluded since it never changes the result.
        """
        data = self.model_dump(mode="json", exclude={"no_cache"})
        return sort_object(data)


def parse_boolean(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
    if isinstance(value, int):
        return value != 0
    return default


def parse_positive_int(value: Any, name: str) -> int:
    """Parse a strictly positive integer or raise InvalidArgument."""
    if isinstance(value, bool):
        raise InvalidArgument(
            f"{name} must be a positive integer", code="INVALID_QUERY"
        )
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidArgument(
            f"{name} must be a positive integer",
            code="INVALID_QUERY",
            details={name: value},
        )
    if parsed < 1:
        raise InvalidArgument(
            f"{name} must be a positive integer",
            code="INVALID_QUERY",
            details={name: value},
        )
    return parsed


def normalize_to_array(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple, set)):
        items = [str(v).strip() for v in value if v is not None]
        return [item for item in items if item]
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return []
        if trimmed.startswith("[") and trimmed.endswith("]"):
            try:
                parsed = json.loads(trimmed)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return normalize_to_array(parsed)
        return [part.strip() for part in trimmed.split(",") if part.strip()]
    return [str(value).strip()] if str(value).strip() else []


def normalize_filter_value(value: Any) -> FilterValue:
    items = normalize_to_array(value)
    if not items:
        return None
    if len(items) == 1:
        return items[0]
    return items


def normalize_tags(value: Any, max_tags: int = 10) -> List[str]:
    """Lower-case, validate and de-duplicate tag names, keeping order."""
    seen: List[str] = []
    for tag in normalize_to_array(value):
        name = tag.lower()
        if not 2 <= len(name) <= 50 or not _TAG_PATTERN.match(name):
            continue
        if name not in seen:
            seen.append(name)
    return seen[:max_tags]


def parse_order_by(value: Any, settings: ListSettings) -> OrderBy:
    default = OrderBy(
        field=settings.default_order_field,
        direction=settings.default_order_direction,
    )
    if not value:
        return default

    parsed: Any = value
    if isinstance(parsed, str):
        trimmed = parsed.strip()
        if trimmed.startswith("{"):
            try:
                parsed = json.loads(trimmed)
            except ValueError:
                return default
        elif ":" in trimmed:
            field, _, direction = trimmed.partition(":")
            parsed = {"field": field.strip(), "direction": direction.strip()}
        else:
            parsed = {"field": trimmed}
    if isinstance(parsed, (list, tuple)):
        parsed = parsed[0] if parsed else {}
    if isinstance(parsed, OrderBy):
        parsed = parsed.model_dump()
    if not isinstance(parsed, Mapping):
        return default

    field = str(parsed.get("field", "")).strip()
    direction = str(parsed.get("direction", "")).strip().lower()
    if field not in settings.orderable_fields:
        return default
    if direction not in ("asc", "desc"):
        direction = settings.default_order_direction
    return OrderBy(field=field, direction=direction)


def parse_datetime(value: Any, name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            raise InvalidArgument(
                f"{name} must be an ISO-8601 date",
                code="INVALID_DATE_RANGE",
                details={name: value},
            )
    return ensure_utc(parsed)


def enforce_date_range(
    date_from: Optional[datetime], date_to: Optional[datetime]
) -> None:
    if date_from and date_to and date_from >= date_to:
        raise InvalidArgument(
            "date_from must be before date_to", code="INVALID_DATE_RANGE"
        )


def sort_object(value: Any) -> Any:
    """Recursively sort mappings by key and lists by JSON form."""
    if isinstance(value, Mapping):
        return {key: sort_object(value[key]) for key in sorted(value)}
    if isinstance(value, (list, tuple)):
        items = [sort_object(item) for item in value]
        return sorted(items, key=lambda item: json.dumps(item, sort_keys=True))
    return value


def sanitize_text(value: Optional[str], max_length: int) -> Optional[str]:
    if value is None:
        return None
    return str(value).strip()[:max_length]


def normalize_list_query(
    raw: Optional[Mapping[str, Any]], settings: ListSettings
) -> StoryListQuery:
    """Normalize and bound raw list parameters.

    Raises:
        InvalidArgument: page or limit out of range, malformed country id
            or an invalid date range
    """
    raw = dict(raw or {})

    page = settings.default_page
    if raw.get("page") not in (None, ""):
        page = parse_positive_int(raw["page"], "page")

    limit = settings.default_limit
    if raw.get("limit") not in (None, ""):
        limit = parse_positive_int(raw["limit"], "limit")
        if limit > settings.max_limit:
            raise InvalidArgument(
                f"limit must not exceed {settings.max_limit}",
                code="INVALID_QUERY",
                details={"limit": limit, "max_limit": settings.max_limit},
            )

    country_id = None
    if raw.get("country_id") not in (None, ""):
        country_id = parse_positive_int(raw["country_id"], "country_id")

    term = raw.get("term")
    if term is not None:
        term = str(term).strip()[: settings.max_term_length] or None

    user_id = raw.get("user_id")
    if user_id is not None:
        user_id = str(user_id).strip() or None

    date_from = parse_datetime(raw.get("date_from"), "date_from")
    date_to = parse_datetime(raw.get("date_to"), "date_to")
    enforce_date_range(date_from, date_to)

    return StoryListQuery(
        page=page,
        limit=limit,
        order_by=parse_order_by(raw.get("order_by"), settings),
        include=normalize_to_array(raw.get("include")),
        tags=normalize_tags(raw.get("tags")),
        status=normalize_filter_value(raw.get("status")),
        type=normalize_filter_value(raw.get("type")),
        priority=normalize_filter_value(raw.get("priority")),
        country_id=country_id,
        user_id=user_id,
        term=term,
        date_from=date_from,
        date_to=date_to,
        include_deleted=parse_boolean(raw.get("include_deleted")),
        no_cache=parse_boolean(raw.get("no_cache")),
    )
