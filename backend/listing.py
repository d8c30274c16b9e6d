"""
Filtering and pagination over a materialized task collection.

The caller loads the base set (all tasks, or one owner's tasks) and this
module sorts, filters and slices it in memory:

- newest first by ``created_at`` (ties: higher id first)
- ``search``, ``labels``, ``status``, ``priority`` and ``completed`` filters,
  combined with AND; any other key is ignored
- lenient ``page``/``limit`` parsing with a floor of 1
"""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from schemas import TaskPriority, TaskStatus
from time_utils import as_utc

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

FILTER_KEYS = ("search", "labels", "status", "priority", "completed")

ALLOWED_STATUSES = {s.value for s in TaskStatus}
ALLOWED_PRIORITIES = {p.value for p in TaskPriority}

ASCII_DIGITS = "0123456789"


def parse_positive_int(value: Optional[str], default: int) -> int:
    """
    Parse a query-string integer, floored to 1.

    Leading ASCII digits are honoured ("3abc" -> 3); missing or non-numeric
    input, or a number too long to convert, falls back to ``default``.

    Example:
        >>> parse_positive_int("0", 10)
        1
        >>> parse_positive_int("abc", 10)
        10
    """
    if value is None:
        return default
    text = str(value).strip()
    sign = ""
    if text[:1] in ("-", "+"):
        sign, text = text[:1], text[1:]
    digits = ""
    for ch in text:
        if ch not in ASCII_DIGITS:
            break
        digits += ch
    if not digits:
        return default
    try:
        number = int(sign + digits)
    except ValueError:
        # Past the interpreter's int conversion limit
        return default
    return max(1, number)


def sort_newest_first(tasks: Sequence[Any]) -> List[Any]:
    """Order tasks by creation instant, newest first."""
    return sorted(tasks, key=lambda t: (as_utc(t.created_at), t.id), reverse=True)


def _text(value: Any) -> str:
    """Lower-cased string form of a stored value or enum member."""
    return str(getattr(value, "value", value)).lower()


def _label_values(task: Any) -> List[str]:
    return [_text(label) for label in (task.labels or [])]


def matches_search(task: Any, term: str) -> bool:
    """Case-insensitive substring match on title, description or any label."""
    term = term.lower()
    return (
        term in (task.title or "").lower()
        or term in (task.description or "").lower()
        or any(term in label for label in _label_values(task))
    )


def apply_filters(tasks: Sequence[Any], filters: Mapping[str, Optional[str]]) -> List[Any]:
    """
    Keep only the tasks that satisfy every supplied filter.

    Args:
        tasks: Candidate tasks (order is preserved)
        filters: Raw query values keyed by filter name; None means absent

    Returns:
        Filtered list of tasks
    """
    result = list(tasks)

    for key in FILTER_KEYS:
        raw = filters.get(key)
        if raw is None:
            continue
        value = str(raw).lower()

        if key == "search":
            result = [t for t in result if matches_search(t, value)]
        elif key == "labels":
            result = [t for t in result if value in _label_values(t)]
        elif key == "status":
            # Unknown statuses are ignored rather than matching nothing
            if value in ALLOWED_STATUSES:
                result = [t for t in result if _text(t.status) == value]
        elif key == "priority":
            if value in ALLOWED_PRIORITIES:
                result = [t for t in result if _text(t.priority) == value]
        elif key == "completed":
            wanted = value == "true"
            result = [t for t in result if bool(t.completed) == wanted]

    return result


def paginate(items: Sequence[Any], page: int, limit: int) -> Dict[str, Any]:
    """
    Slice a filtered list into one page.

    Returns:
        Dict with data, total_data, total_pages, current_page and limit.
        A page past the end yields an empty data list.
    """
    total_data = len(items)
    total_pages = 0 if total_data == 0 else math.ceil(total_data / limit)
    start = (page - 1) * limit
    return {
        "total_data": total_data,
        "total_pages": total_pages,
        "current_page": page,
        "limit": limit,
        "data": list(items[start:start + limit]),
    }


def list_tasks(
    all_tasks: Sequence[Any],
    filters: Mapping[str, Optional[str]],
    page: Optional[str] = None,
    limit: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Sort, filter and paginate a task collection.

    Args:
        all_tasks: Base set (whole collection or one owner's tasks)
        filters: Raw filter values from the query string
        page: Raw page number
        limit: Raw page size

    Returns:
        Page dict as produced by paginate()
    """
    page_num = parse_positive_int(page, DEFAULT_PAGE)
    page_size = parse_positive_int(limit, DEFAULT_LIMIT)

    ordered = sort_newest_first(all_tasks)
    filtered = apply_filters(ordered, filters)
    result = paginate(filtered, page_num, page_size)

    active = {k: v for k, v in filters.items() if v is not None}
    logger.debug(
        f"list_tasks: {len(all_tasks)} candidates, {result['total_data']} after filters {active}, "
        f"page {page_num}/{result['total_pages']} (limit {page_size})"
    )
    return result
