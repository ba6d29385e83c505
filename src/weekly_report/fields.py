"""Field path resolution and display formatting for raw JIRA issue dicts.

Field paths address values inside an issue, e.g. ``fields.parent.fields.summary``,
``fields.assignee.displayName`` or ``fields.labels[0]``. A path that does not
start with ``fields.``, ``key`` or ``id`` is shorthand for a field, so
``summary`` and ``customfield_10020`` resolve under ``fields``.
"""

import json
import math
import re
from datetime import date, datetime
from typing import Any

_INDEXED_SEGMENT_RE = re.compile(r"^(\w+)\[(\d+)\]$")
_ISO_DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")

# Object properties tried, in order, when rendering a nested JIRA object
_OBJECT_LABEL_KEYS = ("displayName", "name", "key", "summary")


def _normalize_path(path: str) -> str:
    if not path.startswith(("fields.", "key", "id")):
        return f"fields.{path}"
    return path


def _child(node: Any, name: str) -> Any:
    """Step one level into a dict (by key) or list (by numeric segment)."""
    if isinstance(node, dict):
        return node.get(name)
    if isinstance(node, list) and name.isdigit():
        index = int(name)
        return node[index] if index < len(node) else None
    return None


def resolve(issue: Any, path: Any) -> Any:
    """Resolve a field path against an issue.

    Returns None as soon as any segment is missing, an indexed segment does
    not point at a list, or the index is out of range. Never raises.
    """
    if not path or not isinstance(path, str) or issue is None:
        return None

    current = issue
    for part in _normalize_path(path).split("."):
        if current is None:
            return None

        match = _INDEXED_SEGMENT_RE.match(part)
        if match:
            current = _child(current, match.group(1))
            index = int(match.group(2))
            if isinstance(current, list) and index < len(current):
                current = current[index]
            else:
                return None
            continue

        current = _child(current, part)

    return current


def _number_to_string(value: int | float) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def _localized_date(day: date) -> str:
    return f"{day.month}/{day.day}/{day.year}"


def format_value(
    value: Any,
    multi_value_handling: str = "join",
    separator: str = ", ",
    fallback: str = "-",
) -> str | list:
    """Render a resolved field value as a display string.

    Lists honour ``multi_value_handling``: "first" renders the first element,
    "join" renders every element and joins the ones that did not fall back,
    and "all" hands the list back untouched so the caller can fan it out
    into one group per value. That is the only case that returns a non-string.
    """
    if value is None:
        return fallback

    if isinstance(value, (list, tuple)):
        if not value:
            return fallback
        if multi_value_handling == "first":
            return format_value(value[0], fallback=fallback)
        if multi_value_handling == "all":
            return value
        if not isinstance(separator, str):
            separator = ", "
        parts = [format_value(item, fallback=fallback) for item in value]
        return separator.join(part for part in parts if part != fallback)

    if isinstance(value, dict):
        for label_key in _OBJECT_LABEL_KEYS:
            label = value.get(label_key)
            if label:
                return label if isinstance(label, str) else format_value(label, fallback=fallback)
        try:
            return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError):
            return fallback

    if isinstance(value, datetime):
        return _localized_date(value.date())
    if isinstance(value, date):
        return _localized_date(value)

    if isinstance(value, str) and _ISO_DATE_PREFIX_RE.match(value):
        try:
            return _localized_date(date.fromisoformat(value[:10]))
        except ValueError:
            return value

    if isinstance(value, bool):
        return "Yes" if value else "No"

    if isinstance(value, (int, float)):
        return _number_to_string(value)

    if isinstance(value, str):
        return value

    return fallback


def display_value(
    issue: Any,
    path: Any,
    multi_value_handling: str = "join",
    separator: str = ", ",
    fallback: str = "-",
) -> str | list:
    """Resolve a field path and format the result."""
    return format_value(
        resolve(issue, path),
        multi_value_handling=multi_value_handling,
        separator=separator,
        fallback=fallback,
    )


def find_custom_field_by_name(issue: dict, field_name: str) -> Any:
    """Find a field value by (part of) its display name or key.

    Tries the issue's ``names`` map (present when fetched with expand=names)
    first, then exact or punctuation-insensitive key matches, then any key
    containing the name.
    """
    fields = issue.get("fields") or {}
    name_lower = field_name.lower()

    names = issue.get("names")
    if isinstance(names, dict):
        for field_id, display_name in names.items():
            if display_name and name_lower in str(display_name).lower():
                return fields.get(field_id)

    name_alnum = _NON_ALNUM_RE.sub("", name_lower)
    for key in fields:
        key_lower = key.lower()
        if key_lower == name_lower or _NON_ALNUM_RE.sub("", key_lower) == name_alnum:
            return fields[key]

    for key in fields:
        if name_lower in key.lower():
            return fields[key]

    return None


def _start_date_text(value: Any) -> str | None:
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        if value.get("value"):
            return str(value["value"])
        if value.get("name"):
            return str(value["name"])
    return str(value)


def _find_confidence(issue: dict) -> Any:
    confidence = find_custom_field_by_name(issue, "confidence")
    if confidence:
        return confidence
    for key, value in (issue.get("fields") or {}).items():
        if not key.startswith("customfield_"):
            continue
        if "confidence" in key.lower():
            return value
        if isinstance(value, dict) and value.get("value"):
            if "confidence" in str(value["value"]).lower():
                return value
    return None


def extract_issue_fields(issue: dict) -> dict:
    """Pull the parent-issue details shown above the report.

    Returns a dict with ``assignee``, ``duedate``, ``startDate`` and
    ``confidence``; each is None when the issue does not carry it.
    """
    fields = issue.get("fields") or {}
    assignee = resolve(issue, "fields.assignee.displayName") or None

    start = (
        find_custom_field_by_name(issue, "start")
        or find_custom_field_by_name(issue, "startdate")
        or fields.get("startdate")
        or fields.get("customfield_10020")
    )

    return {
        "assignee": assignee,
        "duedate": fields.get("duedate") or None,
        "startDate": _start_date_text(start),
        "confidence": _find_confidence(issue),
    }
