from __future__ import annotations

from typing import Any, Iterable, Mapping

# Computed geometry measures exported by ArcGIS; never useful to a reader.
DEFAULT_DENY: frozenset[str] = frozenset(
    {"Shape__Area", "Shape__Length", "Shape_Area", "Shape_Length"}
)
DEFAULT_LIMIT = 10
_TITLE_KEYS: tuple[str, ...] = ("Name", "name", "TITLE")


def _is_blank(v: Any) -> bool:
    return v is None or v == ""


def select_attributes(
    attributes: Mapping[str, Any] | None,
    preference: Iterable[str] | None = None,
    limit: int = DEFAULT_LIMIT,
    *,
    deny: Iterable[str] | None = None,
) -> list[tuple[str, Any]]:
    """
    Display rows for an attribute panel.

    Preferred names come first (in preference order, only when present and non-empty),
    then every other non-empty attribute in encounter order. Denied names and
    null/empty values are dropped before truncating to `limit`.
    """
    attrs = attributes or {}
    denied = DEFAULT_DENY if deny is None else frozenset(deny)
    if limit <= 0:
        return []

    order: list[str] = []
    seen: set[str] = set()
    for k in [*(preference or []), *attrs.keys()]:
        if k in seen or k in denied or k not in attrs or _is_blank(attrs[k]):
            continue
        seen.add(k)
        order.append(k)
        if len(order) >= limit:
            break
    return [(k, attrs[k]) for k in order]


def feature_title(attributes: Mapping[str, Any] | None, fallback: str) -> str:
    attrs = attributes or {}
    for k in _TITLE_KEYS:
        v = attrs.get(k)
        if not _is_blank(v):
            return str(v)
    return fallback
