from __future__ import annotations

import re
from typing import Dict, List, Mapping, Sequence, Union
from urllib.parse import parse_qs, urlencode

from confmap.filters import EventFilters, normalize_filters

MAX_TEXT_LENGTH = 100
MAX_PREFECTURE_LENGTH = 10

_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    '"': "&quot;",
    "'": "&#x27;",
}
_ESCAPE_RE = re.compile(r"[<>&\"']")
_SCHEME_RE = re.compile(r"javascript:|data:|vbscript:", re.IGNORECASE)
_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)

QueryInput = Union[str, Mapping[str, Union[str, Sequence[str]]]]


def sanitize_string(value: object) -> str:
    if not isinstance(value, str):
        return ""
    s = _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(0)], value)
    s = _SCHEME_RE.sub("", s)
    s = _HANDLER_RE.sub("", s)
    return s.strip()[:MAX_TEXT_LENGTH]


def _as_multi(query: QueryInput) -> Dict[str, List[str]]:
    if isinstance(query, str):
        return parse_qs(query.lstrip("?"), keep_blank_values=False)
    out: Dict[str, List[str]] = {}
    for key, value in query.items():
        if value is None:
            continue
        out[key] = [value] if isinstance(value, str) else [str(v) for v in value]
    return out


def _first(params: Dict[str, List[str]], key: str) -> str:
    values = params.get(key) or []
    return values[0] if values else ""


def _flag(value: str) -> bool:
    return value.lower() == "true" or value == "1"


def parse_url_params(query: QueryInput) -> EventFilters:
    """Read filter state from a query string (or a mapping of repeated values)."""
    params = _as_multi(query)

    prefectures = []
    for raw in params.get("prefectures", []):
        value = sanitize_string(raw)
        if value and len(value) <= MAX_PREFECTURE_LENGTH:
            prefectures.append(value)

    hybrid = _flag(_first(params, "hybrid")) or _flag(_first(params, "online"))
    return normalize_filters(
        {
            "years": params.get("years", []),
            "categories": [sanitize_string(v) for v in params.get("categories", [])],
            "languages": [sanitize_string(v) for v in params.get("languages", [])],
            "prefectures": prefectures,
            "offline_only": _flag(_first(params, "offline")),
            "hybrid_only": hybrid,
            "search_query": sanitize_string(_first(params, "search")),
            "venue_search_query": sanitize_string(_first(params, "venueSearch")),
        }
    )


def create_url_params(filters: EventFilters) -> str:
    """Inverse of parse_url_params; empty facets are left out."""
    pairs = []
    pairs += [("years", str(y)) for y in filters.years]
    pairs += [("categories", c) for c in filters.categories]
    pairs += [("languages", lang) for lang in filters.languages]
    pairs += [("prefectures", p) for p in filters.prefectures]
    if filters.offline_only:
        pairs.append(("offline", "true"))
    if filters.hybrid_only:
        pairs.append(("hybrid", "true"))
    if filters.search_query.strip():
        pairs.append(("search", filters.search_query.strip()))
    if filters.venue_search_query.strip():
        pairs.append(("venueSearch", filters.venue_search_query.strip()))
    return urlencode(pairs)
