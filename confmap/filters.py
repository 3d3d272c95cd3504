from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Literal, Optional

import pandas as pd

from confmap.models import CATEGORIES, LANGUAGES

YEAR_MIN = 2000
YEAR_MAX = 2030

FormatMode = Literal["any", "offline", "hybrid"]

_WHITESPACE_RE = re.compile(r"\s+")
_DASH_RE = re.compile(r"[ー\-]")
_PAREN_RE = re.compile(r"[（）()]")


@dataclass(frozen=True)
class EventFilters:
    years: List[int] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    prefectures: List[str] = field(default_factory=list)
    offline_only: bool = False
    hybrid_only: bool = False
    search_query: str = ""
    venue_search_query: str = ""

    @property
    def format_mode(self) -> FormatMode:
        if self.offline_only and not self.hybrid_only:
            return "offline"
        if self.hybrid_only and not self.offline_only:
            return "hybrid"
        return "any"

    def is_empty(self) -> bool:
        return not (
            self.years
            or self.categories
            or self.languages
            or self.prefectures
            or self.offline_only
            or self.hybrid_only
            or self.search_query.strip()
            or self.venue_search_query.strip()
        )


def normalize_search_query(query: str) -> str:
    """Fold a name or query so that visually-equivalent spellings compare equal."""
    text = (query or "").lower()
    text = _WHITESPACE_RE.sub("", text)
    text = _DASH_RE.sub("", text)
    text = _PAREN_RE.sub("", text)
    return text.strip()


def _as_int_list(values: Optional[Iterable[object]]) -> List[int]:
    if not values:
        return []
    out: List[int] = []
    for v in values:
        try:
            out.append(int(v))
        except Exception:
            continue
    return out


def _unique(values: Iterable[Any]) -> List[Any]:
    return list(dict.fromkeys(values))


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    return _unique(str(v).strip() for v in values if v is not None and str(v).strip())


def _as_bool(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1"}
    return bool(value)


def normalize_filters(raw: Dict[str, Any]) -> EventFilters:
    """Coerce loosely-typed input (API body, parsed query string) into EventFilters.

    Bad values are dropped rather than rejected: years outside
    [YEAR_MIN, YEAR_MAX] and unknown categories/languages disappear, and
    conflicting format flags fall back to "any".
    """
    years = sorted(set(y for y in _as_int_list(raw.get("years")) if YEAR_MIN <= y <= YEAR_MAX))
    categories = [c for c in _as_str_list(raw.get("categories")) if c in CATEGORIES]
    languages = [lang for lang in _as_str_list(raw.get("languages")) if lang in LANGUAGES]
    prefectures = _as_str_list(raw.get("prefectures"))

    offline_only = _as_bool(raw.get("offline_only", False))
    hybrid_only = _as_bool(raw.get("hybrid_only", False))
    fmt = str(raw.get("format") or "").strip().lower()
    if fmt == "offline":
        offline_only, hybrid_only = True, False
    elif fmt == "hybrid":
        offline_only, hybrid_only = False, True
    elif fmt == "any":
        offline_only, hybrid_only = False, False
    if offline_only and hybrid_only:
        offline_only, hybrid_only = False, False

    return EventFilters(
        years=years,
        categories=categories,
        languages=languages,
        prefectures=prefectures,
        offline_only=offline_only,
        hybrid_only=hybrid_only,
        search_query=str(raw.get("search_query") or "").strip(),
        venue_search_query=str(raw.get("venue_search_query") or "").strip(),
    )


def _tag_lookup(conferences: pd.DataFrame, column: str) -> Dict[str, Any]:
    if conferences.empty or column not in conferences.columns:
        return {}
    return dict(zip(conferences["id"].astype(str), conferences[column]))


def _intersects(selected: Iterable[str]) -> Callable[[object], bool]:
    wanted = set(selected)

    def check(tags: object) -> bool:
        if not isinstance(tags, (list, tuple, set)):
            return False
        return bool(wanted.intersection(tags))

    return check


def filter_events(events: pd.DataFrame, conferences: pd.DataFrame, filters: EventFilters) -> pd.DataFrame:
    """Rows of `events` matching every active facet (AND across, OR within).

    Events whose conference id is unknown are dropped as soon as a
    conference-dependent facet (category, language, name search) is active.
    """
    if events.empty or filters.is_empty():
        return events

    mask = pd.Series(True, index=events.index)
    conf_ids = events["conference_id"].astype(str)

    if filters.years:
        mask &= events["year"].isin(filters.years)

    if filters.categories:
        cats = _tag_lookup(conferences, "category")
        mask &= conf_ids.map(lambda cid: cats.get(cid)).map(_intersects(filters.categories)).astype(bool)

    if filters.languages:
        langs = _tag_lookup(conferences, "programming_languages")
        mask &= conf_ids.map(lambda cid: langs.get(cid)).map(_intersects(filters.languages)).astype(bool)

    if filters.prefectures:
        mask &= events["prefecture"].isin(filters.prefectures)

    if filters.offline_only:
        mask &= ~events["is_hybrid"].astype(bool)
    if filters.hybrid_only:
        mask &= events["is_hybrid"].astype(bool)

    if filters.search_query.strip():
        q = normalize_search_query(filters.search_query)
        names = _tag_lookup(conferences, "name")
        known = conf_ids.isin(list(names.keys()))
        conf_names = conf_ids.map(lambda cid: normalize_search_query(str(names.get(cid) or "")))
        event_names = events["name"].fillna("").astype(str).map(normalize_search_query)
        hit = conf_names.str.contains(q, regex=False) | event_names.str.contains(q, regex=False)
        mask &= known & hit.astype(bool)

    if filters.venue_search_query.strip():
        q = normalize_search_query(filters.venue_search_query)
        venue_names = events["venue_name"].fillna("").astype(str).map(normalize_search_query)
        mask &= venue_names.str.contains(q, regex=False).astype(bool)

    return events[mask]
