from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, List, Set

import pandas as pd

from confmap.filters import EventFilters, filter_events
from confmap.models import CATEGORIES, LANGUAGES, PREFECTURES


@dataclass(frozen=True)
class FacetOptions:
    years: List[int] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    languages: List[str] = field(default_factory=list)
    prefectures: List[str] = field(default_factory=list)


def _conference_tags(events: pd.DataFrame, conferences: pd.DataFrame, column: str) -> Set[str]:
    if events.empty or conferences.empty:
        return set()
    present = set(events["conference_id"].astype(str))
    tags: Set[str] = set()
    for cid, values in zip(conferences["id"].astype(str), conferences[column]):
        if cid in present and isinstance(values, (list, tuple)):
            tags.update(values)
    return tags


def _in_canonical_order(present: Iterable[str], canonical: Iterable[str]) -> List[str]:
    present = set(present)
    canonical = list(canonical)
    known = set(canonical)
    return [v for v in canonical if v in present] + sorted(present - known)


def available_years(events: pd.DataFrame) -> List[int]:
    if events.empty:
        return []
    return sorted({int(y) for y in events["year"].dropna()}, reverse=True)


def available_prefectures(events: pd.DataFrame) -> List[str]:
    if events.empty:
        return []
    return _in_canonical_order(events["prefecture"].dropna().astype(str), PREFECTURES)


def compute_available_options(events: pd.DataFrame, conferences: pd.DataFrame, filters: EventFilters) -> FacetOptions:
    """Selectable values per facet, each computed with every other facet applied.

    Every option returned keeps the result non-empty when added to the
    current selection.
    """
    by_year = filter_events(events, conferences, replace(filters, years=[]))
    by_category = filter_events(events, conferences, replace(filters, categories=[]))
    by_language = filter_events(events, conferences, replace(filters, languages=[]))
    by_prefecture = filter_events(events, conferences, replace(filters, prefectures=[]))

    categories = _conference_tags(by_category, conferences, "category")
    languages = _conference_tags(by_language, conferences, "programming_languages")
    return FacetOptions(
        years=available_years(by_year),
        categories=[c for c in CATEGORIES if c in categories],
        languages=[lang for lang in LANGUAGES if lang in languages],
        prefectures=available_prefectures(by_prefecture),
    )
