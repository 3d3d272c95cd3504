from __future__ import annotations

import html
from typing import List

from confmap.filters import EventFilters

FORMAT_LABELS = {"any": "All", "offline": "Offline only", "hybrid": "Hybrid only"}


def filter_chips(f: EventFilters) -> List[str]:
    chips = [
        f"Years: {', '.join(str(y) for y in f.years)}" if f.years else "Years: All",
        f"Category: {', '.join(f.categories)}" if f.categories else "Category: All",
        f"Language: {', '.join(f.languages)}" if f.languages else "Language: All",
        f"Prefecture: {', '.join(f.prefectures)}" if f.prefectures else "Prefecture: All",
        f"Format: {FORMAT_LABELS[f.format_mode]}",
    ]
    if f.search_query:
        chips.append(f"Name: {f.search_query}")
    if f.venue_search_query:
        chips.append(f"Venue: {f.venue_search_query}")
    return chips


def format_filter_summary(f: EventFilters) -> str:
    """Chip row markup for the page header. Values come from the URL, so every chip is escaped."""
    return "".join(f"<span class='chip'>{html.escape(txt)}</span>" for txt in filter_chips(f))
