from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Sequence

import altair as alt
import pandas as pd

from confmap.charts import CATEGORY_COLORS, LANGUAGE_COLORS, color_scale, to_vega_spec
from confmap.filters import EventFilters
from confmap.models import CATEGORIES, LANGUAGES

TOP_PREFECTURES = 10


def count_by_year(events: pd.DataFrame) -> List[Dict[str, int]]:
    if events.empty:
        return []
    grouped = events.groupby("year").size().sort_index()
    return [{"year": int(year), "count": int(n)} for year, n in grouped.items()]


def count_by_prefecture(events: pd.DataFrame) -> List[Dict[str, Any]]:
    """Descending by count; ties keep first-encounter order."""
    if events.empty:
        return []
    grouped = events.groupby("prefecture", sort=False).size().reset_index(name="count")
    grouped = grouped.sort_values("count", ascending=False, kind="stable")
    return [{"prefecture": str(p), "count": int(n)} for p, n in zip(grouped["prefecture"], grouped["count"])]


def _count_conference_tags(
    events: pd.DataFrame, conferences: pd.DataFrame, column: str, canonical: Sequence[str], label: str
) -> List[Dict[str, Any]]:
    if events.empty or conferences.empty:
        return []
    tags = dict(zip(conferences["id"].astype(str), conferences[column]))
    per_event = events["conference_id"].astype(str).map(lambda cid: tags.get(cid) or [])
    counts = per_event.explode().dropna().value_counts(sort=False).to_dict()
    order = [t for t in canonical if t in counts] + sorted(t for t in counts if t not in canonical)
    ranked = sorted(order, key=lambda t: -counts[t])
    return [{label: t, "count": int(counts[t])} for t in ranked]


def count_by_category(events: pd.DataFrame, conferences: pd.DataFrame) -> List[Dict[str, Any]]:
    return _count_conference_tags(events, conferences, "category", CATEGORIES, "category")


def count_by_language(events: pd.DataFrame, conferences: pd.DataFrame) -> List[Dict[str, Any]]:
    return _count_conference_tags(events, conferences, "programming_languages", LANGUAGES, "language")


def summarize(events: pd.DataFrame, conferences: pd.DataFrame, filtered: pd.DataFrame) -> Dict[str, int]:
    return {
        "total_conferences": int(len(conferences)),
        "total_events": int(len(events)),
        "active_venues": int(events["venue_id"].nunique()) if not events.empty else 0,
        "filtered_events": int(len(filtered)),
        "filtered_conferences": int(filtered["conference_id"].nunique()) if not filtered.empty else 0,
    }


def _pie(records: List[Dict[str, Any]], label: str, palette: Dict[str, str], title: str) -> alt.Chart:
    df = pd.DataFrame(records)
    labels = df[label].tolist()
    hover = alt.selection_point(fields=[label], on="mouseover", empty="all")
    return (
        alt.Chart(df)
        .mark_arc(innerRadius=50)
        .encode(
            theta=alt.Theta("count:Q"),
            color=alt.Color(f"{label}:N", title=title, scale=color_scale(labels, palette), sort=labels),
            opacity=alt.condition(hover, alt.value(1), alt.value(0.5)),
            tooltip=[alt.Tooltip(f"{label}:N", title=title), alt.Tooltip("count:Q", title="Events")],
        )
        .add_params(hover)
        .properties(height=300)
    )


def compute_dashboard(filters: EventFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    events: pd.DataFrame = ctx.get("events", pd.DataFrame())
    conferences: pd.DataFrame = ctx.get("conferences", pd.DataFrame())
    filtered: pd.DataFrame = ctx.get("filtered_events", pd.DataFrame())

    by_year = count_by_year(filtered)
    by_prefecture = count_by_prefecture(filtered)
    by_category = count_by_category(filtered, conferences)
    by_language = count_by_language(filtered, conferences)

    charts: Dict[str, Any] = {}
    if by_year:
        year_chart = (
            alt.Chart(pd.DataFrame(by_year))
            .mark_bar(cornerRadiusTopLeft=4, cornerRadiusTopRight=4, color="#8884d8")
            .encode(
                x=alt.X("year:O", title="Year", axis=alt.Axis(grid=False)),
                y=alt.Y("count:Q", title="Events", axis=alt.Axis(tickMinStep=1, gridDash=[3, 3])),
                tooltip=["year", "count"],
            )
            .properties(height=300)
        )
        charts["events_per_year"] = to_vega_spec(year_chart)
    if by_prefecture:
        top = pd.DataFrame(by_prefecture[:TOP_PREFECTURES])
        pref_chart = (
            alt.Chart(top)
            .mark_bar(cornerRadiusTopRight=4, cornerRadiusBottomRight=4, color="#82ca9d")
            .encode(
                x=alt.X("count:Q", title="Events", axis=alt.Axis(tickMinStep=1, gridDash=[3, 3])),
                y=alt.Y("prefecture:N", title=None, sort=top["prefecture"].tolist()),
                tooltip=["prefecture", "count"],
            )
            .properties(height=300)
        )
        charts["events_per_prefecture"] = to_vega_spec(pref_chart)
    if by_category:
        charts["category_distribution"] = to_vega_spec(_pie(by_category, "category", CATEGORY_COLORS, "Category"))
    if by_language:
        charts["language_distribution"] = to_vega_spec(_pie(by_language, "language", LANGUAGE_COLORS, "Language"))

    return {
        "filters": asdict(filters),
        "summary": summarize(events, conferences, filtered),
        "events_per_year": by_year,
        "events_per_prefecture": by_prefecture,
        "category_distribution": by_category,
        "language_distribution": by_language,
        "charts": charts,
    }
