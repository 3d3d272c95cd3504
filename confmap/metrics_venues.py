from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Literal

import altair as alt
import pandas as pd

from confmap.charts import to_vega_spec
from confmap.filters import EventFilters

CountMode = Literal["events", "conferences"]

DEFAULT_TOP_N = 10

_SORT_COLUMNS = {"events": "event_count", "conferences": "conference_count"}


def rank_venues(events: pd.DataFrame, *, count_mode: CountMode = "events", top_n: int = DEFAULT_TOP_N) -> List[Dict[str, Any]]:
    """Top venues by event count or distinct-conference count.

    Ties keep the order in which venues first appear in `events`.
    """
    if events.empty or top_n <= 0:
        return []
    sort_col = _SORT_COLUMNS.get(count_mode, "event_count")

    grouped = (
        events.groupby("venue_id", sort=False)
        .agg(
            venue_name=("venue_name", "first"),
            prefecture=("prefecture", "first"),
            lat=("lat", "first"),
            lng=("lng", "first"),
            event_count=("conference_id", "size"),
            conference_count=("conference_id", "nunique"),
        )
        .reset_index()
        .sort_values(sort_col, ascending=False, kind="stable")
        .head(top_n)
    )

    rows: List[Dict[str, Any]] = []
    for rank, rec in enumerate(grouped.to_dict(orient="records"), start=1):
        venue_events = events[events["venue_id"] == rec["venue_id"]].sort_values("year", ascending=False, kind="stable")
        rows.append(
            {
                "rank": rank,
                "venue_id": str(rec["venue_id"]),
                "venue_name": str(rec["venue_name"]),
                "prefecture": str(rec["prefecture"]),
                "lat": float(rec["lat"]),
                "lng": float(rec["lng"]),
                "event_count": int(rec["event_count"]),
                "conference_count": int(rec["conference_count"]),
                "events": [
                    {"name": str(n), "year": int(y), "conference_id": str(c)}
                    for n, y, c in zip(venue_events["name"], venue_events["year"], venue_events["conference_id"])
                ],
            }
        )
    return rows


def compute_venue_ranking(
    filters: EventFilters,
    ctx: Dict[str, Any],
    *,
    count_mode: CountMode = "events",
    top_n: int = DEFAULT_TOP_N,
) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_events", pd.DataFrame())
    top_n = max(1, min(100, int(top_n)))
    ranking = rank_venues(filtered, count_mode=count_mode, top_n=top_n)

    charts: Dict[str, Any] = {}
    if ranking:
        value_col = _SORT_COLUMNS.get(count_mode, "event_count")
        df = pd.DataFrame([{k: v for k, v in r.items() if k != "events"} for r in ranking])
        hover = alt.selection_point(fields=["venue_id"], on="mouseover", empty="all")
        bar = (
            alt.Chart(df)
            .mark_bar()
            .encode(
                x=alt.X(f"{value_col}:Q", title="Events" if count_mode == "events" else "Conferences"),
                y=alt.Y("venue_name:N", title=None, sort=df["venue_name"].tolist()),
                color=alt.Color("prefecture:N", title="Prefecture"),
                opacity=alt.condition(hover, alt.value(1), alt.value(0.6)),
                tooltip=["rank", "venue_name", "prefecture", "event_count", "conference_count"],
            )
            .add_params(hover)
        )
        charts["venue_ranking"] = to_vega_spec(bar)

    return {
        "filters": asdict(filters),
        "count_mode": count_mode,
        "top_n": top_n,
        "ranking": ranking,
        "charts": charts,
    }
