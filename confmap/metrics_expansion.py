from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

from confmap.charts import to_vega_spec
from confmap.filters import EventFilters


def regional_expansion(events: pd.DataFrame, conferences: pd.DataFrame) -> List[Dict[str, Any]]:
    """Per-year distinct prefectures for conferences held in more than one prefecture.

    Sorted by total prefectures, descending; ties keep conference order.
    """
    if events.empty or conferences.empty:
        return []

    rows: List[Dict[str, Any]] = []
    for conf_id, conf_name in zip(conferences["id"].astype(str), conferences["name"].astype(str)):
        conf_events = events[events["conference_id"].astype(str) == conf_id]
        if conf_events.empty:
            continue
        conf_events = conf_events.sort_values("start_date", kind="stable")
        total_prefectures = int(conf_events["prefecture"].nunique())
        if total_prefectures <= 1:
            continue

        per_year: Dict[int, List[str]] = {}
        for year, pref in zip(conf_events["year"], conf_events["prefecture"]):
            prefs = per_year.setdefault(int(year), [])
            if pref not in prefs:
                prefs.append(str(pref))
        expansion = [
            {"year": year, "prefecture_count": len(prefs), "prefectures": prefs} for year, prefs in sorted(per_year.items())
        ]
        rows.append(
            {
                "conference_id": conf_id,
                "conference_name": conf_name,
                "total_events": int(len(conf_events)),
                "total_prefectures": total_prefectures,
                "expansion": expansion,
            }
        )
    return sorted(rows, key=lambda r: -r["total_prefectures"])


def compute_expansion(filters: EventFilters, ctx: Dict[str, Any], *, conference_id: Optional[str] = None) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_events", pd.DataFrame())
    conferences: pd.DataFrame = ctx.get("conferences", pd.DataFrame())
    expansion = regional_expansion(filtered, conferences)

    selected = None
    if expansion:
        selected = next((r for r in expansion if r["conference_id"] == conference_id), expansion[0])

    charts: Dict[str, Any] = {}
    if selected is not None:
        df = pd.DataFrame([{k: v for k, v in e.items() if k != "prefectures"} for e in selected["expansion"]])
        bar = (
            alt.Chart(df)
            .mark_bar(color="#6366F1")
            .encode(
                x=alt.X("year:O", title="Year"),
                y=alt.Y("prefecture_count:Q", title="Prefectures", axis=alt.Axis(tickMinStep=1)),
                tooltip=["year", "prefecture_count"],
            )
            .properties(title=selected["conference_name"], height=220)
        )
        charts["expansion_timeline"] = to_vega_spec(bar)

    return {"filters": asdict(filters), "conferences": expansion, "selected": selected, "charts": charts}
