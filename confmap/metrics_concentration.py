from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import altair as alt
import pandas as pd

from confmap.charts import to_vega_spec
from confmap.filters import EventFilters

REFERENCE_PREFECTURE = "東京都"
RECENT_YEARS = 5

# (lower bound %, label); first match wins.
LEVELS = [(70.0, "very_high"), (50.0, "high"), (30.0, "moderate"), (0.0, "low")]


def concentration_level(percentage: float) -> str:
    for bound, label in LEVELS:
        if percentage >= bound:
            return label
    return "low"


def yearly_concentration(events: pd.DataFrame, reference: str = REFERENCE_PREFECTURE) -> List[Dict[str, Any]]:
    if events.empty:
        return []
    flagged = events.assign(_ref=(events["prefecture"] == reference))
    grouped = flagged.groupby("year")["_ref"].agg(["sum", "size"]).sort_index()
    return [
        {
            "year": int(year),
            "reference_count": int(row["sum"]),
            "total": int(row["size"]),
            "percentage": float(row["sum"]) / float(row["size"]) * 100.0,
        }
        for year, row in grouped.iterrows()
    ]


def concentration_ratio(
    events: pd.DataFrame, reference: str = REFERENCE_PREFECTURE, recent_years: int = RECENT_YEARS
) -> Dict[str, Any]:
    """Share of events held in `reference`, overall and per year.

    `recent_average` is the mean of the last `recent_years` yearly percentages.
    """
    total = int(len(events))
    reference_count = int((events["prefecture"] == reference).sum()) if total else 0
    percentage = reference_count / total * 100.0 if total else 0.0
    trend = yearly_concentration(events, reference)
    recent = trend[-recent_years:] if recent_years > 0 else []
    recent_average = sum(t["percentage"] for t in recent) / len(recent) if recent else 0.0
    return {
        "reference": reference,
        "reference_count": reference_count,
        "other_count": total - reference_count,
        "total": total,
        "percentage": percentage,
        "level": concentration_level(percentage),
        "trend": trend,
        "recent_years": len(recent),
        "recent_average": recent_average,
    }


def compute_concentration(
    filters: EventFilters,
    ctx: Dict[str, Any],
    *,
    reference: str = REFERENCE_PREFECTURE,
    recent_years: int = RECENT_YEARS,
) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_events", pd.DataFrame())
    result = concentration_ratio(filtered, reference, recent_years)

    charts: Dict[str, Any] = {}
    if result["trend"]:
        trend_df = pd.DataFrame(result["trend"])
        line = (
            alt.Chart(trend_df)
            .mark_line(point={"filled": True, "size": 60})
            .encode(
                x=alt.X("year:O", title="Year", axis=alt.Axis(grid=False)),
                y=alt.Y("percentage:Q", title=f"{reference} share (%)", scale=alt.Scale(domain=[0, 100])),
                tooltip=[
                    alt.Tooltip("year:O", title="Year"),
                    alt.Tooltip("percentage:Q", title="Share", format=".1f"),
                    alt.Tooltip("reference_count:Q", title=reference),
                    alt.Tooltip("total:Q", title="Total"),
                ],
            )
            .properties(height=220)
        )
        charts["concentration_trend"] = to_vega_spec(line)

    return {"filters": asdict(filters), **result, "charts": charts}
