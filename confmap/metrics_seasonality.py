from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import altair as alt
import pandas as pd

from confmap.charts import BAND_COLORS, to_vega_spec
from confmap.filters import EventFilters

BAND_EDGES = [0.2, 0.4, 0.6, 0.8]


def intensity_band(intensity: float) -> int:
    """0 for an empty cell, then 1..5 by BAND_EDGES."""
    if intensity <= 0:
        return 0
    for band, edge in enumerate(BAND_EDGES, start=1):
        if intensity < edge:
            return band
    return len(BAND_EDGES) + 1


def seasonality_matrix(events: pd.DataFrame) -> Dict[str, Any]:
    """Event counts per (year, month) of the start date, newest year first."""
    if events.empty:
        return {"max_count": 0, "years": [], "cells": []}

    starts = pd.to_datetime(events["start_date"])
    counts = starts.groupby([starts.dt.year, starts.dt.month]).size()
    counts.index.names = ["year", "month"]
    lookup = {(int(y), int(m)): int(n) for (y, m), n in counts.items()}
    max_count = max(lookup.values())
    min_year, max_year = int(starts.dt.year.min()), int(starts.dt.year.max())

    cells: List[Dict[str, Any]] = []
    years = list(range(max_year, min_year - 1, -1))
    for year in years:
        for month in range(1, 13):
            count = lookup.get((year, month), 0)
            intensity = count / max_count if max_count else 0.0
            cells.append(
                {"year": year, "month": month, "count": count, "intensity": intensity, "band": intensity_band(intensity)}
            )
    return {"max_count": max_count, "years": years, "cells": cells}


def compute_seasonality(filters: EventFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_events", pd.DataFrame())
    matrix = seasonality_matrix(filtered)

    charts: Dict[str, Any] = {}
    if matrix["cells"]:
        df = pd.DataFrame(matrix["cells"])
        heat = (
            alt.Chart(df)
            .mark_rect(cornerRadius=3)
            .encode(
                x=alt.X("year:O", title="Year", sort=sorted(matrix["years"])),
                y=alt.Y("month:O", title="Month"),
                color=alt.Color(
                    "band:O",
                    title="Intensity",
                    scale=alt.Scale(domain=list(range(len(BAND_COLORS))), range=BAND_COLORS),
                    legend=None,
                ),
                tooltip=["year", "month", "count"],
            )
        )
        charts["seasonality_heatmap"] = to_vega_spec(heat)

    return {"filters": asdict(filters), **matrix, "charts": charts}
