from __future__ import annotations

from dataclasses import asdict
import math
from typing import Any, Dict, List, Optional

import pandas as pd

from confmap.charts import DEFAULT_COLOR, category_color
from confmap.data import event_records
from confmap.filters import EventFilters

# Geographic centre of Japan, used when nothing is on the map.
DEFAULT_CENTER = {"lat": 36.5, "lng": 138.0}
DEFAULT_ZOOM = 5
HIGHLIGHT_ZOOM = 12


def venue_markers(events: pd.DataFrame, conferences: pd.DataFrame) -> List[Dict[str, Any]]:
    """One marker per venue, coloured by the first category of its latest event's conference."""
    if events.empty:
        return []
    names = dict(zip(conferences["id"], conferences["name"])) if not conferences.empty else {}
    cats = dict(zip(conferences["id"], conferences["category"])) if not conferences.empty else {}

    markers: List[Dict[str, Any]] = []
    for venue_id, group in events.groupby("venue_id", sort=False):
        group = group.sort_values("start_date", ascending=False, kind="stable")
        first = group.iloc[0]
        first_cats = cats.get(first["conference_id"]) or []
        items = event_records(group)
        for item in items:
            item["conference_name"] = names.get(item["conference_id"])
        markers.append(
            {
                "venue_id": str(venue_id),
                "venue_name": str(first["venue_name"]),
                "address": str(first["venue_address"]),
                "prefecture": str(first["prefecture"]),
                "lat": float(first["lat"]),
                "lng": float(first["lng"]),
                "color": category_color(first_cats[0]) if first_cats else DEFAULT_COLOR,
                "event_count": int(len(group)),
                "events": items,
            }
        )
    return markers


def map_view(events: pd.DataFrame, highlight_venue_id: Optional[str] = None) -> Dict[str, Any]:
    """Where the map should look: a highlighted venue, else the bounds of all events."""
    if highlight_venue_id and not events.empty:
        hit = events[events["venue_id"] == highlight_venue_id]
        if not hit.empty:
            return {
                "center": {"lat": float(hit["lat"].iloc[0]), "lng": float(hit["lng"].iloc[0])},
                "zoom": HIGHLIGHT_ZOOM,
                "bounds": None,
            }
    if events.empty:
        return {"center": dict(DEFAULT_CENTER), "zoom": DEFAULT_ZOOM, "bounds": None}
    return {
        "center": None,
        "zoom": None,
        "bounds": [
            [float(events["lat"].min()), float(events["lng"].min())],
            [float(events["lat"].max()), float(events["lng"].max())],
        ],
    }


def compute_map(filters: EventFilters, ctx: Dict[str, Any], *, highlight_venue_id: Optional[str] = None) -> Dict[str, Any]:
    filtered: pd.DataFrame = ctx.get("filtered_events", pd.DataFrame())
    conferences: pd.DataFrame = ctx.get("conferences", pd.DataFrame())
    return {
        "filters": asdict(filters),
        "markers": venue_markers(filtered, conferences),
        "view": map_view(filtered, highlight_venue_id),
    }


def deck_view_state(view: Dict[str, Any], focus: Optional[Dict[str, Any]] = None) -> Dict[str, float]:
    """Flatten a `map_view` result into deck.gl `ViewState` keyword arguments.

    A focus point (an address search hit) wins over the view. Bounds become
    their midpoint with a zoom wide enough to show the whole span.
    """
    if focus:
        return {"latitude": float(focus["lat"]), "longitude": float(focus["lng"]), "zoom": HIGHLIGHT_ZOOM}
    if view.get("center"):
        center = view["center"]
        return {"latitude": float(center["lat"]), "longitude": float(center["lng"]), "zoom": view.get("zoom") or DEFAULT_ZOOM}
    bounds = view.get("bounds")
    if not bounds:
        return {"latitude": DEFAULT_CENTER["lat"], "longitude": DEFAULT_CENTER["lng"], "zoom": DEFAULT_ZOOM}
    (min_lat, min_lng), (max_lat, max_lng) = bounds
    span = max(max_lat - min_lat, max_lng - min_lng)
    zoom = HIGHLIGHT_ZOOM if span <= 0 else max(1, min(HIGHLIGHT_ZOOM, int(math.log2(360 / span))))
    return {"latitude": (min_lat + max_lat) / 2, "longitude": (min_lng + max_lng) / 2, "zoom": zoom}
