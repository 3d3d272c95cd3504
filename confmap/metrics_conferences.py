from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd

from confmap.data import event_records


def format_date(value: date | pd.Timestamp) -> str:
    return f"{value.year}年{value.month}月{value.day}日"


def format_date_range(start: date | pd.Timestamp, end: date | pd.Timestamp) -> str:
    if (start.year, start.month, start.day) == (end.year, end.month, end.day):
        return format_date(start)
    return f"{format_date(start)} - {format_date(end)}"


def format_year_range(first_year: Optional[int], last_year: Optional[int]) -> str:
    if first_year is None or last_year is None:
        return "-"
    if first_year == last_year:
        return str(first_year)
    return f"{first_year} - {last_year}"


def _conference_record(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "description": row["description"],
        "category": list(row["category"] or []),
        "programming_languages": list(row["programming_languages"] or []),
        "website": row["website"],
        "twitter": row["twitter"],
    }


def conference_stats(conf_events: pd.DataFrame) -> Dict[str, Any]:
    if conf_events.empty:
        return {
            "total_events": 0,
            "first_year": None,
            "last_year": None,
            "year_range": "-",
            "prefectures": 0,
            "latest_event": None,
        }
    first_year = int(conf_events["year"].min())
    last_year = int(conf_events["year"].max())
    latest = conf_events.sort_values("start_date", ascending=False, kind="stable").head(1)
    return {
        "total_events": int(len(conf_events)),
        "first_year": first_year,
        "last_year": last_year,
        "year_range": format_year_range(first_year, last_year),
        "prefectures": int(conf_events["prefecture"].nunique()),
        "latest_event": event_records(latest)[0],
    }


def conference_index(events: pd.DataFrame, conferences: pd.DataFrame) -> List[Dict[str, Any]]:
    """Every conference with its history stats, ordered by name."""
    if conferences.empty:
        return []
    rows = []
    for conf in conferences.to_dict(orient="records"):
        conf_events = events[events["conference_id"] == conf["id"]] if not events.empty else events
        rows.append({**_conference_record(conf), "stats": conference_stats(conf_events)})
    return sorted(rows, key=lambda r: r["name"].casefold())


def conference_history(conference_id: str, events: pd.DataFrame, conferences: pd.DataFrame) -> Optional[Dict[str, Any]]:
    match = conferences[conferences["id"] == conference_id] if not conferences.empty else conferences
    if match.empty:
        return None
    conf = match.to_dict(orient="records")[0]
    conf_events = events[events["conference_id"] == conference_id] if not events.empty else events
    history: List[Dict[str, Any]] = []
    if not conf_events.empty:
        conf_events = conf_events.sort_values("start_date", ascending=False, kind="stable")
        history = event_records(conf_events)
        for rec, start, end in zip(history, conf_events["start_date"], conf_events["end_date"]):
            rec["date_label"] = format_date_range(start, end)
    return {"conference": _conference_record(conf), "stats": conference_stats(conf_events), "events": history}


def compute_conference_index(ctx: Dict[str, Any]) -> Dict[str, Any]:
    events: pd.DataFrame = ctx.get("events", pd.DataFrame())
    conferences: pd.DataFrame = ctx.get("conferences", pd.DataFrame())
    return {"conferences": conference_index(events, conferences)}
