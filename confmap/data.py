from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd
from pydantic import ValidationError

from confmap.facets import FacetOptions, compute_available_options
from confmap.filters import EventFilters, filter_events, normalize_filters
from confmap.models import Conference, ConferenceEvent, ConferenceEventWithVenue, Venue

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DATA_DIR_ENV = "CONFMAP_DATA_DIR"

CONFERENCES_SUBDIR = "conferences"
VENUES_SUBDIR = "venues"
EVENTS_SUBDIR = "events"
VENUES_FILE = "venues.json"

CONFERENCE_COLUMNS = [
    "id",
    "name",
    "description",
    "category",
    "programming_languages",
    "website",
    "twitter",
]

EVENT_COLUMNS = [
    "conference_id",
    "name",
    "year",
    "start_date",
    "end_date",
    "is_hybrid",
    "event_url",
    "venue_id",
    "venue_name",
    "venue_address",
    "lat",
    "lng",
    "prefecture",
]


class VenueNotFoundError(LookupError):
    """An event references a venue id that no venues.json defines."""


def get_data_dir() -> Path:
    override = os.environ.get(DATA_DIR_ENV)
    return Path(override) if override else DATA_DIR


def get_source_files(data_dir: Path) -> List[Path]:
    files = list((data_dir / CONFERENCES_SUBDIR).glob("*.json"))
    files += list((data_dir / VENUES_SUBDIR).glob(f"*/{VENUES_FILE}"))
    files += list((data_dir / EVENTS_SUBDIR).glob("*.json"))
    return sorted(files)


def file_signature(files: List[Path], root: Path) -> Tuple[Tuple[str, float], ...]:
    return tuple((f.relative_to(root).as_posix(), f.stat().st_mtime) for f in files)


def read_json(path: Path) -> Any:
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)


# ---------------- Loaders ----------------
def load_conferences(data_dir: Path) -> List[Conference]:
    """One object per file. Any bad file aborts the whole collection."""
    conferences_dir = data_dir / CONFERENCES_SUBDIR
    conferences: List[Conference] = []
    try:
        for path in sorted(conferences_dir.glob("*.json")):
            conferences.append(Conference.model_validate(read_json(path)))
        seen: Dict[str, int] = {}
        for conf in conferences:
            seen[conf.id] = seen.get(conf.id, 0) + 1
        duplicates = sorted(cid for cid, n in seen.items() if n > 1)
        if duplicates:
            raise ValueError(f"duplicate conference ids: {', '.join(duplicates)}")
    except (OSError, ValueError, ValidationError):
        logger.exception("Failed to load conferences from %s", conferences_dir)
        return []
    return conferences


def load_prefecture_venues(prefecture_dir: Path) -> List[Venue]:
    data = read_json(prefecture_dir / VENUES_FILE)
    if not isinstance(data, list):
        raise ValueError(f"{prefecture_dir / VENUES_FILE} must contain an array")
    venues: List[Venue] = []
    seen = set()
    for raw in data:
        if not isinstance(raw, dict):
            raise ValueError(f"venue entry is not an object: {raw!r}")
        venue = Venue.model_validate({**raw, "id": f"{prefecture_dir.name}/{raw.get('id')}"})
        if venue.id in seen:
            raise ValueError(f"duplicate venue id: {venue.id}")
        seen.add(venue.id)
        venues.append(venue)
    return venues


def load_venues(data_dir: Path) -> List[Venue]:
    """Venues from every prefecture directory; a broken prefecture is skipped."""
    venues_dir = data_dir / VENUES_SUBDIR
    if not venues_dir.is_dir():
        logger.error("Venues directory not found: %s", venues_dir)
        return []
    venues: List[Venue] = []
    for prefecture_dir in sorted(p for p in venues_dir.iterdir() if p.is_dir()):
        if not (prefecture_dir / VENUES_FILE).exists():
            continue
        try:
            venues.extend(load_prefecture_venues(prefecture_dir))
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Failed to load venues from %s: %s", prefecture_dir.name, exc)
    return venues


def load_events(data_dir: Path) -> List[ConferenceEvent]:
    """One array per year file. Any bad record aborts the whole collection."""
    events_dir = data_dir / EVENTS_SUBDIR
    events: List[ConferenceEvent] = []
    try:
        for path in sorted(events_dir.glob("*.json")):
            data = read_json(path)
            if not isinstance(data, list):
                logger.warning("Skipping %s: expected an array of events", path.name)
                continue
            events.extend(ConferenceEvent.model_validate(item) for item in data)
    except (OSError, ValueError, ValidationError):
        logger.exception("Failed to load events from %s", events_dir)
        return []
    return events


def join_events(events: Iterable[ConferenceEvent], venues: Iterable[Venue]) -> List[ConferenceEventWithVenue]:
    venue_map = {venue.id: venue for venue in venues}
    joined: List[ConferenceEventWithVenue] = []
    for event in events:
        venue = venue_map.get(event.venue_id)
        if venue is None:
            raise VenueNotFoundError(f"Venue not found for venueId: {event.venue_id}")
        joined.append(ConferenceEventWithVenue(**event.model_dump(), venue=venue))
    return joined


# ---------------- Frames ----------------
def conferences_frame(conferences: Iterable[Conference]) -> pd.DataFrame:
    rows = [
        {
            "id": c.id,
            "name": c.name,
            "description": c.description,
            "category": list(c.category),
            "programming_languages": list(c.programming_languages),
            "website": str(c.website) if c.website else None,
            "twitter": c.twitter,
        }
        for c in conferences
    ]
    return pd.DataFrame(rows, columns=CONFERENCE_COLUMNS)


def events_frame(events: Iterable[ConferenceEventWithVenue]) -> pd.DataFrame:
    rows = [
        {
            "conference_id": e.conference_id,
            "name": e.name,
            "year": e.year,
            "start_date": e.start_date,
            "end_date": e.end_date,
            "is_hybrid": e.is_hybrid,
            "event_url": str(e.event_url) if e.event_url else None,
            "venue_id": e.venue.id,
            "venue_name": e.venue.name,
            "venue_address": e.venue.address,
            "lat": e.venue.lat,
            "lng": e.venue.lng,
            "prefecture": e.venue.prefecture,
        }
        for e in events
    ]
    df = pd.DataFrame(rows, columns=EVENT_COLUMNS)
    df["year"] = df["year"].astype("int64")
    df["is_hybrid"] = df["is_hybrid"].astype(bool)
    df["lat"] = df["lat"].astype(float)
    df["lng"] = df["lng"].astype(float)
    df["start_date"] = pd.to_datetime(df["start_date"])
    df["end_date"] = pd.to_datetime(df["end_date"])
    return df


def event_records(events: pd.DataFrame) -> List[Dict[str, Any]]:
    """JSON-friendly rows; dates rendered as YYYY-MM-DD."""
    if events.empty:
        return []
    out = events.copy()
    for col in ("start_date", "end_date"):
        out[col] = out[col].dt.strftime("%Y-%m-%d")
    return out.to_dict(orient="records")


# ---------------- Public API (Streamlit + FastAPI use) ----------------
def _empty_site_data(data_dir: Path) -> Dict[str, object]:
    return {
        "data_dir": str(data_dir),
        "files": [],
        "conferences": conferences_frame([]),
        "events": events_frame([]),
        "venue_count": 0,
    }


@lru_cache(maxsize=4)
def _load_site_data_cached(data_dir: str, files_sig: Tuple[Tuple[str, float], ...]) -> Dict[str, object]:
    root = Path(data_dir)
    conferences = load_conferences(root)
    venues = load_venues(root)
    events = load_events(root)
    joined = join_events(events, venues)
    logger.info(
        "Loaded %d conferences, %d venues, %d events from %s", len(conferences), len(venues), len(joined), root
    )
    return {
        "data_dir": data_dir,
        "files": [name for name, _ in files_sig],
        "conferences": conferences_frame(conferences),
        "events": events_frame(joined),
        "venue_count": len(venues),
    }


def load_site_data(data_dir: Optional[Path] = None) -> Dict[str, object]:
    root = Path(data_dir) if data_dir is not None else get_data_dir()
    files = get_source_files(root)
    if not files:
        logger.warning("No data files found under %s", root)
        return _empty_site_data(root)
    return _load_site_data_cached(str(root), file_signature(files, root))


def prepare_context(filters: dict | EventFilters, data_ctx: Dict[str, object]) -> Dict[str, object]:
    events: pd.DataFrame = data_ctx.get("events", events_frame([])).copy()
    conferences: pd.DataFrame = data_ctx.get("conferences", conferences_frame([])).copy()

    filt = filters if isinstance(filters, EventFilters) else normalize_filters(filters or {})

    # Filtering must never take the page down; a failure reads as "no matches".
    try:
        filtered_events = filter_events(events, conferences, filt)
        options = compute_available_options(events, conferences, filt)
    except Exception:
        logger.exception("Filtering failed for %s", filt)
        filtered_events = events.iloc[0:0]
        options = FacetOptions()

    return {
        "filters": filt,
        "events": events,
        "conferences": conferences,
        "filtered_events": filtered_events,
        "options": options,
    }
