import copy
import json
import tempfile
import unittest
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd

from confmap.data import conferences_frame, events_frame, join_events
from confmap.models import Conference, ConferenceEvent, Venue


def conference(cid: str, *, name: Optional[str] = None, category=("Web",), languages=()) -> Conference:
    return Conference(
        id=cid,
        name=name or cid,
        category=list(category),
        programming_languages=list(languages),
    )


def venue(vid: str, *, prefecture: str = "東京都", lat: float = 35.6, lng: float = 139.7, name: Optional[str] = None) -> Venue:
    return Venue(id=vid, name=name or vid, address=f"{prefecture} 1-1", lat=lat, lng=lng, prefecture=prefecture)


def event(
    conference_id: str,
    venue_id: str,
    year: int,
    *,
    start: Optional[str] = None,
    end: Optional[str] = None,
    hybrid: bool = False,
    name: Optional[str] = None,
) -> ConferenceEvent:
    start = start or f"{year}-05-01"
    return ConferenceEvent(
        conference_id=conference_id,
        name=name or f"{conference_id} {year}",
        year=year,
        start_date=start,
        end_date=end or start,
        venue_id=venue_id,
        is_hybrid=hybrid,
    )


def frames(conferences: List[Conference], venues: List[Venue], events: List[ConferenceEvent]) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """(events, conferences) frames as load_site_data builds them."""
    return events_frame(join_events(events, venues)), conferences_frame(conferences)


def scenario_frames() -> Tuple[pd.DataFrame, pd.DataFrame]:
    """One Web/Ruby conference, one Tokyo venue, one offline 2020 event."""
    return frames(
        [conference("a", category=["Web"], languages=["Ruby"])],
        [venue("tokyo/v1")],
        [event("a", "tokyo/v1", 2020, start="2020-05-01")],
    )


def sample_frames() -> Tuple[pd.DataFrame, pd.DataFrame]:
    conferences = [
        conference("rubykaigi", name="RubyKaigi", category=["Backend", "General"], languages=["Ruby"]),
        conference("jsconf", name="JSConf JP", category=["Web", "Frontend"], languages=["JavaScript", "TypeScript"]),
        conference("cnd", name="CloudNative Days", category=["Cloud", "DevOps"]),
    ]
    venues = [
        venue("tokyo/sunplaza", name="中野サンプラザ"),
        venue("tokyo/forum", name="東京国際フォーラム", lat=35.67, lng=139.76),
        venue("osaka/icc", prefecture="大阪府", lat=34.69, lng=135.48, name="大阪府立国際会議場"),
        venue("fukuoka/fic", prefecture="福岡県", lat=33.6, lng=130.4, name="福岡国際会議場"),
    ]
    events = [
        event("rubykaigi", "tokyo/sunplaza", 2019, start="2019-04-18", end="2019-04-20"),
        event("jsconf", "tokyo/forum", 2019, start="2019-11-30", hybrid=True),
        event("cnd", "fukuoka/fic", 2020, start="2020-09-08", hybrid=True),
        event("rubykaigi", "osaka/icc", 2021, start="2021-09-09", hybrid=True),
        event("jsconf", "tokyo/sunplaza", 2021, start="2021-11-27"),
        event("cnd", "osaka/icc", 2022, start="2022-05-23"),
        event("rubykaigi", "tokyo/sunplaza", 2022, start="2022-09-08", name="RubyKaigi 2022 (Mie)"),
    ]
    return frames(conferences, venues, events)


def write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")


def write_dataset(root: Path, conferences: List[dict], venues: Dict[str, List[dict]], events: Dict[str, object]) -> Path:
    """Lay out the on-disk data tree: conferences/*.json, venues/<pref>/venues.json, events/<year>.json."""
    for conf in conferences:
        write_json(root / "conferences" / f"{conf['id']}.json", conf)
    for pref_dir, items in venues.items():
        write_json(root / "venues" / pref_dir / "venues.json", items)
    for year, items in events.items():
        write_json(root / "events" / f"{year}.json", items)
    return root


class DataDirTestCase(unittest.TestCase):
    """Gives each test an empty data root under a temp directory."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def write_sample(self, conferences=None, venues=None, events=None) -> Path:
        return write_dataset(
            self.root,
            copy.deepcopy(SAMPLE_CONFERENCES if conferences is None else conferences),
            copy.deepcopy(SAMPLE_VENUES if venues is None else venues),
            copy.deepcopy(SAMPLE_EVENTS if events is None else events),
        )


SAMPLE_CONFERENCES = [
    {"id": "a", "name": "Alpha Conf", "category": ["Web"], "programmingLanguages": ["Ruby"]},
    {"id": "b", "name": "Beta Conf", "category": ["AI/ML"], "programmingLanguages": []},
]
SAMPLE_VENUES = {
    "tokyo": [{"id": "v1", "name": "Hall One", "address": "東京都千代田区", "lat": 35.6, "lng": 139.7, "prefecture": "東京都"}],
    "osaka": [{"id": "v2", "name": "Hall Two", "address": "大阪府大阪市", "lat": 34.7, "lng": 135.5, "prefecture": "大阪府"}],
}
SAMPLE_EVENTS = {
    "2020": [
        {
            "conferenceId": "a",
            "name": "Alpha 2020",
            "year": 2020,
            "startDate": "2020-05-01",
            "endDate": "2020-05-02",
            "venueId": "tokyo/v1",
            "isHybrid": False,
        }
    ],
    "2021": [
        {
            "conferenceId": "b",
            "name": "Beta 2021",
            "year": 2021,
            "startDate": "2021-10-10",
            "endDate": "2021-10-10",
            "venueId": "osaka/v2",
            "isHybrid": True,
            "eventUrl": "https://example.com/beta",
        }
    ],
}
