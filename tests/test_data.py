import copy
import unittest
from unittest import mock

from confmap.data import (
    VenueNotFoundError,
    event_records,
    join_events,
    load_conferences,
    load_events,
    load_site_data,
    load_venues,
    prepare_context,
)
from confmap.facets import FacetOptions
from confmap.filters import EventFilters
from tests.helpers import SAMPLE_CONFERENCES, SAMPLE_EVENTS, SAMPLE_VENUES, DataDirTestCase, event, venue, write_json


class LoaderTests(DataDirTestCase):
    def test_load_sample(self):
        self.write_sample()
        self.assertEqual(sorted(c.id for c in load_conferences(self.root)), ["a", "b"])
        self.assertEqual(sorted(v.id for v in load_venues(self.root)), ["osaka/v2", "tokyo/v1"])
        events = load_events(self.root)
        self.assertEqual(len(events), 2)
        self.assertTrue(events[1].is_hybrid)

    def test_bad_conference_aborts_collection(self):
        self.write_sample()
        write_json(self.root / "conferences" / "broken.json", {"id": "c", "name": "C", "category": ["Cooking"]})
        with self.assertLogs("confmap.data", level="ERROR"):
            self.assertEqual(load_conferences(self.root), [])

    def test_duplicate_conference_ids_abort_collection(self):
        self.write_sample()
        write_json(self.root / "conferences" / "a-copy.json", SAMPLE_CONFERENCES[0])
        with self.assertLogs("confmap.data", level="ERROR"):
            self.assertEqual(load_conferences(self.root), [])

    def test_bad_event_aborts_collection(self):
        events = copy.deepcopy(SAMPLE_EVENTS)
        events["2022"] = [{**SAMPLE_EVENTS["2020"][0], "startDate": "2022-06-02", "endDate": "2022-06-01"}]
        self.write_sample(events=events)
        with self.assertLogs("confmap.data", level="ERROR"):
            self.assertEqual(load_events(self.root), [])

    def test_non_array_event_file_is_skipped(self):
        self.write_sample()
        write_json(self.root / "events" / "2019.json", {"not": "an array"})
        with self.assertLogs("confmap.data", level="WARNING"):
            self.assertEqual(len(load_events(self.root)), 2)

    def test_broken_prefecture_is_skipped(self):
        venues = copy.deepcopy(SAMPLE_VENUES)
        venues["osaka"] = [{"id": "v2", "name": "bad", "address": "x", "lat": 999, "lng": 0, "prefecture": "大阪府"}]
        self.write_sample(venues=venues)
        with self.assertLogs("confmap.data", level="WARNING"):
            self.assertEqual([v.id for v in load_venues(self.root)], ["tokyo/v1"])

    def test_same_local_id_in_two_prefectures(self):
        venues = copy.deepcopy(SAMPLE_VENUES)
        venues["osaka"][0]["id"] = "v1"
        self.write_sample(venues=venues)
        self.assertEqual(sorted(v.id for v in load_venues(self.root)), ["osaka/v1", "tokyo/v1"])

    def test_missing_data_dir(self):
        out = load_site_data(self.root / "missing")
        self.assertTrue(out["events"].empty)
        self.assertTrue(out["conferences"].empty)


class JoinTests(unittest.TestCase):
    def test_missing_venue_raises(self):
        with self.assertRaises(VenueNotFoundError) as ctx:
            join_events([event("a", "tokyo/gone", 2020)], [venue("tokyo/v1")])
        self.assertIn("tokyo/gone", str(ctx.exception))

    def test_join_attaches_venue(self):
        joined = join_events([event("a", "tokyo/v1", 2020)], [venue("tokyo/v1", lat=35.1)])
        self.assertEqual(joined[0].venue.lat, 35.1)


class SiteDataTests(DataDirTestCase):
    def test_frames_and_records(self):
        self.write_sample()
        data_ctx = load_site_data(self.root)
        events = data_ctx["events"]
        self.assertEqual(list(events["venue_id"]), ["tokyo/v1", "osaka/v2"])
        records = event_records(events)
        self.assertEqual(records[0]["start_date"], "2020-05-01")
        self.assertEqual(records[1]["event_url"], "https://example.com/beta")
        self.assertEqual(data_ctx["venue_count"], 2)

    def test_env_override(self):
        self.write_sample()
        with mock.patch.dict("os.environ", {"CONFMAP_DATA_DIR": str(self.root)}):
            data_ctx = load_site_data()
        self.assertEqual(len(data_ctx["events"]), 2)

    def test_unresolved_venue_propagates(self):
        events = copy.deepcopy(SAMPLE_EVENTS)
        events["2021"][0]["venueId"] = "osaka/nowhere"
        self.write_sample(events=events)
        with self.assertRaises(VenueNotFoundError):
            load_site_data(self.root)

    def test_prepare_context(self):
        self.write_sample()
        ctx = prepare_context({"format": "hybrid"}, load_site_data(self.root))
        self.assertEqual(ctx["filters"].format_mode, "hybrid")
        self.assertEqual(list(ctx["filtered_events"]["conference_id"]), ["b"])
        self.assertEqual(ctx["options"].prefectures, ["大阪府"])

    def test_prepare_context_survives_filter_failure(self):
        self.write_sample()
        data_ctx = load_site_data(self.root)
        with mock.patch("confmap.data.filter_events", side_effect=RuntimeError("boom")):
            with self.assertLogs("confmap.data", level="ERROR"):
                ctx = prepare_context(EventFilters(years=[2020]), data_ctx)
        self.assertTrue(ctx["filtered_events"].empty)
        self.assertEqual(ctx["options"], FacetOptions())


if __name__ == "__main__":
    unittest.main()
