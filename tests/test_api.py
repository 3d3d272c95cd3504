import unittest
from unittest import mock

from fastapi.testclient import TestClient

from api.main import app
from confmap.data import VenueNotFoundError
from confmap.geocoding import AddressCandidate
from tests.helpers import DataDirTestCase


class ApiTests(DataDirTestCase):
    def setUp(self):
        super().setUp()
        self.write_sample()
        patcher = mock.patch.dict("os.environ", {"CONFMAP_DATA_DIR": str(self.root)})
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = TestClient(app)

    def test_options(self):
        resp = self.client.post("/meta/options", json={"categories": ["AI/ML"]})
        self.assertEqual(resp.status_code, 200)
        options = resp.json()["options"]
        self.assertEqual(options["years"], [2021])
        self.assertEqual(options["categories"], ["Web", "AI/ML"])

    def test_events_post(self):
        resp = self.client.post("/events", json={"format": "offline"})
        body = resp.json()
        self.assertEqual(body["count"], 1)
        self.assertEqual(body["total"], 2)
        self.assertEqual(body["events"][0]["name"], "Alpha 2020")
        self.assertEqual(body["query"], "offline=true")

    def test_events_get_from_query_string(self):
        resp = self.client.get("/events?years=2021&years=1800&hybrid=1")
        body = resp.json()
        self.assertEqual(body["filters"]["years"], [2021])
        self.assertTrue(body["filters"]["hybrid_only"])
        self.assertEqual([e["conference_id"] for e in body["events"]], ["b"])

    def test_events_newest_first(self):
        body = self.client.post("/events", json={}).json()
        self.assertEqual([e["year"] for e in body["events"]], [2021, 2020])

    def test_dashboard(self):
        body = self.client.post("/dashboard", json={}).json()
        self.assertEqual(body["events_per_year"], [{"year": 2020, "count": 1}, {"year": 2021, "count": 1}])
        self.assertIn("events_per_year", body["charts"])

    def test_analytics(self):
        venues = self.client.post("/analytics/venues?count_mode=conferences&top_n=1", json={}).json()
        self.assertEqual(len(venues["ranking"]), 1)
        self.assertEqual(venues["count_mode"], "conferences")

        conc = self.client.post("/analytics/concentration", json={}).json()
        self.assertEqual(conc["percentage"], 50.0)

        season = self.client.post("/analytics/seasonality", json={}).json()
        self.assertEqual(season["years"], [2021, 2020])

        expansion = self.client.post("/analytics/expansion", json={}).json()
        self.assertEqual(expansion["conferences"], [])
        self.assertIsNone(expansion["selected"])

    def test_invalid_count_mode_rejected(self):
        resp = self.client.post("/analytics/venues?count_mode=bogus", json={})
        self.assertEqual(resp.status_code, 422)

    def test_map(self):
        body = self.client.post("/map?venue=osaka/v2", json={}).json()
        self.assertEqual(len(body["markers"]), 2)
        self.assertEqual(body["view"]["center"], {"lat": 34.7, "lng": 135.5})

    def test_conferences(self):
        index = self.client.get("/conferences").json()["conferences"]
        self.assertEqual([c["name"] for c in index], ["Alpha Conf", "Beta Conf"])
        detail = self.client.get("/conferences/a").json()
        self.assertEqual(detail["stats"]["total_events"], 1)
        self.assertEqual(detail["events"][0]["date_label"], "2020年5月1日 - 2020年5月2日")
        self.assertEqual(self.client.get("/conferences/zzz").status_code, 404)

    def test_address_search(self):
        with mock.patch("api.main.address_search.search", return_value=[AddressCandidate("大阪城", 34.68, 135.52)]):
            body = self.client.get("/address-search", params={"q": "大阪城"}).json()
        self.assertEqual(body["results"][0]["title"], "大阪城")

    def test_export_csv(self):
        resp = self.client.post("/export/events", json={})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.headers["content-type"].startswith("text/csv"))
        self.assertIn("Alpha 2020", resp.text)

    def test_broken_data_reports_500(self):
        with mock.patch("api.main.load_site_data", side_effect=RuntimeError("disk gone")):
            with self.assertLogs("api.main", level="ERROR"):
                resp = self.client.post("/dashboard", json={})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "disk gone", "type": "RuntimeError"})

    def test_export_broken_data_reports_500(self):
        with mock.patch("api.main.load_site_data", side_effect=VenueNotFoundError("Venue not found for venueId: x")):
            with self.assertLogs("api.main", level="ERROR") as logs:
                resp = self.client.post("/export/events", json={})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["type"], "VenueNotFoundError")
        self.assertIn("export_page failed", logs.output[0])


if __name__ == "__main__":
    unittest.main()
