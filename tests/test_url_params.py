import unittest
from urllib.parse import parse_qs

from confmap.filters import EventFilters
from confmap.url_params import MAX_TEXT_LENGTH, create_url_params, parse_url_params, sanitize_string


class SanitizeStringTests(unittest.TestCase):
    def test_escapes_html(self):
        self.assertEqual(sanitize_string("<b>&\"'"), "&lt;b&gt;&amp;&quot;&#x27;")

    def test_strips_schemes_and_handlers(self):
        self.assertEqual(sanitize_string("JavaScript:alert(1)"), "alert(1)")
        self.assertEqual(sanitize_string("x onClick = y"), "x  y")
        self.assertEqual(sanitize_string("data:text vbscript:run"), "text run")

    def test_trims_and_caps_length(self):
        self.assertEqual(sanitize_string("  ruby  "), "ruby")
        self.assertEqual(len(sanitize_string("a" * 500)), MAX_TEXT_LENGTH)

    def test_non_string_is_empty(self):
        self.assertEqual(sanitize_string(None), "")
        self.assertEqual(sanitize_string(42), "")


class ParseUrlParamsTests(unittest.TestCase):
    def test_repeated_params(self):
        f = parse_url_params("years=2023&years=2024&categories=Web&categories=AI%2FML&languages=Ruby&prefectures=%E6%9D%B1%E4%BA%AC%E9%83%BD")
        self.assertEqual(f.years, [2023, 2024])
        self.assertEqual(f.categories, ["Web", "AI/ML"])
        self.assertEqual(f.languages, ["Ruby"])
        self.assertEqual(f.prefectures, ["東京都"])

    def test_invalid_values_degrade_to_no_filter(self):
        f = parse_url_params("years=1999&years=abc&years=2031&categories=Cooking&languages=Go")
        self.assertTrue(f.is_empty())

    def test_long_prefecture_dropped(self):
        f = parse_url_params({"prefectures": ["大阪府", "あ" * 11]})
        self.assertEqual(f.prefectures, ["大阪府"])

    def test_boolean_flags(self):
        self.assertTrue(parse_url_params("offline=true").offline_only)
        self.assertTrue(parse_url_params("offline=1").offline_only)
        self.assertFalse(parse_url_params("offline=yes").offline_only)
        self.assertTrue(parse_url_params("hybrid=true").hybrid_only)

    def test_legacy_online_flag_means_hybrid(self):
        self.assertEqual(parse_url_params("online=1").format_mode, "hybrid")

    def test_search_is_sanitized(self):
        f = parse_url_params({"search": "<script>", "venueSearch": "javascript:hall"})
        self.assertEqual(f.search_query, "&lt;script&gt;")
        self.assertEqual(f.venue_search_query, "hall")

    def test_leading_question_mark(self):
        self.assertEqual(parse_url_params("?years=2020").years, [2020])


class CreateUrlParamsTests(unittest.TestCase):
    def test_empty_filters_give_empty_query(self):
        self.assertEqual(create_url_params(EventFilters()), "")

    def test_round_trip(self):
        f = EventFilters(
            years=[2022, 2024],
            categories=["Web", "AI/ML"],
            languages=["TypeScript"],
            prefectures=["北海道"],
            hybrid_only=True,
            search_query="rubykaigi",
            venue_search_query="hall",
        )
        query = create_url_params(f)
        self.assertEqual(parse_url_params(query), f)
        self.assertEqual(parse_qs(query)["venueSearch"], ["hall"])


if __name__ == "__main__":
    unittest.main()
