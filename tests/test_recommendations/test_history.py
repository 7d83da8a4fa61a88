"""
Tests for admission_forecaster/recommendations/history.py.

What we test
------------
group_history():
  - Returns at most ``limit`` rows, newest year first.
  - Matches university and department exactly.
  - Rows sharing a year keep their input order.
  - Unknown department → empty list.

build_history_index():
  - Agrees with group_history() for every key.
"""

from __future__ import annotations

from admission_forecaster.recommendations.history import build_history_index, group_history


class TestGroupHistory:
    def test_limit_and_order(self, make_entry):
        catalog = [make_entry(year=y) for y in (2020, 2023, 2021, 2024, 2022)]
        history = group_history(catalog, "서울대학교", "경영학과")
        assert [e.year for e in history] == [2024, 2023, 2022]

    def test_custom_limit(self, make_entry):
        catalog = [make_entry(year=y) for y in (2021, 2022, 2023)]
        assert len(group_history(catalog, "서울대학교", "경영학과", limit=1)) == 1

    def test_exact_match_only(self, make_entry):
        catalog = [
            make_entry(year=2024),
            make_entry(year=2024, department="경영학부"),
            make_entry(year=2024, university="서울시립대학교"),
        ]
        history = group_history(catalog, "서울대학교", "경영학과")
        assert len(history) == 1
        assert history[0].department == "경영학과"

    def test_duplicate_years_keep_input_order(self, make_entry):
        first = make_entry(year=2024, cutoff_at_70pct=2.0)
        second = make_entry(year=2024, cutoff_at_70pct=2.5)
        older = make_entry(year=2023)
        history = group_history([older, first, second], "서울대학교", "경영학과")
        assert history[0] is first
        assert history[1] is second
        assert history[2] is older

    def test_unknown_department(self, susi_catalog):
        assert group_history(susi_catalog, "없는대학교", "없는학과") == []


class TestBuildHistoryIndex:
    def test_matches_group_history(self, susi_catalog):
        index = build_history_index(susi_catalog, limit=3)
        for (university, department), rows in index.items():
            assert list(rows) == group_history(susi_catalog, university, department, 3)

    def test_multi_year_key(self, susi_catalog):
        index = build_history_index(susi_catalog)
        assert [e.year for e in index[("고려대학교", "경제학과")]] == [2024, 2023]
