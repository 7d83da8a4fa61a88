"""
Tests for admission_forecaster/ingestion/catalog_csv.py.

What we test
------------
read_catalog_csv():
  - Reads rows keyed by header; strips whitespace and stray quotes.
  - Tolerates a UTF-8 BOM.
  - Skips rows whose first column is blank.
  - Missing file → FileNotFoundError; no header → ValueError.
  - Output feeds normalize_rows() directly.

chunk_rows():
  - Splits into consecutive slices; last one may be short.
  - Non-positive size → ValueError.
"""

from __future__ import annotations

import pytest

from admission_forecaster.ingestion.catalog_csv import chunk_rows, read_catalog_csv
from admission_forecaster.ingestion.normalizer import normalize_rows
from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack

_CSV = (
    "\ufeffuniversity,department,year,grade_70_cut,competition_rate\n"
    "서울대학교, 경영학과 ,2024,1.9,\"8.5\"\n"
    ",,,,\n"
    "연세대학교,화학과,2024,2.4,6.1\n"
    "\n"
)


class TestReadCatalogCsv:
    def test_reads_and_cleans(self, tmp_path):
        path = tmp_path / "susi.csv"
        path.write_text(_CSV, encoding="utf-8")
        rows = read_catalog_csv(path)
        assert len(rows) == 2
        assert rows[0]["university"] == "서울대학교"
        assert rows[0]["department"] == "경영학과"
        assert rows[0]["competition_rate"] == "8.5"

    def test_feeds_normalizer(self, tmp_path):
        path = tmp_path / "susi.csv"
        path.write_text(_CSV, encoding="utf-8")
        entries = normalize_rows(read_catalog_csv(path), AdmissionTrack.SUSI)
        assert [e.cutoff_at_70pct for e in entries] == [1.9, 2.4]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_catalog_csv(tmp_path / "nope.csv")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        with pytest.raises(ValueError):
            read_catalog_csv(path)


class TestChunkRows:
    def test_chunks(self):
        assert list(chunk_rows(list(range(7)), 3)) == [[0, 1, 2], [3, 4, 5], [6]]

    def test_exact_multiple(self):
        assert [len(c) for c in chunk_rows(list(range(6)), 3)] == [3, 3]

    def test_empty(self):
        assert list(chunk_rows([], 5)) == []

    def test_bad_size(self):
        with pytest.raises(ValueError):
            list(chunk_rows([1], 0))
