"""
Shared pytest fixtures for the Admission Forecaster test suite.

Provides:
  - ``in_memory_db``: a fresh in-memory SQLite connection with the schema
    applied, closed after the test.
  - ``kv_store`` / ``catalog_store``: the SQLite key-value store and the
    catalog store on top of ``in_memory_db``, with a controllable clock.
  - ``make_entry``: factory for ``CatalogEntry`` objects with sane defaults.
  - Small sample catalogs for each track.
"""

from __future__ import annotations

import sqlite3
from typing import Callable, Generator

import pytest

from admission_forecaster.catalog.store import CatalogStore
from admission_forecaster.db.repositories.kv_repo import SqliteKeyValueStore
from admission_forecaster.db.schema import apply_schema
from admission_forecaster.models.catalog import CatalogEntry
from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack, SubGroup


class FakeClock:
    """Manually advanced unix clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ── Database fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def in_memory_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield a fresh in-memory SQLite connection with the schema applied."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    apply_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv_store(in_memory_db: sqlite3.Connection, clock: FakeClock) -> SqliteKeyValueStore:
    return SqliteKeyValueStore(in_memory_db, clock=clock)


@pytest.fixture
def catalog_store(kv_store: SqliteKeyValueStore) -> CatalogStore:
    return CatalogStore(kv_store, cache_ttl_seconds=3600, quantization_scale=10)


# ── Sample domain objects ─────────────────────────────────────────────────────

@pytest.fixture
def make_entry() -> Callable[..., CatalogEntry]:
    """Factory: ``make_entry(university="X", cutoff_at_70pct=2.1, ...)``."""

    def _make(**overrides) -> CatalogEntry:
        fields = {
            "university": "서울대학교",
            "department": "경영학과",
            "admission_track": AdmissionTrack.SUSI,
            "year": 2024,
            "cutoff_at_50pct": 1.8,
            "cutoff_at_70pct": 2.0,
            "recruitment_count": 20,
            "competition_rate": 8.0,
            "real_competition_rate": 5.0,
        }
        fields.update(overrides)
        return CatalogEntry(**fields)

    return _make


@pytest.fixture
def susi_catalog(make_entry) -> list[CatalogEntry]:
    """Three departments, with two years of history for one of them."""
    return [
        make_entry(university="고려대학교", department="경제학과", year=2024,
                   cutoff_at_70pct=1.6, competition_rate=12.0, recruitment_count=15),
        make_entry(university="고려대학교", department="경제학과", year=2023,
                   cutoff_at_70pct=1.7, competition_rate=11.0, recruitment_count=15),
        make_entry(university="연세대학교", department="화학과", year=2024,
                   cutoff_at_70pct=2.4, competition_rate=6.0, recruitment_count=8),
        make_entry(university="한양대학교", department="기계공학과", year=2024,
                   cutoff_at_70pct=3.1, competition_rate=4.0, recruitment_count=30),
    ]


@pytest.fixture
def jungsi_catalog(make_entry) -> list[CatalogEntry]:
    """Rows spread across the three windows (two A, one B, none in C)."""
    return [
        make_entry(university="서울대학교", department="수학과",
                   admission_track=AdmissionTrack.JUNGSI, sub_group=SubGroup.A,
                   cutoff_at_70pct=1.4, real_competition_rate=3.0),
        make_entry(university="성균관대학교", department="전자공학과",
                   admission_track=AdmissionTrack.JUNGSI, sub_group=SubGroup.A,
                   cutoff_at_70pct=2.2, real_competition_rate=4.5),
        make_entry(university="중앙대학교", department="경영학부",
                   admission_track=AdmissionTrack.JUNGSI, sub_group=SubGroup.B,
                   cutoff_at_70pct=2.8, real_competition_rate=5.0),
    ]
