"""
Tests for admission_forecaster/service/api.py and service/auth.py.

What we test
------------
AdminTokenAuthorizer:
  - Accepts the configured token; rejects wrong, missing and unconfigured.

upload_catalog_chunk():
  - Chunked round trip: intermediate chunks stage, the final chunk commits
    the sorted union and returns IngestionSummary.
  - Bad token → AuthFailureError and nothing staged.
  - A malformed chunk is rejected whole; the committed catalog is untouched.
  - Re-sending a chunk index does not duplicate its rows.

recommend():
  - Empty profile → empty result with guidance message, no store access.
  - Empty catalog → empty result with upload guidance.
  - Second identical (quantized) request is served from cache.
  - Jungsi window filter keeps only that window's own candidates.
  - Store failure → empty result with a message, never an exception.

status() / university_detail() / save_scores() / get_scores().
"""

from __future__ import annotations

from typing import Any, Optional

import pytest

from admission_forecaster.catalog.store import CatalogStore
from admission_forecaster.config import AdminConfig, AppConfig, RankingConfig
from admission_forecaster.db.kv_store import StoreUnavailableError
from admission_forecaster.ingestion.normalizer import IngestionFormatError
from admission_forecaster.models.grades import ExamSubjectScore, RawGradeEntry
from admission_forecaster.models.recommendation import RecommendationQuery
from admission_forecaster.service.api import (
    EMPTY_PROFILE_MESSAGE,
    NO_CATALOG_MESSAGE,
    STORE_UNAVAILABLE_MESSAGE,
    AdmissionService,
    CatalogUploadRequest,
    ChunkUploadResult,
    IngestionSummary,
)
from admission_forecaster.service.auth import AdminTokenAuthorizer, AuthFailureError
from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack, ExamSubject, SubGroup

TOKEN = "s3cret-token"
SUSI = AdmissionTrack.SUSI
JUNGSI = AdmissionTrack.JUNGSI


class BrokenKeyValueStore:
    """Every operation fails as if the database were unreachable."""

    def get(self, key: str) -> Optional[Any]:
        raise StoreUnavailableError("down")

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        raise StoreUnavailableError("down")

    def delete(self, key: str) -> bool:
        raise StoreUnavailableError("down")

    def scan_prefix(self, prefix: str) -> list[str]:
        raise StoreUnavailableError("down")


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(admin=AdminConfig(token=TOKEN))


@pytest.fixture
def service(catalog_store, config) -> AdmissionService:
    return AdmissionService(catalog_store, config)


@pytest.fixture
def broken_service(config) -> AdmissionService:
    return AdmissionService(CatalogStore(BrokenKeyValueStore()), config)


def _rows(*specs) -> list[dict]:
    return [
        {"대학명": uni, "학과명": dept, "년도": "2024", "내신등급": str(cut), "경쟁률": "5.0", "모집인원": "20"}
        for uni, dept, cut in specs
    ]


def _upload(service, rows, final, index=0, token=TOKEN, track=SUSI):
    return service.upload_catalog_chunk(
        CatalogUploadRequest(
            auth_token=token, rows=rows, track=track, is_final_chunk=final, chunk_index=index
        )
    )


class TestAuthorizer:
    def test_accepts_token(self):
        AdminTokenAuthorizer(TOKEN).require(TOKEN)

    @pytest.mark.parametrize("candidate,reason", [
        ("wrong", "invalid_token"),
        ("", "missing_token"),
        (None, "missing_token"),
    ])
    def test_rejects(self, candidate, reason):
        with pytest.raises(AuthFailureError) as exc_info:
            AdminTokenAuthorizer(TOKEN).require(candidate)
        assert exc_info.value.reason == reason

    def test_unconfigured_rejects_everything(self):
        auth = AdminTokenAuthorizer(None)
        assert auth.check("anything") is False
        with pytest.raises(AuthFailureError) as exc_info:
            auth.require("anything")
        assert exc_info.value.reason == "not_configured"


class TestUpload:
    def test_chunked_round_trip(self, service, catalog_store):
        first = _upload(service, _rows(("A대", "국문과", 3.0), ("B대", "영문과", 1.5)), final=False)
        assert isinstance(first, ChunkUploadResult)
        assert first.staged_count == 2
        assert catalog_store.get_catalog(SUSI) == []

        done = _upload(service, _rows(("C대", "사학과", 2.2)), final=True, index=1)
        assert isinstance(done, IngestionSummary)
        assert done.total_entries == 3
        assert [e.university for e in catalog_store.get_catalog(SUSI)] == ["B대", "C대", "A대"]
        assert catalog_store.staged_count(SUSI) == 0

    def test_resent_chunk_not_duplicated(self, service, catalog_store):
        chunk = _rows(("A대", "국문과", 3.0), ("B대", "영문과", 1.5))
        _upload(service, chunk, final=False, index=0)
        _upload(service, chunk, final=False, index=0)
        done = _upload(service, _rows(("C대", "사학과", 2.2)), final=True, index=1)
        assert done.total_entries == 3

    def test_bad_token(self, service, catalog_store):
        with pytest.raises(AuthFailureError):
            _upload(service, _rows(("A대", "국문과", 3.0)), final=True, token="nope")
        assert catalog_store.staged_count(SUSI) == 0

    def test_malformed_chunk_rejected(self, service, catalog_store):
        _upload(service, _rows(("A대", "국문과", 3.0)), final=True)
        bad = _rows(("B대", "영문과", 2.0)) + [{"대학명": "C대", "학과명": "", "년도": "2024"}]
        with pytest.raises(IngestionFormatError):
            _upload(service, bad, final=True)
        assert catalog_store.staged_count(SUSI) == 0
        assert [e.university for e in catalog_store.get_catalog(SUSI)] == ["A대"]

    def test_discard_upload(self, service, catalog_store):
        _upload(service, _rows(("A대", "국문과", 3.0)), final=False)
        assert service.discard_upload(SUSI, TOKEN) is True
        assert catalog_store.staged_count(SUSI) == 0


class TestRecommend:
    def test_empty_profile(self, broken_service):
        result = broken_service.recommend(RecommendationQuery(track=SUSI))
        assert result.is_empty
        assert result.message == EMPTY_PROFILE_MESSAGE

    def test_empty_catalog(self, service):
        result = service.recommend(RecommendationQuery(track=SUSI, gpa_equivalent=2.0))
        assert result.is_empty
        assert result.message == NO_CATALOG_MESSAGE

    def test_cache(self, service, catalog_store, susi_catalog):
        catalog_store.put_catalog(SUSI, susi_catalog)
        first = service.recommend(RecommendationQuery(track=SUSI, gpa_equivalent=2.01))
        second = service.recommend(RecommendationQuery(track=SUSI, gpa_equivalent=2.05))
        assert first.cached is False
        assert second.cached is True
        assert second.candidates == first.candidates

    def test_cache_disabled(self, catalog_store, susi_catalog):
        cfg = AppConfig(cache={"enabled": False})
        svc = AdmissionService(catalog_store, cfg)
        catalog_store.put_catalog(SUSI, susi_catalog)
        svc.recommend(RecommendationQuery(track=SUSI, gpa_equivalent=2.0))
        again = svc.recommend(RecommendationQuery(track=SUSI, gpa_equivalent=2.0))
        assert again.cached is False

    def test_window_filter(self, service, catalog_store, make_entry):
        rows = [
            make_entry(university=f"가대{i}", department="공학과", admission_track=JUNGSI,
                       sub_group=SubGroup.A, cutoff_at_70pct=2.0 + 0.2 * i)
            for i in range(7)
        ]
        catalog_store.put_catalog(JUNGSI, rows)

        full = service.recommend(RecommendationQuery(track=JUNGSI, exam_average=3.0))
        assert any(c.is_fallback for c in full.groups[SubGroup.B])

        only_b = service.recommend(
            RecommendationQuery(track=JUNGSI, exam_average=3.0, sub_group=SubGroup.B)
        )
        assert only_b.groups == {SubGroup.B: []}
        assert only_b.message is not None

    def test_band_radius_limits_candidates(self, catalog_store, susi_catalog):
        cfg = AppConfig(ranking=RankingConfig(band_radius=1))
        svc = AdmissionService(catalog_store, cfg)
        catalog_store.put_catalog(SUSI, susi_catalog)
        result = svc.recommend(RecommendationQuery(track=SUSI, gpa_equivalent=1.2))
        # bands 0..2 → cutoffs 1.6, 1.7, 2.4; band 3 (3.1) is out of range
        assert sorted(c.entry.primary_cutoff for c in result.candidates) == [1.6, 1.7, 2.4]

    def test_store_failure(self, broken_service):
        result = broken_service.recommend(RecommendationQuery(track=SUSI, gpa_equivalent=2.0))
        assert result.is_empty
        assert result.message == STORE_UNAVAILABLE_MESSAGE


class TestStatusAndDetail:
    def test_status(self, service, catalog_store, susi_catalog):
        catalog_store.put_catalog(SUSI, susi_catalog)
        assert service.status().susi_count == 4

    def test_status_store_failure(self, broken_service):
        assert broken_service.status().total == 0

    def test_detail(self, service, catalog_store, susi_catalog):
        catalog_store.put_catalog(SUSI, susi_catalog)
        found = service.university_detail(SUSI, "고려대학교", "경제학과")
        assert found is not None
        assert found.entry.year == 2024
        assert [e.year for e in found.history] == [2024, 2023]

    def test_detail_unknown(self, service):
        assert service.university_detail(SUSI, "없는대학교", "없는학과") is None

    def test_detail_store_failure(self, broken_service):
        assert broken_service.university_detail(SUSI, "고려대학교", "경제학과") is None


class TestScores:
    def test_save_merges_sections(self, service):
        grades = [RawGradeEntry(subject="국어", term="1-1", grade=2)]
        exam = [ExamSubjectScore(subject=ExamSubject.MATH, grade=3)]

        service.save_scores("alice", grades=grades)
        saved = service.save_scores("alice", exam=exam)

        assert saved.grades == grades
        assert saved.exam == exam
        assert saved.updated_at is not None
        assert service.get_scores("alice") == saved

    def test_blank_user(self, service):
        with pytest.raises(AuthFailureError) as exc_info:
            service.save_scores("  ", grades=[])
        assert exc_info.value.reason == "no_session"

    def test_recommend_for_user(self, service, catalog_store, susi_catalog):
        catalog_store.put_catalog(SUSI, susi_catalog)
        service.save_scores(
            "bob",
            grades=[
                RawGradeEntry(subject="국어", term="1-1", grade=2),
                RawGradeEntry(subject="수학", term="1-1", grade=2),
            ],
        )
        result = service.recommend_for_user("bob", SUSI)
        assert result.profile.gpa_equivalent == pytest.approx(2.0)
        assert len(result.candidates) == 4

    def test_recommend_for_unknown_user(self, service):
        result = service.recommend_for_user("nobody", SUSI)
        assert result.message == EMPTY_PROFILE_MESSAGE
