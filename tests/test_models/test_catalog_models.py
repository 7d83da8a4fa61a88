"""
Tests for admission_forecaster/models/catalog.py, grades.py and recommendation.py.

What we test
------------
CatalogEntry:
  - A susi row carrying a sub_group is rejected.
  - Blank university / department is rejected.
  - primary_cutoff prefers the 70% cut and falls back to the 50% cut.
  - has_cutoff is False only when both cuts are 0.
  - Entries are frozen; inf and nan numbers are rejected.

Grade inputs:
  - Grade 0 means "not entered"; out-of-range grades are rejected.
  - StudentProfile.value_for() picks the scalar for the track.

ScoredCandidate / RecommendationResult:
  - tier_label maps tiers to Korean labels.
  - is_empty and all_candidates() for both result shapes.
  - CatalogStatus.total is part of the serialized output.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from admission_forecaster.models.catalog import CatalogEntry
from admission_forecaster.models.grades import ExamSubjectScore, RawGradeEntry, StudentProfile
from admission_forecaster.models.recommendation import (
    CatalogStatus,
    RecommendationQuery,
    RecommendationResult,
    ScoredCandidate,
)
from admission_forecaster.taxonomy.admission_taxonomy import (
    AdmissionTrack,
    ExamSubject,
    SubGroup,
    Tier,
)

SUSI = AdmissionTrack.SUSI
JUNGSI = AdmissionTrack.JUNGSI


class TestCatalogEntry:
    def test_susi_sub_group_rejected(self, make_entry):
        with pytest.raises(ValidationError, match="sub_group"):
            make_entry(admission_track=SUSI, sub_group=SubGroup.A)

    def test_jungsi_sub_group_allowed(self, make_entry):
        assert make_entry(admission_track=JUNGSI, sub_group=SubGroup.C).sub_group == SubGroup.C

    @pytest.mark.parametrize("field", ["university", "department"])
    def test_blank_names_rejected(self, make_entry, field):
        with pytest.raises(ValidationError):
            make_entry(**{field: "   "})

    @pytest.mark.parametrize("value", [float("inf"), float("nan")])
    def test_non_finite_numbers_rejected(self, make_entry, value):
        with pytest.raises(ValidationError):
            make_entry(cutoff_at_70pct=value)

    def test_year_bounds(self, make_entry):
        with pytest.raises(ValidationError):
            make_entry(year=1800)

    def test_primary_cutoff(self, make_entry):
        assert make_entry(cutoff_at_50pct=1.8, cutoff_at_70pct=2.0).primary_cutoff == 2.0
        assert make_entry(cutoff_at_50pct=1.8, cutoff_at_70pct=0.0).primary_cutoff == 1.8
        assert make_entry(cutoff_at_50pct=0.0, cutoff_at_70pct=0.0).primary_cutoff == 0.0

    def test_has_cutoff(self, make_entry):
        assert make_entry(cutoff_at_50pct=0.0, cutoff_at_70pct=2.0).has_cutoff
        assert not make_entry(cutoff_at_50pct=0.0, cutoff_at_70pct=0.0).has_cutoff

    def test_key(self, make_entry):
        assert make_entry().key == ("서울대학교", "경영학과")

    def test_frozen(self, make_entry):
        entry = make_entry()
        with pytest.raises(ValidationError):
            entry.year = 2020

    def test_json_round_trip_keeps_per_subject_scores(self, make_entry):
        entry = make_entry(
            admission_track=JUNGSI, sub_group=SubGroup.B, per_subject_scores={"korean": 131.0}
        )
        assert CatalogEntry.model_validate_json(entry.model_dump_json()) == entry


class TestGradeInputs:
    def test_zero_grade_not_present(self):
        assert not RawGradeEntry(subject="국어", term="1-1", grade=0).is_present
        assert ExamSubjectScore(subject=ExamSubject.MATH, grade=2).is_present

    @pytest.mark.parametrize("grade", [-1, 10])
    def test_grade_range(self, grade):
        with pytest.raises(ValidationError):
            RawGradeEntry(subject="국어", term="1-1", grade=grade)

    def test_subject_stripped(self):
        assert RawGradeEntry(subject=" 수학 ", term="2-1", grade=3).subject == "수학"

    def test_blank_term_rejected(self):
        with pytest.raises(ValidationError):
            RawGradeEntry(subject="수학", term=" ", grade=3)

    def test_value_for(self):
        profile = StudentProfile(gpa_equivalent=2.3, exam_average=3.1)
        assert profile.value_for(SUSI) == 2.3
        assert profile.value_for(JUNGSI) == 3.1

    def test_query_profile(self):
        query = RecommendationQuery(track=SUSI, gpa_equivalent=2.5)
        assert query.profile == StudentProfile(gpa_equivalent=2.5)


class TestRecommendationModels:
    def _candidate(self, entry, tier=Tier.A, probability=60):
        return ScoredCandidate(entry=entry, probability=probability, tier=tier)

    def test_tier_label(self, make_entry):
        assert self._candidate(make_entry(), Tier.S, 85).tier_label == "안전권"
        assert self._candidate(make_entry(), Tier.C, 10).tier_label == "도전권"

    def test_probability_bounds(self, make_entry):
        with pytest.raises(ValidationError):
            self._candidate(make_entry(), probability=101)

    def test_empty_result(self):
        result = RecommendationResult(track=SUSI, profile=StudentProfile())
        assert result.is_empty
        assert result.all_candidates() == []

    def test_empty_groups_count_as_empty(self):
        result = RecommendationResult(
            track=JUNGSI, profile=StudentProfile(), groups={SubGroup.A: [], SubGroup.B: []}
        )
        assert result.is_empty

    def test_all_candidates_susi(self, make_entry):
        c = self._candidate(make_entry())
        result = RecommendationResult(track=SUSI, profile=StudentProfile(), candidates=[c])
        assert result.all_candidates() == [(None, c)]

    def test_all_candidates_jungsi(self, make_entry):
        a = self._candidate(make_entry(admission_track=JUNGSI, sub_group=SubGroup.A))
        c = self._candidate(make_entry(admission_track=JUNGSI, sub_group=SubGroup.C))
        result = RecommendationResult(
            track=JUNGSI,
            profile=StudentProfile(),
            groups={SubGroup.A: [a], SubGroup.B: [], SubGroup.C: [c]},
        )
        assert not result.is_empty
        assert result.all_candidates() == [(SubGroup.A, a), (SubGroup.C, c)]

    def test_status_total(self):
        assert CatalogStatus(susi_count=3, jungsi_count=4).total == 7

    def test_status_dump_includes_total(self):
        dumped = CatalogStatus(susi_count=3, jungsi_count=4).model_dump()
        assert dumped["total"] == 7
