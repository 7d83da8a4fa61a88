"""
Recommendation output models.

``ScoredCandidate`` couples a ``CatalogEntry`` with its estimated admission
probability, tier, and up to three years of history for the same
(university, department). It is recomputed per request and never persisted
on its own; whole ``RecommendationResult`` objects may be cached for a short
TTL by the catalog store.

``CatalogStatus`` backs the status query.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from admission_forecaster.models.catalog import CatalogEntry
from admission_forecaster.models.grades import StudentProfile
from admission_forecaster.taxonomy.admission_taxonomy import (
    TIER_LABELS,
    AdmissionTrack,
    SubGroup,
    Tier,
)


class ScoredCandidate(BaseModel):
    """A catalog entry scored against one student profile.

    Attributes:
        entry: The scored catalog row.
        probability: Estimated admission probability, integer 0–100.
        tier: Tier derived from ``probability``.
        recent_history: Up to three rows for the same key, newest first.
        is_fallback: ``True`` when placed into a sub-group by the
            underfilled-group policy rather than by its own window.
    """

    model_config = ConfigDict(frozen=True)

    entry: CatalogEntry
    probability: int = Field(ge=0, le=100)
    tier: Tier
    recent_history: tuple[CatalogEntry, ...] = ()
    is_fallback: bool = False

    @property
    def tier_label(self) -> str:
        return TIER_LABELS[self.tier]


class RecommendationQuery(BaseModel):
    """Input to a recommendation request."""

    model_config = ConfigDict(frozen=True)

    gpa_equivalent: float = Field(default=0.0, ge=0)
    exam_average: float = Field(default=0.0, ge=0)
    track: AdmissionTrack
    sub_group: Optional[SubGroup] = None

    @property
    def profile(self) -> StudentProfile:
        return StudentProfile(
            gpa_equivalent=self.gpa_equivalent,
            exam_average=self.exam_average,
        )


class RecommendationResult(BaseModel):
    """Ranked recommendations plus the profile they were computed for.

    Rolling-admission results populate ``candidates``; exam-based results
    populate ``groups`` (one capped list per window). When a single window
    was requested, ``groups`` holds only that window.

    Attributes:
        track: Track the result was computed for.
        profile: Echo of the student summary used.
        candidates: Ranked candidates (susi).
        groups: Ranked candidates per window (jungsi).
        cached: ``True`` if served from the result cache.
        message: User-facing guidance when no recommendations are available.
    """

    model_config = ConfigDict(frozen=True)

    track: AdmissionTrack
    profile: StudentProfile
    candidates: list[ScoredCandidate] = Field(default_factory=list)
    groups: dict[SubGroup, list[ScoredCandidate]] = Field(default_factory=dict)
    cached: bool = False
    message: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.candidates and not any(self.groups.values())

    def all_candidates(self) -> list[tuple[Optional[SubGroup], ScoredCandidate]]:
        """Flatten to (group, candidate) pairs in display order."""
        if self.candidates:
            return [(None, c) for c in self.candidates]
        return [(group, c) for group, items in self.groups.items() for c in items]


class CatalogStatus(BaseModel):
    """Catalog sizes per track."""

    model_config = ConfigDict(frozen=True)

    susi_count: int = 0
    jungsi_count: int = 0
    last_updated: Optional[str] = None

    @computed_field
    @property
    def total(self) -> int:
        return self.susi_count + self.jungsi_count
