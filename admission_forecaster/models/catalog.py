"""
University catalog models.

``CatalogEntry`` is one (university, department, year) row of historical
admission data. The catalog is a flat ordered collection: "current" and
"historical" rows share this shape and differ only by ``year``.

Cutoffs are expressed on the 1–9 grade scale, so a lower cutoff is a harder
bar. ``0`` means the source had no cutoff for that percentile.

Entries are frozen: once ingested for a given year they do not change.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack, SubGroup


class CatalogEntry(BaseModel):
    """Historical admission data for one department in one year.

    Attributes:
        university: University name.
        department: Department (학과) name.
        admission_track: ``susi`` or ``jungsi``.
        sub_group: 정시 window (A/B/C); always ``None`` for susi rows.
        year: Admission year.
        cutoff_at_50pct: Grade below which ~50% of admitted students scored.
        cutoff_at_70pct: Grade below which ~70% of admitted students scored.
        recruitment_count: Seats offered.
        competition_rate: Applicants per seat.
        real_competition_rate: Applicants per seat after additional passes.
        per_subject_scores: Per-subject cut scores (정시 rows), keyed by subject.
        region: Region, e.g. ``"서울"``.
        category: Founding category, e.g. ``"국립"`` / ``"사립"``.
        admission_type: Free-text admission type, e.g. ``"학생부종합전형"``.
        highschool_type: Eligible high-school type, e.g. ``"일반고"``.
        perfect_score: Maximum converted score.
        converted_cutoff_50: 50% cut on the converted-score scale.
        converted_cutoff_70: 70% cut on the converted-score scale.
        additional_pass: Number of additional (waitlist) passes.
        total_apply: Total applicants.
        pass_num: Final number of admitted students.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    university: str
    department: str
    admission_track: AdmissionTrack
    sub_group: Optional[SubGroup] = None
    year: int = Field(ge=1900, le=2200)
    cutoff_at_50pct: float = Field(default=0.0, ge=0)
    cutoff_at_70pct: float = Field(default=0.0, ge=0)
    recruitment_count: int = Field(default=0, ge=0)
    competition_rate: float = Field(default=0.0, ge=0)
    real_competition_rate: float = Field(default=0.0, ge=0)
    per_subject_scores: dict[str, float] = Field(default_factory=dict)

    region: Optional[str] = None
    category: Optional[str] = None
    admission_type: Optional[str] = None
    highschool_type: Optional[str] = None
    perfect_score: Optional[float] = None
    converted_cutoff_50: Optional[float] = None
    converted_cutoff_70: Optional[float] = None
    additional_pass: Optional[int] = None
    total_apply: Optional[int] = None
    pass_num: Optional[int] = None

    @model_validator(mode="after")
    def validate_sub_group_track(self) -> "CatalogEntry":
        if self.sub_group is not None and self.admission_track != AdmissionTrack.JUNGSI:
            raise ValueError(
                f"sub_group is only valid for jungsi rows, got track "
                f"'{self.admission_track}' for {self.university} {self.department}."
            )
        if not self.university.strip() or not self.department.strip():
            raise ValueError("university and department must not be empty.")
        return self

    @property
    def key(self) -> tuple[str, str]:
        """(university, department) — the identity shared across years."""
        return (self.university, self.department)

    @property
    def primary_cutoff(self) -> float:
        """70% cut when present, otherwise the 50% cut (``0.0`` if neither)."""
        return self.cutoff_at_70pct or self.cutoff_at_50pct

    @property
    def has_cutoff(self) -> bool:
        return self.cutoff_at_50pct > 0 or self.cutoff_at_70pct > 0
