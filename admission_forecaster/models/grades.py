"""
Student grade input models.

``RawGradeEntry`` is one school-record (naeshin) grade for a subject in a
term. ``ExamSubjectScore`` is one suneung subject result. Both use grade
``0`` to mean "not entered"; aggregation excludes those rows rather than
treating them as a real grade.

``StudentProfile`` is the derived two-number summary the ranker consumes.
It is rebuilt from raw input on every request and never stored on its own.

All models are frozen.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack, ExamSubject


class RawGradeEntry(BaseModel):
    """One school-record grade.

    Attributes:
        subject: Subject name as entered, e.g. ``"국어"`` or ``"math"``.
        term: Term identifier, e.g. ``"1-1"`` (grade 1, semester 1).
        grade: Rank grade 1 (best) to 9; ``0`` means not entered.
        weight: Credit hours. ``None`` when the input has no credit data.
        raw_score: Optional raw score out of 100.
    """

    model_config = ConfigDict(frozen=True)

    subject: str
    term: str
    grade: int = Field(default=0, ge=0, le=9)
    weight: Optional[int] = Field(default=None, ge=0)
    raw_score: Optional[int] = Field(default=None, ge=0, le=100)

    @field_validator("subject", "term")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("subject and term must not be empty.")
        return v.strip()

    @property
    def is_present(self) -> bool:
        return self.grade > 0


class ExamSubjectScore(BaseModel):
    """One suneung subject result.

    Attributes:
        subject: Subject slot.
        grade: Grade 1 (best) to 9; ``0`` means not entered.
        standard_score: Optional standard score.
        percentile: Optional percentile (0–100).
        raw_score: Optional raw score.
    """

    model_config = ConfigDict(frozen=True)

    subject: ExamSubject
    grade: int = Field(default=0, ge=0, le=9)
    standard_score: Optional[float] = Field(default=None, ge=0)
    percentile: Optional[float] = Field(default=None, ge=0, le=100)
    raw_score: Optional[int] = Field(default=None, ge=0)

    @property
    def is_present(self) -> bool:
        return self.grade > 0


class StudentProfile(BaseModel):
    """Scalar summary of a student's grades.

    ``0.0`` in either field means "no data for that track".
    """

    model_config = ConfigDict(frozen=True)

    gpa_equivalent: float = Field(default=0.0, ge=0)
    exam_average: float = Field(default=0.0, ge=0)

    def value_for(self, track: AdmissionTrack) -> float:
        """Return the scalar that drives scoring for ``track``."""
        if track == AdmissionTrack.SUSI:
            return self.gpa_equivalent
        return self.exam_average


class SavedScores(BaseModel):
    """The last raw scores a user saved.

    Not frozen: each save merges new sections into the existing record.
    """

    user_id: str
    grades: list[RawGradeEntry] = Field(default_factory=list)
    exam: list[ExamSubjectScore] = Field(default_factory=list)
    updated_at: Optional[str] = None
