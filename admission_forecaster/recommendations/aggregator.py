"""
Grade aggregation: reduces raw per-subject, per-term grades to the scalar
summary the ranker consumes.

School record (naeshin)
-----------------------
Entries with ``grade <= 0`` are "not entered" and are dropped first.
If any remaining entry carries a positive credit ``weight`` the result is the
credit-weighted mean over those weighted entries; entries with weight 0 or
no weight at all do not contribute in that mode, and a warning is logged
when present grades are dropped this way. Otherwise the plain mean of the
present grades is returned.

Suneung
-------
Unweighted mean of the present grades among a fixed subject set (korean,
math, english, inquiry1, inquiry2 by default). Missing subjects, such as an
empty second inquiry slot, are simply skipped.

Both aggregators return ``0.0`` when nothing valid was entered. Callers treat
``0.0`` as "unknown", never as a real grade.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Mapping, Sequence

from admission_forecaster.models.grades import ExamSubjectScore, RawGradeEntry, StudentProfile
from admission_forecaster.taxonomy.admission_taxonomy import ExamSubject

logger = logging.getLogger(__name__)

DEFAULT_EXAM_SUBJECTS: tuple[ExamSubject, ...] = (
    ExamSubject.KOREAN,
    ExamSubject.MATH,
    ExamSubject.ENGLISH,
    ExamSubject.INQUIRY1,
    ExamSubject.INQUIRY2,
)


def aggregate_grades(entries: Iterable[RawGradeEntry]) -> float:
    """Return the GPA-equivalent of a student's school-record grades.

    Args:
        entries: Raw grade entries (any order, may include blanks).

    Returns:
        Weighted or unweighted mean grade, or ``0.0`` if no grade is present.
    """
    present = [e for e in entries if e.grade > 0]
    if not present:
        return 0.0

    weighted = [e for e in present if e.weight]
    if weighted:
        dropped = len(present) - len(weighted)
        if dropped:
            logger.warning(
                "Credit-weighted average ignores %d grade(s) without credit hours.", dropped
            )
        total_weight = sum(e.weight for e in weighted)
        return sum(e.grade * e.weight for e in weighted) / total_weight

    return sum(e.grade for e in present) / len(present)


def aggregate_exam(
    scores: Iterable[ExamSubjectScore],
    subjects: Sequence[ExamSubject | str] = DEFAULT_EXAM_SUBJECTS,
) -> float:
    """Return the unweighted mean suneung grade over ``subjects``.

    Args:
        scores: Exam results; subjects outside ``subjects`` are ignored.
        subjects: Subject slots that count toward the average.

    Returns:
        Mean grade, or ``0.0`` if none of the counted subjects has a grade.
    """
    counted = {ExamSubject(s) for s in subjects}
    grades = [s.grade for s in scores if s.subject in counted and s.grade > 0]
    if not grades:
        return 0.0
    return sum(grades) / len(grades)


def build_student_profile(
    grade_entries: Iterable[RawGradeEntry] = (),
    exam_scores: Iterable[ExamSubjectScore] = (),
    exam_subjects: Sequence[ExamSubject | str] = DEFAULT_EXAM_SUBJECTS,
) -> StudentProfile:
    """Build a fresh ``StudentProfile`` from raw input."""
    return StudentProfile(
        gpa_equivalent=aggregate_grades(grade_entries),
        exam_average=aggregate_exam(exam_scores, exam_subjects),
    )


def entries_from_subject_terms(
    grades: Mapping[str, Mapping[str, int | float]],
) -> list[RawGradeEntry]:
    """Convert the quick-entry ``{subject: {term: grade}}`` form into entries.

    Blank or zero grades are kept as ``grade=0`` entries so the aggregators
    exclude them the same way they exclude any other unentered grade.
    """
    entries: list[RawGradeEntry] = []
    for subject, by_term in grades.items():
        for term, grade in by_term.items():
            entries.append(
                RawGradeEntry(subject=subject, term=term, grade=int(grade or 0))
            )
    return entries


def subject_averages(entries: Iterable[RawGradeEntry]) -> dict[str, float]:
    """Return the unweighted mean of present grades per subject.

    Subjects with no present grade are omitted.
    """
    by_subject: dict[str, list[int]] = defaultdict(list)
    for e in entries:
        if e.grade > 0:
            by_subject[e.subject].append(e.grade)
    return {
        subject: round(sum(grades) / len(grades), 2)
        for subject, grades in by_subject.items()
    }


def strongest_subjects(
    entries: Iterable[RawGradeEntry],
    top: int = 3,
) -> list[tuple[str, float]]:
    """Return the ``top`` subjects by average grade, best (lowest) first.

    Ties are broken by subject name so the order is reproducible.
    """
    averages = subject_averages(entries)
    ordered = sorted(averages.items(), key=lambda kv: (kv[1], kv[0]))
    return ordered[:top]


def strongest_exam_subjects(
    scores: Iterable[ExamSubjectScore],
    top: int = 3,
) -> list[tuple[ExamSubject, int]]:
    """Return the ``top`` present exam subjects by grade, best first."""
    present = [(s.subject, s.grade) for s in scores if s.grade > 0]
    present.sort(key=lambda sg: (sg[1], sg[0].value))
    return present[:top]
