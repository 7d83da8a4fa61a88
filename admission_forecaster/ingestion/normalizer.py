"""
Raw catalog row → ``CatalogEntry`` normalization.

Uploaded rows arrive with whatever headers the source spreadsheet used. Each
canonical field accepts a list of aliases (snake_case, camelCase and the
Korean headers found in exported admission data); the first alias present
with a non-blank value wins.

Canonical fields and accepted headers:

    university            university, name, 대학명, 대학
    department            department, dept, 학과명, 학과, 모집단위
    year                  year, 년도, 연도, 학년도
    cutoff_at_50pct       grade_50_cut, cutoff_at_50pct, grade50Cut, 50%컷, 등급50컷
    cutoff_at_70pct       grade_70_cut, cutoff_at_70pct, grade70Cut, 70%컷, 등급70컷, 내신등급, requiredGrade
    recruitment_count     recruitment_count, recruitmentCount, capacity, 모집인원
    competition_rate      competition_rate, competitionRate, 경쟁률
    real_competition_rate real_competition_rate, realCompetitionRate, 실경쟁률
    sub_group             sub_group, group, 군
    ... plus the descriptive columns (region, category, admission_type, …).

Numeric cells tolerate thousands separators, a trailing ``%``, and ratio
notation such as ``"12.5:1"``. Blank cells and ``"-"`` mean "missing" and
take the field's default. Anything else that does not parse is an error.

Exam rows take their window from the group column, or failing that from
``admission_type`` text such as ``"정시(가군)"``.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError

from admission_forecaster.models.catalog import CatalogEntry
from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack, parse_sub_group

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10

_MISSING = frozenset({"", "-", "—", "n/a", "na", "null", "none"})

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "university":            ("university", "name", "대학명", "대학"),
    "department":            ("department", "dept", "학과명", "학과", "모집단위"),
    "year":                  ("year", "년도", "연도", "학년도"),
    "cutoff_at_50pct":       ("grade_50_cut", "cutoff_at_50pct", "grade50Cut", "50%컷", "등급50컷"),
    "cutoff_at_70pct":       ("grade_70_cut", "cutoff_at_70pct", "grade70Cut", "70%컷", "등급70컷",
                              "내신등급", "requiredGrade"),
    "recruitment_count":     ("recruitment_count", "recruitmentCount", "capacity", "모집인원"),
    "competition_rate":      ("competition_rate", "competitionRate", "경쟁률"),
    "real_competition_rate": ("real_competition_rate", "realCompetitionRate", "실경쟁률"),
    "sub_group":             ("sub_group", "subGroup", "group", "군"),
    "region":                ("region", "location", "지역"),
    "category":              ("category", "설립구분", "구분"),
    "admission_type":        ("admission_type", "admissionType", "전형구분", "전형명", "전형"),
    "highschool_type":       ("highschool_type", "highschoolType", "고교유형"),
    "perfect_score":         ("perfect_score", "perfectScore", "만점"),
    "converted_cutoff_50":   ("convert_50_cut", "converted_cutoff_50", "환산50컷"),
    "converted_cutoff_70":   ("convert_70_cut", "converted_cutoff_70", "환산70컷"),
    "additional_pass":       ("additional_pass", "additionalPass", "추가합격"),
    "total_apply":           ("total_apply", "totalApply", "지원자수"),
    "pass_num":              ("pass_num", "passNum", "최종합격"),
}

# Exam-row per-subject cut columns → per_subject_scores key.
SUBJECT_SCORE_ALIASES: dict[str, tuple[str, ...]] = {
    "korean":  ("korean", "국어"),
    "math":    ("math", "수학"),
    "english": ("english", "영어"),
    "inquiry": ("inquiry", "탐구"),
    "average": ("average", "평균"),
}

_INT_FIELDS = ("recruitment_count", "additional_pass", "total_apply", "pass_num")
_FLOAT_FIELDS = (
    "cutoff_at_50pct", "cutoff_at_70pct", "competition_rate", "real_competition_rate",
    "perfect_score", "converted_cutoff_50", "converted_cutoff_70",
)
_TEXT_FIELDS = ("region", "category", "admission_type", "highschool_type")
_REQUIRED_DEFAULTS: dict[str, Any] = {
    "cutoff_at_50pct": 0.0,
    "cutoff_at_70pct": 0.0,
    "recruitment_count": 0,
    "competition_rate": 0.0,
    "real_competition_rate": 0.0,
}

_RATIO = re.compile(r"^\s*([0-9.,]+)\s*:\s*1\s*$")


class IngestionFormatError(ValueError):
    """Raised when uploaded catalog rows cannot be normalized.

    Attributes:
        errors: ``(row_number, message)`` pairs, 1-based within the chunk.
    """

    def __init__(self, message: str, errors: Optional[list[tuple[int, str]]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def normalize_row(
    row: Mapping[str, Any],
    track: AdmissionTrack,
    default_year: Optional[int] = None,
) -> CatalogEntry:
    """Map one raw row onto a validated ``CatalogEntry``.

    Args:
        row:          Raw row (header → cell). Cells may be strings or numbers.
        track:        Track the upload targets.
        default_year: Year used when the row has none; ``None`` makes a
                      missing year an error.

    Raises:
        IngestionFormatError: Missing identity fields or unparsable numbers.
    """
    university = _text(_lookup(row, FIELD_ALIASES["university"]))
    department = _text(_lookup(row, FIELD_ALIASES["department"]))
    if not university or not department:
        raise IngestionFormatError("Row is missing university or department.")

    year = _parse_int(_lookup(row, FIELD_ALIASES["year"]), "year")
    if year is None:
        if default_year is None:
            raise IngestionFormatError(f"Row for {university} {department} has no year.")
        year = default_year

    fields: dict[str, Any] = {
        "university": university,
        "department": department,
        "admission_track": track,
        "year": year,
    }
    for name in _FLOAT_FIELDS:
        value = _parse_float(_lookup(row, FIELD_ALIASES[name]), name)
        fields[name] = value if value is not None else _REQUIRED_DEFAULTS.get(name)
    for name in _INT_FIELDS:
        value = _parse_int(_lookup(row, FIELD_ALIASES[name]), name)
        fields[name] = value if value is not None else _REQUIRED_DEFAULTS.get(name)
    for name in _TEXT_FIELDS:
        fields[name] = _text(_lookup(row, FIELD_ALIASES[name])) or None

    if track == AdmissionTrack.JUNGSI:
        fields["sub_group"] = (
            parse_sub_group(_text(_lookup(row, FIELD_ALIASES["sub_group"])))
            or parse_sub_group(fields["admission_type"])
        )
        scores = {}
        for key, aliases in SUBJECT_SCORE_ALIASES.items():
            value = _parse_float(_lookup(row, aliases), key)
            if value is not None:
                scores[key] = value
        fields["per_subject_scores"] = scores

    try:
        return CatalogEntry(**fields)
    except ValidationError as exc:
        raise IngestionFormatError(
            f"Row for {university} {department} failed validation: "
            f"{exc.errors()[0]['loc']}: {exc.errors()[0]['msg']}"
        ) from exc


def normalize_rows(
    rows: Iterable[Mapping[str, Any]],
    track: AdmissionTrack,
    default_year: Optional[int] = None,
    max_reported: int = MAX_REPORTED_ERRORS,
) -> list[CatalogEntry]:
    """Normalize a whole chunk. Any bad row rejects the chunk.

    Raises:
        IngestionFormatError: Listing the first ``max_reported`` failures.
    """
    entries: list[CatalogEntry] = []
    errors: list[tuple[int, str]] = []

    for i, row in enumerate(rows, start=1):
        try:
            entries.append(normalize_row(row, track, default_year))
        except IngestionFormatError as exc:
            errors.append((i, str(exc)))

    if errors:
        detail = "\n".join(f"  Row {n}: {msg}" for n, msg in errors[:max_reported])
        suffix = f"\n  … and {len(errors) - max_reported} more" if len(errors) > max_reported else ""
        raise IngestionFormatError(
            f"{len(errors)} row(s) failed normalization:\n{detail}{suffix}",
            errors=errors,
        )

    logger.debug("Normalized %d %s row(s).", len(entries), track.value)
    return entries


# ── Private helpers ────────────────────────────────────────────────────────────

def _lookup(row: Mapping[str, Any], aliases: Iterable[str]) -> Any:
    """First non-blank value among ``aliases``; header whitespace is ignored."""
    stripped = {str(k).strip(): v for k, v in row.items() if k is not None}
    for alias in aliases:
        value = stripped.get(alias)
        if value is not None and not _is_missing(value):
            return value
    return None


def _is_missing(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower() in _MISSING


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().strip('"').strip()


def _parse_float(value: Any, field: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise IngestionFormatError(f"Field '{field}' must be numeric, got {value!r}.")
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = _text(value)
        ratio = _RATIO.match(text)
        if ratio:
            text = ratio.group(1)
        text = text.replace(",", "").rstrip("%").strip()
        try:
            number = float(text)
        except ValueError:
            raise IngestionFormatError(f"Field '{field}' is not a number: {value!r}.")

    if not math.isfinite(number):
        raise IngestionFormatError(f"Field '{field}' must be a finite number, got {value!r}.")
    return number


def _parse_int(value: Any, field: str) -> Optional[int]:
    number = _parse_float(value, field)
    if number is None:
        return None
    if not number.is_integer():
        raise IngestionFormatError(f"Field '{field}' must be a whole number, got {value!r}.")
    return int(number)
