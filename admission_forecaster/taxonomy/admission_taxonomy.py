"""
Admission taxonomy for the Korean university admission cycle.

Four small vocabularies describe every catalog row and recommendation:
  - ``AdmissionTrack`` — rolling admission (수시) vs. exam-based admission (정시).
  - ``SubGroup``       — the three parallel 정시 application windows (가/나/다군).
  - ``Tier``           — discretized admission-likelihood bucket (S/A/B/C).
  - ``ExamSubject``    — suneung subject slots a student can enter.

Usage example::

    from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack, Tier

    track = AdmissionTrack.SUSI
    tier  = Tier.A

This module has NO imports from any other ``admission_forecaster`` package.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Optional


class AdmissionTrack(StrEnum):
    """Admission track a catalog row belongs to."""

    SUSI = "susi"
    """Rolling admission; driven by the school-record (naeshin) average."""

    JUNGSI = "jungsi"
    """Exam-based admission; driven by the suneung average, split into windows."""


class SubGroup(StrEnum):
    """정시 application window. A student may apply once per window."""

    A = "A"
    """가군"""

    B = "B"
    """나군"""

    C = "C"
    """다군"""


class Tier(StrEnum):
    """Admission-likelihood bucket, best first."""

    S = "S"
    """Safe (안전권)."""

    A = "A"
    """Appropriate / optimal (적정권)."""

    B = "B"
    """Bold / challenge (소신권)."""

    C = "C"
    """Reach (도전권)."""


class ExamSubject(StrEnum):
    """Suneung subject slots."""

    KOREAN = "korean"
    MATH = "math"
    ENGLISH = "english"
    KOREAN_HISTORY = "korean_history"
    INQUIRY1 = "inquiry1"
    INQUIRY2 = "inquiry2"
    SECOND_LANGUAGE = "second_language"


# ── Orderings and labels ──────────────────────────────────────────────────────

SUB_GROUP_ORDER: tuple[SubGroup, ...] = (SubGroup.A, SubGroup.B, SubGroup.C)

TIER_RANK: dict[Tier, int] = {
    Tier.S: 4,
    Tier.A: 3,
    Tier.B: 2,
    Tier.C: 1,
}

TIER_LABELS: dict[Tier, str] = {
    Tier.S: "안전권",
    Tier.A: "적정권",
    Tier.B: "소신권",
    Tier.C: "도전권",
}

SUB_GROUP_LABELS: dict[SubGroup, str] = {
    SubGroup.A: "가군",
    SubGroup.B: "나군",
    SubGroup.C: "다군",
}

_SUB_GROUP_ALIASES: dict[str, SubGroup] = {
    "a": SubGroup.A, "ga": SubGroup.A, "가": SubGroup.A, "가군": SubGroup.A,
    "b": SubGroup.B, "na": SubGroup.B, "나": SubGroup.B, "나군": SubGroup.B,
    "c": SubGroup.C, "da": SubGroup.C, "다": SubGroup.C, "다군": SubGroup.C,
}

_TRACK_ALIASES: dict[str, AdmissionTrack] = {
    "susi": AdmissionTrack.SUSI,
    "rolling": AdmissionTrack.SUSI,
    "수시": AdmissionTrack.SUSI,
    "jungsi": AdmissionTrack.JUNGSI,
    "jeongsi": AdmissionTrack.JUNGSI,
    "exam": AdmissionTrack.JUNGSI,
    "exambased": AdmissionTrack.JUNGSI,
    "정시": AdmissionTrack.JUNGSI,
}


def parse_track(value: str) -> AdmissionTrack:
    """Resolve a track name or alias (``"susi"``, ``"정시"``, ``"rolling"``...).

    Raises:
        ValueError: If ``value`` is not a known track alias.
    """
    key = value.strip().lower().replace("_", "").replace("-", "")
    track = _TRACK_ALIASES.get(key)
    if track is None:
        raise ValueError(
            f"Unknown admission track '{value}'. "
            f"Valid values: {sorted(t.value for t in AdmissionTrack)}"
        )
    return track


def parse_sub_group(value: Optional[str]) -> Optional[SubGroup]:
    """Resolve a sub-group label, or ``None`` if ``value`` does not name one.

    Accepts the canonical ``A/B/C`` values, romanized ``ga/na/da`` and the
    Korean ``가/나/다`` (optionally suffixed with 군). Free-text admission
    type strings such as ``"정시(가군)"`` are matched on the first window
    syllable they contain.
    """
    if value is None:
        return None
    raw = value.strip()
    if not raw:
        return None

    direct = _SUB_GROUP_ALIASES.get(raw.lower())
    if direct is not None:
        return direct

    for syllable, group in (("가", SubGroup.A), ("나", SubGroup.B), ("다", SubGroup.C)):
        if f"{syllable}군" in raw or f"({syllable})" in raw:
            return group
    return None
