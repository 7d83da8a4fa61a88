"""
Key layout for everything the catalog store persists.

    universities_{track}_all               full catalog, sorted
    universities_{track}_grade_{band}      rows whose primary cutoff floors to band
    universities_{track}_chunks            staging buffer, chunk index → rows
    universities_{track}_updated_at        ISO timestamp of the last commit
    universities_{track}_{qGpa}_{qExam}    cached RecommendationResult (TTL)
    user_scores_{user_id}                  last-saved raw scores

Cached result keys are the only ones whose suffix is two integers, which is
how ``is_result_cache_key`` tells them apart during invalidation.
"""

from __future__ import annotations

import math
import re

from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack

_RESULT_SUFFIX = re.compile(r"^\d+_\d+$")


def track_prefix(track: AdmissionTrack) -> str:
    return f"universities_{track.value}_"


def catalog_key(track: AdmissionTrack) -> str:
    return f"{track_prefix(track)}all"


def band_prefix(track: AdmissionTrack) -> str:
    return f"{track_prefix(track)}grade_"


def band_key(track: AdmissionTrack, band: int) -> str:
    return f"{band_prefix(track)}{band}"


def staging_key(track: AdmissionTrack) -> str:
    return f"{track_prefix(track)}chunks"


def updated_at_key(track: AdmissionTrack) -> str:
    return f"{track_prefix(track)}updated_at"


def quantize(value: float, scale: int = 10) -> int:
    """``floor(value * scale)``, rounded to 6 places first to absorb float noise.

    >>> quantize(2.3)
    23
    """
    return math.floor(round(value * scale, 6))


def result_cache_key(
    track: AdmissionTrack,
    gpa_equivalent: float,
    exam_average: float,
    scale: int = 10,
) -> str:
    return f"{track_prefix(track)}{quantize(gpa_equivalent, scale)}_{quantize(exam_average, scale)}"


def is_result_cache_key(track: AdmissionTrack, key: str) -> bool:
    prefix = track_prefix(track)
    return key.startswith(prefix) and bool(_RESULT_SUFFIX.match(key[len(prefix):]))


def band_for(cutoff: float) -> int:
    """Integer band of a cutoff: ``floor(cutoff)``."""
    return math.floor(cutoff)


def user_scores_key(user_id: str) -> str:
    return f"user_scores_{user_id}"
