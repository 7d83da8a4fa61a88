"""
Service layer: the operations a front end (or the CLI) calls.

    upload_catalog_chunk   admin; normalize → stage → finalize on last chunk
    recommend              read-through cache over the ranker
    status                 catalog sizes per track
    save_scores/get_scores per-user raw score storage
    university_detail      newest row plus recent history for one department

Failure handling
----------------
- ``AuthFailureError`` and ``IngestionFormatError`` propagate; a rejected
  chunk stages nothing.
- ``StoreUnavailableError`` never escapes ``recommend``/``status``/
  ``university_detail``: the caller gets an empty result carrying a
  user-facing ``message`` instead. Upload and score writes propagate it so
  the caller knows the write did not happen.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from admission_forecaster.catalog.store import CatalogStore
from admission_forecaster.config import AppConfig
from admission_forecaster.db.kv_store import StoreUnavailableError
from admission_forecaster.ingestion.normalizer import normalize_rows
from admission_forecaster.models.catalog import CatalogEntry
from admission_forecaster.models.grades import (
    ExamSubjectScore,
    RawGradeEntry,
    SavedScores,
    StudentProfile,
)
from admission_forecaster.models.recommendation import (
    CatalogStatus,
    RecommendationQuery,
    RecommendationResult,
)
from admission_forecaster.recommendations.aggregator import build_student_profile
from admission_forecaster.recommendations.history import group_history
from admission_forecaster.recommendations.ranker import RankingOptions, rank
from admission_forecaster.service.auth import AdminTokenAuthorizer, require_user
from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack, SubGroup
from admission_forecaster.utils.logging import log_duration
from admission_forecaster.utils.time_utils import utcnow_iso

logger = logging.getLogger(__name__)

EMPTY_PROFILE_MESSAGE = "Enter your grades to see recommendations."
NO_CATALOG_MESSAGE = (
    "No university data has been uploaded yet. Ask an administrator to upload the catalog."
)
NO_MATCH_MESSAGE = "No universities with cutoff data matched your grades."
STORE_UNAVAILABLE_MESSAGE = (
    "University data is temporarily unavailable. Please try again in a few minutes."
)


class CatalogUploadRequest(BaseModel):
    """One chunk of a bulk catalog upload."""

    model_config = ConfigDict(frozen=True)

    auth_token: Optional[str] = None
    rows: list[dict[str, Any]] = Field(default_factory=list)
    track: AdmissionTrack
    is_final_chunk: bool = False
    chunk_index: int = Field(default=0, ge=0)


class ChunkUploadResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk_index: int
    staged_count: int


class IngestionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    track: AdmissionTrack
    total_entries: int


class UniversityDetail(BaseModel):
    """Newest catalog row for a department and its recent history (newest first)."""

    model_config = ConfigDict(frozen=True)

    entry: CatalogEntry
    history: list[CatalogEntry] = Field(default_factory=list)


class AdmissionService:
    """Entry point for every user- and admin-facing operation.

    Args:
        store:      Catalog store over the configured key-value backend.
        config:     Application configuration; defaults when ``None``.
        authorizer: Admin token check; built from ``config.admin.token``
                    when ``None``.
    """

    def __init__(
        self,
        store: CatalogStore,
        config: Optional[AppConfig] = None,
        authorizer: Optional[AdminTokenAuthorizer] = None,
    ) -> None:
        self.store = store
        self.config = config or AppConfig()
        self.authorizer = authorizer or AdminTokenAuthorizer(self.config.admin.token)
        self.options = RankingOptions.from_config(self.config.ranking)

    # ── Catalog upload ────────────────────────────────────────────────────────

    def upload_catalog_chunk(
        self,
        request: CatalogUploadRequest,
    ) -> ChunkUploadResult | IngestionSummary:
        """Validate and stage one chunk; commit everything on the final chunk.

        Raises:
            AuthFailureError:      Missing or wrong admin token.
            IngestionFormatError:  Any row in the chunk is malformed.
            StoreUnavailableError: The store could not be written.
        """
        self.authorizer.require(request.auth_token)

        entries = normalize_rows(
            request.rows,
            request.track,
            default_year=self.config.ingestion.default_year,
            max_reported=self.config.ingestion.max_reported_errors,
        )
        staged = self.store.stage_chunk(request.track, entries, request.chunk_index)
        logger.info(
            "Chunk %d accepted for %s: %d row(s), %d staged.",
            request.chunk_index, request.track.value, len(entries), staged,
        )

        if not request.is_final_chunk:
            return ChunkUploadResult(chunk_index=request.chunk_index, staged_count=staged)

        with log_duration(logger, "Catalog commit", logging.INFO, track=request.track.value):
            total = self.store.finalize(request.track)
        logger.info("Catalog upload complete for %s: %d entries.", request.track.value, total)
        return IngestionSummary(track=request.track, total_entries=total)

    def discard_upload(self, track: AdmissionTrack, auth_token: Optional[str]) -> bool:
        """Abandon a partial upload; the committed catalog is untouched."""
        self.authorizer.require(auth_token)
        return self.store.discard_staged(track)

    # ── Recommendations ───────────────────────────────────────────────────────

    def recommend(self, query: RecommendationQuery) -> RecommendationResult:
        """Ranked recommendations for one profile and track. Never raises on
        store failure; the result carries a ``message`` instead."""
        profile = query.profile
        if profile.value_for(query.track) <= 0:
            return RecommendationResult(
                track=query.track, profile=profile, message=EMPTY_PROFILE_MESSAGE
            )

        try:
            result = self._ranked(query.track, profile)
        except StoreUnavailableError as exc:
            logger.warning("Store unavailable during recommend: %s", exc)
            return RecommendationResult(
                track=query.track, profile=profile, message=STORE_UNAVAILABLE_MESSAGE
            )

        if query.sub_group is not None and query.track == AdmissionTrack.JUNGSI:
            result = _only_group(result, query.sub_group)
        if result.is_empty and result.message is None:
            result = result.model_copy(update={"message": NO_MATCH_MESSAGE})
        return result

    def recommend_for_user(
        self,
        user_id: str,
        track: AdmissionTrack,
        sub_group: Optional[SubGroup] = None,
    ) -> RecommendationResult:
        """Recommend from a user's saved scores."""
        scores = self.get_scores(user_id)
        profile = self.profile_from_scores(scores) if scores else StudentProfile()
        return self.recommend(
            RecommendationQuery(
                gpa_equivalent=profile.gpa_equivalent,
                exam_average=profile.exam_average,
                track=track,
                sub_group=sub_group,
            )
        )

    def _ranked(self, track: AdmissionTrack, profile: StudentProfile) -> RecommendationResult:
        use_cache = self.config.cache.enabled
        if use_cache:
            cached = self.store.get_cached_result(
                track, profile.gpa_equivalent, profile.exam_average
            )
            if cached is not None:
                logger.debug("Result cache hit for %s.", track.value)
                return cached

        catalog = self.store.get_catalog(track)
        if not catalog:
            return RecommendationResult(track=track, profile=profile, message=NO_CATALOG_MESSAGE)

        candidates = None
        radius = self.config.ranking.band_radius
        if radius > 0:
            candidates = self.store.get_band_window(track, profile.value_for(track), radius)

        with log_duration(logger, "Ranking", track=track.value, catalog_size=len(catalog)):
            result = rank(
                catalog,
                profile,
                track,
                options=self.options,
                scoring=self.config.scoring,
                candidates=candidates,
            )

        if use_cache:
            try:
                self.store.put_cached_result(result)
            except StoreUnavailableError as exc:
                logger.warning("Could not cache %s result: %s", track.value, exc)
        return result

    # ── Status & detail ───────────────────────────────────────────────────────

    def status(self) -> CatalogStatus:
        try:
            return self.store.status()
        except StoreUnavailableError as exc:
            logger.warning("Store unavailable during status: %s", exc)
            return CatalogStatus()

    def university_detail(
        self,
        track: AdmissionTrack,
        university: str,
        department: str,
    ) -> Optional[UniversityDetail]:
        """Newest row and history for one department, or ``None`` if unknown."""
        try:
            catalog = self.store.get_catalog(track)
        except StoreUnavailableError as exc:
            logger.warning("Store unavailable during detail lookup: %s", exc)
            return None

        history = group_history(
            catalog, university, department, limit=self.config.ranking.history_limit
        )
        if not history:
            return None
        return UniversityDetail(entry=history[0], history=history)

    # ── Saved scores ──────────────────────────────────────────────────────────

    def save_scores(
        self,
        user_id: str,
        grades: Optional[Sequence[RawGradeEntry]] = None,
        exam: Optional[Sequence[ExamSubjectScore]] = None,
    ) -> SavedScores:
        """Merge the given sections into the user's record and stamp it.

        Sections passed as ``None`` keep their stored value.

        Raises:
            AuthFailureError: Blank ``user_id``.
        """
        uid = require_user(user_id)
        existing = self.store.get_scores(uid) or SavedScores(user_id=uid)

        update: dict[str, Any] = {"updated_at": utcnow_iso()}
        if grades is not None:
            update["grades"] = list(grades)
        if exam is not None:
            update["exam"] = list(exam)

        saved = existing.model_copy(update=update)
        self.store.put_scores(saved)
        logger.info("Saved scores for user %s.", uid)
        return saved

    def get_scores(self, user_id: str) -> Optional[SavedScores]:
        return self.store.get_scores(require_user(user_id))

    def profile_from_scores(self, scores: SavedScores) -> StudentProfile:
        return build_student_profile(
            scores.grades, scores.exam, self.config.scoring.exam_subjects
        )


def _only_group(result: RecommendationResult, group: SubGroup) -> RecommendationResult:
    """Restrict a jungsi result to one window's own candidates."""
    own = [c for c in result.groups.get(group, []) if not c.is_fallback]
    return result.model_copy(update={"groups": {group: own}})
