"""
Catalog store: the committed catalog per track, its grade-band index, the
chunked-upload staging buffer, the scored result cache and saved student
scores, all on top of an injected ``KeyValueStore``.

Commit protocol
---------------
Chunks land in ``universities_{track}_chunks`` via ``stage_chunk()``, keyed
by chunk index, and are invisible to readers. ``finalize()`` merges the staged
chunks in index order and hands them to ``put_catalog()``, which:

  1. sorts by primary cutoff ascending, then competition rate ascending,
  2. rewrites every band key and deletes bands that no longer have rows,
  3. drops cached result sets for the track,
  4. stamps ``universities_{track}_updated_at``,
  5. writes ``universities_{track}_all`` last.

A failed or abandoned upload never touches the committed catalog. Run the
commit inside one ``get_connection()`` block to make the whole sequence
atomic on SQLite.

Result cache
------------
Keyed by ``floor(value * 10)`` of both profile scalars. Entries expire after
``ttl_seconds``; concurrent writers simply overwrite each other.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from admission_forecaster.catalog import keys
from admission_forecaster.config import AppConfig
from admission_forecaster.db.kv_store import KeyValueStore
from admission_forecaster.models.catalog import CatalogEntry
from admission_forecaster.models.grades import SavedScores
from admission_forecaster.models.recommendation import CatalogStatus, RecommendationResult
from admission_forecaster.taxonomy.admission_taxonomy import AdmissionTrack
from admission_forecaster.utils.time_utils import utcnow_iso

logger = logging.getLogger(__name__)


def sort_catalog(entries: Iterable[CatalogEntry]) -> list[CatalogEntry]:
    """Stable sort by (primary cutoff, competition rate), both ascending."""
    return sorted(entries, key=lambda e: (e.primary_cutoff, e.competition_rate))


class CatalogStore:
    """Catalog persistence and caching for both admission tracks.

    Args:
        kv:                 Backing key-value store.
        cache_ttl_seconds:  Lifetime of cached result sets.
        quantization_scale: Multiplier applied before flooring profile values
                            into cache keys.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        cache_ttl_seconds: int = 3600,
        quantization_scale: int = 10,
    ) -> None:
        self.kv = kv
        self.cache_ttl_seconds = cache_ttl_seconds
        self.quantization_scale = quantization_scale

    @classmethod
    def from_config(cls, kv: KeyValueStore, config: AppConfig) -> "CatalogStore":
        return cls(
            kv,
            cache_ttl_seconds=config.cache.ttl_seconds,
            quantization_scale=config.cache.quantization_scale,
        )

    # ── Committed catalog ─────────────────────────────────────────────────────

    def get_catalog(self, track: AdmissionTrack) -> list[CatalogEntry]:
        """Return the committed catalog for ``track`` (empty if none)."""
        return _load_entries(self.kv.get(keys.catalog_key(track)))

    def put_catalog(self, track: AdmissionTrack, entries: Sequence[CatalogEntry]) -> int:
        """Replace the committed catalog for ``track``.

        Idempotent: the same input always produces the same stored state.

        Returns:
            Number of entries committed.

        Raises:
            ValueError: If an entry belongs to the other track.
        """
        wrong = [e for e in entries if e.admission_track != track]
        if wrong:
            raise ValueError(
                f"{len(wrong)} entr(ies) are not {track.value} rows, "
                f"e.g. {wrong[0].university} {wrong[0].department}."
            )

        ordered = sort_catalog(entries)
        bands: dict[int, list[CatalogEntry]] = defaultdict(list)
        for e in ordered:
            if e.has_cutoff:
                bands[keys.band_for(e.primary_cutoff)].append(e)

        # Everything derived from the catalog is written before the catalog
        # key itself; a failure before that point leaves the old catalog live.
        written = set()
        for band, rows in bands.items():
            key = keys.band_key(track, band)
            self.kv.set(key, _dump_entries(rows))
            written.add(key)

        stale = [k for k in self.kv.scan_prefix(keys.band_prefix(track)) if k not in written]
        for key in stale:
            self.kv.delete(key)

        self.invalidate_results(track)
        self.kv.set(keys.updated_at_key(track), utcnow_iso())
        self.kv.set(keys.catalog_key(track), _dump_entries(ordered))

        logger.info(
            "Committed %d %s entries across %d band(s) (%d stale band(s) removed).",
            len(ordered), track.value, len(bands), len(stale),
        )
        return len(ordered)

    def find_entry(
        self,
        track: AdmissionTrack,
        university: str,
        department: str,
    ) -> Optional[CatalogEntry]:
        """Return the newest committed row for (university, department), or ``None``."""
        matches = [
            e for e in self.get_catalog(track)
            if e.university == university and e.department == department
        ]
        if not matches:
            return None
        return max(matches, key=lambda e: e.year)

    # ── Staging ───────────────────────────────────────────────────────────────

    def stage_chunk(
        self,
        track: AdmissionTrack,
        entries: Sequence[CatalogEntry],
        chunk_index: int,
    ) -> int:
        """Stage ``entries`` as chunk ``chunk_index``; return the staged total.

        The buffer maps chunk index → rows, so re-sending a chunk replaces
        its earlier copy instead of duplicating it.
        """
        staged: dict[str, list] = self.kv.get(keys.staging_key(track)) or {}
        replaced = str(chunk_index) in staged
        staged[str(chunk_index)] = _dump_entries(entries)
        self.kv.set(keys.staging_key(track), staged)

        total = sum(len(rows) for rows in staged.values())
        logger.debug(
            "Staged chunk %d (%d %s row(s)%s); %d pending.",
            chunk_index, len(entries), track.value, ", replaced" if replaced else "", total,
        )
        return total

    def staged_count(self, track: AdmissionTrack) -> int:
        staged = self.kv.get(keys.staging_key(track)) or {}
        return sum(len(rows) for rows in staged.values())

    def _staged_entries(self, track: AdmissionTrack) -> list[CatalogEntry]:
        staged = self.kv.get(keys.staging_key(track)) or {}
        rows: list = []
        for index in sorted(staged, key=int):
            rows.extend(staged[index])
        return _load_entries(rows)

    def finalize(self, track: AdmissionTrack) -> int:
        """Commit the staged rows and clear the staging buffer.

        With nothing staged the committed catalog is left as is and ``0`` is
        returned.
        """
        staged = self._staged_entries(track)
        if not staged:
            logger.warning("Finalize called for %s with nothing staged; catalog unchanged.", track.value)
            return 0

        total = self.put_catalog(track, staged)
        self.kv.delete(keys.staging_key(track))
        return total

    def discard_staged(self, track: AdmissionTrack) -> bool:
        """Drop the staging buffer; return True if one existed."""
        return self.kv.delete(keys.staging_key(track))

    # ── Band index ────────────────────────────────────────────────────────────

    def get_band(self, track: AdmissionTrack, band: int) -> list[CatalogEntry]:
        return _load_entries(self.kv.get(keys.band_key(track, band)))

    def get_band_window(
        self,
        track: AdmissionTrack,
        value: float,
        radius: int,
    ) -> list[CatalogEntry]:
        """Rows from bands ``floor(value) - radius`` through ``floor(value) + radius``.

        Bands are read in ascending order, so the result keeps the catalog's
        sort order.
        """
        centre = keys.band_for(value)
        rows: list[CatalogEntry] = []
        for band in range(centre - radius, centre + radius + 1):
            rows.extend(self.get_band(track, band))
        return rows

    # ── Result cache ──────────────────────────────────────────────────────────

    def get_cached_result(
        self,
        track: AdmissionTrack,
        gpa_equivalent: float,
        exam_average: float,
    ) -> Optional[RecommendationResult]:
        raw = self.kv.get(self._result_key(track, gpa_equivalent, exam_average))
        if raw is None:
            return None
        return RecommendationResult.model_validate(raw).model_copy(update={"cached": True})

    def put_cached_result(self, result: RecommendationResult) -> None:
        key = self._result_key(
            result.track, result.profile.gpa_equivalent, result.profile.exam_average
        )
        self.kv.set(key, result.model_dump(mode="json"), ttl_seconds=self.cache_ttl_seconds)

    def invalidate_results(self, track: AdmissionTrack) -> int:
        """Delete every cached result set for ``track``; return how many."""
        doomed = [
            k for k in self.kv.scan_prefix(keys.track_prefix(track))
            if keys.is_result_cache_key(track, k)
        ]
        for key in doomed:
            self.kv.delete(key)
        if doomed:
            logger.debug("Invalidated %d cached %s result set(s).", len(doomed), track.value)
        return len(doomed)

    def _result_key(self, track: AdmissionTrack, gpa: float, exam: float) -> str:
        return keys.result_cache_key(track, gpa, exam, self.quantization_scale)

    # ── Status ────────────────────────────────────────────────────────────────

    def status(self) -> CatalogStatus:
        """Committed entry counts per track and the latest commit time."""
        susi = self.kv.get(keys.catalog_key(AdmissionTrack.SUSI)) or []
        jungsi = self.kv.get(keys.catalog_key(AdmissionTrack.JUNGSI)) or []
        stamps = [
            s for s in (
                self.kv.get(keys.updated_at_key(AdmissionTrack.SUSI)),
                self.kv.get(keys.updated_at_key(AdmissionTrack.JUNGSI)),
            ) if s
        ]
        return CatalogStatus(
            susi_count=len(susi),
            jungsi_count=len(jungsi),
            last_updated=max(stamps) if stamps else None,
        )

    # ── Saved scores ──────────────────────────────────────────────────────────

    def get_scores(self, user_id: str) -> Optional[SavedScores]:
        raw = self.kv.get(keys.user_scores_key(user_id))
        return SavedScores.model_validate(raw) if raw is not None else None

    def put_scores(self, scores: SavedScores) -> None:
        self.kv.set(keys.user_scores_key(scores.user_id), scores.model_dump(mode="json"))


# ── Helpers ───────────────────────────────────────────────────────────────────

def _dump_entries(entries: Iterable[CatalogEntry]) -> list[dict]:
    return [e.model_dump(mode="json") for e in entries]


def _load_entries(raw: Optional[list]) -> list[CatalogEntry]:
    if not raw:
        return []
    return [CatalogEntry.model_validate(r) for r in raw]
