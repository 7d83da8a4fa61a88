"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local secrets and env overrides (gitignored)
  4. Environment variables        — ``ADMISSION_FORECASTER_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The scoring constants below are heuristic values kept for behavioural
compatibility with the historical calculator. They are configuration, not
validated domain truth; override them per track under ``[scoring.susi]`` /
``[scoring.jungsi]``.

The admin upload token is a secret and is only read from the environment
(``ADMISSION_FORECASTER_ADMIN_TOKEN``), never from the committed TOML.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from admission_forecaster.taxonomy.admission_taxonomy import ExamSubject

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite database connection settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/admission_forecaster.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class DataConfig(BaseModel):
    """Filesystem paths for uploads and report output."""

    model_config = ConfigDict(frozen=True)

    raw_dir: str = "data/raw"
    output_dir: str = "data/outputs/recommendations"


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/admission_forecaster.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class TrackScoringConfig(BaseModel):
    """Heuristic probability constants for one admission track.

    ``step_bounds[i]`` pairs with ``step_probabilities[i]``: the first bound
    with ``diff <= bound`` selects the base probability. Diffs above the last
    bound fall through to ``fallback_probability``.
    """

    model_config = ConfigDict(frozen=True)

    step_bounds: list[float] = [-1.5, -1.0, -0.5, 0.0, 0.5, 1.0]
    step_probabilities: list[float] = [90, 80, 65, 50, 35, 20]
    fallback_probability: float = 10
    competition_field: Literal["competition_rate", "real_competition_rate"] = "competition_rate"
    competition_normalizer: float = 10.0
    competition_dampening: float = 0.3
    recruitment_bonus: float = 5.0
    recruitment_threshold: int = 10
    floor: float = 5
    ceiling: float = 95
    neutral_default: int = 30

    @model_validator(mode="after")
    def validate_steps(self) -> "TrackScoringConfig":
        if len(self.step_bounds) != len(self.step_probabilities):
            raise ValueError(
                f"step_bounds ({len(self.step_bounds)}) and step_probabilities "
                f"({len(self.step_probabilities)}) must have the same length."
            )
        if any(b2 <= b1 for b1, b2 in zip(self.step_bounds, self.step_bounds[1:])):
            raise ValueError(f"step_bounds must be strictly ascending, got {self.step_bounds}.")
        probabilities = [*self.step_probabilities, self.fallback_probability]
        if any(p2 > p1 for p1, p2 in zip(probabilities, probabilities[1:])):
            raise ValueError(
                "step_probabilities followed by fallback_probability must never "
                f"increase, got {probabilities}."
            )
        if not 0 <= self.floor <= self.ceiling <= 100:
            raise ValueError(
                f"Clamp must satisfy 0 <= floor <= ceiling <= 100, "
                f"got [{self.floor}, {self.ceiling}]."
            )
        if self.competition_normalizer <= 0:
            raise ValueError("competition_normalizer must be positive.")
        if not 0 <= self.competition_dampening < 1:
            raise ValueError("competition_dampening must be in [0, 1).")
        if not 0 <= self.neutral_default <= 100:
            raise ValueError("neutral_default must be in [0, 100].")
        return self


_JUNGSI_DEFAULTS: dict[str, Any] = {
    "step_probabilities": [85, 75, 60, 45, 30, 15],
    "fallback_probability": 8,
    "competition_field": "real_competition_rate",
    "competition_normalizer": 15.0,
    "competition_dampening": 0.4,
    "recruitment_bonus": 0.0,
    "floor": 3,
    "ceiling": 92,
}


class ScoringConfig(BaseModel):
    """Per-track scoring constants and the exam subjects averaged."""

    model_config = ConfigDict(frozen=True)

    susi: TrackScoringConfig = TrackScoringConfig()
    jungsi: TrackScoringConfig = TrackScoringConfig(**_JUNGSI_DEFAULTS)
    exam_subjects: list[str] = ["korean", "math", "english", "inquiry1", "inquiry2"]

    @field_validator("exam_subjects")
    @classmethod
    def validate_exam_subjects(cls, v: list[str]) -> list[str]:
        valid = {s.value for s in ExamSubject}
        unknown = [s for s in v if s not in valid]
        if unknown:
            raise ValueError(f"Unknown exam subjects {unknown}; valid: {sorted(valid)}.")
        if not v:
            raise ValueError("exam_subjects must not be empty.")
        return v


class RankingConfig(BaseModel):
    """Result-set sizes and ranking policy switches."""

    model_config = ConfigDict(frozen=True)

    rolling_limit: int = 20
    sub_group_limit: int = 5
    fill_underfilled_groups: bool = True
    history_limit: int = 3
    latest_year_only: bool = False
    band_radius: int = 0             # 0 → score the full catalog

    @field_validator("rolling_limit", "sub_group_limit", "history_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Ranking limits must be positive, got {v}.")
        return v

    @field_validator("band_radius")
    @classmethod
    def validate_radius(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"band_radius must be >= 0, got {v}.")
        return v


class CacheConfig(BaseModel):
    """Scored result-set cache."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    ttl_seconds: int = 3600
    quantization_scale: int = 10     # floor(value * scale) in cache keys


class IngestionConfig(BaseModel):
    """Bulk catalog upload settings."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int = 500
    default_year: Optional[int] = None   # None → rows without a year are rejected
    max_reported_errors: int = 10


class AdminConfig(BaseModel):
    """Admin capability settings. ``token`` comes from the environment only."""

    model_config = ConfigDict(frozen=True)

    token: Optional[str] = None


class AppConfig(BaseModel):
    """Complete application configuration — the single source of truth.

    Every CLI command and the service layer receive an ``AppConfig``
    instance. It is constructed by ``load_config()`` which merges TOML + .env.
    """

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    data: DataConfig = DataConfig()
    logging: LoggingConfig = LoggingConfig()
    scoring: ScoringConfig = ScoringConfig()
    ranking: RankingConfig = RankingConfig()
    cache: CacheConfig = CacheConfig()
    ingestion: IngestionConfig = IngestionConfig()
    admin: AdminConfig = AdminConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    # 1. Load .env file (silently skip if missing)
    load_dotenv(dotenv_path=root / ".env", override=False)

    # 2. Load TOML config
    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    # 3. Apply ADMISSION_FORECASTER_* environment variable overrides
    raw = _apply_env_overrides(raw)

    # 4. Build and validate AppConfig
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply ADMISSION_FORECASTER_* env vars to the raw config dict.

    Supported overrides:
      ADMISSION_FORECASTER_DB_PATH      → raw["database"]["db_path"]
      ADMISSION_FORECASTER_LOG_LEVEL    → raw["logging"]["level"]
      ADMISSION_FORECASTER_DEBUG        → raw["debug"]
      ADMISSION_FORECASTER_ADMIN_TOKEN  → raw["admin"]["token"]
    """
    if db_path := os.environ.get("ADMISSION_FORECASTER_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("ADMISSION_FORECASTER_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("ADMISSION_FORECASTER_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    if token := os.environ.get("ADMISSION_FORECASTER_ADMIN_TOKEN"):
        raw.setdefault("admin", {})["token"] = token

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    project = raw.pop("project", {})

    scoring_raw = dict(raw.get("scoring", {}))
    susi_raw = scoring_raw.pop("susi", {})
    jungsi_raw = scoring_raw.pop("jungsi", {})

    scoring = ScoringConfig(
        susi=TrackScoringConfig(**susi_raw),
        jungsi=TrackScoringConfig(**{**_JUNGSI_DEFAULTS, **jungsi_raw}),
        **scoring_raw,
    )

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        data=DataConfig(**raw.get("data", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        scoring=scoring,
        ranking=RankingConfig(**raw.get("ranking", {})),
        cache=CacheConfig(**raw.get("cache", {})),
        ingestion=IngestionConfig(**raw.get("ingestion", {})),
        admin=AdminConfig(**raw.get("admin", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
