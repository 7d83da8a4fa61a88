"""
Admission Forecaster — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Open the SQLite store and build the ``AdmissionService``.
  4. Execute the action.
  5. Report ``[OK]`` / ``[ERROR]`` to the terminal; failures exit with code 1.

Install and run::

    pip install -e .
    admission-forecaster --help
    admission-forecaster init-db
    admission-forecaster upload-catalog --track susi --file data/raw/susi.csv
    admission-forecaster recommend --track jungsi --exam 2.4
    admission-forecaster save-scores --user alice --file scores.json
    admission-forecaster recommend --track susi --user alice
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

app = typer.Typer(
    name="admission-forecaster",
    help="University admission probability calculator and recommender.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from pydantic import ValidationError

    from admission_forecaster.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except (ValidationError, ValueError) as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    from admission_forecaster.utils.logging import configure_logging
    configure_logging(config.logging)


@contextmanager
def _open_service(config, db_path: Optional[str] = None) -> Iterator:
    """Yield an ``AdmissionService`` over the configured SQLite store."""
    from admission_forecaster.catalog.store import CatalogStore
    from admission_forecaster.db.connection import get_connection
    from admission_forecaster.db.repositories.kv_repo import SqliteKeyValueStore
    from admission_forecaster.service.api import AdmissionService

    with get_connection(
        db_path or config.database.db_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
        ensure_schema=True,
    ) as conn:
        store = CatalogStore.from_config(SqliteKeyValueStore(conn), config)
        yield AdmissionService(store, config)


def _parse_track_or_exit(value: str):
    from admission_forecaster.taxonomy.admission_taxonomy import parse_track

    try:
        return parse_track(value)
    except ValueError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)


def _parse_group_or_exit(value: Optional[str]):
    from admission_forecaster.taxonomy.admission_taxonomy import parse_sub_group

    if value is None:
        return None
    group = parse_sub_group(value)
    if group is None:
        typer.echo(f"[ERROR] Unknown group '{value}'. Use 가/나/다 or A/B/C.", err=True)
        raise typer.Exit(code=1)
    return group


def _load_scores_file(path: Path):
    """Read a scores JSON file into (grade entries, exam scores).

    Either section may be omitted (``None``). ``grades`` is a list of entry
    objects or the quick form ``{subject: {term: grade}}``; ``exam`` is a
    list of score objects or ``{subject: grade}``.
    """
    from admission_forecaster.models.grades import ExamSubjectScore, RawGradeEntry
    from admission_forecaster.recommendations.aggregator import entries_from_subject_terms

    payload = json.loads(path.read_text(encoding="utf-8"))

    grades = payload.get("grades")
    if isinstance(grades, dict):
        grades = entries_from_subject_terms(grades)
    elif grades is not None:
        grades = [RawGradeEntry.model_validate(g) for g in grades]

    exam = payload.get("exam")
    if isinstance(exam, dict):
        exam = [ExamSubjectScore(subject=s, grade=int(g or 0)) for s, g in exam.items()]
    elif exam is not None:
        exam = [ExamSubjectScore.model_validate(e) for e in exam]

    return grades, exam


def _echo_result(result) -> None:
    from admission_forecaster.taxonomy.admission_taxonomy import SUB_GROUP_LABELS

    profile = result.profile
    typer.echo(
        f"  Profile: GPA {profile.gpa_equivalent:.2f} | exam {profile.exam_average:.2f}"
        + ("  (cached)" if result.cached else "")
    )
    if result.is_empty:
        typer.echo(f"  {result.message or 'No recommendations.'}")
        return

    current_group = object()
    rank = 0
    for group, sc in result.all_candidates():
        if group != current_group:
            current_group, rank = group, 0
            if group is not None:
                typer.echo(f"  [{SUB_GROUP_LABELS[group]}]")
        rank += 1
        flag = " *" if sc.is_fallback else ""
        years = ",".join(str(h.year) for h in sc.recent_history)
        typer.echo(
            f"  {rank:>3}. {sc.entry.university} {sc.entry.department} "
            f"({sc.entry.year}) cut {sc.entry.primary_cutoff:.2f} → "
            f"{sc.probability:>2}% {sc.tier.value} {sc.tier_label}{flag}"
            + (f"  history: {years}" if years else "")
        )
    if any(sc.is_fallback for _, sc in result.all_candidates()):
        typer.echo("  * filled from other windows (not enough matches in this window)")


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("init-db")
def init_db(
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Create the SQLite database and apply the schema (idempotent)."""
    from admission_forecaster.db.connection import get_connection
    from admission_forecaster.db.schema import ALL_TABLE_NAMES

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    target_path = db_path or config.database.db_path
    typer.echo(f"Initializing database at: {target_path}")

    with get_connection(
        target_path,
        wal_mode=config.database.wal_mode,
        busy_timeout_ms=config.database.busy_timeout_ms,
        ensure_schema=True,
    ):
        pass

    typer.echo(f"  Tables: {len(ALL_TABLE_NAMES)} created/verified.")
    typer.echo("[OK] Database ready.")


@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
    show_full: bool = typer.Option(False, "--full", help="Print the full config as JSON."),
) -> None:
    """Validate the configuration and print the key values."""
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Database path:    {config.database.db_path}")
    typer.echo(f"  Susi clamp:       [{config.scoring.susi.floor}, {config.scoring.susi.ceiling}]")
    typer.echo(f"  Jungsi clamp:     [{config.scoring.jungsi.floor}, {config.scoring.jungsi.ceiling}]")
    typer.echo(f"  Exam subjects:    {', '.join(config.scoring.exam_subjects)}")
    typer.echo(f"  Susi limit:       {config.ranking.rolling_limit}")
    typer.echo(f"  Per-window limit: {config.ranking.sub_group_limit}")
    typer.echo(f"  Cache TTL:        {config.cache.ttl_seconds}s (enabled={config.cache.enabled})")
    typer.echo(f"  Admin token set:  {config.admin.token is not None}")
    typer.echo(f"  Log level:        {config.logging.level}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        dumped = config.model_dump(mode="json")
        if dumped["admin"]["token"]:
            dumped["admin"]["token"] = "***"
        typer.echo(json.dumps(dumped, indent=2, ensure_ascii=False))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("upload-catalog")
def upload_catalog(
    track: str = typer.Option(..., "--track", help="susi or jungsi."),
    file: Path = typer.Option(..., "--file", help="Catalog CSV file."),
    token: Optional[str] = typer.Option(
        None, "--token", help="Admin token (default: ADMISSION_FORECASTER_ADMIN_TOKEN)."
    ),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Rows per chunk."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate only; store nothing."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Upload a catalog CSV in chunks and commit it on the last chunk.

    A rejected chunk aborts the upload; the previously committed catalog
    stays in place and the partial staging buffer is discarded.
    """
    from admission_forecaster.db.kv_store import StoreUnavailableError
    from admission_forecaster.ingestion.catalog_csv import chunk_rows, read_catalog_csv
    from admission_forecaster.ingestion.normalizer import IngestionFormatError, normalize_rows
    from admission_forecaster.service.api import CatalogUploadRequest, IngestionSummary
    from admission_forecaster.service.auth import AuthFailureError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    target = _parse_track_or_exit(track)

    try:
        rows = read_catalog_csv(file)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if not rows:
        typer.echo("[ERROR] CSV has no data rows.", err=True)
        raise typer.Exit(code=1)

    if dry_run:
        try:
            entries = normalize_rows(
                rows, target,
                default_year=config.ingestion.default_year,
                max_reported=config.ingestion.max_reported_errors,
            )
        except IngestionFormatError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"[OK] Dry run: {len(entries)} {target.value} row(s) valid. Nothing stored.")
        return

    size = chunk_size or config.ingestion.chunk_size
    chunks = list(chunk_rows(rows, size))
    auth = token or config.admin.token

    # Auth and format errors exit the block normally so the staging discard
    # is committed; a store error must propagate out of it so the whole
    # transaction rolls back.
    error: Optional[str] = None
    summary = None
    try:
        with _open_service(config, db_path) as service:
            try:
                for index, chunk in enumerate(chunks):
                    outcome = service.upload_catalog_chunk(
                        CatalogUploadRequest(
                            auth_token=auth,
                            rows=chunk,
                            track=target,
                            is_final_chunk=index == len(chunks) - 1,
                            chunk_index=index,
                        )
                    )
                    if isinstance(outcome, IngestionSummary):
                        summary = outcome
                    else:
                        typer.echo(f"  Chunk {index + 1}/{len(chunks)}: {outcome.staged_count} staged")
            except AuthFailureError as exc:
                error = str(exc)
            except IngestionFormatError as exc:
                service.store.discard_staged(target)
                error = f"Upload aborted: {exc}"
    except StoreUnavailableError as exc:
        error = f"Upload aborted, previous catalog kept: {exc}"

    if error is not None:
        typer.echo(f"[ERROR] {error}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        f"[OK] Committed {summary.total_entries} {target.value} "
        f"entries from {len(chunks)} chunk(s)."
    )


@app.command("recommend")
def recommend(
    track: str = typer.Option(..., "--track", help="susi or jungsi."),
    gpa: float = typer.Option(0.0, "--gpa", help="School-record GPA equivalent (1–9)."),
    exam: float = typer.Option(0.0, "--exam", help="Suneung average grade (1–9)."),
    user: Optional[str] = typer.Option(None, "--user", help="Use this user's saved scores."),
    group: Optional[str] = typer.Option(None, "--group", help="Jungsi window: 가/나/다 or A/B/C."),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", help="Also write CSV + JSON reports here."
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Rank universities for a grade profile."""
    from admission_forecaster.models.recommendation import RecommendationQuery
    from admission_forecaster.recommendations.reporter import (
        write_recommendation_csv,
        write_recommendation_json,
    )
    from admission_forecaster.service.auth import AuthFailureError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    target = _parse_track_or_exit(track)
    sub_group = _parse_group_or_exit(group)

    with _open_service(config, db_path) as service:
        if user is not None:
            try:
                result = service.recommend_for_user(user, target, sub_group)
            except AuthFailureError as exc:
                typer.echo(f"[ERROR] {exc}", err=True)
                raise typer.Exit(code=1)
        else:
            result = service.recommend(
                RecommendationQuery(
                    gpa_equivalent=gpa, exam_average=exam, track=target, sub_group=sub_group
                )
            )

    typer.echo(f"Recommendations ({target.value}):")
    _echo_result(result)

    if output_dir is not None and not result.is_empty:
        csv_path = write_recommendation_csv(result, output_dir)
        json_path = write_recommendation_json(result, output_dir)
        typer.echo(f"  Reports: {csv_path}, {json_path}")

    if result.is_empty:
        typer.echo("[OK] No recommendations.")
    else:
        typer.echo(f"[OK] {len(result.all_candidates())} recommendation(s).")


@app.command("detail")
def detail(
    track: str = typer.Option(..., "--track", help="susi or jungsi."),
    university: str = typer.Option(..., "--university", help="Exact university name."),
    department: str = typer.Option(..., "--department", help="Exact department name."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Show the newest catalog row and recent history for one department."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)
    target = _parse_track_or_exit(track)

    with _open_service(config, db_path) as service:
        found = service.university_detail(target, university, department)

    if found is None:
        typer.echo(f"[ERROR] No {target.value} data for {university} {department}.", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"{university} {department} ({target.value})")
    for row in found.history:
        typer.echo(
            f"  {row.year}: 50% cut {row.cutoff_at_50pct:.2f} | 70% cut {row.cutoff_at_70pct:.2f} | "
            f"rate {row.competition_rate:.2f} | seats {row.recruitment_count}"
        )
    typer.echo("[OK]")


@app.command("status")
def status(
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Show committed catalog sizes."""
    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_service(config, db_path) as service:
        st = service.status()

    typer.echo(f"  Susi entries:   {st.susi_count}")
    typer.echo(f"  Jungsi entries: {st.jungsi_count}")
    typer.echo(f"  Total:          {st.total}")
    typer.echo(f"  Last updated:   {st.last_updated or 'never'}")
    typer.echo("[OK]")


@app.command("save-scores")
def save_scores(
    user: str = typer.Option(..., "--user", help="User id."),
    file: Path = typer.Option(..., "--file", help="JSON file with 'grades' and/or 'exam'."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Save a user's raw scores (sections not in the file are kept)."""
    from pydantic import ValidationError

    from admission_forecaster.db.kv_store import StoreUnavailableError
    from admission_forecaster.service.auth import AuthFailureError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        grades, exam = _load_scores_file(file)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except (json.JSONDecodeError, ValidationError, ValueError) as exc:
        typer.echo(f"[ERROR] Invalid scores file: {exc}", err=True)
        raise typer.Exit(code=1)

    with _open_service(config, db_path) as service:
        try:
            saved = service.save_scores(user, grades=grades, exam=exam)
        except (AuthFailureError, StoreUnavailableError) as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)

    typer.echo(
        f"[OK] Saved {len(saved.grades)} grade entr(ies) and "
        f"{len(saved.exam)} exam score(s) for {saved.user_id} at {saved.updated_at}."
    )


@app.command("show-scores")
def show_scores(
    user: str = typer.Option(..., "--user", help="User id."),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Override DB path from config."),
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to TOML config file."),
) -> None:
    """Show a user's saved scores, derived profile and strongest subjects."""
    from admission_forecaster.recommendations.aggregator import (
        strongest_exam_subjects,
        strongest_subjects,
        subject_averages,
    )
    from admission_forecaster.service.auth import AuthFailureError

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    with _open_service(config, db_path) as service:
        try:
            scores = service.get_scores(user)
        except AuthFailureError as exc:
            typer.echo(f"[ERROR] {exc}", err=True)
            raise typer.Exit(code=1)
        profile = service.profile_from_scores(scores) if scores else None

    if scores is None or profile is None:
        typer.echo(f"[ERROR] No saved scores for '{user}'.", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Scores for {scores.user_id} (updated {scores.updated_at or 'unknown'})")
    typer.echo(f"  GPA equivalent: {profile.gpa_equivalent:.2f}")
    typer.echo(f"  Exam average:   {profile.exam_average:.2f}")
    for subject, avg in subject_averages(scores.grades).items():
        typer.echo(f"    {subject:<12} {avg:.2f}")
    best = strongest_subjects(scores.grades)
    if best:
        typer.echo("  Strongest subjects: " + ", ".join(f"{s} ({a:.2f})" for s, a in best))
    best_exam = strongest_exam_subjects(scores.exam)
    if best_exam:
        typer.echo("  Strongest exam subjects: " + ", ".join(f"{s.value} ({g})" for s, g in best_exam))
    typer.echo("[OK]")


if __name__ == "__main__":
    app()
