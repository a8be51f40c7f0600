import os
import sqlite3
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, TypeVar

from urbanscope.core.logger import get_logger
from urbanscope.schemas.score import CountryInfo, ScoreDetail, ScoreEvaluation

DB_PATH = Path("data/db/urbanscope.db")
logger = get_logger("urbanscope.score_store")
_fallback_active: Path | None = None

T = TypeVar("T")

_TABLES = ("country", "score", "score_evaluation")


def _default_db_path() -> Path:
    custom_path = os.getenv("URBANSCOPE_DB_PATH", "").strip()
    if custom_path:
        return Path(custom_path)
    return DB_PATH


def _fallback_db_path() -> Path:
    return Path(tempfile.gettempdir()) / "urbanscope" / "urbanscope.db"


def _get_active_db_path() -> Path:
    if _fallback_active is not None:
        return _fallback_active
    return _default_db_path()


def _set_fallback_db_path() -> Path:
    global _fallback_active
    _fallback_active = _fallback_db_path()
    return _fallback_active


def _is_disk_io_error(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return "disk i/o error" in message or "unable to open database" in message


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _create_tables(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS country (
                id TEXT PRIMARY KEY,
                cn_name TEXT,
                en_name TEXT,
                deleted INTEGER NOT NULL DEFAULT 0
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS score (
                id TEXT PRIMARY KEY,
                country_id TEXT NOT NULL,
                year INTEGER NOT NULL,
                total_score REAL NOT NULL,
                urbanization_process_dimension_score REAL NOT NULL,
                human_dynamics_dimension_score REAL NOT NULL,
                material_dynamics_dimension_score REAL NOT NULL,
                spatial_dynamics_dimension_score REAL NOT NULL,
                deleted INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL,
                UNIQUE (country_id, year)
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS score_evaluation (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                min_score REAL NOT NULL,
                max_score REAL NOT NULL,
                evaluation_text TEXT,
                UNIQUE (min_score, max_score)
            )
            """
        )
        conn.commit()


def init_db() -> None:
    db_path = _get_active_db_path()
    try:
        _create_tables(db_path)
    except sqlite3.OperationalError as exc:
        if not _is_disk_io_error(exc):
            raise
        fallback = _set_fallback_db_path()
        logger.warning("评分库路径不可写，已回退到临时目录: %s", fallback)
        _create_tables(fallback)


def _run(operation: Callable[[sqlite3.Connection], T]) -> T:
    init_db()
    db_path = _get_active_db_path()
    try:
        with sqlite3.connect(db_path) as conn:
            conn.row_factory = sqlite3.Row
            return operation(conn)
    except sqlite3.OperationalError as exc:
        if not _is_disk_io_error(exc):
            raise
        fallback = _set_fallback_db_path()
        logger.warning("评分库访问失败，已回退到临时目录: %s", fallback)
        _create_tables(fallback)
        with sqlite3.connect(fallback) as conn:
            conn.row_factory = sqlite3.Row
            return operation(conn)


def upsert_country(country_id: str, cn_name: str | None, en_name: str | None) -> str:
    def _op(conn: sqlite3.Connection) -> str:
        conn.execute(
            """
            INSERT INTO country (id, cn_name, en_name, deleted)
            VALUES (?, ?, ?, 0)
            ON CONFLICT(id) DO UPDATE SET
                cn_name = excluded.cn_name,
                en_name = excluded.en_name,
                deleted = 0
            """,
            (country_id, cn_name, en_name),
        )
        conn.commit()
        return country_id

    return _run(_op)


def upsert_score(
    country_id: str,
    year: int,
    total_score: float,
    urbanization_process: float,
    human_dynamics: float,
    material_dynamics: float,
    spatial_dynamics: float,
) -> str:
    """Insert or update the score of ``country_id`` for ``year``; returns the score id."""

    def _op(conn: sqlite3.Connection) -> str:
        row = conn.execute(
            "SELECT id FROM score WHERE country_id = ? AND year = ?",
            (country_id, year),
        ).fetchone()
        score_id = row["id"] if row else str(uuid.uuid4())
        conn.execute(
            """
            INSERT INTO score (
                id, country_id, year, total_score,
                urbanization_process_dimension_score, human_dynamics_dimension_score,
                material_dynamics_dimension_score, spatial_dynamics_dimension_score,
                deleted, updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
            ON CONFLICT(country_id, year) DO UPDATE SET
                total_score = excluded.total_score,
                urbanization_process_dimension_score = excluded.urbanization_process_dimension_score,
                human_dynamics_dimension_score = excluded.human_dynamics_dimension_score,
                material_dynamics_dimension_score = excluded.material_dynamics_dimension_score,
                spatial_dynamics_dimension_score = excluded.spatial_dynamics_dimension_score,
                deleted = 0,
                updated_at = excluded.updated_at
            """,
            (
                score_id,
                country_id,
                year,
                total_score,
                urbanization_process,
                human_dynamics,
                material_dynamics,
                spatial_dynamics,
                _now(),
            ),
        )
        conn.commit()
        return score_id

    return _run(_op)


def upsert_evaluation(min_score: float, max_score: float, evaluation_text: str | None) -> None:
    def _op(conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            INSERT INTO score_evaluation (min_score, max_score, evaluation_text)
            VALUES (?, ?, ?)
            ON CONFLICT(min_score, max_score) DO UPDATE SET
                evaluation_text = excluded.evaluation_text
            """,
            (min_score, max_score, evaluation_text),
        )
        conn.commit()

    _run(_op)


def soft_delete_score(country_id: str, year: int) -> bool:
    def _op(conn: sqlite3.Connection) -> bool:
        cur = conn.execute(
            "UPDATE score SET deleted = 1, updated_at = ? WHERE country_id = ? AND year = ? AND deleted = 0",
            (_now(), country_id, year),
        )
        conn.commit()
        return cur.rowcount > 0

    return _run(_op)


def get_score(country_id: str, year: int) -> ScoreDetail | None:
    select_sql = """
        SELECT s.id, s.country_id, s.year, s.total_score,
               s.urbanization_process_dimension_score, s.human_dynamics_dimension_score,
               s.material_dynamics_dimension_score, s.spatial_dynamics_dimension_score,
               s.updated_at, c.cn_name, c.en_name
        FROM score s
        JOIN country c ON c.id = s.country_id
        WHERE s.country_id = ? AND s.year = ? AND s.deleted = 0 AND c.deleted = 0
        """

    row = _run(lambda conn: conn.execute(select_sql, (country_id, year)).fetchone())
    if row is None:
        return None

    return ScoreDetail(
        id=row["id"],
        country_id=row["country_id"],
        year=row["year"],
        total_score=row["total_score"],
        urbanization_process_dimension_score=row["urbanization_process_dimension_score"],
        human_dynamics_dimension_score=row["human_dynamics_dimension_score"],
        material_dynamics_dimension_score=row["material_dynamics_dimension_score"],
        spatial_dynamics_dimension_score=row["spatial_dynamics_dimension_score"],
        updated_at=row["updated_at"],
        country=CountryInfo(id=row["country_id"], cn_name=row["cn_name"], en_name=row["en_name"]),
    )


def list_evaluations() -> list[ScoreEvaluation]:
    rows = _run(
        lambda conn: conn.execute(
            "SELECT id, min_score, max_score, evaluation_text FROM score_evaluation ORDER BY min_score ASC"
        ).fetchall()
    )
    return [
        ScoreEvaluation(
            id=row["id"],
            min_score=row["min_score"],
            max_score=row["max_score"],
            evaluation_text=row["evaluation_text"],
        )
        for row in rows
    ]


def count_rows(table: str) -> int:
    if table not in _TABLES:
        raise ValueError(f"unknown table: {table}")
    row = _run(lambda conn: conn.execute(f"SELECT COUNT(*) AS n FROM {table}").fetchone())
    return int(row["n"])
