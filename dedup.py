"""Deduplication & persistence of external listings in the jobs store.

External listings share the `jobs` table with native recruiter postings.
The dedup key is (source_id, external_url). The lookup before insert keeps
the common case cheap; the unique index is what actually guarantees no
duplicates when two runs (cron + manual) overlap, possibly from different
processes.
"""

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone

from thefuzz import fuzz

import config as config
from models import ExternalJobListing, PersistenceError, SaveResult, StoredExternalJob

logger = logging.getLogger(__name__)

SEARCH_THRESHOLD = 80


def _connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str | None = None) -> None:
    """Initialize the SQLite database with schema. Safe to call repeatedly."""
    conn = _connect(db_path or config.DB_PATH)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id TEXT PRIMARY KEY,
                source TEXT NOT NULL DEFAULT 'recruiter',
                source_id TEXT,
                external_url TEXT,
                title TEXT,
                external_company TEXT,
                location TEXT,
                description TEXT,
                experience INTEGER,
                tech_stack TEXT DEFAULT '[]',
                job_type TEXT,
                posted_date TEXT,
                status TEXT DEFAULT 'open',
                scraped_at TEXT,
                created_at TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS ux_jobs_dedup_key
            ON jobs (source_id, external_url)
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS ix_jobs_created_at ON jobs (created_at)")
        conn.commit()
    finally:
        conn.close()


def _new_job_id() -> str:
    return f"ext_{uuid.uuid4().hex}"


def is_stored(conn: sqlite3.Connection, job: ExternalJobListing) -> bool:
    cursor = conn.execute(
        "SELECT 1 FROM jobs WHERE source_id = ? AND external_url = ? LIMIT 1",
        job.dedup_key,
    )
    return cursor.fetchone() is not None


def _insert_job(conn: sqlite3.Connection, stored: StoredExternalJob) -> None:
    job = stored.listing
    conn.execute(
        "INSERT INTO jobs (id, source, source_id, external_url, title, external_company, "
        "location, description, experience, tech_stack, job_type, posted_date, status, "
        "scraped_at, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            stored.id,
            stored.source,
            job.source_id,
            job.external_url,
            job.title,
            job.external_company,
            job.location,
            job.description,
            job.experience,
            json.dumps(sorted(job.tech_stack)),
            job.job_type,
            job.posted_date,
            stored.status,
            job.scraped_at.isoformat(),
            stored.created_at.isoformat(),
        ),
    )


def _save_one(conn: sqlite3.Connection, job: ExternalJobListing) -> bool:
    """Store one listing in its own transaction. Returns False if it was already stored."""
    try:
        if is_stored(conn, job):
            return False
        stored = StoredExternalJob(
            id=_new_job_id(),
            listing=job,
            created_at=datetime.now(timezone.utc),
        )
        _insert_job(conn, stored)
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        conn.rollback()
        logger.info(f"[{job.source_id}] Already stored by a concurrent run: {job.external_url}")
        return False
    except sqlite3.Error as e:
        conn.rollback()
        raise PersistenceError(f"Failed to save {job.source_id} {job.external_url}: {e}") from e


def save_external_jobs(jobs: list[ExternalJobListing], db_path: str | None = None) -> SaveResult:
    """Insert listings not already stored; skip the rest.

    A store error on one listing is recorded in `errors` and the batch
    continues. A unique-index violation means another run stored it first,
    so it counts as skipped. Failing to open the database at all is not
    caught.
    """
    db_path = db_path or config.DB_PATH
    init_db(db_path)
    result = SaveResult()

    conn = _connect(db_path)
    try:
        for job in jobs:
            try:
                if _save_one(conn, job):
                    result.saved += 1
                else:
                    result.skipped += 1
            except PersistenceError as e:
                logger.error(f"[{job.source_id}] {e}")
                result.errors.append(str(e))
    finally:
        conn.close()

    logger.info(f"External jobs saved: {result.saved}, skipped: {result.skipped}, "
                f"errors: {len(result.errors)}")
    return result


def _row_to_dict(row: sqlite3.Row) -> dict:
    data = dict(row)
    data["tech_stack"] = json.loads(data.get("tech_stack") or "[]")
    data["source"] = data.get("source") or "recruiter"
    return data


def _matches_search(job: dict, search: str) -> bool:
    needle = search.lower()
    for field in ("title", "external_company", "description"):
        haystack = (job.get(field) or "").lower()
        if not haystack:
            continue
        if needle in haystack or fuzz.partial_ratio(needle, haystack) >= SEARCH_THRESHOLD:
            return True
    return False


def get_jobs(
    source: str = "all",
    status: str | None = None,
    search: str | None = None,
    limit: int = 200,
    db_path: str | None = None,
) -> list[dict]:
    """Native and external postings, newest first.

    source is "all", "external" or "recruiter". search is matched against
    title, company and description, tolerating small typos.
    """
    db_path = db_path or config.DB_PATH
    init_db(db_path)

    clauses, params = [], []
    if status:
        clauses.append("status = ?")
        params.append(status)
    if source and source != "all":
        clauses.append("source = ?")
        params.append(source)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    query = f"SELECT * FROM jobs {where} ORDER BY created_at DESC"
    # Fuzzy search runs in Python, so the limit can only be applied after it
    if not search:
        query += " LIMIT ?"
        params.append(limit)

    conn = _connect(db_path)
    try:
        rows = conn.execute(query, params).fetchall()
    finally:
        conn.close()

    jobs = [_row_to_dict(row) for row in rows]
    if search:
        jobs = [job for job in jobs if _matches_search(job, search)][:limit]
    return jobs


def count_external_jobs(db_path: str | None = None) -> int:
    db_path = db_path or config.DB_PATH
    init_db(db_path)
    conn = _connect(db_path)
    try:
        (count,) = conn.execute("SELECT COUNT(*) FROM jobs WHERE source = 'external'").fetchone()
    finally:
        conn.close()
    return int(count)
