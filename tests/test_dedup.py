"""Tests for dedup.py — deduplication & persistence gate."""

import sqlite3
from unittest.mock import patch

import pytest
from freezegun import freeze_time

import dedup
from dedup import count_external_jobs, get_jobs, init_db, save_external_jobs


def _listings(make_listing, n, source_id="acme_corp"):
    return [
        make_listing(source_id=source_id, external_url=f"https://careers.acme.test/jobs/{i}")
        for i in range(n)
    ]


def _insert_native(db_path, job_id, title, created_at="2026-01-01T00:00:00+00:00"):
    conn = sqlite3.connect(db_path)
    conn.execute(
        "INSERT INTO jobs (id, source, title, external_company, status, created_at) "
        "VALUES (?, 'recruiter', ?, 'In House', 'open', ?)",
        (job_id, title, created_at),
    )
    conn.commit()
    conn.close()


# --- schema ---


def test_init_db_creates_table_and_unique_index(tmp_db):
    conn = sqlite3.connect(tmp_db)
    table = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='jobs'").fetchone()
    index = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND name='ux_jobs_dedup_key'"
    ).fetchone()
    conn.close()
    assert table is not None
    assert index is not None


def test_init_db_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)


# --- save_external_jobs ---


@pytest.mark.parametrize("n", [0, 1, 5])
def test_idempotent_across_runs(make_listing, tmp_db, n):
    """Same input twice: everything saved, then everything skipped."""
    jobs = _listings(make_listing, n)

    first = save_external_jobs(jobs, tmp_db)
    second = save_external_jobs(jobs, tmp_db)

    assert (first.saved, first.skipped, first.errors) == (n, 0, [])
    assert (second.saved, second.skipped, second.errors) == (0, n, [])
    assert count_external_jobs(tmp_db) == n


def test_same_url_different_source_both_saved(make_listing, tmp_db):
    url = "https://jobs.example.test/123"
    jobs = [
        make_listing(source_id="alpha", external_url=url),
        make_listing(source_id="beta", external_url=url),
    ]

    result = save_external_jobs(jobs, tmp_db)

    assert result.saved == 2
    assert result.skipped == 0


def test_same_key_different_content_skipped(make_listing, tmp_db):
    """Dedup ignores title/description; the existing record is left untouched."""
    original = make_listing(title="Senior Python Developer", description="Original text")
    rescraped = make_listing(title="Sr. Python Dev (Updated)", description="New text")

    result = save_external_jobs([original, rescraped], tmp_db)

    assert result.saved == 1
    assert result.skipped == 1
    stored = get_jobs(source="external", db_path=tmp_db)
    assert stored[0]["title"] == "Senior Python Developer"
    assert stored[0]["description"] == "Original text"


def test_batch_isolation(make_listing, tmp_db):
    """Store error on the 3rd of 5 listings → 4 saved, 1 error, batch not aborted."""
    jobs = _listings(make_listing, 5)
    real_insert = dedup._insert_job
    calls = []

    def flaky_insert(conn, stored):
        calls.append(stored.listing.external_url)
        if len(calls) == 3:
            raise sqlite3.OperationalError("database is locked")
        real_insert(conn, stored)

    with patch("dedup._insert_job", side_effect=flaky_insert):
        result = save_external_jobs(jobs, tmp_db)

    assert result.saved == 4
    assert result.skipped == 0
    assert len(result.errors) == 1
    assert "database is locked" in result.errors[0]
    assert "https://careers.acme.test/jobs/2" in result.errors[0]
    assert count_external_jobs(tmp_db) == 4


def test_failed_listing_saved_on_next_run(make_listing, tmp_db):
    jobs = _listings(make_listing, 3)
    with patch("dedup._insert_job", side_effect=sqlite3.OperationalError("disk I/O error")):
        failed = save_external_jobs(jobs, tmp_db)

    retried = save_external_jobs(jobs, tmp_db)

    assert failed.saved == 0
    assert len(failed.errors) == 3
    assert retried.saved == 3


def test_unique_violation_counts_as_skipped(make_listing, tmp_db):
    """A concurrent run inserting between lookup and insert is a duplicate, not an error."""
    job = make_listing()
    save_external_jobs([job], tmp_db)

    with patch("dedup.is_stored", return_value=False):
        result = save_external_jobs([job], tmp_db)

    assert result.saved == 0
    assert result.skipped == 1
    assert result.errors == []


def test_lookup_failure_isolated(make_listing, tmp_db):
    jobs = _listings(make_listing, 2)
    with patch("dedup.is_stored", side_effect=[sqlite3.DatabaseError("malformed"), False]):
        result = save_external_jobs(jobs, tmp_db)

    assert result.saved == 1
    assert len(result.errors) == 1


def test_unreachable_store_propagates(make_listing, tmp_path):
    """Not being able to open the database at all is not a per-item error."""
    bad_path = str(tmp_path / "missing_dir" / "jobs.db")
    with pytest.raises(sqlite3.OperationalError):
        save_external_jobs([make_listing()], bad_path)


@freeze_time("2026-10-17 06:30:00", tz_offset=0)
def test_stored_record_fields(make_listing, tmp_db):
    save_external_jobs([make_listing(tech_stack=frozenset({"Python", "Django"}))], tmp_db)

    row = get_jobs(source="external", db_path=tmp_db)[0]

    assert row["id"].startswith("ext_")
    assert row["status"] == "open"
    assert row["source"] == "external"
    assert row["source_id"] == "acme_corp"
    assert row["created_at"] == "2026-10-17T06:30:00+00:00"
    assert row["scraped_at"] == "2026-10-17T06:00:00+00:00"
    assert row["tech_stack"] == ["Django", "Python"]
    assert row["experience"] == 5


def test_uses_configured_db_path(make_listing):
    """Default path comes from JOBS_DB_PATH via config."""
    result = save_external_jobs([make_listing()])

    assert result.saved == 1
    assert count_external_jobs() == 1


# --- get_jobs / count_external_jobs ---


def test_get_jobs_filters_by_source(make_listing, tmp_db):
    _insert_native(tmp_db, "native_1", "Office Manager")
    save_external_jobs(_listings(make_listing, 2), tmp_db)

    assert len(get_jobs(source="all", db_path=tmp_db)) == 3
    assert len(get_jobs(source="external", db_path=tmp_db)) == 2
    native = get_jobs(source="recruiter", db_path=tmp_db)
    assert [j["id"] for j in native] == ["native_1"]
    assert count_external_jobs(tmp_db) == 2


def test_get_jobs_newest_first(make_listing, tmp_db):
    with freeze_time("2026-10-01 00:00:00", tz_offset=0):
        save_external_jobs([make_listing(external_url="https://a.test/old")], tmp_db)
    with freeze_time("2026-10-02 00:00:00", tz_offset=0):
        save_external_jobs([make_listing(external_url="https://a.test/new")], tmp_db)

    urls = [j["external_url"] for j in get_jobs(db_path=tmp_db)]

    assert urls == ["https://a.test/new", "https://a.test/old"]


def test_get_jobs_status_filter(make_listing, tmp_db):
    save_external_jobs(_listings(make_listing, 2), tmp_db)
    conn = sqlite3.connect(tmp_db)
    conn.execute("UPDATE jobs SET status = 'closed' WHERE external_url LIKE '%/0'")
    conn.commit()
    conn.close()

    assert len(get_jobs(status="open", db_path=tmp_db)) == 1
    assert len(get_jobs(status="closed", db_path=tmp_db)) == 1


def test_get_jobs_search(make_listing, tmp_db):
    save_external_jobs([
        make_listing(external_url="https://a.test/1", title="Senior Python Developer"),
        make_listing(external_url="https://a.test/2", title="Frontend Engineer",
                     description="React and TypeScript", external_company="Globex"),
    ], tmp_db)

    assert [j["title"] for j in get_jobs(search="python", db_path=tmp_db)] == ["Senior Python Developer"]
    assert [j["title"] for j in get_jobs(search="globex", db_path=tmp_db)] == ["Frontend Engineer"]
    assert get_jobs(search="kubernetes", db_path=tmp_db) == []


def test_get_jobs_limit(make_listing, tmp_db):
    save_external_jobs(_listings(make_listing, 5), tmp_db)
    assert len(get_jobs(limit=2, db_path=tmp_db)) == 2


def test_get_jobs_search_applies_limit_after_matching(make_listing, tmp_db):
    """An older match is still found when newer non-matching rows fill the limit."""
    with freeze_time("2026-10-01 00:00:00", tz_offset=0):
        save_external_jobs([make_listing(external_url="https://a.test/python",
                                         title="Senior Python Developer")], tmp_db)
    with freeze_time("2026-10-02 00:00:00", tz_offset=0):
        save_external_jobs([
            make_listing(external_url=f"https://a.test/office/{i}", title="Office Manager",
                         description="Keep the office running", tech_stack=frozenset({"General"}))
            for i in range(5)
        ], tmp_db)

    found = get_jobs(search="python", limit=2, db_path=tmp_db)

    assert [j["external_url"] for j in found] == ["https://a.test/python"]
    assert len(get_jobs(search="office", limit=2, db_path=tmp_db)) == 2
