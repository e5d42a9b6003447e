"""Shared test fixtures for the job aggregator test suite."""

import json
import os
from datetime import datetime, timezone

import pytest

from models import ExternalJobListing, FetchError
from sources.base import BaseSource

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


def _load_sample_sites():
    with open(os.path.join(FIXTURES_DIR, "sample_sites.json")) as f:
        return json.load(f)


@pytest.fixture(autouse=True)
def mock_sites(monkeypatch, tmp_path):
    """Autouse fixture that injects a known site profile for every test.

    Resets site_config._sites so get_sites() returns the test data, points
    the store at a temp file, turns off retry sleeps, and calls
    config.reload() to refresh all config globals.
    """
    import config
    import site_config

    sites = _load_sample_sites()
    monkeypatch.setattr(site_config, "_sites", sites)
    monkeypatch.setenv("JOBS_DB_PATH", str(tmp_path / "jobs.db"))
    monkeypatch.setenv("FETCH_RETRY_DELAY", "0")
    monkeypatch.delenv("CRON_SECRET", raising=False)
    config.reload()
    yield sites


@pytest.fixture
def make_listing():
    """Factory fixture for creating ExternalJobListing instances with defaults."""

    def _make(**overrides):
        defaults = {
            "source_id": "acme_corp",
            "external_url": "https://careers.acme.test/jobs/1",
            "title": "Senior Python Developer",
            "external_company": "Acme Corp",
            "location": "Bengaluru, India",
            "description": "Build backend services with Python. 5+ years required.",
            "experience": 5,
            "tech_stack": frozenset({"Python"}),
            "scraped_at": datetime(2026, 10, 17, 6, 0, 0, tzinfo=timezone.utc),
        }
        defaults.update(overrides)
        return ExternalJobListing(**defaults)

    return _make


class StubSource(BaseSource):
    """Source returning canned raw listings, or raising, without network access."""

    def __init__(self, name, items=None, error=None, hang=None):
        self.name = name
        self.items = items or []
        self.error = error
        self.hang = hang

    def collect(self):
        if self.hang is not None:
            self.hang.wait()
        if self.error is not None:
            raise self.error
        return list(self.items)


def raw_items(source_name, count):
    return [
        {
            "title": f"Software Engineer {i}",
            "company": source_name.title(),
            "url": f"https://{source_name}.test/jobs/{i}",
            "location": "Remote",
        }
        for i in range(count)
    ]


@pytest.fixture
def stub_source():
    """Factory for StubSource; pass count= for generated listings."""

    def _make(name, count=0, items=None, error=None, hang=None):
        if items is None:
            items = raw_items(name, count)
        return StubSource(name, items=items, error=error, hang=hang)

    return _make


@pytest.fixture
def failing_source(stub_source):
    def _make(name, message="HTTP 503: Service Unavailable"):
        return stub_source(name, error=FetchError(name, message))

    return _make


@pytest.fixture
def tmp_db(tmp_path):
    """Create a temporary SQLite jobs database."""
    from dedup import init_db

    db_path = str(tmp_path / "test_jobs.db")
    init_db(db_path)
    return db_path


@pytest.fixture
def fixture_path():
    """Return the path to the fixtures directory."""
    return FIXTURES_DIR


def load_fixture(filename):
    """Load a fixture file by name."""
    path = os.path.join(FIXTURES_DIR, filename)
    with open(path) as f:
        if filename.endswith(".json"):
            return json.load(f)
        return f.read()
