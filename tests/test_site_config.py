"""Tests for site_config.py — sites.json loading and caching."""

import json
import threading

import pytest

import site_config

ACME = {"company": "Acme Corp", "url": "https://careers.acme.test/jobs"}


def _write_sites(path, sites):
    path.write_text(json.dumps({"sites": sites, "greenhouse_boards": {}}))


@pytest.fixture
def fresh_cache(monkeypatch):
    monkeypatch.setattr(site_config, "_sites", None)


def test_loads_from_file(tmp_path, fresh_cache):
    sites_file = tmp_path / "sites.json"
    _write_sites(sites_file, [ACME])

    result = site_config.get_sites(str(sites_file))

    assert result["sites"][0]["company"] == "Acme Corp"
    assert result["greenhouse_boards"] == {}


def test_cached_until_reload(tmp_path, fresh_cache):
    """Edits on disk are only picked up after reload_sites()."""
    sites_file = tmp_path / "sites.json"
    _write_sites(sites_file, [ACME])
    first = site_config.get_sites(str(sites_file))

    _write_sites(sites_file, [ACME, {"company": "Globex", "url": "https://jobs.globex.test"}])
    assert site_config.get_sites(str(sites_file)) is first

    site_config.reload_sites()
    assert len(site_config.get_sites(str(sites_file))["sites"]) == 2


def test_copies_example_if_missing(tmp_path, monkeypatch, fresh_cache):
    example_file = tmp_path / "sites.example.json"
    _write_sites(example_file, [ACME])
    monkeypatch.setattr(site_config, "_EXAMPLE_PATH", str(example_file))
    sites_file = tmp_path / "sites.json"

    result = site_config.get_sites(str(sites_file))

    assert sites_file.exists()
    assert result["sites"] == [ACME]


def test_shipped_example_is_valid():
    with open(site_config._EXAMPLE_PATH) as f:
        data = json.load(f)

    assert data["sites"]
    site_config.validate_sites(data)


def test_concurrent_first_load(tmp_path, fresh_cache):
    sites_file = tmp_path / "sites.json"
    _write_sites(sites_file, [ACME])
    loaded, errors = [], []

    def reader():
        try:
            loaded.append(site_config.get_sites(str(sites_file)))
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=reader) for _ in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert all(result is loaded[0] for result in loaded)


def test_invalid_json_raises(tmp_path, fresh_cache):
    bad_file = tmp_path / "sites.json"
    bad_file.write_text("not json at all {{{")

    with pytest.raises(json.JSONDecodeError):
        site_config.get_sites(str(bad_file))


@pytest.mark.parametrize("site,message", [
    ({"url": "https://careers.acme.test/jobs"}, "no company name"),
    ({"company": "Acme Corp", "url": "careers.acme.test/jobs"}, "absolute http"),
    ({"company": "Acme Corp", "url": "https://careers.acme.test/jobs",
      "selectors": {"job_card": ".card"}}, "unknown selector keys"),
])
def test_unusable_site_rejected(tmp_path, fresh_cache, site, message):
    sites_file = tmp_path / "sites.json"
    _write_sites(sites_file, [ACME, site])

    with pytest.raises(site_config.SiteConfigError, match=message):
        site_config.get_sites(str(sites_file))


def test_greenhouse_boards_must_be_mapping():
    with pytest.raises(site_config.SiteConfigError, match="greenhouse_boards"):
        site_config.validate_sites({"sites": [], "greenhouse_boards": ["datadog"]})


def test_validate_sites_accepts_fixture_profile(fixture_path):
    with open(f"{fixture_path}/sample_sites.json") as f:
        data = json.load(f)
    assert site_config.validate_sites(data) is data
