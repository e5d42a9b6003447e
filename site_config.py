"""Load and check the site list in sites.json. Single source of truth for what gets scraped."""

import json
import os
import shutil
import threading

_dir = os.path.dirname(__file__)
SITES_PATH = os.path.join(_dir, "sites.json")
_EXAMPLE_PATH = os.path.join(_dir, "sites.example.json")

SELECTOR_KEYS = ("job_container", "title", "location", "link", "description")

_sites = None
_lock = threading.Lock()


class SiteConfigError(ValueError):
    """sites.json is readable JSON but describes a site that can't be scraped."""


def validate_sites(data: dict) -> dict:
    """Check every careers site entry; return data unchanged if it is usable."""
    sites = data.get("sites", [])
    if not isinstance(sites, list):
        raise SiteConfigError("'sites' must be a list")

    for i, site in enumerate(sites):
        label = site.get("company") or f"entry {i}"
        if not site.get("company"):
            raise SiteConfigError(f"Site {label} has no company name")
        if not str(site.get("url", "")).startswith(("http://", "https://")):
            raise SiteConfigError(f"Site {label} needs an absolute http(s) url")
        unknown = set(site.get("selectors", {})) - set(SELECTOR_KEYS)
        if unknown:
            raise SiteConfigError(f"Site {label} has unknown selector keys: {sorted(unknown)}")

    boards = data.get("greenhouse_boards", {})
    if not isinstance(boards, dict):
        raise SiteConfigError("'greenhouse_boards' must map company name to board token")
    return data


def get_sites(path: str = SITES_PATH) -> dict:
    """Return the cached site list, reading and validating sites.json on first use.

    A missing sites.json is created from sites.example.json.
    """
    global _sites
    with _lock:
        if _sites is None:
            if not os.path.exists(path) and os.path.exists(_EXAMPLE_PATH):
                shutil.copy2(_EXAMPLE_PATH, path)
            with open(path) as f:
                _sites = validate_sites(json.load(f))
        return _sites


def reload_sites():
    """Drop the cached site list; the next get_sites() re-reads sites.json."""
    global _sites
    with _lock:
        _sites = None
