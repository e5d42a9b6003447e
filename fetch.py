"""HTTP page fetching shared by the HTML sources."""

import logging
import random
import time

import requests
from bs4 import BeautifulSoup

import config as config
from models import FetchError

logger = logging.getLogger(__name__)

MIN_HTML_LENGTH = 100
MIN_BODY_TEXT_LENGTH = 50


def browser_headers() -> dict:
    """Browser-like request headers with a randomly picked User-Agent and language."""
    return {
        "User-Agent": random.choice(config.USER_AGENTS),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": random.choice(config.ACCEPT_LANGUAGES),
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
    }


def _is_transient(exc: requests.RequestException) -> bool:
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True
    response = getattr(exc, "response", None)
    return response is not None and response.status_code >= 500


def _describe(exc: requests.RequestException) -> str:
    response = getattr(exc, "response", None)
    if response is not None:
        return f"HTTP {response.status_code}: {response.reason}"
    return str(exc)


def get_with_retry(url: str, source_id: str, **kwargs) -> requests.Response:
    """GET with exponential backoff on connection errors, timeouts and 5xx.

    Client errors (4xx) fail immediately. Raises FetchError once the
    retries are used up.
    """
    kwargs.setdefault("timeout", config.FETCH_TIMEOUT)
    retries = max(config.FETCH_RETRIES, 0)

    for attempt in range(retries + 1):
        if attempt:
            delay = config.FETCH_RETRY_DELAY * (2 ** (attempt - 1))
            logger.info(f"[{source_id}] Retry attempt {attempt}/{retries} after {delay:.1f}s")
            time.sleep(delay)
        try:
            resp = requests.get(url, **kwargs)
            resp.raise_for_status()
            return resp
        except requests.RequestException as e:
            logger.warning(f"[{source_id}] Attempt {attempt + 1} failed: {_describe(e)}")
            if attempt == retries or not _is_transient(e):
                raise FetchError(source_id, _describe(e)) from e


def fetch_html(url: str, source_id: str) -> BeautifulSoup:
    """Fetch a careers page and return the parsed document.

    Pages that come back empty or with next to no visible text (bot walls,
    JS-only shells) are treated as failures.
    """
    logger.info(f"[{source_id}] Fetching {url}")
    resp = get_with_retry(url, source_id, headers=browser_headers(), allow_redirects=True)

    html = resp.text
    if not html or len(html) < MIN_HTML_LENGTH:
        raise FetchError(source_id, "Empty or insufficient HTML content")

    soup = BeautifulSoup(html, "html.parser")
    body = soup.find("body")
    body_text = body.get_text(strip=True) if body else ""
    if len(body_text) < MIN_BODY_TEXT_LENGTH:
        raise FetchError(source_id, "Minimal page content detected")

    logger.info(f"[{source_id}] Fetched {len(html)} bytes of HTML")
    return soup
