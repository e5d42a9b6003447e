import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from fetch import fetch_html
from models import FetchError
from sources.base import BaseSource

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 500

# Tried in order when the site's own container selector matches nothing
GENERIC_SELECTORS = [
    '[role="listitem"]',
    '.job-card, [class*="job-card"]',
    '.position-card, [class*="position"]',
    "article",
    '[data-testid*="job"]',
    '.base-card, [class*="card"]',
]

GENERIC_TITLE = 'h3, h2, .title, [class*="title"]'
GENERIC_LOCATION = '.location, [class*="location"], [class*="Location"]'
GENERIC_DESCRIPTION = '.description, [class*="description"], p'


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


class CareersPageSource(BaseSource):
    """One company careers page, scraped with CSS selectors from sites.json.

    Site entry keys: company, url, and optionally selectors with any of
    job_container, title, location, link, description.
    """

    def __init__(self, site: dict):
        self.company = site["company"]
        self.url = site["url"]
        self.selectors = site.get("selectors") or {}
        self.name = slugify(self.company)

    def collect(self) -> list[dict]:
        soup = fetch_html(self.url, self.source_id)
        items = self.parse(soup)
        if not items:
            raise FetchError(self.source_id, "No jobs found on careers page")
        return items

    def parse(self, soup: BeautifulSoup) -> list[dict]:
        cards = self._find_cards(soup)
        if not cards:
            logger.error(f"[{self.source_id}] No job elements found with any selector")
            return []

        items = []
        for index, card in enumerate(cards):
            try:
                item = self._parse_card(card)
            except Exception as e:
                logger.warning(f"[{self.source_id}] Error parsing job element {index}: {e}")
                continue
            if item:
                items.append(item)

        logger.info(f"[{self.source_id}] Parsed {len(items)} of {len(cards)} job elements")
        return items

    def _find_cards(self, soup: BeautifulSoup) -> list:
        configured = self.selectors.get("job_container")
        if configured:
            cards = soup.select(configured)
            if cards:
                return cards
            logger.warning(f"[{self.source_id}] Configured selector found no jobs, trying generic selectors")

        for selector in GENERIC_SELECTORS:
            cards = soup.select(selector)
            if cards:
                logger.info(f"[{self.source_id}] Found {len(cards)} elements with: {selector}")
                return cards
        return []

    def _select_text(self, card, key: str, fallback: str) -> str:
        configured = self.selectors.get(key)
        for selector in filter(None, (configured, fallback)):
            el = card.select_one(selector)
            if el:
                text = el.get_text(" ", strip=True)
                if text:
                    return text
        return ""

    def _parse_card(self, card) -> dict | None:
        title = self._select_text(card, "title", GENERIC_TITLE)
        location = self._select_text(card, "location", GENERIC_LOCATION) or "Not specified"

        link = ""
        for selector in filter(None, (self.selectors.get("link"), "a")):
            el = card.select_one(selector)
            if el and el.get("href"):
                link = el["href"]
                break
        # The card itself may be the anchor
        if not link and card.name == "a":
            link = card.get("href", "")

        if not title or not link:
            return None

        if not link.startswith("http"):
            link = urljoin(self.url, link)

        description = self._select_text(card, "description", GENERIC_DESCRIPTION)
        if len(description) > MAX_DESCRIPTION_LENGTH:
            description = description[:MAX_DESCRIPTION_LENGTH] + "..."

        return {
            "title": title,
            "company": self.company,
            "location": location,
            "url": link,
            "description": description,
        }
