import logging
from email.utils import parsedate_to_datetime

import defusedxml.ElementTree as ET
from bs4 import BeautifulSoup

import config as config
from fetch import get_with_retry
from models import FetchError
from sources.base import BaseSource

logger = logging.getLogger(__name__)


class WeWorkRemotelySource(BaseSource):
    name = "weworkremotely"

    def __init__(self, feed_urls: list[str] | None = None):
        self.feed_urls = list(feed_urls if feed_urls is not None else config.WWR_FEEDS)

    def collect(self) -> list[dict]:
        items = []
        for feed_url in self.feed_urls:
            items.extend(self._fetch_feed(feed_url))
        return items

    def _fetch_feed(self, feed_url: str) -> list[dict]:
        resp = get_with_retry(feed_url, self.source_id)

        try:
            root = ET.fromstring(resp.content)
        except ET.ParseError as e:
            raise FetchError(self.source_id, f"Malformed RSS feed {feed_url}: {e}") from e

        channel = root.find("channel")
        if channel is None:
            raise FetchError(self.source_id, f"RSS feed {feed_url} has no channel")

        return [self._parse_item(item) for item in channel.findall("item")]

    def _parse_item(self, item) -> dict:
        raw_title = item.findtext("title", "")

        # Title format is "Company: Job Title"
        if ":" in raw_title:
            company, title = raw_title.split(":", 1)
        else:
            company, title = "", raw_title

        description_html = item.findtext("description", "")
        description = ""
        if description_html:
            soup = BeautifulSoup(description_html, "html.parser")
            description = soup.get_text(separator=" ", strip=True)

        return {
            "title": title.strip(),
            "company": company.strip(),
            "url": item.findtext("link", ""),
            "location": item.findtext("region", ""),
            "description": description,
            "job_type": item.findtext("type", ""),
            "posted_date": self._parse_date(item.findtext("pubDate", "")),
        }

    def _parse_date(self, date_str: str) -> str:
        if not date_str:
            return ""
        try:
            return parsedate_to_datetime(date_str).isoformat()
        except (ValueError, TypeError):
            return ""
