import logging

import config as config
from fetch import get_with_retry
from models import FetchError
from sources.base import BaseSource

logger = logging.getLogger(__name__)

API_BASE = "https://boards-api.greenhouse.io/v1/boards/{board}/jobs"


class GreenhouseSource(BaseSource):
    """Public Greenhouse job board API, one request per configured board."""

    def __init__(self, company: str, board_token: str):
        self.company = company
        self.board_token = board_token
        self.name = f"greenhouse:{board_token}"

    def collect(self) -> list[dict]:
        url = API_BASE.format(board=self.board_token)
        resp = get_with_retry(url, self.source_id, params={"content": "true"})
        try:
            data = resp.json()
        except ValueError as e:
            raise FetchError(self.source_id, f"Malformed JSON response: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
            raise FetchError(self.source_id, "Unexpected response shape: missing 'jobs' list")

        items = []
        for item in data["jobs"]:
            if not isinstance(item, dict):
                continue
            items.append({
                "title": item.get("title", ""),
                "company": self.company,
                "url": item.get("absolute_url", ""),
                "location": self._extract_location(item),
                "description": item.get("content", ""),
                "posted_date": item.get("first_published", "") or item.get("updated_at", ""),
            })

        logger.info(f"[{self.source_id}] Found {len(items)} listings")
        return items

    def _extract_location(self, item: dict) -> str:
        location = item.get("location", {})
        return location.get("name", "") if isinstance(location, dict) else ""
