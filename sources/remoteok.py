import logging

from fetch import get_with_retry
from models import FetchError
from sources.base import BaseSource

logger = logging.getLogger(__name__)

API_URL = "https://remoteok.com/api"


class RemoteOKSource(BaseSource):
    name = "remoteok"

    def collect(self) -> list[dict]:
        resp = get_with_retry(
            API_URL,
            self.source_id,
            headers={"User-Agent": "JobAggregator/1.0"},
        )
        try:
            data = resp.json()
        except ValueError as e:
            raise FetchError(self.source_id, f"Malformed JSON response: {e}") from e

        if not isinstance(data, list):
            raise FetchError(self.source_id, "Unexpected response shape: expected a list")

        # First element is metadata/legal notice, skip it
        listings = data[1:]

        items = []
        for item in listings:
            if not isinstance(item, dict):
                continue
            # Tags feed tech-stack detection through the description text
            tags = " ".join(str(t) for t in item.get("tags") or [])
            items.append({
                "title": item.get("position", ""),
                "company": item.get("company", ""),
                "url": item.get("url", ""),
                "location": item.get("location") or "Worldwide",
                "description": f"{item.get('description', '')} {tags}".strip(),
                "job_type": "Remote",
                "posted_date": item.get("date", ""),
            })

        return items
