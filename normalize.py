"""Validation boundary between raw scraped data and ExternalJobListing.

Sources hand over loosely-typed dicts (whatever the page or API gave them).
Everything is checked and cleaned here, so a listing that reaches the store
always has a usable URL and title.
"""

import logging
import re
from datetime import datetime, timezone

from models import ExternalJobListing

logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3

NON_JOB_MARKERS = ("cookie", "privacy policy")

TECHNOLOGIES = [
    "javascript", "typescript", "python", "java", "c++", "c#", "ruby", "php", "go", "rust",
    "react", "angular", "vue", "node", "express", "django", "flask", "spring",
    "aws", "azure", "gcp", "docker", "kubernetes", "jenkins",
    "mongodb", "postgresql", "mysql", "redis", "elasticsearch",
    "machine learning", "ai", "data science", "devops", "cloud",
]

_EXPERIENCE_RE = re.compile(r"(\d+)[-+]?\s*(?:to\s+\d+)?\s*(?:years?|yrs?)", re.IGNORECASE)

SENIORITY_EXPERIENCE = [
    (("senior", "lead", "principal"), 5),
    (("mid", "intermediate"), 3),
    (("junior", "entry"), 1),
]
DEFAULT_EXPERIENCE = 2


class InvalidListing(ValueError):
    """Raw listing failed validation and must not be persisted."""


def clean_text(text) -> str:
    """Collapse all runs of whitespace (newlines included) into single spaces."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", str(text)).strip()


def extract_experience(title: str, description: str = "") -> int:
    """Years of experience from 'N years' / 'N+ yrs' phrases, else from seniority words."""
    text = f"{title} {description}".lower()

    match = _EXPERIENCE_RE.search(text)
    if match:
        return int(match.group(1))

    for words, years in SENIORITY_EXPERIENCE:
        if any(w in text for w in words):
            return years
    return DEFAULT_EXPERIENCE


def extract_tech_stack(title: str, description: str = "") -> frozenset[str]:
    text = f"{title} {description}".lower()
    found = set()
    for tech in TECHNOLOGIES:
        # Word boundaries keep "go" out of "google" and "ai" out of "maintain"
        if re.search(rf"(?<![\w+#]){re.escape(tech)}(?![\w+#])", text):
            found.add(tech[0].upper() + tech[1:])
    return frozenset(found) if found else frozenset({"General"})


def validate(raw: dict) -> None:
    """Raise InvalidListing if the raw dict can't become a listing."""
    url = clean_text(raw.get("url"))
    if not url or not url.startswith("http"):
        raise InvalidListing(f"invalid URL: {url!r}")

    title = clean_text(raw.get("title"))
    if len(title) < MIN_TITLE_LENGTH:
        raise InvalidListing(f"title too short: {title!r}")

    title_lower = title.lower()
    if any(marker in title_lower for marker in NON_JOB_MARKERS):
        raise InvalidListing(f"non-job content: {title!r}")


def normalize_listing(raw: dict, source_id: str, scraped_at: datetime | None = None) -> ExternalJobListing:
    """Convert one raw dict into an ExternalJobListing, or raise InvalidListing.

    Recognised keys: url, title, company, location, description, job_type,
    posted_date. Anything else is ignored.
    """
    validate(raw)

    title = clean_text(raw.get("title"))
    company = clean_text(raw.get("company"))
    description = clean_text(raw.get("description")) or f"{title} position at {company}".strip()
    posted = raw.get("posted_date") or ""
    if isinstance(posted, datetime):
        posted = posted.isoformat()

    return ExternalJobListing(
        source_id=source_id,
        external_url=clean_text(raw.get("url")),
        title=title,
        external_company=company,
        location=clean_text(raw.get("location")),
        description=description,
        experience=extract_experience(title, description),
        tech_stack=extract_tech_stack(title, description),
        scraped_at=scraped_at or datetime.now(timezone.utc),
        job_type=clean_text(raw.get("job_type")),
        posted_date=str(posted),
    )


def normalize_listings(raw_items: list[dict], source_id: str) -> tuple[list[ExternalJobListing], int]:
    """Normalize a batch from one source run.

    Returns (listings, rejected_count). Repeated URLs inside the batch are
    dropped silently; the first occurrence wins.
    """
    scraped_at = datetime.now(timezone.utc)
    listings = []
    seen_urls = set()
    rejected = 0

    for raw in raw_items:
        url = clean_text(raw.get("url"))
        if url and url in seen_urls:
            logger.debug(f"[{source_id}] Skipping duplicate listing {url}")
            continue
        try:
            listing = normalize_listing(raw, source_id, scraped_at=scraped_at)
        except InvalidListing as e:
            rejected += 1
            logger.warning(f"[{source_id}] Rejected listing: {e}")
            continue
        seen_urls.add(listing.external_url)
        listings.append(listing)

    logger.info(f"[{source_id}] Normalized {len(listings)}/{len(raw_items)} listings")
    return listings, rejected
