from dataclasses import dataclass, field
from datetime import datetime, timezone


class FetchError(Exception):
    """Raised by a source when its listings could not be fetched or parsed."""

    def __init__(self, source_id: str, message: str):
        super().__init__(message)
        self.source_id = source_id
        self.message = message


class PersistenceError(Exception):
    """Store-level failure while looking up or inserting a single listing."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExternalJobListing:
    source_id: str  # "greenhouse:datadog", "remoteok", "google", etc.
    external_url: str
    title: str = ""
    external_company: str = ""
    location: str = ""
    description: str = ""
    experience: int | None = None
    tech_stack: frozenset[str] = field(default_factory=frozenset)
    scraped_at: datetime = field(default_factory=_utcnow)
    job_type: str = ""
    posted_date: str = ""

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.source_id, self.external_url)


@dataclass
class StoredExternalJob:
    id: str
    listing: ExternalJobListing
    status: str = "open"
    source: str = "external"
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        job = self.listing
        return {
            "id": self.id,
            "source": self.source,
            "source_id": job.source_id,
            "external_url": job.external_url,
            "title": job.title,
            "external_company": job.external_company,
            "location": job.location,
            "description": job.description,
            "experience": job.experience,
            "tech_stack": sorted(job.tech_stack),
            "job_type": job.job_type,
            "posted_date": job.posted_date,
            "status": self.status,
            "scraped_at": job.scraped_at.isoformat(),
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class SourceResult:
    """Outcome of one source run. Exactly one of jobs/error is meaningful."""

    source_id: str
    jobs: list[ExternalJobListing] = field(default_factory=list)
    error: str | None = None
    rejected: int = 0
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ScrapeRunSummary:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)
    total_listings: int = 0
    rejected: int = 0
    jobs_per_source: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "errors": [{"source_id": s, "message": m} for s, m in self.errors],
            "total_listings": self.total_listings,
            "rejected": self.rejected,
            "jobs_per_source": dict(self.jobs_per_source),
        }


@dataclass
class ScrapeAllResult:
    success: bool
    jobs: list[ExternalJobListing]
    total_jobs: int
    errors: list[dict]
    summary: ScrapeRunSummary


@dataclass
class SaveResult:
    saved: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
