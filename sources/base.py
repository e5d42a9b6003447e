import logging
import time
from abc import ABC, abstractmethod

from models import ExternalJobListing, FetchError, SourceResult
from normalize import normalize_listings

logger = logging.getLogger(__name__)


class BaseSource(ABC):
    """Abstract base class for all external job sources.

    Subclasses implement collect(), which returns raw listing dicts with the
    keys normalize.normalize_listing() understands. The base class owns
    validation and error containment.
    """

    name: str = "base"

    @property
    def source_id(self) -> str:
        """Stable identifier of the origin site; half of the dedup key."""
        return self.name

    @abstractmethod
    def collect(self) -> list[dict]:
        """Fetch raw listings from this source. May raise anything."""
        ...

    def fetch_listings(self) -> tuple[list[ExternalJobListing], int]:
        """Collect and normalize. Returns (listings, rejected) or raises FetchError."""
        try:
            raw = self.collect()
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(self.source_id, f"{type(e).__name__}: {e}") from e
        return normalize_listings(raw, self.source_id)

    def safe_collect(self) -> SourceResult:
        """Fetch with error handling so one source failure doesn't kill the run."""
        start = time.monotonic()
        try:
            jobs, rejected = self.fetch_listings()
        except FetchError as e:
            logger.error(f"[{self.source_id}] Failed to collect: {e.message}")
            return SourceResult(
                source_id=self.source_id,
                error=e.message,
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        except Exception as e:
            # normalize_listings itself blew up
            logger.error(f"[{self.source_id}] Failed to collect: {e}", exc_info=True)
            return SourceResult(
                source_id=self.source_id,
                error=str(e) or type(e).__name__,
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        logger.info(f"[{self.source_id}] Collected {len(jobs)} listings")
        return SourceResult(
            source_id=self.source_id,
            jobs=jobs,
            rejected=rejected,
            duration_ms=int((time.monotonic() - start) * 1000),
        )
