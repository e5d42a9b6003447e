"""Scheduled and on-demand entry points for the scrape-and-save pipeline.

Both return (http_status, payload) so they can be served over HTTP or called
from the CLI. Only these functions catch everything; below them failures
travel as data.
"""

import hmac
import logging
import threading
import time

import config as config
from aggregator import scrape_all_sites
from dedup import save_external_jobs
from models import SaveResult, ScrapeAllResult

logger = logging.getLogger(__name__)

# Budget kept back from MAX_DURATION for the persistence step
PERSIST_RESERVE = 30


def is_authorized(auth_header: str | None, secret: str | None) -> bool:
    """Bearer-token check for the scheduled trigger. No secret configured means open."""
    if not secret:
        return True
    expected = f"Bearer {secret}"
    return hmac.compare_digest((auth_header or "").encode(), expected.encode())


def _run_timeout() -> float:
    budget = max(config.MAX_DURATION - PERSIST_RESERVE, 1)
    return min(config.RUN_TIMEOUT, budget)


def run_pipeline(sources=None, thread_ids: set[int] | None = None) -> tuple[ScrapeAllResult, SaveResult | None]:
    """Aggregate, then persist. The save step is skipped when nothing was found."""
    scrape_result = scrape_all_sites(sources=sources, run_timeout=_run_timeout(), thread_ids=thread_ids)
    if not scrape_result.success:
        return scrape_result, None

    logger.info(f"Saving {scrape_result.total_jobs} jobs...")
    save_result = save_external_jobs(scrape_result.jobs)
    return scrape_result, save_result


def _combined_summary(scrape_result: ScrapeAllResult, save_result: SaveResult) -> dict:
    return {
        **scrape_result.summary.to_dict(),
        "total_scraped": scrape_result.total_jobs,
        "saved": save_result.saved,
        "skipped": save_result.skipped,
    }


def scheduled_trigger(auth_header: str | None, secret: str | None = None, sources=None) -> tuple[int, dict]:
    secret = config.CRON_SECRET if secret is None else secret
    if not is_authorized(auth_header, secret):
        logger.warning("Unauthorized scheduled trigger attempt")
        return 401, {"error": "Unauthorized"}

    try:
        logger.info("Scheduled job scraping started")
        scrape_result, save_result = run_pipeline(sources)

        if save_result is None:
            logger.info("No jobs found during scheduled scrape")
            return 200, {
                "success": False,
                "message": "No jobs found",
                "summary": scrape_result.summary.to_dict(),
            }

        logger.info(f"Scheduled scraping complete: {save_result.saved} saved, "
                    f"{save_result.skipped} skipped")
        return 200, {
            "success": True,
            "message": "Scheduled scraping completed",
            "summary": _combined_summary(scrape_result, save_result),
        }
    except Exception as e:
        logger.error(f"Scheduled scrape failed: {e}", exc_info=True)
        return 500, {"success": False, "error": str(e)}


class _RunThreadFilter(logging.Filter):
    """Passes only records emitted by the threads working on one run.

    Starts with the calling thread; the aggregator adds each worker thread
    as it picks up a source.
    """

    def __init__(self):
        super().__init__()
        self.thread_ids = {threading.get_ident()}

    def filter(self, record):
        return record.thread in self.thread_ids


class _LevelCounter(logging.Handler):
    """Counts log records per level while a run is in progress."""

    def __init__(self):
        super().__init__(level=logging.INFO)
        self.counts = {"info": 0, "warning": 0, "error": 0}
        self.run_filter = _RunThreadFilter()
        self.addFilter(self.run_filter)

    def emit(self, record):
        if record.levelno >= logging.ERROR:
            self.counts["error"] += 1
        elif record.levelno >= logging.WARNING:
            self.counts["warning"] += 1
        else:
            self.counts["info"] += 1


def on_demand_trigger(sources=None) -> tuple[int, dict]:
    """Operator-initiated run. 200 whether or not anything was found; 500 only on a crash."""
    root_logger = logging.getLogger()
    counter = _LevelCounter()
    root_logger.addHandler(counter)
    start = time.monotonic()

    try:
        logger.info("Manual scraping triggered")
        scrape_result, save_result = run_pipeline(sources, thread_ids=counter.run_filter.thread_ids)

        if save_result is None:
            return 200, {
                "success": False,
                "message": "Scraping completed but no jobs found",
                "summary": scrape_result.summary.to_dict(),
                "errors": scrape_result.errors,
                "log_summary": dict(counter.counts),
            }

        summary = _combined_summary(scrape_result, save_result)
        summary["save_errors"] = list(save_result.errors)
        summary["duration_seconds"] = round(time.monotonic() - start, 2)
        return 200, {
            "success": True,
            "message": f"Successfully scraped and saved {save_result.saved} jobs",
            "summary": summary,
            "errors": scrape_result.errors,
            "log_summary": dict(counter.counts),
        }
    except Exception as e:
        logger.error(f"Scraping pipeline failed: {e}", exc_info=True)
        return 500, {"success": False, "message": "Scraping failed", "error": str(e)}
    finally:
        root_logger.removeHandler(counter)
