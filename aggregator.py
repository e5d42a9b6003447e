"""Run every source in parallel and merge the results.

The join is "settle all": each source gets its own thread, a failing or slow
source is recorded and the rest carry on. Two deadlines apply:

  - adapter_timeout, measured from when a source actually started running
  - run_timeout, measured from the start of the whole run

Anything still running past either deadline is abandoned and counted as
failed. Worker threads are daemons, so an abandoned source can never keep
the process alive after the run has returned.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, wait

import config as config
from models import ScrapeAllResult, ScrapeRunSummary, SourceResult
from sources.base import BaseSource

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.5


def scrape_all_sites(
    sources: list[BaseSource] | None = None,
    adapter_timeout: float | None = None,
    run_timeout: float | None = None,
    max_workers: int | None = None,
    thread_ids: set[int] | None = None,
) -> ScrapeAllResult:
    """Scrape all sources concurrently and return the combined result.

    If thread_ids is given, the ident of every worker thread that starts a
    source is added to it, so callers can tell this run's log records apart.
    """
    if sources is None:
        from sources.registry import build_sources

        sources = build_sources()
    adapter_timeout = config.ADAPTER_TIMEOUT if adapter_timeout is None else adapter_timeout
    run_timeout = config.RUN_TIMEOUT if run_timeout is None else run_timeout
    max_workers = max_workers or config.MAX_WORKERS

    start = time.monotonic()
    logger.info(f"Starting job aggregation: {len(sources)} sources, "
                f"adapter timeout {adapter_timeout:.0f}s, run timeout {run_timeout:.0f}s")

    ordered: list[SourceResult] = []
    if sources:
        ordered = _run_concurrently(sources, adapter_timeout, run_timeout, max_workers, start, thread_ids)
    result = _merge(ordered)

    duration = time.monotonic() - start
    summary = result.summary
    logger.info(f"Aggregation complete in {duration:.2f}s: {summary.total_listings} listings, "
                f"{summary.succeeded}/{summary.attempted} sources succeeded")
    if summary.failed:
        logger.warning(f"Failed sources: {summary.failed} "
                       f"({', '.join(sid for sid, _ in summary.errors)})")
    return result


def _start_worker(source: BaseSource, slots: threading.Semaphore, on_start) -> Future:
    """Run source.safe_collect() on a daemon thread once a worker slot is free."""
    fut: Future = Future()

    def _target():
        with slots:
            if not fut.set_running_or_notify_cancel():
                return
            on_start()
            try:
                fut.set_result(source.safe_collect())
            except Exception as e:
                fut.set_exception(e)

    threading.Thread(target=_target, name=f"scrape-{source.source_id}", daemon=True).start()
    return fut


def _run_concurrently(sources, adapter_timeout, run_timeout, max_workers, start,
                      thread_ids=None) -> list[SourceResult]:
    run_deadline = start + run_timeout
    slots = threading.Semaphore(max(1, min(len(sources), max_workers)))
    started: dict[int, float] = {}
    results: dict[int, SourceResult] = {}

    def _on_start(idx: int):
        started[idx] = time.monotonic()
        if thread_ids is not None:
            thread_ids.add(threading.get_ident())

    # Keyed by position so two sources sharing an id are still kept apart
    futures = {
        _start_worker(source, slots, lambda idx=idx: _on_start(idx)): idx
        for idx, source in enumerate(sources)
    }
    pending = set(futures)

    while pending:
        now = time.monotonic()

        for fut in list(pending):
            idx = futures[fut]
            sid = sources[idx].source_id
            began = started.get(idx)
            if not fut.done() and began is not None and now - began >= adapter_timeout:
                pending.discard(fut)
                logger.error(f"[{sid}] Abandoned after {adapter_timeout:.0f}s")
                results[idx] = SourceResult(
                    source_id=sid,
                    error=f"Timed out after {adapter_timeout:.0f}s",
                    duration_ms=int((now - began) * 1000),
                )

        if pending and now >= run_deadline:
            for fut in pending:
                idx = futures[fut]
                sid = sources[idx].source_id
                # Queued workers see the cancellation and exit without running
                fut.cancel()
                reason = "still running" if idx in started else "never started"
                logger.error(f"[{sid}] Abandoned at run deadline ({reason})")
                results[idx] = SourceResult(
                    source_id=sid,
                    error=f"Run deadline of {run_timeout:.0f}s exceeded ({reason})",
                )
            break

        if not pending:
            break

        next_check = run_deadline
        for fut in pending:
            began = started.get(futures[fut])
            if began is not None:
                next_check = min(next_check, began + adapter_timeout)
        timeout = max(0.0, min(next_check - now, POLL_INTERVAL))

        done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
        for fut in done:
            idx = futures[fut]
            sid = sources[idx].source_id
            try:
                results[idx] = fut.result()
            except Exception as e:
                # safe_collect() should never raise, but a broken source must not sink the run
                logger.error(f"[{sid}] Source crashed: {e}", exc_info=True)
                results[idx] = SourceResult(source_id=sid, error=str(e) or type(e).__name__)

    return [results[idx] for idx in range(len(sources))]


def _merge(results: list[SourceResult]) -> ScrapeAllResult:
    summary = ScrapeRunSummary(attempted=len(results))
    jobs = []

    for res in results:
        summary.jobs_per_source[res.source_id] = summary.jobs_per_source.get(res.source_id, 0) + len(res.jobs)
        summary.rejected += res.rejected
        if res.ok:
            summary.succeeded += 1
            jobs.extend(res.jobs)
        else:
            summary.failed += 1
            summary.errors.append((res.source_id, res.error))

    summary.total_listings = len(jobs)

    return ScrapeAllResult(
        success=len(jobs) > 0,
        jobs=jobs,
        total_jobs=len(jobs),
        errors=[{"source_id": sid, "message": msg} for sid, msg in summary.errors],
        summary=summary,
    )
