#!/usr/bin/env python3
"""External job aggregation: scrape job sites, dedupe, and store new listings."""

import http.server
import json
import logging
import os
import socketserver
import sys
from urllib.parse import parse_qs, urlparse

from dedup import count_external_jobs, get_jobs
from triggers import on_demand_trigger, scheduled_trigger

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 500


class TriggerHandler(http.server.BaseHTTPRequestHandler):
    """HTTP surface for the cron trigger, the manual trigger and read-only listing."""

    protocol_version = "HTTP/1.1"

    def _send_json(self, status: int, payload):
        body = json.dumps(payload, default=str).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-store")
        self.end_headers()
        self.wfile.write(body)

    def _check_origin(self):
        """Reject requests from non-localhost origins (CSRF protection)."""
        origin = self.headers.get("Origin", "")
        if origin and not origin.startswith(("http://localhost:", "http://127.0.0.1:")):
            self._send_json(403, {"error": "Forbidden: non-localhost origin"})
            return False
        return True

    def do_GET(self):
        parsed = urlparse(self.path)
        if parsed.path == "/api/cron/scrape-jobs":
            status, payload = scheduled_trigger(self.headers.get("Authorization"))
            self._send_json(status, payload)
        elif parsed.path == "/api/jobs/scrape":
            self._send_json(200, {
                "message": "Job scraping endpoint",
                "usage": "Send POST request to trigger scraping",
            })
        elif parsed.path == "/api/jobs":
            self._handle_list_jobs(parse_qs(parsed.query))
        elif parsed.path == "/api/jobs/count":
            self._send_json(200, {"external": count_external_jobs()})
        else:
            self._send_json(404, {"error": "Not found"})

    def do_POST(self):
        if not self._check_origin():
            return
        # Drain any body so keep-alive connections stay in sync
        length = int(self.headers.get("Content-Length", 0) or 0)
        if length:
            self.rfile.read(length)

        if urlparse(self.path).path == "/api/jobs/scrape":
            status, payload = on_demand_trigger()
            self._send_json(status, payload)
        else:
            self._send_json(404, {"error": "Not found"})

    def _handle_list_jobs(self, query: dict):
        def _param(name, default=None):
            values = query.get(name)
            return values[0] if values else default

        source = _param("source", "all")
        if source not in ("all", "external", "recruiter"):
            self._send_json(400, {"error": "source must be one of all, external, recruiter"})
            return
        try:
            limit = int(_param("limit", 200))
        except ValueError:
            self._send_json(400, {"error": "limit must be an integer"})
            return
        limit = max(1, min(limit, MAX_LIST_LIMIT))

        jobs = get_jobs(
            source=source,
            status=_param("status"),
            search=_param("search"),
            limit=limit,
        )
        self._send_json(200, {"jobs": jobs, "count": len(jobs)})

    def log_message(self, format, *args):
        logger.info(f"{self.address_string()} {format % args}")


class ThreadedHTTPServer(socketserver.ThreadingMixIn, http.server.HTTPServer):
    daemon_threads = True


def serve(port: int = 8080):
    """Serve the trigger endpoints until interrupted."""
    bind_addr = os.environ.get("BIND_ADDR", "localhost")
    with ThreadedHTTPServer((bind_addr, port), TriggerHandler) as server:
        print(f"Serving job aggregation triggers at http://{bind_addr}:{port}")
        print("Press Ctrl+C to stop")
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            print("\nStopped.")


def run_once() -> int:
    """Run the scheduled pipeline once. Returns a process exit code."""
    status, payload = scheduled_trigger(auth_header=None, secret="")

    summary = payload.get("summary", {})
    print(f"\n{'='*50}")
    print("Job Aggregation Run")
    print(f"{'='*50}")
    print(f"Status: {payload.get('message') or payload.get('error')}")
    print(f"Sources succeeded: {summary.get('succeeded', 0)}/{summary.get('attempted', 0)}")
    print(f"Listings found: {summary.get('total_listings', 0)}")
    print(f"Saved: {summary.get('saved', 0)}  Skipped: {summary.get('skipped', 0)}")
    for err in summary.get("errors", []):
        print(f"  ! {err['source_id']}: {err['message']}")
    print(f"{'='*50}")

    return 0 if status < 500 else 1


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "serve":
        port = int(sys.argv[2]) if len(sys.argv) > 2 else 8080
        serve(port)
    else:
        try:
            sys.exit(run_once())
        except KeyboardInterrupt:
            logger.info("Run interrupted by user")
            sys.exit(1)
