#!/usr/bin/env python3
import argparse
import json
import logging
import sys
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any, Dict, List, Optional

from prometheus_client import CONTENT_TYPE_LATEST

from .cli import add_common_arguments, add_serve_arguments, setup_logging
from .core import build_collector, build_registry, default_config, render_exposition
from .types import CollectorError

log = logging.getLogger("near-exporter")

ENDPOINTS = ["/metrics", "/healthz"]


class ExporterDaemon:
    """Serves the Prometheus endpoint for one node and account.

    Uses the single-threaded HTTPServer: every GET /metrics runs one
    scrape to completion before the next request is read.
    """

    def __init__(self, config: Dict[str, Any]):
        merged = default_config()
        merged.update({k: v for k, v in config.items() if v is not None})
        self.config = merged
        self.collector = build_collector(merged["url"], merged["account_id"], merged["timeout"])
        self.registry = build_registry(self.collector)
        self.httpd: Optional[HTTPServer] = None

    def render_metrics(self) -> bytes:
        return render_exposition(self.registry)

    def start(self, host: str = "0.0.0.0", port: int = 9333):
        """Start the HTTP server and block until interrupted."""
        addr = (host, port)
        self.httpd = HTTPServer(addr, self._make_handler())

        log.info(f"Starting HTTP server on {addr[0]}:{addr[1]}, "
                 f"scraping {self.collector.client.url} for {self.collector.account_id}")
        try:
            self.httpd.serve_forever()
        except KeyboardInterrupt:
            log.info("Shutting down...")
        finally:
            self.stop()

    def stop(self):
        """Stop the HTTP server and clean up."""
        if self.httpd:
            self.httpd.server_close()
            self.httpd = None

    def _make_handler(self):
        """Create a request handler with access to this daemon instance."""
        daemon = self

        class RequestHandler(BaseHTTPRequestHandler):
            def do_GET(self):
                path = self.path.split('?', 1)[0]
                if path == '/metrics':
                    self._handle_metrics()
                elif path == '/healthz':
                    self._handle_healthz()
                else:
                    self._handle_not_found()

            def _set_headers(self, status_code=200, content_type="application/json"):
                self.send_response(status_code)
                self.send_header("Content-Type", content_type)
                self.send_header("Cache-Control", "no-store")
                self.end_headers()

            def _handle_metrics(self):
                try:
                    data = daemon.render_metrics()
                except Exception as e:
                    log.exception("Failed to render metrics")
                    self._set_headers(500, content_type="text/plain")
                    self.wfile.write(f"error collecting metrics: {e}\n".encode('utf-8'))
                    return
                self._set_headers(content_type=CONTENT_TYPE_LATEST)
                self.wfile.write(data)

            def _handle_healthz(self):
                self._set_headers(content_type="text/plain")
                self.wfile.write(b"ok\n")

            def _handle_not_found(self):
                self._set_headers(404)
                self.wfile.write(json.dumps({
                    "error": "Not found",
                    "endpoints": ENDPOINTS
                }).encode('utf-8'))

            def log_message(self, fmt, *args):
                log.debug(f"{self.address_string()} - {fmt % args}")

        return RequestHandler


def run_daemon(config: Dict[str, Any], host: str = "0.0.0.0", port: int = 9333) -> int:
    try:
        daemon = ExporterDaemon(config)
    except CollectorError as e:
        log.error(f"Invalid configuration: {e}")
        return 1

    try:
        daemon.start(host=host, port=port)
    except OSError as e:
        log.error(f"Fatal error: {e}")
        return 1
    return 0


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='NEAR Prometheus exporter daemon')
    add_common_arguments(parser)
    add_serve_arguments(parser)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(debug=args.debug, log_level=args.log_level)

    if args.debug:
        log.debug(f"Command line arguments: {sys.argv}")

    return run_daemon({
        'url': args.url,
        'account_id': args.account_id,
        'timeout': args.timeout,
    }, host=args.host, port=args.port)


if __name__ == '__main__':
    sys.exit(main())
