import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .core import collect_once, default_config
from .types import CollectorError


def setup_logging(debug=False, log_level="INFO"):
    """Configure logging with the specified debug level."""
    level = logging.DEBUG if debug else getattr(logging, str(log_level).upper(), logging.INFO)

    # Configure the root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S%z'
    ))
    root_logger.addHandler(console)

    log = logging.getLogger("near-exporter")
    log.setLevel(level)
    return log


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """RPC and logging flags shared by every command."""
    defaults = default_config()
    parser.add_argument(
        "--url",
        default=defaults["url"],
        help=f"NEAR JSON-RPC endpoint (env NEAR_RPC_URL, default: {defaults['url']})."
    )
    parser.add_argument(
        "--account-id",
        default=defaults["account_id"],
        help=f"Validator / staking pool account to report on (env NEAR_ACCOUNT_ID, default: {defaults['account_id']})."
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=defaults["timeout"],
        help=f"Per-request RPC timeout in seconds (env NEAR_RPC_TIMEOUT, default: {defaults['timeout']})."
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output (overrides --log-level)."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, ignored if --debug is used)."
    )


def add_serve_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--host", default="0.0.0.0",
                        help="Host to bind the HTTP server to (default: 0.0.0.0).")
    parser.add_argument("--port", type=int, default=9333,
                        help="Port to serve /metrics on (default: 9333).")


def build_parser() -> argparse.ArgumentParser:
    """Build the command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="near-exporter",
        description="Export NEAR node and validator state as Prometheus metrics."
    )
    subparsers = parser.add_subparsers(dest="cmd", required=True)

    collect_parser = subparsers.add_parser(
        "collect",
        help="Scrape the node once and print the result."
    )
    add_common_arguments(collect_parser)
    collect_parser.add_argument(
        "--format",
        choices=["prometheus", "json"],
        default="prometheus",
        help="Output format (default: prometheus)."
    )
    collect_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout).",
        type=Path,
        default=None
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Serve /metrics, scraping the node on every request."
    )
    add_common_arguments(serve_parser)
    add_serve_arguments(serve_parser)

    return parser


def _config_from_args(parsed_args) -> dict:
    return {
        "url": parsed_args.url,
        "account_id": parsed_args.account_id,
        "timeout": parsed_args.timeout,
    }


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    parsed_args = parser.parse_args(args)

    log = setup_logging(debug=parsed_args.debug, log_level=parsed_args.log_level)
    log.debug(f"Parsed arguments: {vars(parsed_args)}")

    if parsed_args.cmd == "collect":
        start_time = datetime.now(timezone.utc)
        try:
            output = collect_once(_config_from_args(parsed_args), fmt=parsed_args.format)
        except CollectorError as e:
            log.error(f"Error: {e}")
            return 1

        if parsed_args.output:
            try:
                parsed_args.output.write_text(output)
            except OSError as e:
                log.error(f"Error writing to {parsed_args.output}: {e}", exc_info=parsed_args.debug)
                return 1
            log.info(f"Results written to {parsed_args.output}")
        else:
            sys.stdout.write(output if output.endswith("\n") else output + "\n")

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        log.debug(f"Collection completed in {duration:.2f} seconds")
        return 0

    if parsed_args.cmd == "serve":
        from .daemon import run_daemon
        return run_daemon(_config_from_args(parsed_args), host=parsed_args.host, port=parsed_args.port)

    return 0


if __name__ == "__main__":
    sys.exit(main())
