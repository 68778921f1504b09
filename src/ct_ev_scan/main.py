"""
Application entry point — parses flags, wires dependencies and runs one scan.

Composition root: creates concrete adapters and injects them into the
pipeline. This is the ONLY place where concrete classes are instantiated.
Everything else depends on Protocol interfaces.

Responsibilities:
  1. Parse command-line flags and load validated settings
  2. Configure structlog (to stderr — stdout carries the result)
  3. Open the result sink (failure here is a configuration error)
  4. Create the log client, scanner and matcher
  5. Run the pipeline inside a LoggingExecutionContext
  6. Flush the sink and print the match count

Exit status: 0 on success, 1 on configuration, engine or output errors,
130 when interrupted.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import Any, NoReturn, TypeAlias

import structlog
from pydantic import ValidationError
from railway import ErrorCode, FailureDescription, LoggingExecutionContext
from railway.result import Result

from ct_ev_scan import __version__
from ct_ev_scan.adapters.csv_sink import CsvResultSink
from ct_ev_scan.adapters.log_client import HttpLogClient
from ct_ev_scan.adapters.log_scanner import ParallelLogScanner
from ct_ev_scan.config import DEFAULT_LOG_URL, AppSettings
from ct_ev_scan.domain.matcher import EVMatcher
from ct_ev_scan.pipeline import run_scan

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for human-readable console logging on stderr.

    stdout is reserved for the final count (and the CSV rows when the
    output destination is '-').
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ct-ev-scan",
        description="Scan a Certificate Transparency log for EV certificates.",
    )
    parser.add_argument("--log-url", help=f"CT log to scan (default {DEFAULT_LOG_URL})")
    parser.add_argument(
        "--output",
        "--csv-file",
        dest="output",
        help="CSV file to record EV certs to, '-' for stdout (default ev-certs.csv)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Log scanning progress",
    )
    parser.add_argument(
        "--earliest",
        help="Earliest NotBefore date, YYYY-MM-DD (inclusive). Unset means no lower "
        "bound; ct-scan defaulted to 2015-01-01",
    )
    parser.add_argument(
        "--latest",
        help="Latest NotBefore date, YYYY-MM-DD (inclusive). Unset means no upper "
        "bound; ct-scan defaulted to 2016-01-01",
    )
    parser.add_argument("--batch-size", type=int, help="Entries per get-entries request")
    parser.add_argument("--num-workers", type=int, help="Decode/match worker threads")
    parser.add_argument("--parallel-fetch", type=int, help="Concurrent get-entries requests")
    parser.add_argument("--start-index", type=int, help="First log index to scan")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Flags given on the command line, shaped like AppSettings kwargs."""
    top_level = ("log_url", "output", "verbose", "earliest", "latest")
    scanner_keys = ("batch_size", "num_workers", "parallel_fetch", "start_index")
    overrides = {
        key: getattr(args, key) for key in top_level if getattr(args, key) is not None
    }
    scanner = {
        key: getattr(args, key) for key in scanner_keys if getattr(args, key) is not None
    }
    if scanner:
        overrides["scanner"] = scanner
    return overrides


def load_settings(args: argparse.Namespace) -> Result[AppSettings]:
    """Validate environment + flags. Any problem is a CONFIGURATION_ERROR."""
    try:
        return Result.success(AppSettings(**_cli_overrides(args)))
    except ValidationError as e:
        return Result.failure(ErrorCode.CONFIGURATION_ERROR, f"Invalid configuration: {e}", e)


def open_sink(settings: AppSettings) -> Result[CsvResultSink]:
    """Open the output destination; an unopenable one is a configuration error."""
    return CsvResultSink.open(settings.output).map_failure(
        lambda failure: FailureDescription(
            ErrorCode.CONFIGURATION_ERROR,
            failure.message
            if failure.exception is None
            else f"{failure.message}: {failure.exception}",
            failure.exception,
        )
    )


_Adapters: TypeAlias = tuple[HttpLogClient, ParallelLogScanner, EVMatcher]


def _create_adapters(settings: AppSettings) -> _Adapters:
    """Instantiate the log client, scanner and matcher from settings."""
    client = HttpLogClient(
        log_url=settings.log_url,
        timeout=settings.http_timeout_seconds,
    )
    scanner = ParallelLogScanner(client, settings.scan_options())
    matcher = EVMatcher(settings.date_window())
    return client, scanner, matcher


def _fatal(failure: FailureDescription) -> NoReturn:
    print(f"FATAL: {failure.code.value} — {failure.message}", file=sys.stderr)  # noqa: T201
    sys.exit(EXIT_FAILURE)


def main(argv: Sequence[str] | None = None) -> None:
    """Run one EV scan and print the number of EV certificates found."""
    args = build_parser().parse_args(argv)

    settings_result = load_settings(args)
    if settings_result.is_failure():
        _fatal(settings_result.error())
    settings = settings_result.value()

    configure_structlog("DEBUG" if settings.verbose else settings.log_level)
    log = structlog.get_logger()

    window = settings.date_window()
    log.info(
        "app.starting",
        version=__version__,
        log_url=settings.log_url,
        output=settings.output,
        earliest=str(settings.earliest) if settings.earliest else "unbounded",
        latest=str(settings.latest) if settings.latest else "unbounded",
    )

    sink_result = open_sink(settings)
    if sink_result.is_failure():
        log.error("app.config_error", failure=str(sink_result.error()))
        _fatal(sink_result.error())
    sink = sink_result.value()

    client, scanner, matcher = _create_adapters(settings)
    ctx = LoggingExecutionContext(operation="EVScan")

    log.info("app.scanning", log_url=settings.log_url, unbounded_window=window.is_unbounded)
    try:
        with sink:
            result = ctx.execute(
                lambda: run_scan(scanner, matcher, sink, settings.date_format)
            )
            closed = sink.close()
    except KeyboardInterrupt:
        log.warning("app.shutdown", reason="interrupted", recorded=sink.count())
        print(f"Interrupted after {sink.count()} EV Certs", file=sys.stderr)  # noqa: T201
        sys.exit(EXIT_INTERRUPTED)
    finally:
        client.close()

    if result.is_failure():
        log.error("app.scan_failed", failure=str(result.error()), recorded=sink.count())
        _fatal(result.error())

    if closed.is_failure():
        log.error("app.output_failed", failure=str(closed.error()), recorded=sink.count())
        _fatal(closed.error())

    print(f"Found {result.value()} EV Certs")  # noqa: T201


if __name__ == "__main__":
    main()
