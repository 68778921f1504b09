"""
Pipeline — wires matcher, log scanner and result sink into one EV scan.

Domain layer — no I/O of its own. All I/O is injected via ports
(Protocol interfaces).

  scanner.scan(matcher, on_match, on_unmatched)
    → on_match(entry): build MatchRecord → sink.record(row)
      → map ScanStats → sink.count()

A failed record write is logged and the scan carries on. An engine failure
short-circuits the railway and becomes the pipeline result.
"""

from __future__ import annotations

from functools import partial

import structlog
from railway.result import Result

from ct_ev_scan.domain.models import (
    DEFAULT_DATE_FORMAT,
    CertificateView,
    LogEntry,
    MatchRecord,
    PrecertificateView,
    ScanStats,
    format_not_before,
)
from ct_ev_scan.domain.ports import LogScanner, Matcher, ResultSink

log = structlog.get_logger()


def build_match_record(
    cert: CertificateView | PrecertificateView,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> MatchRecord:
    """Derive the output row for a matched certificate."""
    return MatchRecord(
        issuer_common_name=cert.issuer_common_name,
        not_before=format_not_before(cert.not_before, date_format),
        subject_common_name=cert.subject_common_name,
        dns_names=cert.dns_names,
    )


def record_match(
    sink: ResultSink,
    entry: LogEntry,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> Result[int]:
    """
    Persist one matched entry.

    IO failures are logged with enough context to find the entry again and
    returned, never raised.
    """
    cert = entry.certificate or entry.precertificate
    if cert is None:
        log.warning("pipeline.match_without_certificate", index=entry.index)
        return Result.success(sink.count())

    record = build_match_record(cert, date_format)
    return sink.record(record.as_row()).peek_failure(
        lambda failure: log.error(
            "sink.record_failed",
            index=entry.index,
            issuer=record.issuer_common_name,
            subject=record.subject_common_name,
            failure=str(failure),
        )
    )


def _log_stats(stats: ScanStats) -> None:
    log.info(
        "pipeline.scan_finished",
        tree_size=stats.tree_size,
        entries_processed=stats.entries_processed,
        matched=stats.total_matched,
    )


def run_scan(
    scanner: LogScanner,
    matcher: Matcher,
    sink: ResultSink,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> Result[int]:
    """
    Scan the log and record every match.

    Returns Result[int] with the number of rows the sink accepted, or the
    scanner's ENGINE_ERROR failure.
    """
    return (
        scanner.scan(
            matcher,
            on_match=partial(record_match, sink, date_format=date_format),
            on_unmatched=None,
        )
        .peek(_log_stats)
        .map(lambda _stats: sink.count())
    )
