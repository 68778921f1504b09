"""
Ports — Protocol-based interfaces between the scan core and infrastructure.

  Domain ← Ports (protocols) ← Adapters (implementations)

Each port is a Protocol (structural typing) so adapters and test fakes
satisfy the contract simply by implementing the methods — no inheritance.

Call shape of a scan:
  LogScanner.scan(matcher, on_match, on_unmatched)
    → LogClient.get_tree_size() / get_entries(start, end)
    → Matcher.certificate_matches / precertificate_matches per entry
    → on_match(entry) → ResultSink.record(row)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, TypeAlias, runtime_checkable

from railway.result import Result

from ct_ev_scan.domain.models import (
    CertificateView,
    LogEntry,
    PrecertificateView,
    RawLogEntry,
    ScanStats,
)

EntryCallback: TypeAlias = Callable[[LogEntry], object]


@runtime_checkable
class Matcher(Protocol):
    """
    Port: classify log entries.

    Exactly two methods. Any matcher variant (issuer-based, SAN-based, ...)
    implements the same pair. Implementations must be pure and thread-safe.
    """

    def certificate_matches(self, cert: CertificateView) -> bool: ...

    def precertificate_matches(self, precert: PrecertificateView) -> bool: ...


@runtime_checkable
class LogClient(Protocol):
    """
    Port: the two read-only CT log endpoints a scan needs.

    Servers may return fewer entries than requested; callers re-request
    the remainder.
    """

    def get_tree_size(self) -> Result[int]: ...

    def get_entries(self, start: int, end: int) -> Result[list[RawLogEntry]]: ...


@runtime_checkable
class LogScanner(Protocol):
    """
    Port: walk a CT log and report every entry to one of two callbacks.

    on_match is called once for each entry the matcher accepted; on_unmatched
    for every other entry (None means no-op). Callbacks may run concurrently
    on several worker threads. Any engine failure aborts the walk and comes
    back as Result.failure(ENGINE_ERROR).
    """

    def scan(
        self,
        matcher: Matcher,
        on_match: EntryCallback,
        on_unmatched: EntryCallback | None = None,
    ) -> Result[ScanStats]: ...


@runtime_checkable
class ResultSink(Protocol):
    """
    Port: durable, counted, thread-safe record output.

    record returns the running count on success or an IO_ERROR failure;
    a failed write leaves the count unchanged. close flushes and returns the
    final count, or IO_ERROR when buffered rows could not be written.
    """

    def record(self, fields: Sequence[str]) -> Result[int]: ...

    def count(self) -> int: ...

    def close(self) -> Result[int]: ...
