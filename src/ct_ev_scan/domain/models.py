"""
Domain models — immutable value objects for CT log entries and scan output.

The log-walking engine decodes raw log entries into CertificateView /
PrecertificateView objects; the matcher reads them; matching certificates
become MatchRecord rows in the result sink.

All models are frozen dataclasses (immutable) following functional principles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum


DEFAULT_DATE_FORMAT = "%Y-%m-%d"


def as_utc(ts: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts


@dataclass(frozen=True, slots=True, order=True)
class PolicyIdentifier:
    """
    A certificate policy object identifier, e.g. 2.16.840.1.114412.2.1.

    Equality and hashing are structural over the full arc sequence, so
    1.2.3 and 1.2.3.0 are different identifiers.
    """

    arcs: tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.arcs) < 2:
            raise ValueError(f"Object identifier needs at least two arcs: {self.arcs!r}")
        if any(not isinstance(arc, int) or arc < 0 for arc in self.arcs):
            raise ValueError(f"Object identifier arcs must be non-negative integers: {self.arcs!r}")

    @classmethod
    def parse(cls, dotted: str) -> PolicyIdentifier:
        """Parse the dotted-decimal form. Raises ValueError on malformed input."""
        parts = dotted.strip().split(".")
        if not all(part.isdigit() for part in parts):
            raise ValueError(f"Malformed object identifier: {dotted!r}")
        return cls(tuple(int(part) for part in parts))

    def __str__(self) -> str:
        return ".".join(str(arc) for arc in self.arcs)


class EntryType(IntEnum):
    """RFC 6962 LogEntryType."""

    X509 = 0
    PRECERT = 1


@dataclass(frozen=True, slots=True)
class CertificateView:
    """
    The certificate attributes the scan consumes.

    Produced by the engine from a decoded X.509 certificate. Missing
    common names are empty strings.
    """

    not_before: datetime
    policy_identifiers: tuple[PolicyIdentifier, ...] = ()
    issuer_common_name: str = ""
    subject_common_name: str = ""
    dns_names: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PrecertificateView:
    """Same attributes as CertificateView, decoded from a precertificate entry."""

    not_before: datetime
    policy_identifiers: tuple[PolicyIdentifier, ...] = ()
    issuer_common_name: str = ""
    subject_common_name: str = ""
    dns_names: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One decoded CT log entry. Exactly one of certificate/precertificate is set."""

    index: int
    entry_type: EntryType
    certificate: CertificateView | None = None
    precertificate: PrecertificateView | None = None
    timestamp_ms: int = 0


@dataclass(frozen=True, slots=True)
class RawLogEntry:
    """A get-entries item before decoding: base64-decoded leaf_input and extra_data."""

    leaf_input: bytes = field(repr=False)
    extra_data: bytes = field(default=b"", repr=False)


@dataclass(frozen=True, slots=True)
class DateWindow:
    """
    Inclusive issuance window on NotBefore.

    None on either side means unbounded. An inverted window
    (earliest > latest) is accepted and matches nothing.
    """

    earliest: datetime | None = None
    latest: datetime | None = None

    @classmethod
    def unbounded(cls) -> DateWindow:
        return cls()

    @property
    def is_unbounded(self) -> bool:
        return self.earliest is None and self.latest is None

    def contains(self, ts: datetime) -> bool:
        ts = as_utc(ts)
        if self.earliest is not None and ts < as_utc(self.earliest):
            return False
        if self.latest is not None and ts > as_utc(self.latest):
            return False
        return True


@dataclass(frozen=True, slots=True)
class MatchRecord:
    """
    One output row for a matched certificate.

    Column order: issuer CN, formatted NotBefore, subject CN, DNS names...
    """

    issuer_common_name: str
    not_before: str
    subject_common_name: str
    dns_names: tuple[str, ...] = ()

    def as_row(self) -> list[str]:
        return [
            self.issuer_common_name,
            self.not_before,
            self.subject_common_name,
            *self.dns_names,
        ]


def format_not_before(ts: datetime, date_format: str = DEFAULT_DATE_FORMAT) -> str:
    """Render the NotBefore column of a MatchRecord."""
    return ts.strftime(date_format)


@dataclass(frozen=True, slots=True)
class ScanOptions:
    """Tuning knobs owned by the log scanner. Opaque to the matcher and sink."""

    batch_size: int = 1000
    num_workers: int = 100
    parallel_fetch: int = 10
    start_index: int = 0
    quiet: bool = True


@dataclass(frozen=True, slots=True)
class ScanStats:
    """Totals reported by the scanner once the walk completes."""

    tree_size: int = 0
    entries_processed: int = 0
    certificates_matched: int = 0
    precertificates_matched: int = 0

    @property
    def total_matched(self) -> int:
        return self.certificates_matched + self.precertificates_matched
