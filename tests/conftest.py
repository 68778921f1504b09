"""
Shared test fixtures and helpers for the ct-ev-scan test suite.

Provides:
  - real X.509 certificates and precertificates built with cryptography
  - RFC 6962 MerkleTreeLeaf / extra_data encoders for those certificates
  - FakeLogClient, an in-memory LogClient port implementation
"""

from __future__ import annotations

import struct
import threading
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime, timedelta

import pytest
import structlog
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding
from cryptography.x509.oid import NameOID
from railway import ErrorCode
from railway.result import Result

from ct_ev_scan.domain.models import RawLogEntry

DIGICERT_EV_OID = "2.16.840.1.114412.2.1"
AFFIRMTRUST_EV_OID = "1.3.6.1.4.1.34697.2.1"
DV_OID = "2.23.140.1.2.1"

_KEY = ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Keep one test's structlog configuration from leaking into the next."""
    yield
    structlog.reset_defaults()


# ─────────────────────── Certificate Builders ───────────────────────


def _name(common_name: str | None) -> x509.Name:
    attrs = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org")]
    if common_name is not None:
        attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    return x509.Name(attrs)


def build_certificate(
    not_before: datetime,
    policies: Sequence[str] = (DIGICERT_EV_OID,),
    issuer_cn: str | None = "Test EV CA",
    subject_cn: str | None = "www.example.com",
    dns_names: Sequence[str] = ("www.example.com", "example.com"),
    precert: bool = False,
) -> x509.Certificate:
    """Build and sign a certificate with the given attributes."""
    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(subject_cn))
        .issuer_name(_name(issuer_cn))
        .public_key(_KEY.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_before + timedelta(days=365))
    )
    if policies:
        builder = builder.add_extension(
            x509.CertificatePolicies(
                [x509.PolicyInformation(x509.ObjectIdentifier(oid), None) for oid in policies]
            ),
            critical=False,
        )
    if dns_names:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(name) for name in dns_names]),
            critical=False,
        )
    if precert:
        builder = builder.add_extension(x509.PrecertPoison(), critical=True)
    return builder.sign(_KEY, hashes.SHA256())


def certificate_der(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(Encoding.DER)


def utc(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=UTC)


# ─────────────────────── RFC 6962 Encoders ───────────────────────


def _uint24(payload: bytes) -> bytes:
    return len(payload).to_bytes(3, "big") + payload


def x509_leaf(der: bytes, timestamp_ms: int = 1_433_116_800_000) -> bytes:
    """MerkleTreeLeaf for an x509_entry (empty CT extensions)."""
    return struct.pack(">BBQH", 0, 0, timestamp_ms, 0) + _uint24(der) + b"\x00\x00"


def precert_leaf(tbs: bytes, timestamp_ms: int = 1_433_116_800_000) -> bytes:
    """MerkleTreeLeaf for a precert_entry (empty CT extensions)."""
    return (
        struct.pack(">BBQH", 0, 0, timestamp_ms, 1)
        + b"\x11" * 32
        + _uint24(tbs)
        + b"\x00\x00"
    )


def precert_extra_data(pre_certificate_der: bytes) -> bytes:
    """PrecertChainEntry with an empty chain."""
    return _uint24(pre_certificate_der) + (0).to_bytes(3, "big")


def raw_certificate_entry(cert: x509.Certificate) -> RawLogEntry:
    return RawLogEntry(leaf_input=x509_leaf(certificate_der(cert)), extra_data=b"\x00\x00\x00")


def raw_precertificate_entry(precert: x509.Certificate) -> RawLogEntry:
    return RawLogEntry(
        leaf_input=precert_leaf(precert.tbs_certificate_bytes),
        extra_data=precert_extra_data(certificate_der(precert)),
    )


# ─────────────────────── Fake Log ───────────────────────


class FakeLogClient:
    """
    In-memory CT log implementing the LogClient port.

    page_size caps how many entries one get_entries call returns, to
    exercise short reads. fail_from makes any request reaching that index
    fail with ENGINE_ERROR.
    """

    def __init__(
        self,
        entries: Sequence[RawLogEntry],
        page_size: int | None = None,
        fail_from: int | None = None,
        sth_failure: bool = False,
    ) -> None:
        self._entries = list(entries)
        self._page_size = page_size
        self._fail_from = fail_from
        self._sth_failure = sth_failure
        self._lock = threading.Lock()
        self.requests: list[tuple[int, int]] = []

    def get_tree_size(self) -> Result[int]:
        if self._sth_failure:
            return Result.failure(ErrorCode.ENGINE_ERROR, "get-sth failed: HTTP 503")
        return Result.success(len(self._entries))

    def get_entries(self, start: int, end: int) -> Result[list[RawLogEntry]]:
        with self._lock:
            self.requests.append((start, end))
        if self._fail_from is not None and end >= self._fail_from:
            return Result.failure(ErrorCode.ENGINE_ERROR, f"get-entries [{start}, {end}] failed")
        stop = end + 1
        if self._page_size is not None:
            stop = min(stop, start + self._page_size)
        return Result.success(self._entries[start:stop])
