"""
Log entry decoder — RFC 6962 leaf unwrapping + X.509 attribute extraction.

Adapter layer — turns a RawLogEntry (get-entries item) into a LogEntry:
  - TLS-encoded MerkleTreeLeaf framing is unpacked here (fixed offsets,
    3-byte length prefixes).
  - cryptography (PyCA) decodes the DER certificate and exposes the fields
    the matcher and sink need.

MerkleTreeLeaf layout:
  version(1)=0 | leaf_type(1)=0 | timestamp(8) | entry_type(2) | entry...

  x509_entry:    ASN.1Cert<1..2^24-1>
  precert_entry: issuer_key_hash[32] | TBSCertificate<1..2^24-1>

For precert entries the signed pre-certificate (a parseable X.509
certificate with the CT poison extension) is read from extra_data's
PrecertChainEntry instead of the bare TBSCertificate.

Structural problems raise ValueError; the scanner turns those into
ENGINE_ERROR failures. Unreadable individual extensions (policies, SAN) are
logged and treated as absent.
"""

from __future__ import annotations

import struct

import structlog
from cryptography import x509
from cryptography.x509.extensions import ExtensionNotFound
from cryptography.x509.oid import NameOID

from ct_ev_scan.domain.models import (
    CertificateView,
    EntryType,
    LogEntry,
    PolicyIdentifier,
    PrecertificateView,
    RawLogEntry,
)

log = structlog.get_logger()

_LEAF_HEADER = struct.Struct(">BBQH")
_LEAF_VERSION_V1 = 0
_LEAF_TYPE_TIMESTAMPED_ENTRY = 0
_ISSUER_KEY_HASH_LENGTH = 32
_UINT24_SIZE = 3


def _read_uint24_prefixed(data: bytes, offset: int, what: str) -> tuple[bytes, int]:
    """Read an opaque<..2^24-1> field at offset; return (payload, next offset)."""
    if len(data) < offset + _UINT24_SIZE:
        raise ValueError(f"Truncated length prefix for {what}")
    length = int.from_bytes(data[offset : offset + _UINT24_SIZE], "big")
    start = offset + _UINT24_SIZE
    end = start + length
    if length == 0 or len(data) < end:
        raise ValueError(
            f"Invalid {what} length {length} (available {len(data) - start})"
        )
    return data[start:end], end


# ─────────────────────── X.509 Attribute Extraction ───────────────────────


def _first_common_name(name: x509.Name) -> str:
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        return ""
    value = attrs[0].value
    return value if isinstance(value, str) else value.decode("utf-8", "replace")


def _extract_policies(cert: x509.Certificate) -> tuple[PolicyIdentifier, ...]:
    """CertificatePolicies OIDs, or () when absent or unreadable."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.CertificatePolicies)
    except ExtensionNotFound:
        return ()
    except ValueError as e:
        log.warning("decoder.unreadable_policies", serial=hex(cert.serial_number), error=str(e))
        return ()
    return tuple(
        PolicyIdentifier.parse(info.policy_identifier.dotted_string) for info in ext.value
    )


def _extract_dns_names(cert: x509.Certificate) -> tuple[str, ...]:
    """subjectAltName dNSName entries, or () when absent or unreadable."""
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except ExtensionNotFound:
        return ()
    except ValueError as e:
        log.warning("decoder.unreadable_san", serial=hex(cert.serial_number), error=str(e))
        return ()
    return tuple(ext.value.get_values_for_type(x509.DNSName))


def _load_certificate(der_bytes: bytes) -> x509.Certificate:
    try:
        return x509.load_der_x509_certificate(der_bytes)
    except ValueError as e:
        raise ValueError(f"Undecodable certificate: {e}") from e


def certificate_view_from_der(der_bytes: bytes) -> CertificateView:
    """Decode a DER certificate into the attributes the scan consumes."""
    cert = _load_certificate(der_bytes)
    return CertificateView(
        not_before=cert.not_valid_before_utc,
        policy_identifiers=_extract_policies(cert),
        issuer_common_name=_first_common_name(cert.issuer),
        subject_common_name=_first_common_name(cert.subject),
        dns_names=_extract_dns_names(cert),
    )


def precertificate_view_from_der(der_bytes: bytes) -> PrecertificateView:
    cert = _load_certificate(der_bytes)
    return PrecertificateView(
        not_before=cert.not_valid_before_utc,
        policy_identifiers=_extract_policies(cert),
        issuer_common_name=_first_common_name(cert.issuer),
        subject_common_name=_first_common_name(cert.subject),
        dns_names=_extract_dns_names(cert),
    )


# ─────────────────────── Leaf Unwrapping ───────────────────────


def decode_entry(index: int, raw: RawLogEntry) -> LogEntry:
    """
    Decode one get-entries item at log position `index`.

    Raises ValueError if the leaf or the certificate cannot be decoded.
    """
    leaf = raw.leaf_input
    if len(leaf) < _LEAF_HEADER.size:
        raise ValueError(f"Entry {index}: leaf_input too short ({len(leaf)} bytes)")

    version, leaf_type, timestamp_ms, entry_type_value = _LEAF_HEADER.unpack_from(leaf)
    if version != _LEAF_VERSION_V1:
        raise ValueError(f"Entry {index}: unsupported leaf version {version}")
    if leaf_type != _LEAF_TYPE_TIMESTAMPED_ENTRY:
        raise ValueError(f"Entry {index}: unsupported leaf type {leaf_type}")
    try:
        entry_type = EntryType(entry_type_value)
    except ValueError as e:
        raise ValueError(f"Entry {index}: unknown entry type {entry_type_value}") from e

    offset = _LEAF_HEADER.size
    try:
        if entry_type is EntryType.X509:
            der_cert, _ = _read_uint24_prefixed(leaf, offset, "certificate")
            return LogEntry(
                index=index,
                entry_type=entry_type,
                certificate=certificate_view_from_der(der_cert),
                timestamp_ms=timestamp_ms,
            )

        if len(leaf) < offset + _ISSUER_KEY_HASH_LENGTH:
            raise ValueError("Truncated issuer key hash")
        _read_uint24_prefixed(leaf, offset + _ISSUER_KEY_HASH_LENGTH, "TBS certificate")
        pre_certificate, _ = _read_uint24_prefixed(raw.extra_data, 0, "pre-certificate")
        return LogEntry(
            index=index,
            entry_type=entry_type,
            precertificate=precertificate_view_from_der(pre_certificate),
            timestamp_ms=timestamp_ms,
        )
    except ValueError as e:
        raise ValueError(f"Entry {index}: {e}") from e
