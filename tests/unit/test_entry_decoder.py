"""
Unit tests for the RFC 6962 entry decoder.

Certificates are generated with cryptography and wrapped in real
MerkleTreeLeaf framing (see tests/conftest.py encoders).

Test categories:
  - X.509 entries: every attribute the scan consumes is extracted
  - Precert entries: pre-certificate read from extra_data
  - Missing attributes: absent CN, SAN, policies → empty values
  - Malformed input: framing or DER problems → ValueError naming the index
"""

from __future__ import annotations

import struct

import pytest

from ct_ev_scan.adapters.entry_decoder import certificate_view_from_der, decode_entry
from ct_ev_scan.domain.models import EntryType, PolicyIdentifier, RawLogEntry
from tests.conftest import (
    DIGICERT_EV_OID,
    DV_OID,
    build_certificate,
    certificate_der,
    precert_extra_data,
    precert_leaf,
    raw_certificate_entry,
    raw_precertificate_entry,
    utc,
    x509_leaf,
)


class TestX509Entry:
    """GIVEN an x509_entry leaf wrapping a real certificate."""

    def test_extracts_certificate_attributes(self) -> None:
        cert = build_certificate(
            utc(2015, 6, 1, hour=9),
            policies=(DV_OID, DIGICERT_EV_OID),
            issuer_cn="DigiCert SHA2 Extended Validation Server CA",
            subject_cn="www.example.com",
            dns_names=("www.example.com", "example.com"),
        )
        entry = decode_entry(42, raw_certificate_entry(cert))

        assert entry.index == 42
        assert entry.entry_type is EntryType.X509
        assert entry.precertificate is None
        view = entry.certificate
        assert view is not None
        assert view.not_before == utc(2015, 6, 1, hour=9)
        assert view.policy_identifiers == (
            PolicyIdentifier.parse(DV_OID),
            PolicyIdentifier.parse(DIGICERT_EV_OID),
        )
        assert view.issuer_common_name == "DigiCert SHA2 Extended Validation Server CA"
        assert view.subject_common_name == "www.example.com"
        assert view.dns_names == ("www.example.com", "example.com")

    def test_reads_leaf_timestamp(self) -> None:
        der = certificate_der(build_certificate(utc(2015, 6, 1)))
        raw = RawLogEntry(leaf_input=x509_leaf(der, timestamp_ms=1_500_000_000_123))
        assert decode_entry(0, raw).timestamp_ms == 1_500_000_000_123

    def test_not_before_is_timezone_aware(self) -> None:
        entry = decode_entry(0, raw_certificate_entry(build_certificate(utc(2015, 6, 1))))
        assert entry.certificate is not None
        assert entry.certificate.not_before.tzinfo is not None


class TestPrecertEntry:
    """GIVEN a precert_entry leaf and its PrecertChainEntry extra_data."""

    def test_decodes_pre_certificate_from_extra_data(self) -> None:
        precert = build_certificate(
            utc(2015, 7, 1),
            subject_cn="pre.example.com",
            dns_names=("pre.example.com",),
            precert=True,
        )
        entry = decode_entry(7, raw_precertificate_entry(precert))

        assert entry.entry_type is EntryType.PRECERT
        assert entry.certificate is None
        assert entry.precertificate is not None
        assert entry.precertificate.subject_common_name == "pre.example.com"
        assert entry.precertificate.dns_names == ("pre.example.com",)
        assert entry.precertificate.policy_identifiers == (
            PolicyIdentifier.parse(DIGICERT_EV_OID),
        )

    def test_missing_extra_data_is_error(self) -> None:
        precert = build_certificate(utc(2015, 7, 1), precert=True)
        raw = RawLogEntry(leaf_input=precert_leaf(precert.tbs_certificate_bytes))
        with pytest.raises(ValueError, match="Entry 3: .*pre-certificate"):
            decode_entry(3, raw)

    def test_truncated_issuer_key_hash_is_error(self) -> None:
        leaf = struct.pack(">BBQH", 0, 0, 0, 1) + b"\x11" * 10
        with pytest.raises(ValueError, match="issuer key hash"):
            decode_entry(0, RawLogEntry(leaf_input=leaf, extra_data=b""))


class TestMissingAttributes:
    """GIVEN certificates lacking optional attributes."""

    def test_no_policies_extension(self) -> None:
        der = certificate_der(build_certificate(utc(2015, 6, 1), policies=()))
        assert certificate_view_from_der(der).policy_identifiers == ()

    def test_no_san_extension(self) -> None:
        der = certificate_der(build_certificate(utc(2015, 6, 1), dns_names=()))
        assert certificate_view_from_der(der).dns_names == ()

    def test_no_common_names(self) -> None:
        der = certificate_der(build_certificate(utc(2015, 6, 1), issuer_cn=None, subject_cn=None))
        view = certificate_view_from_der(der)
        assert view.issuer_common_name == ""
        assert view.subject_common_name == ""


class TestMalformedLeaf:
    """GIVEN leaf_input bytes that are not a valid MerkleTreeLeaf."""

    def test_too_short(self) -> None:
        with pytest.raises(ValueError, match="Entry 5: leaf_input too short"):
            decode_entry(5, RawLogEntry(leaf_input=b"\x00\x00\x01"))

    def test_unsupported_version(self) -> None:
        leaf = struct.pack(">BBQH", 1, 0, 0, 0) + b"\x00\x00\x01\x00"
        with pytest.raises(ValueError, match="unsupported leaf version 1"):
            decode_entry(0, RawLogEntry(leaf_input=leaf))

    def test_unsupported_leaf_type(self) -> None:
        leaf = struct.pack(">BBQH", 0, 2, 0, 0) + b"\x00\x00\x01\x00"
        with pytest.raises(ValueError, match="unsupported leaf type 2"):
            decode_entry(0, RawLogEntry(leaf_input=leaf))

    def test_unknown_entry_type(self) -> None:
        leaf = struct.pack(">BBQH", 0, 0, 0, 9) + b"\x00\x00\x01\x00"
        with pytest.raises(ValueError, match="unknown entry type 9"):
            decode_entry(0, RawLogEntry(leaf_input=leaf))

    def test_length_prefix_beyond_data(self) -> None:
        leaf = struct.pack(">BBQH", 0, 0, 0, 0) + (500).to_bytes(3, "big") + b"\x30\x82"
        with pytest.raises(ValueError, match="Entry 11: Invalid certificate length 500"):
            decode_entry(11, RawLogEntry(leaf_input=leaf))

    def test_truncated_length_prefix(self) -> None:
        leaf = struct.pack(">BBQH", 0, 0, 0, 0) + b"\x00"
        with pytest.raises(ValueError, match="Truncated length prefix"):
            decode_entry(0, RawLogEntry(leaf_input=leaf))

    def test_garbage_der(self) -> None:
        leaf = x509_leaf(b"this is not a certificate")
        with pytest.raises(ValueError, match="Entry 8: Undecodable certificate"):
            decode_entry(8, RawLogEntry(leaf_input=leaf))

    def test_garbage_pre_certificate(self) -> None:
        raw = RawLogEntry(
            leaf_input=precert_leaf(b"\x30\x00"),
            extra_data=precert_extra_data(b"junk"),
        )
        with pytest.raises(ValueError, match="Undecodable certificate"):
            decode_entry(0, raw)
