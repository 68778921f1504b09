"""
Extended Validation certificate policy identifiers.

Published EV policy OIDs of the CAs whose certificates appear in public
CT logs. A certificate asserting any of these in its CertificatePolicies
extension was issued under an EV policy.

EV_POLICY_IDENTIFIERS is built once at import time and never mutated.
"""

from __future__ import annotations

from ct_ev_scan.domain.models import PolicyIdentifier

# Kept in the order the CAs were collected. 1.3.6.1.4.1.34697.2.1 appears
# twice; the frozenset below collapses it.
_EV_POLICY_OIDS: tuple[str, ...] = (
    "1.3.6.1.4.1.34697.2.1",  # AffirmTrust Commercial
    "1.3.6.1.4.1.34697.2.2",  # AffirmTrust Networking
    "1.3.6.1.4.1.34697.2.1",
    "1.3.6.1.4.1.34697.2.3",  # AffirmTrust Premium
    "1.3.6.1.4.1.34697.2.4",  # AffirmTrust Premium ECC
    "1.2.40.0.17.1.22",  # A-Trust
    "2.16.578.1.26.1.3.3",  # Buypass
    "1.3.6.1.4.1.17326.10.14.2.1.2",  # Camerfirma
    "1.3.6.1.4.1.17326.10.8.12.1.2",  # Camerfirma
    "1.3.6.1.4.1.6449.1.2.1.5.1",  # Comodo
    "2.16.840.1.114412.2.1",  # DigiCert
    "2.16.528.1.1001.1.1.1.12.6.1.1.1",  # DigiNotar
    "2.16.840.1.114028.10.1.2",  # Entrust
    "1.3.6.1.4.1.14370.1.6",  # GeoTrust
    "1.3.6.1.4.1.4146.1.1",  # GlobalSign
    "2.16.840.1.114413.1.7.23.3",  # Go Daddy
    "1.3.6.1.4.1.14777.6.1.1",  # Izenpe
    "1.3.6.1.4.1.14777.6.1.2",  # Izenpe
    "1.3.6.1.4.1.22234.2.5.2.3.1",  # Keynectis
    "1.3.6.1.4.1.782.1.2.1.8.1",  # Network Solutions
    "1.3.6.1.4.1.8024.0.2.100.1.2",  # QuoVadis
    "1.2.392.200091.100.721.1",  # SECOM
    "2.16.840.1.114414.1.7.23.3",  # Starfield
    "1.3.6.1.4.1.23223.2",  # StartCom
    "1.3.6.1.4.1.23223.1.1.1",  # StartCom
    "1.3.6.1.5.5.7.1.1",
    "2.16.756.1.89.1.2.1.1",  # SwissSign
    "2.16.840.1.113733.1.7.48.1",  # Thawte
    "2.16.840.1.114404.1.1.2.4.1",  # Trustwave
    "2.16.840.1.113733.1.7.23.6",  # VeriSign
    "1.3.6.1.4.1.6334.1.100.1",  # Verizon Business (Cybertrust)
)

EV_POLICY_IDENTIFIERS: frozenset[PolicyIdentifier] = frozenset(
    PolicyIdentifier.parse(oid) for oid in _EV_POLICY_OIDS
)


def ev_policy_table() -> tuple[PolicyIdentifier, ...]:
    """The EV table as listed, duplicates included, for iteration in tests and docs."""
    return tuple(PolicyIdentifier.parse(oid) for oid in _EV_POLICY_OIDS)
