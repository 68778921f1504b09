"""
EV matcher — decides whether a log entry is an EV certificate issued
inside the configured date window.

Pure: no I/O, no mutable state after construction. The scanner calls it
concurrently from every worker thread without locking.
"""

from __future__ import annotations

from collections.abc import Set

from ct_ev_scan.domain.ev_policies import EV_POLICY_IDENTIFIERS
from ct_ev_scan.domain.models import (
    CertificateView,
    DateWindow,
    PolicyIdentifier,
    PrecertificateView,
)


class EVMatcher:
    """
    Matches final certificates carrying a known EV policy identifier.

    Implements the Matcher port. Precertificates never match: their policy
    assertions are not treated as authoritative.
    """

    def __init__(
        self,
        window: DateWindow | None = None,
        policies: Set[PolicyIdentifier] = EV_POLICY_IDENTIFIERS,
    ) -> None:
        self._window = window or DateWindow.unbounded()
        self._policies = frozenset(policies)

    @property
    def window(self) -> DateWindow:
        return self._window

    def certificate_matches(self, cert: CertificateView) -> bool:
        """
        True when NotBefore lies inside the window (bounds inclusive) and at
        least one asserted policy identifier is an EV policy.
        """
        if not self._window.contains(cert.not_before):
            return False
        return any(oid in self._policies for oid in cert.policy_identifiers)

    def precertificate_matches(self, precert: PrecertificateView) -> bool:
        return False
