"""
CT log HTTP adapter — the two RFC 6962 read endpoints a scan needs.

Adapter layer — implements the LogClient port using httpx for sync HTTP calls:

  GET {log_url}/ct/v1/get-sth                    → tree_size
  GET {log_url}/ct/v1/get-entries?start=&end=    → leaf_input / extra_data

The signed tree head is read for its size only; signatures and proofs are
not verified.

Retry/backoff via tenacity on transient errors (network, timeout, HTTP 429
and 5xx). Everything else is captured into Result failures — no exceptions
leak to the scanner.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

import httpx
import structlog
from railway import ErrorCode
from railway.result import Result
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ct_ev_scan.domain.models import RawLogEntry

log = structlog.get_logger()

_GET_STH_PATH = "/ct/v1/get-sth"
_GET_ENTRIES_PATH = "/ct/v1/get-entries"


def _is_transient(exc: BaseException) -> bool:
    """Network trouble, timeouts, throttling and server-side errors are retried."""
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


_transient_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=0.1, max=30),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)


def _parse_entries(body: Any) -> list[RawLogEntry]:
    """Decode the get-entries JSON body. Raises ValueError on malformed input."""
    try:
        items = body["entries"]
    except (KeyError, TypeError) as e:
        raise ValueError("get-entries response has no 'entries' list") from e
    if not isinstance(items, list):
        raise ValueError("get-entries 'entries' is not a list")

    entries: list[RawLogEntry] = []
    for item in items:
        try:
            leaf_input = base64.b64decode(item["leaf_input"], validate=True)
            extra_data = base64.b64decode(item.get("extra_data", ""), validate=True)
        except (KeyError, TypeError, AttributeError, binascii.Error) as e:
            raise ValueError(f"Malformed get-entries item: {e}") from e
        entries.append(RawLogEntry(leaf_input=leaf_input, extra_data=extra_data))
    return entries


class HttpLogClient:
    """
    Read a CT log over HTTPS.

    Implements the LogClient port. One httpx.Client is shared by all fetch
    threads (httpx clients are thread-safe); call close() when done.
    """

    def __init__(
        self,
        log_url: str,
        timeout: int = 60,
        client: httpx.Client | None = None,
    ) -> None:
        self._log_url = log_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    @property
    def log_url(self) -> str:
        return self._log_url

    def get_tree_size(self) -> Result[int]:
        """
        Fetch the current signed tree head and return its tree_size.

        Returns Result.failure(ENGINE_ERROR, ...) on HTTP or decoding errors.
        """
        return Result.from_computation(
            self._do_get_tree_size,
            ErrorCode.ENGINE_ERROR,
            f"get-sth failed for {self._log_url}",
        )

    def get_entries(self, start: int, end: int) -> Result[list[RawLogEntry]]:
        """
        Fetch entries start..end (inclusive).

        The log may return fewer entries than asked for, never more.
        """
        if start < 0 or end < start:
            return Result.failure(
                ErrorCode.ENGINE_ERROR, f"Invalid entry range [{start}, {end}]"
            )
        return Result.from_computation(
            lambda: self._do_get_entries(start, end),
            ErrorCode.ENGINE_ERROR,
            f"get-entries [{start}, {end}] failed for {self._log_url}",
        )

    def close(self) -> None:
        self._client.close()

    @_transient_retry
    def _do_get_tree_size(self) -> int:
        """HTTP call with retry — exceptions caught by from_computation."""
        response = self._client.get(self._log_url + _GET_STH_PATH)
        response.raise_for_status()
        tree_size = response.json()["tree_size"]
        if not isinstance(tree_size, int) or tree_size < 0:
            raise ValueError(f"Invalid tree_size in STH: {tree_size!r}")
        log.info("log_client.sth_fetched", log_url=self._log_url, tree_size=tree_size)
        return tree_size

    @_transient_retry
    def _do_get_entries(self, start: int, end: int) -> list[RawLogEntry]:
        """HTTP call with retry — exceptions caught by from_computation."""
        response = self._client.get(
            self._log_url + _GET_ENTRIES_PATH,
            params={"start": start, "end": end},
        )
        response.raise_for_status()
        entries = _parse_entries(response.json())
        if len(entries) > end - start + 1:
            raise ValueError(
                f"Log returned {len(entries)} entries for a range of {end - start + 1}"
            )
        log.debug("log_client.entries_fetched", start=start, end=end, received=len(entries))
        return entries
