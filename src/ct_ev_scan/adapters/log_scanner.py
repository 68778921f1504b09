"""
Parallel log scanner — walks a CT log and feeds every entry to a Matcher.

Adapter layer — implements the LogScanner port on top of any LogClient.

  get_tree_size()
    → split [start_index, tree_size) into batch_size ranges
      → parallel_fetch threads: get_entries(range)   (short reads re-requested)
        → num_workers threads: decode_entry → matcher → on_match / on_unmatched

At most 2 × parallel_fetch ranges are fetched at once, and no new fetch starts
while more than 2 × num_workers decode jobs are queued, so memory stays
bounded on logs with hundreds of millions of entries.

Failure policy: the first fetch, decode or callback failure stops the walk.
Queued work is cancelled and the failure is returned as ENGINE_ERROR. There is
no checkpointing; a failed scan is re-run from start_index.
"""

from __future__ import annotations

import math
import threading
from collections import deque
from collections.abc import Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, as_completed, wait

import structlog
from railway import ErrorCode, FailureDescription
from railway.result import Result

from ct_ev_scan.adapters.entry_decoder import decode_entry
from ct_ev_scan.domain.models import (
    EntryType,
    LogEntry,
    RawLogEntry,
    ScanOptions,
    ScanStats,
)
from ct_ev_scan.domain.ports import EntryCallback, LogClient, Matcher

log = structlog.get_logger()


def _ignore(entry: LogEntry) -> None:
    return None


class _Tally:
    """Counters shared by the worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.processed = 0
        self.certificates = 0
        self.precertificates = 0

    def add(self, processed: int, certificates: int, precertificates: int) -> None:
        with self._lock:
            self.processed += processed
            self.certificates += certificates
            self.precertificates += precertificates

    def snapshot(self, tree_size: int) -> ScanStats:
        with self._lock:
            return ScanStats(
                tree_size=tree_size,
                entries_processed=self.processed,
                certificates_matched=self.certificates,
                precertificates_matched=self.precertificates,
            )


class ParallelLogScanner:
    """
    Concurrent CT log walker.

    Implements the LogScanner port. Matcher and callbacks are invoked from
    worker threads, so both must be thread-safe.
    """

    def __init__(self, client: LogClient, options: ScanOptions | None = None) -> None:
        self._client = client
        self._options = options or ScanOptions()
        if self._options.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self._options.num_workers < 1 or self._options.parallel_fetch < 1:
            raise ValueError("num_workers and parallel_fetch must be at least 1")
        if self._options.start_index < 0:
            raise ValueError("start_index must be non-negative")

    @property
    def options(self) -> ScanOptions:
        return self._options

    def scan(
        self,
        matcher: Matcher,
        on_match: EntryCallback,
        on_unmatched: EntryCallback | None = None,
    ) -> Result[ScanStats]:
        """
        Walk the log from start_index to the current tree size.

        Returns the scan totals, or the first ENGINE_ERROR encountered.
        """
        return self._client.get_tree_size().flat_map(
            lambda tree_size: self._walk(tree_size, matcher, on_match, on_unmatched or _ignore)
        )

    # ─────────────────────── Walk ───────────────────────

    def _batch_ranges(self, tree_size: int) -> Iterator[tuple[int, int]]:
        size = self._options.batch_size
        for start in range(self._options.start_index, tree_size, size):
            yield start, min(start + size, tree_size) - 1

    def _walk(
        self,
        tree_size: int,
        matcher: Matcher,
        on_match: EntryCallback,
        on_unmatched: EntryCallback,
    ) -> Result[ScanStats]:
        opts = self._options
        ranges = deque(self._batch_ranges(tree_size))
        tally = _Tally()
        log.info(
            "scanner.started",
            tree_size=tree_size,
            start_index=opts.start_index,
            batches=len(ranges),
        )

        failure: FailureDescription | None = None
        with (
            ThreadPoolExecutor(opts.parallel_fetch, thread_name_prefix="ct-fetch") as fetchers,
            ThreadPoolExecutor(opts.num_workers, thread_name_prefix="ct-match") as workers,
        ):
            fetching: dict[Future[Result[list[RawLogEntry]]], int] = {}
            matching: set[Future[Result[int]]] = set()
            try:
                while (ranges or fetching) and failure is None:
                    while (
                        ranges
                        and len(fetching) < 2 * opts.parallel_fetch
                        and len(matching) <= 2 * opts.num_workers
                    ):
                        start, end = ranges.popleft()
                        fetching[fetchers.submit(self._fetch_range, start, end)] = start

                    done, _ = wait([*fetching, *matching], return_when=FIRST_COMPLETED)
                    for future in done:
                        if future not in fetching:
                            continue
                        start = fetching.pop(future)
                        fetched = future.result()
                        if fetched.is_failure():
                            failure = fetched.error()
                            break
                        for first_index, chunk in self._chunks(start, fetched.value()):
                            matching.add(
                                workers.submit(
                                    self._process_chunk,
                                    first_index,
                                    chunk,
                                    matcher,
                                    on_match,
                                    on_unmatched,
                                    tally,
                                )
                            )
                        self._report_progress(tally, tree_size)

                    failure = failure or _first_failure(matching, block=False)

                if failure is None:
                    failure = _first_failure(matching, block=True)
            except KeyboardInterrupt:
                log.warning("scanner.interrupted")
                fetchers.shutdown(wait=False, cancel_futures=True)
                workers.shutdown(wait=False, cancel_futures=True)
                raise

            if failure is not None:
                fetchers.shutdown(wait=False, cancel_futures=True)
                workers.shutdown(wait=False, cancel_futures=True)

        if failure is not None:
            log.error("scanner.aborted", failure=str(failure))
            return Result.failure_from(failure)

        stats = tally.snapshot(tree_size)
        log.info(
            "scanner.completed",
            entries_processed=stats.entries_processed,
            certificates_matched=stats.certificates_matched,
            precertificates_matched=stats.precertificates_matched,
        )
        return Result.success(stats)

    # ─────────────────────── Fetch ───────────────────────

    def _fetch_range(self, start: int, end: int) -> Result[list[RawLogEntry]]:
        """Fetch start..end completely, re-requesting after short reads."""
        entries: list[RawLogEntry] = []
        next_start = start
        while next_start <= end:
            result = self._client.get_entries(next_start, end)
            if result.is_failure():
                return result
            batch = result.value()
            if not batch:
                return Result.failure(
                    ErrorCode.ENGINE_ERROR,
                    f"Log returned no entries for [{next_start}, {end}]",
                )
            entries.extend(batch)
            next_start += len(batch)
        return Result.success(entries)

    def _chunks(
        self, start: int, entries: list[RawLogEntry]
    ) -> Iterator[tuple[int, list[RawLogEntry]]]:
        """Spread one fetched batch over the worker pool."""
        if not entries:
            return
        size = max(1, math.ceil(len(entries) / self._options.num_workers))
        for offset in range(0, len(entries), size):
            yield start + offset, entries[offset : offset + size]

    # ─────────────────────── Match ───────────────────────

    def _process_chunk(
        self,
        first_index: int,
        chunk: list[RawLogEntry],
        matcher: Matcher,
        on_match: EntryCallback,
        on_unmatched: EntryCallback,
        tally: _Tally,
    ) -> Result[int]:
        return Result.from_computation(
            lambda: self._match_chunk(first_index, chunk, matcher, on_match, on_unmatched, tally),
            ErrorCode.ENGINE_ERROR,
            f"Failed to process log entries from index {first_index}",
        )

    @staticmethod
    def _match_chunk(
        first_index: int,
        chunk: list[RawLogEntry],
        matcher: Matcher,
        on_match: EntryCallback,
        on_unmatched: EntryCallback,
        tally: _Tally,
    ) -> int:
        certificates = precertificates = 0
        for offset, raw in enumerate(chunk):
            entry = decode_entry(first_index + offset, raw)
            if entry.entry_type is EntryType.X509:
                assert entry.certificate is not None
                matched = matcher.certificate_matches(entry.certificate)
                certificates += matched
            else:
                assert entry.precertificate is not None
                matched = matcher.precertificate_matches(entry.precertificate)
                precertificates += matched
            if matched:
                on_match(entry)
            else:
                on_unmatched(entry)
        tally.add(len(chunk), certificates, precertificates)
        return len(chunk)

    def _report_progress(self, tally: _Tally, tree_size: int) -> None:
        stats = tally.snapshot(tree_size)
        emit = log.debug if self._options.quiet else log.info
        emit(
            "scanner.progress",
            processed=stats.entries_processed,
            tree_size=tree_size,
            matched=stats.total_matched,
        )


def _first_failure(
    pending: set[Future[Result[int]]], block: bool
) -> FailureDescription | None:
    """Drain finished match jobs; return the first failure seen."""
    finished = as_completed(list(pending)) if block else [f for f in list(pending) if f.done()]
    for future in finished:
        pending.discard(future)
        result = future.result()
        if result.is_failure():
            return result.error()
    return None
