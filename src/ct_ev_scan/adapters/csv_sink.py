"""
CSV result sink — counted, thread-safe row output for matched certificates.

Adapter layer — implements the ResultSink port on top of the stdlib csv
module. One row per match, no header, ragged rows:

  issuer CN, NotBefore (formatted), subject CN, DNS name, DNS name, ...

Matches arrive from many scanner worker threads at once, so "write row,
increment counter" runs under a single lock. The count therefore always
equals the number of rows handed to the writer.

Open, write and flush failures are returned as Result.failure(IO_ERROR);
nothing raises past this adapter.
"""

from __future__ import annotations

import csv
import sys
import threading
from collections.abc import Sequence
from pathlib import Path
from types import TracebackType
from typing import TextIO

import structlog
from railway import ErrorCode
from railway.result import Result

from ct_ev_scan.domain.models import MatchRecord

log = structlog.get_logger()

CONSOLE_TARGET = "-"


class CsvResultSink:
    """
    Append matched records to a CSV file or to standard output.

    Create with CsvResultSink.open(); use as a context manager so close()
    runs exactly once and every buffered row is flushed.
    """

    def __init__(self, stream: TextIO, target: str, owns_stream: bool = True) -> None:
        self._stream = stream
        self._target = target
        self._owns_stream = owns_stream
        self._writer = csv.writer(stream)
        self._lock = threading.Lock()
        self._count = 0
        self._closed = False
        self._close_result: Result[int] | None = None

    @classmethod
    def open(cls, target: str | Path) -> Result[CsvResultSink]:
        """
        Open (create or truncate) the destination.

        target "-" writes to standard output. Missing directories,
        permission problems or a directory path yield IO_ERROR.
        """
        target_str = str(target)
        if target_str == CONSOLE_TARGET:
            log.debug("sink.opened", target="stdout")
            return Result.success(cls(sys.stdout, target="stdout", owns_stream=False))
        return Result.from_computation(
            lambda: cls._open_file(Path(target_str)),
            ErrorCode.IO_ERROR,
            f"Cannot open output destination {target_str!r}",
        )

    @classmethod
    def _open_file(cls, path: Path) -> CsvResultSink:
        stream = path.open("w", encoding="utf-8", newline="")
        log.debug("sink.opened", target=str(path))
        return cls(stream, target=str(path))

    @property
    def target(self) -> str:
        return self._target

    @property
    def closed(self) -> bool:
        return self._closed

    def record(self, fields: Sequence[str]) -> Result[int]:
        """
        Write one row and bump the count. Returns the new count.

        A failed write leaves the count untouched; later writes still work.
        """
        row = list(fields)
        with self._lock:
            if self._closed:
                return Result.failure(
                    ErrorCode.IO_ERROR, f"Sink {self._target!r} is already closed"
                )
            try:
                self._writer.writerow(row)
            except (OSError, csv.Error) as e:
                return Result.failure(
                    ErrorCode.IO_ERROR,
                    f"Failed to write record to {self._target!r}",
                    e,
                )
            self._count += 1
            return Result.success(self._count)

    def record_match(self, record: MatchRecord) -> Result[int]:
        return self.record(record.as_row())

    def count(self) -> int:
        with self._lock:
            return self._count

    def close(self) -> Result[int]:
        """
        Flush and release the destination; returns the final count.

        Rows are buffered by record(), so a full disk usually surfaces here as
        IO_ERROR. Safe to call more than once: later calls return the first
        outcome.
        """
        with self._lock:
            if self._close_result is None:
                self._closed = True
                self._close_result = Result.from_computation(
                    self._release,
                    ErrorCode.IO_ERROR,
                    f"Failed to flush output to {self._target!r}",
                )
            return self._close_result

    def _release(self) -> int:
        try:
            self._stream.flush()
        finally:
            if self._owns_stream:
                self._stream.close()
        log.debug("sink.closed", target=self._target, records=self._count)
        return self._count

    def __enter__(self) -> CsvResultSink:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
