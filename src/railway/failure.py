"""
Failure description — structured error information for the failure track.

Every failed Result carries a FailureDescription: an ErrorCode saying which
part of the scan broke, a human message, the originating exception (if any)
and a UTC timestamp.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """
    Error taxonomy for the CT scan.

    Fatal before scanning: CONFIGURATION_ERROR.
    Recoverable per record: IO_ERROR.
    Fatal during scanning: ENGINE_ERROR.
    """

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Unparsable date bound, bad log URL, unopenable output destination."""

    IO_ERROR = "IO_ERROR"
    """A single read or write against the result sink failed."""

    ENGINE_ERROR = "ENGINE_ERROR"
    """The log-walking engine failed: network, log server, undecodable entry."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected/unclassified failures."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor.

    >>> desc = FailureDescription(ErrorCode.IO_ERROR, "disk full")
    >>> desc.code
    <ErrorCode.IO_ERROR: 'IO_ERROR'>
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if any."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            )
        )
        return f"{self.message}\n{tb}"

    def __str__(self) -> str:
        if self.exception is None:
            return f"{self.code.value}: {self.message}"
        return f"{self.code.value}: {self.message} ({self.exception})"
