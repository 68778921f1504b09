"""
Configuration — typed, validated settings for a scan run.

Uses pydantic-settings to:
  - Load from CT_EV_SCAN_* environment variables
  - Fall back to a .env file
  - Accept command-line overrides as init kwargs (highest priority)
  - Validate every value before the scanner or sink is built

env_nested_delimiter="__" maps CT_EV_SCAN_SCANNER__BATCH_SIZE → scanner.batch_size.

Any validation error here is a startup-fatal configuration error: the scan
never starts on bad input.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ct_ev_scan.domain.models import DEFAULT_DATE_FORMAT, DateWindow, ScanOptions

# Resolve the .env file relative to the project root (two levels above this file),
# so settings load correctly regardless of the working directory at runtime.
_ENV_FILE = Path(__file__).parent.parent.parent / ".env"

DEFAULT_LOG_URL = "https://ct.googleapis.com/pilot"
DATE_BOUND_FORMAT = "%Y-%m-%d"


def normalize_log_url(value: str) -> str:
    """
    Add https:// when no scheme is given and drop trailing slashes.

    Raises ValueError for non-HTTP schemes or a missing host.
    """
    url = value.strip()
    if not url:
        raise ValueError("Log URL must not be empty")
    if "://" not in url:
        url = f"https://{url}"
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        raise ValueError(f"Unsupported log URL scheme {parts.scheme!r}: {value!r}")
    if not parts.hostname:
        raise ValueError(f"Log URL has no host: {value!r}")
    return url.rstrip("/")


def parse_date_bound(value: Any) -> date | None:
    """
    Parse a YYYY-MM-DD issuance bound. None or "" means unbounded.

    Only the exact YYYY-MM-DD form is accepted.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return datetime.strptime(text, DATE_BOUND_FORMAT).date()
        except ValueError as e:
            raise ValueError(f"Date bound must be YYYY-MM-DD, got {value!r}") from e
    raise ValueError(f"Unsupported date bound: {value!r}")


def _utc_midnight(day: date | None) -> datetime | None:
    if day is None:
        return None
    return datetime.combine(day, time.min, tzinfo=UTC)


class ScannerSettings(BaseModel):
    """
    Log-walking tuning. Passed through to the scanner untouched.

    Defaults follow the values used against Google's pilot log:
    1000-entry batches, 10 concurrent fetches, 100 matching workers.
    """

    batch_size: int = Field(default=1000, ge=1, description="Entries per get-entries request")
    num_workers: int = Field(default=100, ge=1, description="Decode/match worker threads")
    parallel_fetch: int = Field(default=10, ge=1, description="Concurrent get-entries requests")
    start_index: int = Field(default=0, ge=0, description="First log index to scan")


class AppSettings(BaseSettings):
    """
    Root settings for one scan run.

    Load order (highest priority first):
      1. Init kwargs (command-line flags)
      2. CT_EV_SCAN_* environment variables
      3. .env file
      4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="CT_EV_SCAN_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_url: str = Field(default=DEFAULT_LOG_URL, description="CT log to scan")
    output: str = Field(default="ev-certs.csv", description="CSV destination, '-' for stdout")
    verbose: bool = Field(default=False)
    earliest: date | None = Field(
        default=None, description="Earliest NotBefore (inclusive); None means no lower bound"
    )
    latest: date | None = Field(
        default=None, description="Latest NotBefore (inclusive); None means no upper bound"
    )
    date_format: str = Field(
        default=DEFAULT_DATE_FORMAT, description="strftime format of the date column"
    )
    scanner: ScannerSettings = Field(default_factory=lambda: ScannerSettings())

    http_timeout_seconds: int = Field(default=60, ge=1)
    log_level: str = Field(default="INFO")

    @field_validator("log_url", mode="before")
    @classmethod
    def validate_log_url(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError(f"Log URL must be a string, got {value!r}")
        return normalize_log_url(value)

    @field_validator("earliest", "latest", mode="before")
    @classmethod
    def validate_date_bound(cls, value: Any) -> date | None:
        return parse_date_bound(value)

    @field_validator("output")
    @classmethod
    def validate_output(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Output destination must not be empty")
        return value

    @field_validator("date_format")
    @classmethod
    def validate_date_format(cls, value: str) -> str:
        """Reject formats that render a fixed timestamp as an empty string."""
        if not datetime(2015, 6, 1, tzinfo=UTC).strftime(value):
            raise ValueError(f"Date format {value!r} renders an empty column")
        return value

    def date_window(self) -> DateWindow:
        """The issuance window as UTC-midnight bounds; unset sides are unbounded."""
        return DateWindow(
            earliest=_utc_midnight(self.earliest),
            latest=_utc_midnight(self.latest),
        )

    def scan_options(self) -> ScanOptions:
        return ScanOptions(
            batch_size=self.scanner.batch_size,
            num_workers=self.scanner.num_workers,
            parallel_fetch=self.scanner.parallel_fetch,
            start_index=self.scanner.start_index,
            quiet=not self.verbose,
        )
