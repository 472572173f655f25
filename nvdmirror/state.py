"""Checkpoint persistence.

The checkpoint records when the local mirror was last fully synchronized.
It is stored as a tiny JSON document::

    {"Date": "2024-06-01T12:00:00Z"}

and is only ever rewritten as a whole, after every scheduled feed has
been fetched and written.
"""

import datetime as dt
import json
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import CheckpointError

EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)

_RFC3339_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>[Zz]|[+-]\d{2}:\d{2})?$"
)


def parse_rfc3339(value: str) -> dt.datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Accepts a trailing ``Z`` and fractional seconds of any precision
    (nanosecond timestamps are truncated to microseconds).  A timestamp
    without an offset is taken to be UTC.

    Args:
        value: Timestamp string, e.g. ``2019-05-08T03:01:50-04:00``.

    Returns:
        Timezone-aware datetime normalized to UTC.

    Raises:
        ValueError: if ``value`` is not an RFC 3339 timestamp.
    """
    m = _RFC3339_RE.match(value.strip())
    if not m:
        raise ValueError(f"invalid RFC 3339 timestamp: {value!r}")

    text = m.group("base").replace("t", "T").replace(" ", "T")
    frac = m.group("frac")
    if frac:
        text += "." + frac[:6].ljust(6, "0")
    tz = m.group("tz")
    if tz and tz not in ("Z", "z"):
        text += tz

    parsed = dt.datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed.astimezone(dt.timezone.utc)


def format_rfc3339(value: dt.datetime) -> str:
    """Format a datetime as an RFC 3339 UTC string with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).isoformat().replace("+00:00", "Z")


class Checkpoint(BaseModel):
    """On-disk checkpoint document."""

    model_config = ConfigDict(populate_by_name=True)

    date: dt.datetime = Field(alias="Date")

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        if isinstance(v, str):
            return parse_rfc3339(v)
        return v

    def to_json(self) -> str:
        return json.dumps({"Date": format_rfc3339(self.date)}, indent=2) + "\n"


class CheckpointStore:
    """Reads and atomically replaces the checkpoint file.

    Attributes:
        path: Path to the checkpoint JSON file.
    """

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> dt.datetime:
        """Return the last successful sync time.

        Returns:
            The stored timestamp, or :data:`EPOCH` if the file is absent.

        Raises:
            CheckpointError: if the file exists but can't be read or parsed.
        """
        if not self.path.exists():
            return EPOCH
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return Checkpoint.model_validate(raw).date
        except (OSError, ValueError, ValidationError) as e:
            raise CheckpointError(f"failed to read checkpoint {self.path}: {e}") from e

    def save(self, when: dt.datetime) -> None:
        """Replace the checkpoint file atomically (write-then-rename).

        Args:
            when: The reference time of the run that just completed.

        Raises:
            CheckpointError: if the file can't be written.
        """
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(Checkpoint(date=when).to_json(), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            raise CheckpointError(f"failed to write checkpoint {self.path}: {e}") from e
