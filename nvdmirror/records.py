"""Splitting NVD feed documents into one JSON file per CVE.

A feed document looks like ``{"CVE_Items": [<item>, ...]}`` and each item
carries its identifier at ``cve.CVE_data_meta.ID``.  Items are written to
``<cves_dir>/<year>/<CVE-ID>.json``.

There are two failure modes:

- an item with a missing or malformed identifier produces a
  :class:`SkippedRecord` and processing continues;
- a filesystem failure raises :class:`~nvdmirror.errors.RecordWriteError`
  and aborts the rest of the document.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, NamedTuple

from .errors import RecordWriteError

logger = logging.getLogger(__name__)

ID_PATH = ("cve", "CVE_data_meta", "ID")


class RecordId(NamedTuple):
    """A three-part CVE identifier such as ``CVE-2023-1234``."""

    prefix: str
    year: str
    sequence: str

    def __str__(self) -> str:
        return f"{self.prefix}-{self.year}-{self.sequence}"


@dataclass
class SkippedRecord:
    """An item that was not written because its identifier was unusable.

    Attributes:
        index: Position of the item in ``CVE_Items``.
        reason: Human-readable explanation.
        raw_id: The identifier value as found, if any.
    """

    index: int
    reason: str
    raw_id: Any = None


@dataclass
class SaveSummary:
    """What :func:`save_document` did with one feed document."""

    written: int = 0
    skipped: list[SkippedRecord] = field(default_factory=list)


def _lookup(item: Any, path: tuple[str, ...]) -> Any:
    """Follow ``path`` through nested dicts; raise ``KeyError`` if absent."""
    node = item
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise KeyError("/" + "/".join(path))
        node = node[key]
    return node


def _is_safe_segment(segment: str) -> bool:
    return bool(segment) and segment not in (".", "..") and "/" not in segment and "\\" not in segment


def extract_identifier(item: Any, index: int = 0) -> RecordId | SkippedRecord:
    """Read and validate the identifier of one feed item.

    Args:
        item: One entry from ``CVE_Items``.
        index: Position of the entry, used in the skip reason.

    Returns:
        The parsed :class:`RecordId`, or a :class:`SkippedRecord` if the
        identifier is missing, not a string, or not three dash-separated
        path-safe components.
    """
    try:
        raw = _lookup(item, ID_PATH)
    except KeyError as e:
        return SkippedRecord(index=index, reason=f"missing identifier at {e.args[0]}")

    if not isinstance(raw, str):
        return SkippedRecord(index=index, reason=f"identifier is {type(raw).__name__}, not a string", raw_id=raw)

    parts = raw.split("-")
    if len(parts) != 3:
        return SkippedRecord(index=index, reason="identifier does not have three components", raw_id=raw)
    if not all(_is_safe_segment(p) for p in parts):
        return SkippedRecord(index=index, reason="identifier has an empty or unsafe component", raw_id=raw)

    return RecordId(*parts)


def record_path(cves_dir: Path, record_id: RecordId) -> Path:
    """Canonical file path for a record: ``<cves_dir>/<year>/<id>.json``."""
    return cves_dir / record_id.year / f"{record_id}.json"


def serialize_record(item: dict[str, Any]) -> str:
    """Render a record as stable, indented JSON.

    Keys are sorted so unchanged input always yields identical bytes.
    """
    return json.dumps(item, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def write_record(path: Path, item: dict[str, Any]) -> None:
    """Write one record atomically (write-then-rename), creating parent directories.

    An existing file is either replaced entirely or left untouched.

    Raises:
        RecordWriteError: if the directory or file can't be written.
    """
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open("w", encoding="utf-8") as f:
            f.write(serialize_record(item))
        tmp.replace(path)
    except OSError as e:
        # keep stray temp files out of the published tree
        if tmp.exists():
            tmp.unlink()
        raise RecordWriteError(f"failed to write {path}: {e}") from e


def save_document(document: dict[str, Any], cves_dir: Path) -> SaveSummary:
    """Write every valid record in a feed document, in document order.

    Args:
        document: Decoded feed document with a ``CVE_Items`` list.
        cves_dir: Root of the record tree.

    Returns:
        A :class:`SaveSummary` with the written count and skipped items.

    Raises:
        RecordWriteError: on the first write failure; later records are
            not processed.
    """
    summary = SaveSummary()
    for index, item in enumerate(document.get("CVE_Items") or []):
        extracted = extract_identifier(item, index)
        if isinstance(extracted, SkippedRecord):
            logger.warning("Skipping CVE item #%d (%r): %s", index, extracted.raw_id, extracted.reason)
            summary.skipped.append(extracted)
            continue
        write_record(record_path(cves_dir, extracted), item)
        summary.written += 1
    return summary
