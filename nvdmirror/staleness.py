"""Staleness detection for NVD feed partitions.

Decides which feeds need to be downloaded on this run.  The incremental
feeds (``modified``, ``recent``) are compared against the checkpoint; if
the mirror has fallen too far behind, incremental catch-up would miss
intermediate revisions, so the whole run escalates to a full backfill of
every yearly feed.
"""

import datetime as dt
from collections.abc import Mapping
from dataclasses import dataclass, field

DEFAULT_BACKFILL_THRESHOLD = dt.timedelta(days=7)
DEFAULT_ORIGIN_YEAR = 2002


@dataclass
class Resolution:
    """Outcome of staleness resolution for one run.

    Attributes:
        partitions: Feed partitions to fetch, in scheduling order.
        escalated: ``True`` if the incremental list was replaced by a
            full yearly backfill.
        stale: Incremental feeds found stale (before any escalation).
    """

    partitions: list[str] = field(default_factory=list)
    escalated: bool = False
    stale: list[str] = field(default_factory=list)


def is_stale(checkpoint: dt.datetime, remote_modified: dt.datetime) -> bool:
    """A feed is current only if the checkpoint is strictly newer than it."""
    return not checkpoint > remote_modified


def exceeds_backfill_threshold(
    checkpoint: dt.datetime,
    remote_modified: dt.datetime,
    threshold: dt.timedelta = DEFAULT_BACKFILL_THRESHOLD,
) -> bool:
    """Check whether the gap since the checkpoint is too large for catch-up."""
    return remote_modified - checkpoint > threshold


def backfill_partitions(origin_year: int, now: dt.datetime) -> list[str]:
    """One partition per calendar year, ``origin_year`` through ``now.year``."""
    return [str(year) for year in range(origin_year, now.year + 1)]


def resolve_partitions(
    checkpoint: dt.datetime,
    remote_dates: Mapping[str, dt.datetime],
    now: dt.datetime,
    *,
    origin_year: int = DEFAULT_ORIGIN_YEAR,
    threshold: dt.timedelta = DEFAULT_BACKFILL_THRESHOLD,
) -> Resolution:
    """Decide which feed partitions to fetch.

    Args:
        checkpoint: Time of the last fully successful sync.
        remote_dates: Incremental feed name to its remote last-modified
            time, in the order the feeds should be evaluated.
        now: Reference time for this run.
        origin_year: First year covered by the yearly feeds.
        threshold: Gap above which a stale feed forces a full backfill.

    Returns:
        A :class:`Resolution` describing what to fetch.
    """
    stale: list[str] = []
    escalate = False
    for feed, remote_modified in remote_dates.items():
        if not is_stale(checkpoint, remote_modified):
            continue
        stale.append(feed)
        if exceeds_backfill_threshold(checkpoint, remote_modified, threshold):
            escalate = True

    if escalate:
        return Resolution(partitions=backfill_partitions(origin_year, now), escalated=True, stale=stale)
    return Resolution(partitions=list(stale), escalated=False, stale=stale)
