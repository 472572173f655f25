"""Update orchestrator.

One run of :func:`update` is all-or-nothing:

1. capture the reference time ``now``;
2. read the checkpoint and the incremental feeds' remote timestamps;
3. resolve which partitions to fetch (possibly escalating to a backfill);
4. download partitions concurrently (bounded), writing each document as
   soon as it arrives;
5. persist ``now`` as the new checkpoint only if every partition succeeded.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import requests
from tqdm import tqdm

from .async_downloaders import client_session, fetch_feed
from .config import SyncConfig
from .downloaders import fetch_remote_dates, requests_session
from .records import SaveSummary, save_document
from .staleness import resolve_partitions
from .state import CheckpointStore, format_rfc3339

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], Awaitable[dict[str, Any]]]
SaveFn = Callable[[dict[str, Any]], SaveSummary]


@dataclass
class UpdateSummary:
    """Result of a successful :func:`update` run.

    Attributes:
        now: Reference time of the run (the new checkpoint, if advanced).
        partitions: Feed partitions that were fetched.
        escalated: ``True`` if the run was a full yearly backfill.
        written: Number of record files written.
        skipped: Number of items skipped for bad identifiers.
        checkpoint_advanced: ``False`` for no-op runs.
    """

    now: dt.datetime
    partitions: list[str] = field(default_factory=list)
    escalated: bool = False
    written: int = 0
    skipped: int = 0
    checkpoint_advanced: bool = False


def _retrieve_exception(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()


async def fetch_and_save(
    partitions: Sequence[str],
    fetch: FetchFn,
    save: SaveFn,
    limit: int = 5,
    progress: tqdm | None = None,
) -> tuple[int, int]:
    """Fetch partitions concurrently and save each as it completes.

    At most ``limit`` fetches are in flight at once.  Documents are saved
    one at a time in completion order.  The first fetch or save error is
    raised immediately; fetches still running are not awaited.

    Args:
        partitions: Partition names to fetch.
        fetch: Coroutine function returning a decoded feed document.
        save: Writes one document, returning its :class:`SaveSummary`.
        limit: Maximum concurrent fetches.
        progress: Optional progress bar advanced once per partition.

    Returns:
        ``(written, skipped)`` record totals.
    """
    semaphore = asyncio.Semaphore(limit)

    async def worker(feed: str) -> dict[str, Any]:
        async with semaphore:
            return await fetch(feed)

    tasks = [asyncio.create_task(worker(feed)) for feed in partitions]
    for task in tasks:
        # abandoned tasks still have their exceptions retrieved
        task.add_done_callback(_retrieve_exception)
    written = skipped = 0
    for next_done in asyncio.as_completed(tasks):
        document = await next_done
        result = save(document)
        written += result.written
        skipped += len(result.skipped)
        if progress is not None:
            progress.update(1)
    return written, skipped


async def _sync_partitions(
    config: SyncConfig,
    partitions: Sequence[str],
    fetch: FetchFn | None,
    show_progress: bool,
) -> tuple[int, int]:
    def save(document: dict[str, Any]) -> SaveSummary:
        return save_document(document, config.cves_path)

    with tqdm(total=len(partitions), desc="NVD feeds", unit="feed", disable=not show_progress) as bar:
        if fetch is not None:
            return await fetch_and_save(partitions, fetch, save, config.max_concurrency, bar)

        async with client_session(config) as http:

            async def fetch_one(feed: str) -> dict[str, Any]:
                return await fetch_feed(http, config, feed)

            return await fetch_and_save(partitions, fetch_one, save, config.max_concurrency, bar)


def update(
    config: SyncConfig,
    now: dt.datetime | None = None,
    session: requests.Session | None = None,
    fetch: FetchFn | None = None,
    show_progress: bool = True,
) -> UpdateSummary:
    """Bring the local record tree up to date with NVD.

    Args:
        config: Sync configuration.
        now: Reference time for the run; defaults to the current UTC time.
        session: Requests session for metadata; one is created if omitted.
        fetch: Payload fetcher override (mainly for tests); defaults to
            :func:`~nvdmirror.async_downloaders.fetch_feed` over a fresh
            ``aiohttp`` session.
        show_progress: Display a progress bar while fetching.

    Returns:
        An :class:`UpdateSummary`.

    Raises:
        NvdMirrorError: any metadata, payload, write or checkpoint failure.
            The checkpoint is not advanced.
    """
    if now is None:
        now = dt.datetime.now(dt.timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    else:
        now = now.astimezone(dt.timezone.utc)

    store = CheckpointStore(config.checkpoint_path)
    checkpoint = store.load()
    logger.debug("Last successful sync: %s", format_rfc3339(checkpoint))

    remote_dates = fetch_remote_dates(session or requests_session(), config)
    resolution = resolve_partitions(
        checkpoint,
        remote_dates,
        now,
        origin_year=config.origin_year,
        threshold=dt.timedelta(days=config.backfill_threshold_days),
    )
    summary = UpdateSummary(now=now, partitions=resolution.partitions, escalated=resolution.escalated)

    if not resolution.partitions:
        logger.info("NVD data is up to date, nothing to fetch")
        return summary

    if resolution.escalated:
        logger.info(
            "Last sync is more than %d days behind; fetching all years %s-%s",
            config.backfill_threshold_days,
            resolution.partitions[0],
            resolution.partitions[-1],
        )

    logger.info("Fetching NVD data...")
    summary.written, summary.skipped = asyncio.run(
        _sync_partitions(config, resolution.partitions, fetch, show_progress)
    )

    store.save(now)
    summary.checkpoint_advanced = True
    logger.info(
        "Wrote %d CVE records from %d feed(s), skipped %d",
        summary.written,
        len(summary.partitions),
        summary.skipped,
    )
    return summary
