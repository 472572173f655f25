"""Async feed payload downloads.

Uses ``aiohttp`` so that several yearly feeds can be downloaded at
once.  Concurrency is bounded by the caller (see ``updater``); this
module only knows how to fetch and decode a single partition.

Usage::

    async with client_session(config) as session:
        document = await fetch_feed(session, config, "recent")
"""

from __future__ import annotations

import asyncio
import gzip
import json
import logging
import zlib
from typing import Any

import aiohttp

from .config import SyncConfig
from .downloaders import CONNECT_TIMEOUT, USER_AGENT
from .errors import PayloadDecodeError, PayloadRetrievalError

logger = logging.getLogger(__name__)


def _default_headers() -> dict[str, str]:
    """HTTP headers sent with every payload request."""
    return {
        "User-Agent": USER_AGENT,
        "Accept": "application/gzip, application/octet-stream, */*",
    }


def client_session(config: SyncConfig) -> aiohttp.ClientSession:
    """Create an ``aiohttp`` session for payload downloads.

    Transparent decompression is disabled so the body is always the raw
    ``.json.gz`` bytes.
    """
    timeout = aiohttp.ClientTimeout(total=config.http_timeout, connect=CONNECT_TIMEOUT)
    return aiohttp.ClientSession(headers=_default_headers(), timeout=timeout, auto_decompress=False)


async def _fetch_bytes(session: aiohttp.ClientSession, url: str, feed: str) -> bytes:
    """Download raw bytes, mapping every failure to ``PayloadRetrievalError``."""
    try:
        async with session.get(url) as resp:
            if not 200 <= resp.status < 300:
                raise PayloadRetrievalError(f"failed to fetch feed {feed}: HTTP {resp.status} from {url}")
            return await resp.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise PayloadRetrievalError(f"failed to fetch feed {feed}: {e}") from e


def decode_feed(raw: bytes, feed: str = "?") -> dict[str, Any]:
    """Decompress and decode a ``.json.gz`` feed payload.

    Args:
        raw: gzip-compressed JSON bytes.
        feed: Partition name, for error messages.

    Returns:
        The decoded document; guaranteed to have a ``CVE_Items`` list.

    Raises:
        PayloadDecodeError: on gzip, UTF-8 or JSON errors, or if the
            document has no ``CVE_Items`` list.
    """
    try:
        document = json.loads(gzip.decompress(raw).decode("utf-8"))
    except (OSError, EOFError, zlib.error, ValueError) as e:
        raise PayloadDecodeError(f"failed to decode feed {feed}: {e}") from e

    if not isinstance(document, dict) or not isinstance(document.get("CVE_Items"), list):
        raise PayloadDecodeError(f"failed to decode feed {feed}: no CVE_Items list")
    return document


async def fetch_feed(session: aiohttp.ClientSession, config: SyncConfig, feed: str) -> dict[str, Any]:
    """Download and decode one feed partition.

    Args:
        session: ``aiohttp`` session (see :func:`client_session`).
        config: Sync configuration (for the base URL).
        feed: Partition name: ``modified``, ``recent`` or a year.

    Returns:
        Decoded feed document.

    Raises:
        PayloadRetrievalError: on transport failure or non-2xx status.
        PayloadDecodeError: if the payload can't be decoded.
    """
    url = config.feed_url(feed)
    logger.debug("Downloading NVD feed %s from %s", feed, url)
    raw = await _fetch_bytes(session, url, feed)
    document = decode_feed(raw, feed)
    logger.debug("Decoded %d CVE items from feed %s", len(document["CVE_Items"]), feed)
    return document
