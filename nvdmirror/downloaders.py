"""HTTP helpers for NVD feed metadata.

Each ``.meta`` document is a handful of ``key:value`` lines, e.g.::

    lastModifiedDate:2019-05-08T03:01:50-04:00
    size:10294532
    gzSize:540623
    sha256:8E33C1A0...

Only ``lastModifiedDate`` is used.  Requests are made once; any failure
is raised as :class:`~nvdmirror.errors.MetadataRetrievalError`.
"""

import datetime as dt
import logging

import requests

from . import __version__
from .config import SyncConfig
from .errors import MetadataRetrievalError
from .state import EPOCH, parse_rfc3339

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10
USER_AGENT = f"nvd-mirror/{__version__}"


def requests_session() -> requests.Session:
    """Create a requests session with the mirror's User-Agent.

    Returns:
        Configured ``requests.Session``.
    """
    s = requests.Session()
    s.headers.update({"User-Agent": USER_AGENT, "Accept": "text/plain, */*"})
    return s


def parse_meta(text: str) -> dt.datetime:
    """Extract ``lastModifiedDate`` from a ``.meta`` document.

    Lines are split at the first colon; lines without one are ignored.

    Args:
        text: Body of the ``.meta`` response.

    Returns:
        The last-modified time in UTC, or :data:`~nvdmirror.state.EPOCH`
        if the document has no ``lastModifiedDate`` line.

    Raises:
        ValueError: if the ``lastModifiedDate`` value is malformed.
    """
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        if key.strip() == "lastModifiedDate":
            return parse_rfc3339(value)
    return EPOCH


def fetch_last_modified(session: requests.Session, config: SyncConfig, feed: str) -> dt.datetime:
    """Fetch the remote last-modified time of a feed partition.

    Args:
        session: Requests session.
        config: Sync configuration (for the base URL).
        feed: Feed partition name, e.g. ``modified``.

    Returns:
        The partition's last-modified time in UTC.

    Raises:
        MetadataRetrievalError: on transport failure, non-200 status, or
            an unparseable timestamp.
    """
    logger.info("Fetching NVD metadata(%s)...", feed)
    url = config.meta_url(feed)
    try:
        r = session.get(url, timeout=(CONNECT_TIMEOUT, config.http_timeout))
    except requests.RequestException as e:
        raise MetadataRetrievalError(f"failed to fetch metadata for {feed}: {e}") from e
    if r.status_code != 200:
        raise MetadataRetrievalError(f"failed to fetch metadata for {feed}: HTTP {r.status_code} from {url}")
    try:
        return parse_meta(r.text)
    except ValueError as e:
        raise MetadataRetrievalError(f"invalid metadata for {feed}: {e}") from e


def fetch_remote_dates(
    session: requests.Session,
    config: SyncConfig,
) -> dict[str, dt.datetime]:
    """Fetch last-modified times for every incremental feed, in config order.

    The first failure aborts; no partial mapping is returned.
    """
    return {feed: fetch_last_modified(session, config, feed) for feed in config.incremental_feeds}
