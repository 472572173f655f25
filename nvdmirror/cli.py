"""Command-line entry point: update the mirror, then publish it."""

import argparse
import logging
from pathlib import Path
from typing import Sequence

from .config import SyncConfig, find_config, load_config
from .publisher import publish
from .updater import update

logger = logging.getLogger("nvdmirror")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="nvd-mirror",
        description="Mirror NVD JSON feeds as one file per CVE and push them to git.",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML/JSON config file (default: nvdmirror.yaml if present)")
    parser.add_argument("--workdir", type=Path, default=None, help="Repository working directory (default: current directory)")
    parser.add_argument("--no-push", action="store_true", help="Update files only; skip git commit/push")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _load(args: argparse.Namespace) -> SyncConfig:
    workdir = args.workdir or Path(".")
    path = args.config or find_config(workdir)
    config = load_config(path) if path else SyncConfig()
    if args.workdir is not None:
        config = config.model_copy(update={"workdir": args.workdir})
    return config


def main(argv: Sequence[str] | None = None) -> int:
    """Run one sync.

    Returns:
        Process exit status: ``0`` on success, ``1`` on any error.
    """
    args = _parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    try:
        config = _load(args)
        update(config, show_progress=not args.no_progress)
        if config.publish.enabled and not args.no_push:
            publish(config)
    except Exception as e:
        logger.error("%s", e, exc_info=args.verbose)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
