"""Configuration models using Pydantic.

Every setting has a default matching the public NVD 1.0 JSON feeds, so
running without a config file mirrors NVD into ``cves/`` in the current
directory.  A YAML file only needs the keys it wants to override.
"""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_NAMES = ("nvdmirror.yaml", "nvdmirror.yml", "nvdmirror.json")


class PublishConfig(BaseModel):
    """Where and how the record tree is pushed after a successful update.

    Attributes:
        enabled: Run the publish step after updating.
        remote_url: HTTPS URL of the git remote to push to.
        remote_name: Name of the temporary remote registered for the push.
        username: Username for HTTPS basic auth.
        token_env: Environment variable holding the access token used as
            the basic-auth password.
        author_name: Commit author and committer name.
        author_email: Commit author and committer email.
        commit_message: Message for the update commit.
    """

    enabled: bool = True
    remote_url: str | None = None
    remote_name: str = "http"
    username: str = "nvd-mirror"
    token_env: str = "GITHUB_TOKEN"
    author_name: str = "nvd-mirror"
    author_email: str = "nvd-mirror@users.noreply.github.com"
    commit_message: str = "Automatic update"


class SyncConfig(BaseModel):
    """Validated sync configuration.

    Example YAML::

        base_url: https://nvd.nist.gov/feeds/json/cve/1.0
        incremental_feeds: [modified, recent]
        origin_year: 2002
        max_concurrency: 5
        publish:
          remote_url: https://github.com/example/nvd-mirror.git
          username: example
    """

    base_url: str = "https://nvd.nist.gov/feeds/json/cve/1.0"
    feed_version: str = "1.0"
    incremental_feeds: list[str] = Field(default_factory=lambda: ["modified", "recent"], min_length=1)
    origin_year: int = Field(default=2002, ge=1999, le=9999)
    backfill_threshold_days: int = Field(default=7, ge=1)
    max_concurrency: int = Field(default=5, ge=1)
    http_timeout: float = Field(default=300.0, gt=0)
    workdir: Path = Path(".")
    cves_dir: Path = Path("cves")
    checkpoint_file: Path = Path("last_updated.txt")
    publish: PublishConfig = Field(default_factory=PublishConfig)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("incremental_feeds", mode="before")
    @classmethod
    def _normalize_feeds(cls, v: Any) -> Any:
        """Lowercase and strip feed names, dropping blanks."""
        if not isinstance(v, (list, tuple)):
            return v
        return [str(item).strip().lower() for item in v if str(item).strip()]

    @property
    def cves_path(self) -> Path:
        """Record tree root, resolved against ``workdir``."""
        return self.workdir / self.cves_dir

    @property
    def checkpoint_path(self) -> Path:
        """Checkpoint file, resolved against ``workdir``."""
        return self.workdir / self.checkpoint_file

    def meta_url(self, feed: str) -> str:
        """URL of the ``.meta`` document for a feed partition."""
        return f"{self.base_url}/nvdcve-{self.feed_version}-{feed}.meta"

    def feed_url(self, feed: str) -> str:
        """URL of the gzip-compressed JSON payload for a feed partition."""
        return f"{self.base_url}/nvdcve-{self.feed_version}-{feed}.json.gz"


def load_config(path: Path) -> SyncConfig:
    """Load a sync configuration from a YAML or JSON file.

    Args:
        path: Path to the config file.

    Returns:
        Validated ``SyncConfig`` instance.

    Raises:
        FileNotFoundError: if the file doesn't exist.
        pydantic.ValidationError: if content fails validation.
    """
    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        raw = json.loads(content)
    else:
        raw = yaml.safe_load(content) or {}
    return SyncConfig.model_validate(raw)


def find_config(directory: Path = Path(".")) -> Path | None:
    """Find a config file in ``directory``, preferring YAML over JSON.

    Returns:
        Path to the first existing config file, or ``None``.
    """
    for name in DEFAULT_CONFIG_NAMES:
        candidate = directory / name
        if candidate.exists():
            return candidate
    return None
