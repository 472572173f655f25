"""Unit tests for nvdmirror.config — Pydantic configuration models."""

import json
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from nvdmirror.config import PublishConfig, SyncConfig, find_config, load_config

# ── PublishConfig ────────────────────────────────────────────────────────────


class TestPublishConfig:
    def test_defaults(self):
        p = PublishConfig()
        assert p.enabled is True
        assert p.remote_url is None
        assert p.remote_name == "http"
        assert p.token_env == "GITHUB_TOKEN"
        assert p.commit_message == "Automatic update"


# ── SyncConfig ───────────────────────────────────────────────────────────────


class TestSyncConfig:
    def test_defaults(self):
        c = SyncConfig()
        assert c.base_url == "https://nvd.nist.gov/feeds/json/cve/1.0"
        assert c.incremental_feeds == ["modified", "recent"]
        assert c.origin_year == 2002
        assert c.backfill_threshold_days == 7
        assert c.max_concurrency == 5
        assert c.cves_dir == Path("cves")
        assert c.checkpoint_file == Path("last_updated.txt")

    def test_urls(self):
        c = SyncConfig()
        assert c.meta_url("modified") == "https://nvd.nist.gov/feeds/json/cve/1.0/nvdcve-1.0-modified.meta"
        assert c.feed_url("2019") == "https://nvd.nist.gov/feeds/json/cve/1.0/nvdcve-1.0-2019.json.gz"

    def test_trailing_slash_stripped(self):
        c = SyncConfig(base_url="https://example.com/feeds/")
        assert c.feed_url("recent") == "https://example.com/feeds/nvdcve-1.0-recent.json.gz"

    def test_feed_version(self):
        c = SyncConfig(feed_version="1.1")
        assert c.meta_url("recent").endswith("nvdcve-1.1-recent.meta")

    def test_paths_resolve_against_workdir(self, tmp_path: Path):
        c = SyncConfig(workdir=tmp_path)
        assert c.cves_path == tmp_path / "cves"
        assert c.checkpoint_path == tmp_path / "last_updated.txt"

    def test_feeds_normalized(self):
        c = SyncConfig(incremental_feeds=["  Modified ", "RECENT", "  "])
        assert c.incremental_feeds == ["modified", "recent"]

    def test_empty_feeds_rejected(self):
        with pytest.raises(ValidationError):
            SyncConfig(incremental_feeds=[])

    def test_zero_concurrency_rejected(self):
        with pytest.raises(ValidationError):
            SyncConfig(max_concurrency=0)

    def test_zero_threshold_rejected(self):
        with pytest.raises(ValidationError):
            SyncConfig(backfill_threshold_days=0)

    def test_origin_year_range(self):
        with pytest.raises(ValidationError):
            SyncConfig(origin_year=1800)


# ── load_config / find_config ────────────────────────────────────────────────


class TestLoadConfig:
    def test_yaml(self, tmp_path: Path):
        path = tmp_path / "nvdmirror.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "max_concurrency": 3,
                    "cves_dir": "data/cves",
                    "publish": {"remote_url": "https://example.com/r.git", "username": "bot"},
                }
            )
        )
        c = load_config(path)
        assert c.max_concurrency == 3
        assert c.cves_dir == Path("data/cves")
        assert c.publish.remote_url == "https://example.com/r.git"
        assert c.publish.username == "bot"
        assert c.origin_year == 2002

    def test_empty_yaml(self, tmp_path: Path):
        path = tmp_path / "nvdmirror.yaml"
        path.write_text("")
        assert load_config(path) == SyncConfig()

    def test_json(self, tmp_path: Path):
        path = tmp_path / "nvdmirror.json"
        path.write_text(json.dumps({"origin_year": 2010}))
        assert load_config(path).origin_year == 2010

    def test_invalid_value(self, tmp_path: Path):
        path = tmp_path / "nvdmirror.yaml"
        path.write_text("max_concurrency: -1\n")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")


class TestFindConfig:
    def test_none_when_absent(self, tmp_path: Path):
        assert find_config(tmp_path) is None

    def test_prefers_yaml(self, tmp_path: Path):
        (tmp_path / "nvdmirror.json").write_text("{}")
        (tmp_path / "nvdmirror.yaml").write_text("")
        assert find_config(tmp_path) == tmp_path / "nvdmirror.yaml"

    def test_falls_back_to_json(self, tmp_path: Path):
        (tmp_path / "nvdmirror.json").write_text("{}")
        assert find_config(tmp_path) == tmp_path / "nvdmirror.json"
