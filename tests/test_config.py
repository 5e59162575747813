"""Tests for SyncConfig."""

from pathlib import Path

import pytest

from shot_session_sync.config import (
    DEFAULT_CONNECTIVITY_HOST,
    DEFAULT_QUEUE_FILENAME,
    SyncConfig,
)
from shot_session_sync.exceptions import AuthenticationError, ConfigurationError


class TestDefaults:
    def test_queue_path_inside_data_dir(self, temp_dir: Path) -> None:
        config = SyncConfig(data_dir=temp_dir)

        assert config.queue_path == temp_dir / DEFAULT_QUEUE_FILENAME

    def test_data_dir_expanded(self) -> None:
        config = SyncConfig(data_dir=Path("~/sync-data"))

        assert "~" not in str(config.data_dir)

    def test_invalid_numbers_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            SyncConfig(max_retries=-1)
        with pytest.raises(ConfigurationError):
            SyncConfig(request_timeout=0)

    @pytest.mark.parametrize(
        ("url", "host", "expected"),
        [
            (None, None, DEFAULT_CONNECTIVITY_HOST),
            ("https://abcd.supabase.co", None, "abcd.supabase.co"),
            ("https://abcd.supabase.co", "example.org", "example.org"),
        ],
    )
    def test_probe_host(self, url, host, expected) -> None:
        config = SyncConfig(supabase_url=url, connectivity_host=host)

        assert config.probe_host == expected

    def test_require_remote(self) -> None:
        config = SyncConfig(supabase_url="https://abcd.supabase.co/", supabase_key="k")

        assert config.require_remote() == ("https://abcd.supabase.co", "k")

    def test_require_remote_missing_settings(self) -> None:
        with pytest.raises(AuthenticationError):
            SyncConfig().require_remote()


class TestFromEnvironment:
    def test_reads_variables(self, monkeypatch: pytest.MonkeyPatch, temp_dir: Path) -> None:
        monkeypatch.setenv("SHOT_SYNC_SUPABASE_URL", "https://abcd.supabase.co")
        monkeypatch.setenv("SHOT_SYNC_SUPABASE_KEY", "anon")
        monkeypatch.setenv("SHOT_SYNC_ACCESS_TOKEN", "token")
        monkeypatch.setenv("SHOT_SYNC_DATA_DIR", str(temp_dir))
        monkeypatch.setenv("SHOT_SYNC_QUEUE_FILE", "ops.jsonl")
        monkeypatch.setenv("SHOT_SYNC_MAX_RETRIES", "5")

        config = SyncConfig.from_environment()

        assert config.supabase_url == "https://abcd.supabase.co"
        assert config.supabase_key == "anon"
        assert config.access_token == "token"
        assert config.queue_path == temp_dir / "ops.jsonl"
        assert config.max_retries == 5

    def test_bad_integer(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SHOT_SYNC_MAX_RETRIES", "many")

        with pytest.raises(ConfigurationError) as exc_info:
            SyncConfig.from_environment()

        assert exc_info.value.key == "SHOT_SYNC_MAX_RETRIES"


class TestFromYaml:
    def test_reads_section(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.yaml"
        path.write_text(
            "shot_sync:\n"
            "  supabase_url: https://abcd.supabase.co\n"
            "  supabase_key: anon\n"
            f"  data_dir: {temp_dir}\n"
            "  max_retries: 1\n"
            "other_tool:\n"
            "  enabled: true\n"
        )

        config = SyncConfig.from_yaml(path)

        assert config.supabase_url == "https://abcd.supabase.co"
        assert config.data_dir == temp_dir
        assert config.max_retries == 1

    def test_missing_file_gives_defaults(self, temp_dir: Path) -> None:
        config = SyncConfig.from_yaml(temp_dir / "absent.yaml")

        assert config.supabase_url is None
        assert config.queue_filename == DEFAULT_QUEUE_FILENAME

    def test_missing_section_gives_defaults(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.yaml"
        path.write_text("other_tool:\n  enabled: true\n")

        assert SyncConfig.from_yaml(path).max_retries == 3

    def test_unknown_keys_rejected(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.yaml"
        path.write_text("shot_sync:\n  supabase_uri: typo\n")

        with pytest.raises(ConfigurationError, match="supabase_uri"):
            SyncConfig.from_yaml(path)

    def test_invalid_yaml_rejected(self, temp_dir: Path) -> None:
        path = temp_dir / "settings.yaml"
        path.write_text("shot_sync: [unclosed\n")

        with pytest.raises(ConfigurationError):
            SyncConfig.from_yaml(path)
