"""
Configuration for offline session sync.

Settings can be given directly, read from environment variables, or read
from the ``shot_sync`` section of a YAML settings file:

```yaml
shot_sync:
  supabase_url: "https://abcd.supabase.co"
  supabase_key: "public-anon-key"
  data_dir: "~/.shot-sync"
  max_retries: 3
```
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from .exceptions import AuthenticationError, ConfigurationError

DEFAULT_DATA_DIR = Path.home() / ".shot-sync"
DEFAULT_QUEUE_FILENAME = "sync_queue.jsonl"
DEFAULT_CONNECTIVITY_HOST = "supabase.co"
SETTINGS_SECTION = "shot_sync"


@dataclass
class SyncConfig:
    """Configuration for the sync core.

    Environment Variables:
        SHOT_SYNC_SUPABASE_URL: Project URL of the remote backend
        SHOT_SYNC_SUPABASE_KEY: Public API key sent as ``apikey``
        SHOT_SYNC_ACCESS_TOKEN: User access token (defaults to the API key)
        SHOT_SYNC_DATA_DIR: Directory for local snapshots and the queue
        SHOT_SYNC_QUEUE_FILE: Queue file name (default: sync_queue.jsonl)
        SHOT_SYNC_CONNECTIVITY_HOST: Host resolved by connectivity probes
        SHOT_SYNC_MAX_RETRIES: Retries for transient remote failures

    Attributes:
        supabase_url: Project URL of the remote backend
        supabase_key: Public API key
        access_token: Bearer token for row-level security
        data_dir: Directory for local snapshots and the queue
        queue_filename: Name of the queue file inside data_dir
        connectivity_host: Host resolved by connectivity probes
        max_retries: Retries for transient remote failures
        request_timeout: Per-request timeout in seconds
    """

    supabase_url: str | None = None
    supabase_key: str | None = None
    access_token: str | None = None
    data_dir: Path = DEFAULT_DATA_DIR
    queue_filename: str = DEFAULT_QUEUE_FILENAME
    connectivity_host: str | None = None
    max_retries: int = 3
    request_timeout: float = 15.0

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir).expanduser()
        if self.max_retries < 0:
            raise ConfigurationError("max_retries", "must be >= 0")
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout", "must be > 0")

    @property
    def queue_path(self) -> Path:
        return self.data_dir / self.queue_filename

    @property
    def probe_host(self) -> str:
        """Host used for connectivity probes."""
        if self.connectivity_host:
            return self.connectivity_host
        if self.supabase_url:
            host = urlparse(self.supabase_url).hostname
            if host:
                return host
        return DEFAULT_CONNECTIVITY_HOST

    def require_remote(self) -> tuple[str, str]:
        """Return (url, key) or fail if the remote backend is not configured.

        Raises:
            AuthenticationError: If the URL or API key is missing
        """
        if not self.supabase_url:
            raise AuthenticationError("supabase", "SHOT_SYNC_SUPABASE_URL not set")
        if not self.supabase_key:
            raise AuthenticationError(self.supabase_url, "SHOT_SYNC_SUPABASE_KEY not set")
        return self.supabase_url.rstrip("/"), self.supabase_key

    @classmethod
    def from_environment(cls) -> SyncConfig:
        """Create configuration from environment variables."""
        return cls(
            supabase_url=os.environ.get("SHOT_SYNC_SUPABASE_URL"),
            supabase_key=os.environ.get("SHOT_SYNC_SUPABASE_KEY"),
            access_token=os.environ.get("SHOT_SYNC_ACCESS_TOKEN"),
            data_dir=Path(os.environ.get("SHOT_SYNC_DATA_DIR", str(DEFAULT_DATA_DIR))),
            queue_filename=os.environ.get("SHOT_SYNC_QUEUE_FILE", DEFAULT_QUEUE_FILENAME),
            connectivity_host=os.environ.get("SHOT_SYNC_CONNECTIVITY_HOST"),
            max_retries=_int_setting(
                "SHOT_SYNC_MAX_RETRIES", os.environ.get("SHOT_SYNC_MAX_RETRIES", "3")
            ),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> SyncConfig:
        """Create configuration from the ``shot_sync`` section of a YAML file.

        A missing file or section gives the defaults.

        Raises:
            ConfigurationError: If the file is not valid YAML or has unknown keys
        """
        if not path.exists():
            return cls()

        try:
            content = yaml.safe_load(path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(str(path), f"invalid YAML: {e}") from e

        section: dict[str, Any] = content.get(SETTINGS_SECTION) or {}
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(section) - known)
        if unknown:
            raise ConfigurationError(SETTINGS_SECTION, f"unknown keys: {', '.join(unknown)}")
        return cls(**section)


def _int_setting(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(name, f"not an integer: {raw!r}") from e
