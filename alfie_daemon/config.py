"""
Centralized configuration for the integration sync daemon.

Architecture:
- SyncConfig: immutable bundle of everything one reconciliation cycle needs
- Values come from environment variables, read once via SyncConfig.from_env()
- Derived paths (state file, tool credentials file) are properties, not settings
"""

from __future__ import annotations

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


# --- Defaults ---

DEFAULT_SNAPSHOT_TIMEOUT_MS = 10_000
DEFAULT_IMPORT_TIMEOUT_MS = 30_000
DEFAULT_SYNC_INTERVAL_MS = 30_000
DEFAULT_CONFIG_DIR = Path.home() / ".alfie"
DEFAULT_TOOL_BINARY = "gog"

TRUTHY_VALUES = frozenset({"1", "true", "yes", "on"})


# --- Parsing helpers ---


def is_truthy(raw: object) -> bool:
    """Interpret an environment flag like ALFIE_MODE."""
    if raw is None:
        return False
    return str(raw).strip().lower() in TRUTHY_VALUES


def parse_positive_ms(raw: object, default: int) -> int:
    """
    Parse a millisecond setting.

    Non-numeric, non-finite or non-positive values fall back to the default.
    """
    if raw is None:
        return default
    try:
        value = float(str(raw).strip())
    except ValueError:
        return default
    if not math.isfinite(value):
        return default
    ms = int(value)
    if ms <= 0:
        return default
    return ms


def _clean(raw: str | None) -> str:
    return (raw or "").strip()


# --- Config ---


@dataclass(frozen=True)
class SyncConfig:
    """
    Immutable settings for the credential reconciliation loop.

    An empty api_url or gateway_token is a valid, deployable state: the
    engine treats it as "feature not configured" and does nothing.
    """

    enabled: bool = False
    api_url: str = ""
    gateway_token: str = ""
    snapshot_timeout_ms: int = DEFAULT_SNAPSHOT_TIMEOUT_MS
    import_timeout_ms: int = DEFAULT_IMPORT_TIMEOUT_MS
    sync_interval_ms: int = DEFAULT_SYNC_INTERVAL_MS
    keyring_password: str = ""
    config_dir: Path = DEFAULT_CONFIG_DIR
    xdg_config_home: Path | None = None
    tool_binary: str = DEFAULT_TOOL_BINARY

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> SyncConfig:
        """Build a config from environment variables (os.environ by default)."""
        if env is None:
            env = os.environ

        config_dir_raw = _clean(env.get("ALFIE_CONFIG_DIR"))
        xdg_raw = _clean(env.get("XDG_CONFIG_HOME"))

        return cls(
            enabled=is_truthy(env.get("ALFIE_MODE")),
            api_url=_clean(env.get("ALFIE_API_URL")),
            gateway_token=_clean(env.get("OPENCLAW_GATEWAY_TOKEN")),
            snapshot_timeout_ms=parse_positive_ms(
                env.get("ALFIE_INTEGRATION_SNAPSHOT_TIMEOUT_MS"),
                DEFAULT_SNAPSHOT_TIMEOUT_MS,
            ),
            import_timeout_ms=parse_positive_ms(
                env.get("ALFIE_INTEGRATION_IMPORT_TIMEOUT_MS"),
                DEFAULT_IMPORT_TIMEOUT_MS,
            ),
            sync_interval_ms=parse_positive_ms(
                env.get("ALFIE_INTEGRATION_SYNC_INTERVAL_MS"),
                DEFAULT_SYNC_INTERVAL_MS,
            ),
            keyring_password=_clean(env.get("GOG_KEYRING_PASSWORD")),
            config_dir=Path(config_dir_raw).expanduser() if config_dir_raw else DEFAULT_CONFIG_DIR,
            xdg_config_home=Path(xdg_raw).expanduser() if xdg_raw else None,
            tool_binary=_clean(env.get("ALFIE_GOG_BINARY")) or DEFAULT_TOOL_BINARY,
        )

    @property
    def state_file(self) -> Path:
        """Local reconciliation record."""
        return self.config_dir / "alfie" / "integrations.json"

    @property
    def tool_config_home(self) -> Path:
        """Config root handed to the credential tool as XDG_CONFIG_HOME."""
        return self.xdg_config_home or self.config_dir

    @property
    def tool_credentials_file(self) -> Path:
        """OAuth client credentials read by the credential tool."""
        return self.tool_config_home / "gogcli" / "credentials.json"

    @property
    def effective_keyring_password(self) -> str:
        """Keyring passphrase, falling back to the gateway token."""
        return self.keyring_password or self.gateway_token

    @property
    def sync_interval_seconds(self) -> float:
        return self.sync_interval_ms / 1000

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.gateway_token)
