"""Tests for environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

from alfie_daemon.config import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_SNAPSHOT_TIMEOUT_MS,
    DEFAULT_SYNC_INTERVAL_MS,
    SyncConfig,
    is_truthy,
    parse_positive_ms,
)


class TestParsing:
    """Tests for flag and number parsing."""

    def test_truthy_values(self) -> None:
        for raw in ("1", "true", "TRUE", " yes ", "on"):
            assert is_truthy(raw) is True
        for raw in (None, "", "0", "false", "off", "nope"):
            assert is_truthy(raw) is False

    def test_positive_ms_fallbacks(self) -> None:
        """Non-numeric, non-positive and non-finite values use the default."""
        assert parse_positive_ms(None, 30_000) == 30_000
        assert parse_positive_ms("abc", 30_000) == 30_000
        assert parse_positive_ms("0", 30_000) == 30_000
        assert parse_positive_ms("-5", 30_000) == 30_000
        assert parse_positive_ms("nan", 30_000) == 30_000
        assert parse_positive_ms("inf", 30_000) == 30_000
        assert parse_positive_ms("0.5", 30_000) == 30_000

    def test_positive_ms_accepts_numbers(self) -> None:
        assert parse_positive_ms("1500", 30_000) == 1500
        assert parse_positive_ms(" 2500.0 ", 30_000) == 2500


class TestSyncConfig:
    """Tests for SyncConfig.from_env."""

    def test_defaults_from_empty_env(self) -> None:
        config = SyncConfig.from_env({})

        assert config.enabled is False
        assert config.api_url == ""
        assert config.is_configured is False
        assert config.snapshot_timeout_ms == DEFAULT_SNAPSHOT_TIMEOUT_MS
        assert config.sync_interval_ms == DEFAULT_SYNC_INTERVAL_MS
        assert config.sync_interval_seconds == 30
        assert config.config_dir == DEFAULT_CONFIG_DIR
        assert config.tool_binary == "gog"

    def test_reads_all_settings(self, tmp_path: Path) -> None:
        config = SyncConfig.from_env({
            "ALFIE_MODE": "1",
            "ALFIE_API_URL": " https://api.example.test/ ",
            "OPENCLAW_GATEWAY_TOKEN": "gw",
            "ALFIE_INTEGRATION_SNAPSHOT_TIMEOUT_MS": "5000",
            "ALFIE_INTEGRATION_IMPORT_TIMEOUT_MS": "7000",
            "ALFIE_INTEGRATION_SYNC_INTERVAL_MS": "60000",
            "GOG_KEYRING_PASSWORD": "pass",
            "ALFIE_CONFIG_DIR": str(tmp_path / "cfg"),
            "XDG_CONFIG_HOME": str(tmp_path / "xdg"),
            "ALFIE_GOG_BINARY": "/opt/bin/gog",
        })

        assert config.enabled is True
        assert config.api_url == "https://api.example.test/"
        assert config.is_configured is True
        assert config.snapshot_timeout_ms == 5000
        assert config.import_timeout_ms == 7000
        assert config.sync_interval_seconds == 60
        assert config.effective_keyring_password == "pass"
        assert config.state_file == tmp_path / "cfg" / "alfie" / "integrations.json"
        assert config.tool_credentials_file == tmp_path / "xdg" / "gogcli" / "credentials.json"
        assert config.tool_binary == "/opt/bin/gog"

    def test_invalid_interval_falls_back(self) -> None:
        config = SyncConfig.from_env({"ALFIE_INTEGRATION_SYNC_INTERVAL_MS": "soon"})
        assert config.sync_interval_ms == DEFAULT_SYNC_INTERVAL_MS

        config = SyncConfig.from_env({"ALFIE_INTEGRATION_SYNC_INTERVAL_MS": "-1"})
        assert config.sync_interval_ms == DEFAULT_SYNC_INTERVAL_MS

    def test_keyring_password_falls_back_to_gateway_token(self) -> None:
        config = SyncConfig.from_env({
            "OPENCLAW_GATEWAY_TOKEN": "gw",
            "GOG_KEYRING_PASSWORD": "   ",
        })
        assert config.effective_keyring_password == "gw"

    def test_tool_config_home_defaults_to_config_dir(self, tmp_path: Path) -> None:
        config = SyncConfig.from_env({"ALFIE_CONFIG_DIR": str(tmp_path)})
        assert config.tool_config_home == tmp_path
        assert config.tool_credentials_file == tmp_path / "gogcli" / "credentials.json"
