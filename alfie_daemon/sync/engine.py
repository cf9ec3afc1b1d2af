"""
Reconciliation engine.

One cycle: fetch snapshot -> diff against stored watermarks -> import changed
accounts through the credential tool -> persist the new state.

Failure containment:
- missing config, missing tool, unusable snapshot: cycle ends, nothing written
- one account's import failing: logged, its watermark stays stale, the
  remaining accounts still run, and it is retried next cycle
- state write failing: raised to the caller (the scheduler logs it)
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import SyncConfig
from .importer import CredentialImporter, GogCredentialImporter, ImportRequest
from .snapshot import GoogleAccount, IntegrationSnapshot, fetch_snapshot
from .storage import LocalSyncState, read_state, utc_now_iso, write_state

logger = logging.getLogger("alfie.sync.engine")


def normalize_email(raw: str) -> str:
    return raw.strip().lower()


def normalized_accounts(accounts: list[GoogleAccount]) -> list[GoogleAccount]:
    """Lower-case and trim every email, dropping accounts left empty."""
    result = []
    for account in accounts:
        email = normalize_email(account.email)
        if not email:
            continue
        result.append(account.model_copy(update={"email": email}))
    return result


def _stats(status: str, **extra: Any) -> dict[str, Any]:
    stats: dict[str, Any] = {
        "status": status,
        "imported": [],
        "skipped": [],
        "failed": {},
        "state_written": False,
        "version": None,
    }
    stats.update(extra)
    return stats


class IntegrationSyncer:
    """Brings local gog credentials in line with the tenant snapshot."""

    def __init__(
        self,
        config: SyncConfig,
        importer: CredentialImporter | None = None,
        http_client: httpx.Client | None = None,
    ):
        self.config = config
        self.importer = importer or GogCredentialImporter.from_config(config)
        self.http_client = http_client

    def _fetch(self) -> IntegrationSnapshot | None:
        return fetch_snapshot(
            self.config.api_url,
            self.config.gateway_token,
            self.config.snapshot_timeout_ms,
            client=self.http_client,
        )

    def sync(self) -> dict[str, Any]:
        """
        Run one reconciliation cycle.

        Safe to call repeatedly; an unchanged snapshot imports nothing and
        writes nothing.

        Returns dict with cycle statistics.
        """
        config = self.config

        if not config.enabled:
            logger.debug("ALFIE_MODE not enabled; skipping integration sync")
            return _stats("disabled")
        if not config.api_url:
            logger.warning("ALFIE_API_URL not set; skipping integration sync")
            return _stats("unconfigured")
        if not config.gateway_token:
            logger.warning("OPENCLAW_GATEWAY_TOKEN not set; skipping integration sync")
            return _stats("unconfigured")

        if not self.importer.is_available():
            logger.warning(
                f"{config.tool_binary} binary not found; skipping Google integration sync"
            )
            return _stats("tool_missing")

        snapshot = self._fetch()
        if snapshot is None:
            return _stats("no_snapshot")

        google = snapshot.google
        if not google.configured or not google.client_id or not google.client_secret:
            logger.debug("Google integration not configured for tenant; nothing to import")
            return _stats("google_not_configured", version=snapshot.version)

        accounts = normalized_accounts(google.accounts)
        if not accounts:
            logger.debug("Snapshot has no Google accounts; nothing to import")
            return _stats("no_accounts", version=snapshot.version)

        self.importer.ensure_client_credentials(google.client_id, google.client_secret)

        state = read_state(config.state_file)
        watermarks = dict(state.google)
        stats = _stats("synced", version=snapshot.version)
        changed = False

        for account in accounts:
            previous = watermarks.get(account.email, "")
            if previous and previous == account.updated_at_iso:
                stats["skipped"].append(account.email)
                continue

            result = self.importer.import_credential(
                ImportRequest(
                    email=account.email,
                    refresh_token=account.refresh_token,
                    scopes=account.scopes,
                )
            )
            if not result.ok:
                logger.warning(f"gog token import failed for {account.email}: {result.error}")
                stats["failed"][account.email] = result.error
                continue

            logger.info(f"Imported Google token for {account.email} ({account.updated_at_iso})")
            watermarks[account.email] = account.updated_at_iso
            stats["imported"].append(account.email)
            changed = True

        if changed or state.version != snapshot.version:
            write_state(
                config.state_file,
                LocalSyncState(
                    version=snapshot.version,
                    google=watermarks,
                    synced_at_iso=utc_now_iso(),
                    extra=state.extra,
                ),
            )
            stats["state_written"] = True

        logger.info(
            f"Integration sync {snapshot.version}: {len(stats['imported'])} imported, "
            f"{len(stats['skipped'])} unchanged, {len(stats['failed'])} failed"
        )
        return stats


def run_once(
    config: SyncConfig,
    importer: CredentialImporter | None = None,
    http_client: httpx.Client | None = None,
) -> dict[str, Any]:
    """Run a single reconciliation cycle with the given config."""
    return IntegrationSyncer(config, importer=importer, http_client=http_client).sync()
