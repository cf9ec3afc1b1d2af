"""Shared fixtures for integration sync tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from alfie_daemon.config import SyncConfig
from alfie_daemon.sync.importer import CredentialImportResult, ImportRequest

API_URL = "https://api.example.test"
GATEWAY_TOKEN = "gw-token"


def build_account(email: str, updated_at: str, **overrides: Any) -> dict[str, Any]:
    account: dict[str, Any] = {
        "id": f"acc-{email.strip().lower()}",
        "email": email,
        "refreshToken": f"rt-{updated_at}",
        "scopes": ["https://www.googleapis.com/auth/gmail.readonly"],
        "updatedAtIso": updated_at,
    }
    account.update(overrides)
    return account


def build_snapshot(
    version: str = "v1",
    accounts: list[dict[str, Any]] | None = None,
    *,
    configured: bool = True,
    client_id: str | None = "client-id",
    client_secret: str | None = "client-secret",
) -> dict[str, Any]:
    return {
        "ok": True,
        "tenantId": "tenant-1",
        "tenantStatus": "active",
        "version": version,
        "integrations": {
            "google": {
                "configured": configured,
                "clientId": client_id,
                "clientSecret": client_secret,
                "accounts": accounts if accounts is not None else [],
            }
        },
    }


class FakeImporter:
    """In-memory CredentialImporter that records every call."""

    def __init__(self, available: bool = True, failures: dict[str, str] | None = None):
        self.available = available
        self.failures = dict(failures or {})
        self.requests: list[ImportRequest] = []
        self.client_credentials: list[tuple[str, str]] = []

    @property
    def imported_emails(self) -> list[str]:
        return [r.email for r in self.requests]

    def is_available(self) -> bool:
        return self.available

    def ensure_client_credentials(self, client_id: str, client_secret: str) -> None:
        self.client_credentials.append((client_id, client_secret))

    def import_credential(self, request: ImportRequest) -> CredentialImportResult:
        self.requests.append(request)
        if request.email in self.failures:
            return CredentialImportResult.failure(self.failures[request.email])
        return CredentialImportResult.success()


class SnapshotServer:
    """Serves a mutable snapshot through httpx.MockTransport."""

    def __init__(self, payload: Any = None, status_code: int = 200):
        self.payload = payload
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.payload, str):
            return httpx.Response(self.status_code, text=self.payload)
        return httpx.Response(self.status_code, json=self.payload)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def make_snapshot() -> Callable[..., dict[str, Any]]:
    return build_snapshot


@pytest.fixture
def make_account() -> Callable[..., dict[str, Any]]:
    return build_account


@pytest.fixture
def fake_importer() -> FakeImporter:
    return FakeImporter()


@pytest.fixture
def snapshot_server() -> SnapshotServer:
    return SnapshotServer(build_snapshot())


@pytest.fixture
def sync_config(tmp_path: Path) -> SyncConfig:
    return SyncConfig(
        enabled=True,
        api_url=API_URL,
        gateway_token=GATEWAY_TOKEN,
        config_dir=tmp_path / "config",
    )
