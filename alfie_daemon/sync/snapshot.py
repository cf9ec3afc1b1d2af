"""
Remote integration snapshot: schema and fetcher.

The snapshot endpoint describes which Google accounts a tenant has linked.
Its response is untrusted, so it is validated against a strict pydantic
schema before anything downstream sees it. Any failure (network, status,
JSON, schema) is logged and reported as None; the next scheduled cycle is
the retry.
"""

from __future__ import annotations

import logging
from typing import Literal

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger("alfie.sync.snapshot")

SNAPSHOT_PATH = "/internal/v1/tenant-integrations/snapshot"
ERROR_BODY_PREVIEW_CHARS = 200


# --- Schema ---


class _SnapshotModel(BaseModel):
    model_config = ConfigDict(strict=True, frozen=True)


class GoogleAccount(_SnapshotModel):
    """One OAuth-linked Google mailbox."""

    id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)
    scopes: list[str] | None
    updated_at_iso: str = Field(..., alias="updatedAtIso", min_length=1)


class GoogleIntegration(_SnapshotModel):
    """Tenant-level Google OAuth client plus its linked accounts."""

    configured: bool
    client_id: str | None = Field(..., alias="clientId")
    client_secret: str | None = Field(..., alias="clientSecret")
    accounts: list[GoogleAccount]


class Integrations(_SnapshotModel):
    google: GoogleIntegration


class IntegrationSnapshot(_SnapshotModel):
    """Validated snapshot response."""

    ok: Literal[True]
    tenant_id: str = Field(..., alias="tenantId", min_length=1)
    tenant_status: str = Field(..., alias="tenantStatus", min_length=1)
    version: str = Field(..., min_length=1)
    integrations: Integrations

    @property
    def google(self) -> GoogleIntegration:
        return self.integrations.google


# --- Fetcher ---


def normalize_base_url(raw: str) -> str:
    """Trim whitespace and trailing slashes from an API base URL."""
    return raw.strip().rstrip("/")


def snapshot_url(api_url: str) -> str:
    return f"{normalize_base_url(api_url)}{SNAPSHOT_PATH}"


def parse_snapshot(text: str) -> IntegrationSnapshot | None:
    """Decode and validate a snapshot body, or None with the reason logged."""
    try:
        return IntegrationSnapshot.model_validate_json(text)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_input=False)
        if any(err["type"] == "json_invalid" for err in errors):
            logger.warning(f"Snapshot JSON parse failed: {errors[0]['msg']}")
            return None
        logger.warning(
            f"Snapshot validation failed ({e.error_count()} error(s)): "
            f"{errors}"
        )
        return None


def fetch_snapshot(
    api_url: str,
    gateway_token: str,
    timeout_ms: int,
    client: httpx.Client | None = None,
) -> IntegrationSnapshot | None:
    """
    Fetch the tenant integration snapshot.

    Args:
        api_url: Remote API base URL (trailing slashes are ignored)
        gateway_token: Bearer token for the authorization header
        timeout_ms: Hard timeout for the whole request
        client: Optional shared httpx client (a short-lived one is used otherwise)

    Returns:
        The validated snapshot, or None on any failure.
    """
    url = snapshot_url(api_url)
    headers = {"authorization": f"Bearer {gateway_token}"}
    timeout = timeout_ms / 1000

    try:
        if client is not None:
            response = client.get(url, headers=headers, timeout=timeout)
        else:
            with httpx.Client(timeout=timeout) as owned_client:
                response = owned_client.get(url, headers=headers)
    except httpx.TimeoutException as e:
        logger.warning(f"Snapshot fetch timed out after {timeout_ms}ms: {e!r}")
        return None
    except httpx.HTTPError as e:
        logger.warning(f"Snapshot fetch failed: {e!r}")
        return None

    text = response.text
    if not response.is_success:
        logger.warning(
            f"Snapshot fetch failed ({response.status_code}): "
            f"{text[:ERROR_BODY_PREVIEW_CHARS]}"
        )
        return None

    return parse_snapshot(text)
