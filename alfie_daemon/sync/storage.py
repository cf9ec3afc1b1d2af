"""
Local storage for the reconciliation record.

Storage structure:
    {config_dir}/alfie/integrations.json   - LocalSyncState, mode 0600

Reading and writing deliberately have different failure contracts:
- read_state() never raises; anything unusable degrades to an empty state
- write_state() always raises on failure, so the caller's error log sees it

All writes go through atomic_write_json(): temp sibling created 0600,
fsync, os.replace() over the target, then re-chmod. A reader sees either the
old file or the new one, never a partial write.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger("alfie.sync.storage")

PRIVATE_FILE_MODE = 0o600


# --- Data Types ---


def _empty_watermarks() -> dict[str, str]:
    return {}


def _empty_extra() -> dict[str, Any]:
    return {}


@dataclass
class LocalSyncState:
    """Persisted record of what has already been imported."""

    version: str | None = None
    # normalized email -> updatedAtIso of the last successful import
    google: dict[str, str] = field(default_factory=_empty_watermarks)
    synced_at_iso: str | None = None
    # Unknown top-level keys, carried through rewrites untouched
    extra: dict[str, Any] = field(default_factory=_empty_extra)

    def watermark(self, email: str) -> str:
        """Stored updatedAtIso for an account, or "" if never imported."""
        return self.google.get(email, "")

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk JSON shape."""
        data: dict[str, Any] = dict(self.extra)
        if self.version is not None:
            data["version"] = self.version
        data["google"] = {
            email: {"updatedAtIso": updated_at}
            for email, updated_at in self.google.items()
        }
        if self.synced_at_iso is not None:
            data["syncedAtIso"] = self.synced_at_iso
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocalSyncState:
        """
        Create from the on-disk JSON shape.

        Malformed fields are dropped rather than rejected.
        """
        version = data.get("version")
        synced_at = data.get("syncedAtIso")

        google: dict[str, str] = {}
        raw_google = data.get("google")
        if isinstance(raw_google, dict):
            for email, entry in raw_google.items():
                if not isinstance(entry, dict):
                    continue
                updated_at = entry.get("updatedAtIso")
                if isinstance(email, str) and isinstance(updated_at, str) and updated_at:
                    google[email] = updated_at

        return cls(
            version=version if isinstance(version, str) else None,
            google=google,
            synced_at_iso=synced_at if isinstance(synced_at, str) else None,
            extra={
                k: v
                for k, v in data.items()
                if k not in ("version", "google", "syncedAtIso")
            },
        )


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with a Z suffix."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


# --- Atomic file writes ---


def atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    """
    Write pretty JSON to path atomically with owner-only permissions.

    Raises OSError (or TypeError for unserializable payloads) on failure;
    the temp file is removed in that case.
    """
    content = json.dumps(payload, indent=2) + "\n"
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")

    try:
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PRIVATE_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        # O_CREAT mode is masked by umask and ignored for pre-existing files
        os.chmod(tmp_path, PRIVATE_FILE_MODE)
        os.replace(tmp_path, path)
        os.chmod(path, PRIVATE_FILE_MODE)
    except BaseException:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError as cleanup_error:
            logger.debug(f"Could not remove temp file {tmp_path}: {cleanup_error}")
        raise


# --- Sync state management ---


def read_state(state_file: Path) -> LocalSyncState:
    """Load sync state, degrading to an empty state on any problem."""
    try:
        raw = state_file.read_text(encoding="utf-8")
    except FileNotFoundError:
        return LocalSyncState()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to read sync state {state_file}: {e}")
        return LocalSyncState()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Sync state {state_file} is not valid JSON, starting fresh: {e}")
        return LocalSyncState()

    if not isinstance(data, dict):
        logger.warning(f"Sync state {state_file} is not a JSON object, starting fresh")
        return LocalSyncState()

    return LocalSyncState.from_dict(data)


def write_state(state_file: Path, state: LocalSyncState) -> None:
    """Persist sync state atomically. Errors propagate to the caller."""
    atomic_write_json(state_file, state.to_dict())
    logger.debug(
        f"Saved sync state: version={state.version}, accounts={len(state.google)}"
    )
