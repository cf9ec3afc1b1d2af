"""
Credential importer: hands Google refresh tokens to the gog CLI.

gog keeps its own file-backed keyring. We never look inside it; an exit code
of 0 from `gog auth tokens import` is the only success signal.

The engine talks to the CredentialImporter protocol so tests can swap in a
fake without a gog binary on PATH.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..config import SyncConfig
from .storage import atomic_write_json

logger = logging.getLogger("alfie.sync.importer")

IMPORT_ARGS = ("--no-input", "--plain", "auth", "tokens", "import", "-")


# --- Types ---


@dataclass(frozen=True)
class ImportRequest:
    """One account's token, as handed to the tool."""

    email: str
    refresh_token: str
    scopes: list[str] | None = None

    def to_payload(self) -> dict[str, object]:
        """JSON document written to the tool's stdin."""
        payload: dict[str, object] = {
            "email": self.email,
            "refresh_token": self.refresh_token,
        }
        if self.scopes is not None:
            payload["scopes"] = list(self.scopes)
        return payload


@dataclass(frozen=True)
class CredentialImportResult:
    """Outcome of one import; error is never empty when ok is False."""

    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> CredentialImportResult:
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str) -> CredentialImportResult:
        return cls(ok=False, error=error)


class CredentialImporter(Protocol):
    """Capability the reconciliation engine needs from the credential tool."""

    def is_available(self) -> bool: ...

    def ensure_client_credentials(self, client_id: str, client_secret: str) -> None: ...

    def import_credential(self, request: ImportRequest) -> CredentialImportResult: ...


# --- gog implementation ---


def describe_failure(binary: str, returncode: int, stdout: str, stderr: str) -> str:
    """Pick the most useful error text from a failed tool run."""
    return (
        stderr.strip()
        or stdout.strip()
        or f"{Path(binary).name} exited with code {returncode}"
    )


class GogCredentialImporter:
    """Imports refresh tokens with `gog auth tokens import -`."""

    def __init__(
        self,
        binary: str,
        config_home: Path,
        keyring_password: str,
        timeout_ms: int,
    ):
        self.binary = binary
        self.config_home = config_home
        self.keyring_password = keyring_password
        self.timeout_ms = timeout_ms

    @classmethod
    def from_config(cls, config: SyncConfig) -> GogCredentialImporter:
        return cls(
            binary=config.tool_binary,
            config_home=config.tool_config_home,
            keyring_password=config.effective_keyring_password,
            timeout_ms=config.import_timeout_ms,
        )

    @property
    def credentials_file(self) -> Path:
        return self.config_home / "gogcli" / "credentials.json"

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    def ensure_client_credentials(self, client_id: str, client_secret: str) -> None:
        """Write the OAuth client id/secret where gog expects them (0600)."""
        atomic_write_json(
            self.credentials_file,
            {"client_id": client_id, "client_secret": client_secret},
        )

    def _build_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env.update({
            "XDG_CONFIG_HOME": str(self.config_home),
            "GOG_KEYRING_BACKEND": "file",
            "GOG_KEYRING_PASSWORD": self.keyring_password,
        })
        return env

    def import_credential(self, request: ImportRequest) -> CredentialImportResult:
        """Run one import. Tool failures come back as results, not exceptions."""
        stdin_text = json.dumps(request.to_payload(), indent=2) + "\n"

        try:
            result = subprocess.run(
                [self.binary, *IMPORT_ARGS],
                input=stdin_text,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self._build_env(),
                timeout=self.timeout_ms / 1000,
            )
        except subprocess.TimeoutExpired:
            return CredentialImportResult.failure(
                f"{Path(self.binary).name} timed out after {self.timeout_ms}ms"
            )
        except OSError as e:
            return CredentialImportResult.failure(
                f"failed to run {self.binary}: {e}"
            )

        if result.returncode != 0:
            return CredentialImportResult.failure(
                describe_failure(self.binary, result.returncode, result.stdout, result.stderr)
            )

        logger.debug(f"Imported token for {request.email}")
        return CredentialImportResult.success()
