"""
Tenant integration sync.

Imports the Google accounts a tenant has linked upstream into the local gog
keyring, one reconciliation cycle at a time.

Usage:
    # Run a single cycle and exit:
    python -m alfie_daemon.server --once

    # Sync runs automatically in the daemon background scheduler
"""

from .engine import IntegrationSyncer, run_once
from .importer import (
    CredentialImporter,
    CredentialImportResult,
    GogCredentialImporter,
    ImportRequest,
)
from .scheduler import SyncScheduler
from .snapshot import IntegrationSnapshot, fetch_snapshot
from .storage import LocalSyncState, read_state, write_state

__all__ = [
    # Engine
    "IntegrationSyncer",
    "run_once",
    "SyncScheduler",
    # Snapshot
    "IntegrationSnapshot",
    "fetch_snapshot",
    # Importer
    "CredentialImporter",
    "CredentialImportResult",
    "GogCredentialImporter",
    "ImportRequest",
    # Storage
    "LocalSyncState",
    "read_state",
    "write_state",
]
