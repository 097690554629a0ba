"""
Ledger persistence: models, the envelope codec, the local slot, remote stores
and the sync orchestrator that ties them together.
"""

from .envelope import DecryptionFailed, Envelope, EnvelopeError, MalformedPayload, UnsupportedVersion
from .local_store import LocalStore
from .models import Bucket, Ledger, LedgerError, Transaction
from .remote import RemoteStore, RemoteStoreError, RemoteUnavailable, RemoteWriteError, create_remote_store
from .sync import LoadResult, SyncOrchestrator, cloud_available, load_state, save_state

__all__ = [
    "Bucket",
    "DecryptionFailed",
    "Envelope",
    "EnvelopeError",
    "Ledger",
    "LedgerError",
    "LoadResult",
    "LocalStore",
    "MalformedPayload",
    "RemoteStore",
    "RemoteStoreError",
    "RemoteUnavailable",
    "RemoteWriteError",
    "SyncOrchestrator",
    "Transaction",
    "UnsupportedVersion",
    "cloud_available",
    "create_remote_store",
    "load_state",
    "save_state",
]
