"""
Enclave Key Registry
====================

Holds the registered oracle signer identities and answers "which key speaks
for this enclave id". ``resolve`` is the ONLY sanctioned way to obtain a
trusted key for verification; keys embedded in bundles are never trusted
directly.

Record lifecycle:
- register(): creates an ACTIVE record owned by an Ed25519 owner key
- revoke():   flips it to REVOKED (idempotent), only with a signature by the
              owner key over ``revoke_message(enclave_id)``
- records are NEVER deleted so historical attestations stay auditable

Ownership is a public key, never a name: the owner field is readable by
anyone through the listing endpoint, so knowing it grants nothing.

Concurrency:
- Mutations are serialized by a write lock held across build -> persist ->
  commit; a failed snapshot write leaves memory untouched
- A short read lock guards swapping in the new record map, so resolve()
  never waits on disk I/O
- Records are immutable; readers get the record object, never the map

Persistence (optional):
- If a snapshot path is configured, the full record set is written before
  every mutation is applied (temp file + atomic replace) and loaded at
  construction
"""

import json
import logging
import os
import tempfile
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

from delphi_canonical.constants import ED25519_PUBLIC_KEY_LENGTH, ED25519_SIGNATURE_LENGTH
from delphi_canonical.errors import (
    AuthorizationError,
    InputValidationError,
    KeyMaterialError,
    NotFoundError,
    RevokedError,
    StorageError,
)
from delphi_canonical.hexutil import hex_decode, hex_encode

logger = logging.getLogger(__name__)


class KeyStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"


def revoke_message(enclave_id: str) -> bytes:
    """Bytes the owner key signs to authorize revoking ``enclave_id``."""
    return f"revoke:{enclave_id}".encode("utf-8")


def sign_revocation(owner_key: Ed25519PrivateKey, enclave_id: str) -> bytes:
    return owner_key.sign(revoke_message(enclave_id))


@dataclass(frozen=True)
class EnclaveKeyRecord:
    id: str
    public_key: bytes
    owner: bytes
    status: KeyStatus
    registered_at: datetime
    revoked_at: Optional[datetime] = None

    @property
    def public_key_hex(self) -> str:
        return hex_encode(self.public_key)

    @property
    def owner_hex(self) -> str:
        return hex_encode(self.owner)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "public_key": self.public_key_hex,
            "owner": self.owner_hex,
            "status": self.status.value,
            "registered_at": self.registered_at.isoformat(),
            "revoked_at": self.revoked_at.isoformat() if self.revoked_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnclaveKeyRecord":
        revoked_at = data.get("revoked_at")
        return cls(
            id=data["id"],
            public_key=hex_decode(data["public_key"], ED25519_PUBLIC_KEY_LENGTH),
            owner=hex_decode(data["owner"], ED25519_PUBLIC_KEY_LENGTH),
            status=KeyStatus(data["status"]),
            registered_at=datetime.fromisoformat(data["registered_at"]),
            revoked_at=datetime.fromisoformat(revoked_at) if revoked_at else None,
        )


def _check_public_key(public_key: bytes, label: str = "Public key") -> bytes:
    """
    Shape check only: 32 raw bytes.

    Curve-point decoding happens at verification time; bytes that are not a
    valid point never verify any signature.
    """
    if not isinstance(public_key, (bytes, bytearray)):
        raise InputValidationError(f"{label} must be bytes, got {type(public_key).__name__}")
    if len(public_key) != ED25519_PUBLIC_KEY_LENGTH:
        raise InputValidationError(
            f"{label} must be {ED25519_PUBLIC_KEY_LENGTH} bytes, got {len(public_key)}"
        )
    return bytes(public_key)


def _check_revocation(record: EnclaveKeyRecord, signature: bytes):
    if not isinstance(signature, (bytes, bytearray)) or len(signature) != ED25519_SIGNATURE_LENGTH:
        raise AuthorizationError(f"Revocation of {record.id!r} needs a {ED25519_SIGNATURE_LENGTH}-byte owner signature")
    try:
        Ed25519PublicKey.from_public_bytes(record.owner).verify(bytes(signature), revoke_message(record.id))
    except (InvalidSignature, ValueError) as e:
        logger.warning(f"⚠️ Unauthorized revoke of {record.id}: bad owner signature")
        raise AuthorizationError(f"Signature is not from the registrant of {record.id!r}") from e


class EnclaveKeyRegistry:
    """
    Registered oracle signer keys.

    Args:
        snapshot_path: Optional JSON file holding the record set across restarts

    Raises:
        KeyMaterialError: If an existing snapshot cannot be parsed (fatal)
    """

    def __init__(self, snapshot_path: Optional[str] = None):
        self._records: Dict[str, EnclaveKeyRecord] = {}
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None

        if self.snapshot_path is not None and self.snapshot_path.exists():
            self._load_snapshot()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def register(self, public_key: bytes, owner: bytes) -> EnclaveKeyRecord:
        """
        Register ``public_key`` as a new ACTIVE signer owned by the Ed25519
        key ``owner``.

        Raises:
            InputValidationError: If either key is malformed
            StorageError: If the snapshot could not be written (nothing registered)
        """
        key = _check_public_key(public_key)
        owner_key = _check_public_key(owner, "Owner key")

        record = EnclaveKeyRecord(
            id=str(uuid.uuid4()),
            public_key=key,
            owner=owner_key,
            status=KeyStatus.ACTIVE,
            registered_at=datetime.now(timezone.utc),
        )
        with self._write_lock:
            self._commit(record)

        logger.info(
            f"✅ Registered enclave key {record.id} ({record.public_key_hex[:16]}...) "
            f"owner={record.owner_hex[:16]}..."
        )
        return record

    def revoke(self, enclave_id: str, signature: bytes) -> EnclaveKeyRecord:
        """
        Revoke a record. ``signature`` must be the owner key's signature over
        ``revoke_message(enclave_id)``.

        Revoking an already-revoked record returns it unchanged.

        Raises:
            NotFoundError: Unknown id
            AuthorizationError: The signature is not from the registrant
            StorageError: If the snapshot could not be written (still ACTIVE)
        """
        with self._write_lock:
            record = self.get(enclave_id)
            _check_revocation(record, signature)
            if record.status is KeyStatus.REVOKED:
                return record

            record = replace(record, status=KeyStatus.REVOKED, revoked_at=datetime.now(timezone.utc))
            self._commit(record)

        logger.info(f"🔒 Revoked enclave key {enclave_id}")
        return record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, enclave_id: str) -> EnclaveKeyRecord:
        """
        Raises:
            NotFoundError: Unknown id
        """
        with self._lock:
            record = self._records.get(enclave_id)
        if record is None:
            raise NotFoundError(f"No enclave key registered under {enclave_id!r}")
        return record

    def resolve(self, enclave_id: str) -> bytes:
        """
        Trusted public key for ``enclave_id``.

        Raises:
            NotFoundError: Unknown id
            RevokedError: The key was revoked
        """
        record = self.get(enclave_id)
        if record.status is KeyStatus.REVOKED:
            raise RevokedError(f"Enclave key {enclave_id!r} has been revoked")
        return record.public_key

    def records(self) -> List[EnclaveKeyRecord]:
        """All records, revoked included, oldest first."""
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: r.registered_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def _commit(self, record: EnclaveKeyRecord):
        # Caller holds self._write_lock
        with self._lock:
            records = dict(self._records)
        records[record.id] = record
        self._persist(records)
        with self._lock:
            self._records = records

    def _load_snapshot(self):
        try:
            data = json.loads(self.snapshot_path.read_text(encoding="utf-8"))
            records = [EnclaveKeyRecord.from_dict(item) for item in data["records"]]
        except (OSError, KeyError, TypeError, ValueError) as e:
            raise KeyMaterialError(f"Corrupted registry snapshot {self.snapshot_path}: {e}") from e

        self._records = {record.id: record for record in records}
        logger.info(f"Loaded {len(records)} enclave key records from {self.snapshot_path}")

    def _persist(self, records: Dict[str, EnclaveKeyRecord]):
        if self.snapshot_path is None:
            return
        try:
            self._write_snapshot({"records": [r.to_dict() for r in records.values()]})
        except OSError as e:
            logger.error(f"❌ Registry snapshot write failed, change not applied: {e}")
            raise StorageError(f"Registry snapshot could not be written: {e}") from e

    def _write_snapshot(self, payload: Dict[str, Any]):
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.snapshot_path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.snapshot_path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
