import base64
import binascii
import json
import os
import tempfile
import time
import typing as t
from dataclasses import dataclass
from pathlib import Path

from .constants import RP_ID, USER_ID_PREFIX
from .errors import StoreCorrupt
from .log import get_logger

log = get_logger(__name__)

# Names the earlier tool wrote, mapped to the current ones
LEGACY_KEYS = {"encryptedValue": "ciphertext", "iv": "nonce", "rpId": "relyingPartyId"}


def b64e(raw: t.Optional[bytes]) -> t.Optional[str]:
    if raw is None:
        return None
    return base64.b64encode(raw).decode("ascii")


def b64d(text: t.Optional[str]) -> t.Optional[bytes]:
    if text is None:
        return None
    return base64.b64decode(text.encode("ascii"), validate=True)


def user_handle_for(key_id: str) -> str:
    return b64e(f"{USER_ID_PREFIX}{key_id}".encode("utf-8"))


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class StoredSecretRecord:
    id: str
    label: str
    ciphertext: t.Optional[bytes] = None
    nonce: t.Optional[bytes] = None
    created_at: int = 0
    relying_party_id: str = RP_ID
    user_handle: t.Optional[str] = None
    credential_id: t.Optional[str] = None
    credential_public_key: t.Optional[bytes] = None

    @property
    def is_hardware_bound(self) -> bool:
        return bool(
            self.ciphertext
            and self.nonce
            and self.credential_id
            and self.credential_public_key
        )

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "label": self.label,
            "ciphertext": b64e(self.ciphertext),
            "nonce": b64e(self.nonce),
            "createdAt": self.created_at,
            "relyingPartyId": self.relying_party_id,
            "userHandle": self.user_handle,
            "credentialId": self.credential_id,
            "credentialPublicKey": b64e(self.credential_public_key),
        }
        return {k: v for k, v in d.items() if v is not None}

    def to_metadata(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "createdAt": self.created_at,
            "credentialId": self.credential_id,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "StoredSecretRecord":
        if not isinstance(d, dict):
            raise StoreCorrupt("Secret store entry is not an object")
        d = {LEGACY_KEYS.get(k, k): v for k, v in d.items()}

        key_id = d.get("id")
        if not isinstance(key_id, str) or not key_id:
            raise StoreCorrupt("Secret store entry has no id")

        def text(name, default=None):
            value = d.get(name, default)
            if value is not None and not isinstance(value, str):
                raise StoreCorrupt(f"Secret store entry {key_id!r} has a malformed {name}")
            return value

        def raw(name):
            try:
                return b64d(text(name))
            except (binascii.Error, ValueError) as err:
                raise StoreCorrupt(
                    f"Secret store entry {key_id!r} has a malformed {name}"
                ) from err

        created_at = d.get("createdAt", 0)
        if isinstance(created_at, bool) or not isinstance(created_at, (int, float)):
            raise StoreCorrupt(f"Secret store entry {key_id!r} has a malformed createdAt")

        return cls(
            id=key_id,
            label=text("label", key_id),
            ciphertext=raw("ciphertext"),
            nonce=raw("nonce"),
            created_at=int(created_at),
            relying_party_id=text("relyingPartyId", RP_ID),
            user_handle=text("userHandle"),
            credential_id=text("credentialId"),
            credential_public_key=raw("credentialPublicKey"),
        )


class SecretStore:
    """The whole-file JSON store. Read fresh on every call, never cached."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> t.List[StoredSecretRecord]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as err:
            raise StoreCorrupt(f"Failed to read secret store {self.path}") from err

        try:
            data = json.loads(text)
        except json.JSONDecodeError as err:
            raise StoreCorrupt(f"Secret store {self.path} is not valid JSON") from err
        if not isinstance(data, list):
            raise StoreCorrupt(f"Secret store {self.path} is not an array")

        records = [StoredSecretRecord.from_dict(d) for d in data]
        seen = set()
        for r in records:
            if r.id in seen:
                raise StoreCorrupt(f"Secret store {self.path} has duplicate id {r.id!r}")
            seen.add(r.id)
        log.debug("Loaded %d record(s) from %s", len(records), self.path)
        return records

    def save(self, records: t.Sequence[StoredSecretRecord]):
        """Overwrite the whole store; readers see the old or the new file, never a mix."""
        ids = [r.id for r in records]
        if len(ids) != len(set(ids)):
            raise ValueError("refusing to save records with duplicate ids")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([r.to_dict() for r in records], indent=2)
        fd, tmp = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        log.debug("Saved %d record(s) to %s", len(records), self.path)


def find_by_id(
    records: t.Sequence[StoredSecretRecord], key_id: str
) -> t.Optional[StoredSecretRecord]:
    for r in records:
        if r.id == key_id:
            return r
    return None


def replace_record(
    records: t.Sequence[StoredSecretRecord], record: StoredSecretRecord
) -> t.List[StoredSecretRecord]:
    """Drop any record sharing record.id, then append record."""
    return [r for r in records if r.id != record.id] + [record]
