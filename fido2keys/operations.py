import typing as t

from .config import Settings
from .constants import USER_ID_PREFIX
from .crypto import decrypt_text, derive_key, encrypt_text, random_challenge
from .errors import KeyNotFound, StoreCorrupt, UnsupportedRecord
from .gate import CredentialGate
from .log import get_logger
from .store import (
    SecretStore,
    StoredSecretRecord,
    find_by_id,
    now_ms,
    replace_record,
    user_handle_for,
)

log = get_logger(__name__)

Confirm = t.Callable[[str], bool]


def set_secret(
    store: SecretStore,
    gate: CredentialGate,
    settings: Settings,
    key_id: str,
    label: str,
    value: str,
    confirm_replace: Confirm,
) -> t.Optional[StoredSecretRecord]:
    """Enroll a new credential and store value under it.

    An existing record with the same id is replaced, never updated in place,
    since its enrollment is being replaced too. Returns None when the user
    declines the replacement.
    """
    if find_by_id(store.load(), key_id) is not None:
        if not confirm_replace(f"Key {key_id!r} already exists, replace it?"):
            log.info("Kept existing %r", key_id)
            return None

    user_id = f"{USER_ID_PREFIX}{key_id}".encode("utf-8")
    enrollment = gate.enroll(user_id, f"{label} ({key_id})", settings.verify_timeout)
    key = derive_key(enrollment.credential_id, enrollment.public_key)
    ciphertext, nonce = encrypt_text(value, key)

    record = StoredSecretRecord(
        id=key_id,
        label=label,
        ciphertext=ciphertext,
        nonce=nonce,
        created_at=now_ms(),
        relying_party_id=settings.relying_party_id,
        user_handle=user_handle_for(key_id),
        credential_id=enrollment.credential_id,
        credential_public_key=enrollment.public_key,
    )
    # reload: enrollment may have taken a while
    store.save(replace_record(store.load(), record))
    log.info("Stored %r", key_id)
    return record


def get_secret(
    store: SecretStore, gate: CredentialGate, settings: Settings, key_id: str
) -> str:
    """Verify the credential and return the plaintext to the caller only."""
    record = find_by_id(store.load(), key_id)
    if record is None:
        raise KeyNotFound(key_id=key_id)
    if not record.is_hardware_bound:
        raise UnsupportedRecord(key_id=key_id)
    gate.verify(record.credential_id, random_challenge(), settings.verify_timeout)
    key = derive_key(record.credential_id, record.credential_public_key)
    return decrypt_text(record.ciphertext, record.nonce, key)


def list_secrets(store: SecretStore) -> t.List[dict]:
    return [r.to_metadata() for r in store.load()]


def delete_secret(store: SecretStore, key_id: str, confirm: Confirm) -> bool:
    # The authenticator keeps its credential; it knows nothing of our records.
    records = store.load()
    record = find_by_id(records, key_id)
    if record is None:
        raise KeyNotFound(key_id=key_id)
    if not confirm(f"Delete {record.label} ({key_id})?"):
        return False
    store.save([r for r in records if r.id != key_id])
    log.info("Deleted %r", key_id)
    return True


def clear_secrets(store: SecretStore, confirm: Confirm) -> t.Optional[int]:
    """Empty the store. Irreversible. Returns None when declined."""
    try:
        count = len(store.load())
    except StoreCorrupt:
        # clearing is how a corrupt store gets reset
        count = 0
    if not confirm("Delete ALL stored keys? This cannot be undone!"):
        return None
    store.save([])
    log.info("Cleared %d record(s)", count)
    return count


def store_status(store: SecretStore, gate: CredentialGate) -> dict:
    status = {
        "gate": gate.describe(),
        "available": gate.is_available(),
        "store": str(store.path),
        "initialized": store.exists(),
        "count": None,
        "corrupt": False,
    }
    try:
        status["count"] = len(store.load())
    except StoreCorrupt:
        status["corrupt"] = True
    return status
