import json
import os
import stat

import pytest

from fido2keys.errors import StoreCorrupt
from fido2keys.store import (
    SecretStore,
    StoredSecretRecord,
    b64e,
    find_by_id,
    replace_record,
    user_handle_for,
)


def bound(key_id, **kw):
    d = dict(
        id=key_id,
        label=f"label {key_id}",
        ciphertext=b"ct-" + key_id.encode(),
        nonce=b"\x00" * 12,
        created_at=1_700_000_000_000,
        user_handle=user_handle_for(key_id),
        credential_id=f"cred-{key_id}",
        credential_public_key=b"\x04" + b"\x01" * 64,
    )
    d.update(kw)
    return StoredSecretRecord(**d)


def test_absent_store_is_empty(tmp_path):
    store = SecretStore(tmp_path / "missing" / "keys.json")
    assert store.load() == []
    assert not store.exists()


def test_save_load_roundtrip(tmp_path):
    store = SecretStore(tmp_path / "nested" / "keys.json")
    records = [bound("a"), bound("b")]
    store.save(records)
    assert store.load() == records

    on_disk = json.loads(store.path.read_text())
    assert [d["id"] for d in on_disk] == ["a", "b"]
    assert set(on_disk[0]) == {
        "id",
        "label",
        "ciphertext",
        "nonce",
        "createdAt",
        "relyingPartyId",
        "userHandle",
        "credentialId",
        "credentialPublicKey",
    }
    assert on_disk[0]["ciphertext"] == b64e(b"ct-a")


def test_store_file_is_private(tmp_path):
    store = SecretStore(tmp_path / "keys.json")
    store.save([bound("a")])
    assert stat.S_IMODE(os.stat(store.path).st_mode) == 0o600
    assert os.listdir(tmp_path) == ["keys.json"]


def test_legacy_field_names(tmp_path):
    path = tmp_path / "keys.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "old",
                    "label": "Old",
                    "encryptedValue": b64e(b"ct"),
                    "iv": b64e(b"\x01" * 12),
                    "createdAt": 1,
                    "rpId": "openclaw.ai",
                    "userHandle": user_handle_for("old"),
                    "credentialId": "cred",
                    "credentialPublicKey": b64e(b"pk"),
                }
            ]
        )
    )
    (record,) = SecretStore(path).load()
    assert record.ciphertext == b"ct"
    assert record.nonce == b"\x01" * 12
    assert record.relying_party_id == "openclaw.ai"
    assert record.is_hardware_bound


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        '{"id": "a"}',
        "[1, 2]",
        '[{"label": "no id"}]',
        '[{"id": "a", "ciphertext": "***"}]',
        '[{"id": "a", "createdAt": "yesterday"}]',
        '[{"id": "a", "label": 5}]',
        '[{"id": "a"}, {"id": "a"}]',
    ],
)
def test_malformed_store_is_corrupt(tmp_path, content):
    path = tmp_path / "keys.json"
    path.write_text(content)
    with pytest.raises(StoreCorrupt):
        SecretStore(path).load()


def test_save_refuses_duplicate_ids(tmp_path):
    store = SecretStore(tmp_path / "keys.json")
    with pytest.raises(ValueError):
        store.save([bound("a"), bound("a")])
    assert not store.exists()


def test_replace_record_removes_then_appends():
    records = [bound("a"), bound("b"), bound("c")]
    new = bound("a", label="new")
    out = replace_record(records, new)
    assert [r.id for r in out] == ["b", "c", "a"]
    assert find_by_id(out, "a").label == "new"
    assert find_by_id(out, "zzz") is None


def test_hardware_bound_shape():
    assert bound("a").is_hardware_bound
    assert not bound("a", credential_public_key=None).is_hardware_bound
    assert not bound("a", ciphertext=None).is_hardware_bound
    assert not bound("a", credential_id=None).is_hardware_bound


def test_metadata_has_no_secret_material():
    meta = bound("a").to_metadata()
    assert meta == {
        "id": "a",
        "label": "label a",
        "createdAt": 1_700_000_000_000,
        "credentialId": "cred-a",
    }


def test_user_handle_is_deterministic():
    assert user_handle_for("k") == user_handle_for("k") == b64e(b"openclaw-k")
