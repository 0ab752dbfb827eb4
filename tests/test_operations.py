import random

import pytest

from fido2keys import operations as ops
from fido2keys.errors import KeyNotFound, StoreCorrupt, UnsupportedRecord, UserCancelled
from fido2keys.store import StoredSecretRecord, b64e


def yes(message):
    return True


def no(message):
    return False


def test_set_then_get(store, gate, settings):
    record = ops.set_secret(store, gate, settings, "openai", "OpenAI", "sk-1", yes)
    assert record.relying_party_id == "openclaw.ai"
    assert record.user_handle == b64e(b"openclaw-openai")
    assert len(record.nonce) == 12
    assert record.created_at > 1_600_000_000_000
    assert record.credential_id == gate.enrolled[0].credential_id
    assert record.credential_public_key == gate.enrolled[0].public_key
    assert b"sk-1" not in store.path.read_bytes()
    assert ops.get_secret(store, gate, settings, "openai") == "sk-1"


def test_set_replaces_existing(store, gate, settings):
    first = ops.set_secret(store, gate, settings, "k", "L", "v1", yes)
    second = ops.set_secret(store, gate, settings, "k", "L", "v2", yes)
    records = store.load()
    assert [r.id for r in records] == ["k"]
    assert records[0].credential_id == second.credential_id != first.credential_id
    assert ops.get_secret(store, gate, settings, "k") == "v2"


def test_declined_replace_keeps_old_value(store, gate, settings):
    ops.set_secret(store, gate, settings, "k", "L", "v1", yes)
    asked = []

    def decline(message):
        asked.append(message)
        return False

    assert ops.set_secret(store, gate, settings, "k", "L", "v2", decline) is None
    assert len(asked) == 1 and "'k'" in asked[0]
    assert len(gate.enrolled) == 1
    assert ops.get_secret(store, gate, settings, "k") == "v1"


def test_enrollment_failure_writes_nothing(store, gate, settings):
    class Cancelling(type(gate)):
        def _enroll(self, user_id, user_label, timeout):
            raise UserCancelled()

    with pytest.raises(UserCancelled):
        ops.set_secret(store, Cancelling(), settings, "k", "L", "v", yes)
    assert not store.exists()


def test_get_errors(store, gate, settings):
    with pytest.raises(KeyNotFound):
        ops.get_secret(store, gate, settings, "missing")
    store.save([StoredSecretRecord(id="plain", label="p", ciphertext=b"v")])
    with pytest.raises(UnsupportedRecord):
        ops.get_secret(store, gate, settings, "plain")
    assert gate.verified == []


def test_get_verifies_every_time(store, gate, settings):
    ops.set_secret(store, gate, settings, "k", "L", "v", yes)
    ops.get_secret(store, gate, settings, "k")
    ops.get_secret(store, gate, settings, "k")
    assert len(gate.verified) == 2
    assert gate.verified[0][1] != gate.verified[1][1]


def test_list_is_metadata_only(store, gate, settings):
    ops.set_secret(store, gate, settings, "a", "A", "1", yes)
    ops.set_secret(store, gate, settings, "b", "B", "2", yes)
    items = ops.list_secrets(store)
    assert [i["id"] for i in items] == ["a", "b"]
    assert all(set(i) == {"id", "label", "createdAt", "credentialId"} for i in items)
    assert gate.verified == []


def test_delete(store, gate, settings):
    ops.set_secret(store, gate, settings, "a", "A", "1", yes)
    ops.set_secret(store, gate, settings, "b", "B", "2", yes)
    assert ops.delete_secret(store, "a", no) is False
    assert len(store.load()) == 2
    assert ops.delete_secret(store, "a", yes) is True
    assert [r.id for r in store.load()] == ["b"]
    with pytest.raises(KeyNotFound):
        ops.delete_secret(store, "a", yes)


def test_clear(store, gate, settings):
    ops.set_secret(store, gate, settings, "a", "A", "1", yes)
    ops.set_secret(store, gate, settings, "b", "B", "2", yes)
    assert ops.clear_secrets(store, no) is None
    assert len(store.load()) == 2
    assert ops.clear_secrets(store, yes) == 2
    assert store.load() == []


def test_clear_resets_corrupt_store(store):
    store.path.write_text("garbage")
    with pytest.raises(StoreCorrupt):
        store.load()
    assert ops.clear_secrets(store, yes) == 0
    assert store.load() == []


def test_ids_stay_unique(store, gate, settings):
    rng = random.Random(7)
    for _ in range(20):
        key_id = rng.choice("abc")
        if rng.random() < 0.7:
            ops.set_secret(store, gate, settings, key_id, key_id, "v", yes)
        elif any(r.id == key_id for r in store.load()):
            ops.delete_secret(store, key_id, yes)
        ids = [r.id for r in store.load()]
        assert len(ids) == len(set(ids))


def test_status(store, gate):
    st = ops.store_status(store, gate)
    assert st["initialized"] is False
    assert st["count"] == 0
    assert st["available"] is True
    store.path.write_text("[")
    st = ops.store_status(store, gate)
    assert st["corrupt"] is True
    assert st["count"] is None
