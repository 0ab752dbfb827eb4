import pytest

from fido2keys import operations as ops
from fido2keys.config import Settings
from fido2keys.gate import Assertion, CredentialGate, SimulatedGate
from fido2keys.store import SecretStore


def quiet(message):
    pass


class ScriptedGate(CredentialGate):
    """Gate that enrolls like the simulator but fails on demand."""

    def __init__(self, failures=None, on_verify=None):
        super().__init__(prompt=quiet)
        self.inner = SimulatedGate(prompt=quiet)
        self.failures = failures or {}
        self.on_verify = on_verify
        self.enrolled = []
        self.verified = []

    def is_available(self):
        return True

    def describe(self):
        return "scripted"

    def _enroll(self, user_id, user_label, timeout):
        enrollment = self.inner._enroll(user_id, user_label, timeout)
        self.enrolled.append(enrollment)
        return enrollment

    def _verify(self, credential_id, challenge, timeout):
        self.verified.append((credential_id, challenge, timeout))
        if self.on_verify:
            self.on_verify(credential_id, timeout)
        if credential_id in self.failures:
            raise self.failures[credential_id]
        return Assertion(credential_id, b"", b"")


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def settings(tmp_path):
    return Settings(store_path=tmp_path / "keys.json", simulated_delay=0.0)


@pytest.fixture
def store(settings):
    return SecretStore(settings.store_path)


@pytest.fixture
def gate():
    return ScriptedGate()


@pytest.fixture
def add_secret(store, gate, settings):
    def add(key_id, value, label=None):
        return ops.set_secret(
            store, gate, settings, key_id, label or key_id, value, lambda m: True
        )

    return add
