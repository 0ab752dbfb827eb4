"""Credential gate: the physical-authenticator boundary.

A gate does two things. ``enroll`` creates a credential for a new secret and
returns its id and public key, ``verify`` proves possession of an existing
credential against a fresh challenge. Every call is its own small state
machine (awaiting presence, then confirmed, cancelled or timed out) and no
state survives between calls, so each decrypt needs a new touch.
"""

import abc
import enum
import hashlib
import secrets
import struct
import time
import typing as t
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from rich.markup import escape

from .config import Settings
from .constants import CHALLENGE_LEN, RP_ID, RP_NAME
from .errors import (
    AuthenticatorTimeout,
    DeviceUnavailable,
    GateError,
    NotAllowed,
    UserCancelled,
)
from .log import get_logger, prompt as stderr_prompt

log = get_logger(__name__)


class PresenceState(enum.Enum):
    AWAITING_USER_PRESENCE = "awaiting_user_presence"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class Enrollment:
    credential_id: str
    public_key: bytes


@dataclass(frozen=True)
class Assertion:
    credential_id: str
    authenticator_data: bytes
    signature: bytes


class CredentialGate(abc.ABC):
    def __init__(
        self,
        relying_party_id: str = RP_ID,
        relying_party_name: str = RP_NAME,
        prompt: t.Callable[[str], None] = stderr_prompt,
    ):
        self.relying_party_id = relying_party_id
        self.relying_party_name = relying_party_name
        self.prompt = prompt
        self.last_state: t.Optional[PresenceState] = None
        self._used_challenges: t.Set[bytes] = set()

    def enroll(self, user_id: bytes, user_label: str, timeout: float) -> Enrollment:
        self.prompt(
            f"[bold cyan]Touch your FIDO2 security key to enroll {escape(user_label)}[/bold cyan]"
        )
        enrollment = self._run(self._enroll, user_id, user_label, timeout)
        log.info("Enrolled credential %s", enrollment.credential_id)
        return enrollment

    def verify(self, credential_id: str, challenge: bytes, timeout: float) -> Assertion:
        if len(challenge) < CHALLENGE_LEN:
            raise ValueError(f"challenge must be at least {CHALLENGE_LEN} bytes")
        if challenge in self._used_challenges:
            raise NotAllowed("Challenge was already used")
        self._used_challenges.add(challenge)
        self.prompt("[bold cyan]Touch your FIDO2 security key[/bold cyan]")
        return self._run(self._verify, credential_id, challenge, timeout)

    def _run(self, fn, *args):
        self.last_state = PresenceState.AWAITING_USER_PRESENCE
        try:
            result = fn(*args)
        except AuthenticatorTimeout:
            self.last_state = PresenceState.TIMED_OUT
            raise
        except GateError:
            self.last_state = PresenceState.CANCELLED
            raise
        self.last_state = PresenceState.CONFIRMED
        return result

    @abc.abstractmethod
    def _enroll(self, user_id: bytes, user_label: str, timeout: float) -> Enrollment:
        ...

    @abc.abstractmethod
    def _verify(self, credential_id: str, challenge: bytes, timeout: float) -> Assertion:
        ...

    @abc.abstractmethod
    def is_available(self) -> bool:
        ...

    @abc.abstractmethod
    def describe(self) -> str:
        ...


class SimulatedGate(CredentialGate):
    """In-process stand-in for an authenticator.

    Waits a fixed presence delay, then "confirms". Enrollment makes a real
    P-256 key pair so every credential gets a distinct public key; the
    private half is thrown away. Assertions are deterministic fakes.
    ``outcome`` forces a failure for exercising a host's error handling.
    """

    def __init__(
        self,
        relying_party_id: str = RP_ID,
        relying_party_name: str = RP_NAME,
        delay: float = 0.0,
        outcome: str = "",
        prompt: t.Callable[[str], None] = stderr_prompt,
        sleep: t.Callable[[float], None] = time.sleep,
    ):
        super().__init__(relying_party_id, relying_party_name, prompt)
        self.delay = delay
        self.outcome = outcome
        self.sleep = sleep

    def is_available(self) -> bool:
        return self.outcome != "unavailable"

    def describe(self) -> str:
        return f"simulated authenticator (delay {self.delay:g}s)"

    def _await_presence(self, timeout: float):
        if self.outcome == "unavailable":
            raise DeviceUnavailable()
        if self.outcome == "timeout" or self.delay > timeout:
            self.sleep(min(self.delay, timeout))
            raise AuthenticatorTimeout()
        self.sleep(self.delay)
        if self.outcome == "cancel":
            raise UserCancelled()
        if self.outcome == "deny":
            raise NotAllowed()

    def _enroll(self, user_id: bytes, user_label: str, timeout: float) -> Enrollment:
        self._await_presence(timeout)
        public_key = (
            ec.generate_private_key(ec.SECP256R1())
            .public_key()
            .public_bytes(
                serialization.Encoding.X962,
                serialization.PublicFormat.UncompressedPoint,
            )
        )
        user = user_id.decode("utf-8", errors="replace")
        credential_id = f"fido2-{user}-{int(time.time() * 1000)}-{secrets.token_hex(4)}"
        return Enrollment(credential_id=credential_id, public_key=public_key)

    def _verify(self, credential_id: str, challenge: bytes, timeout: float) -> Assertion:
        self._await_presence(timeout)
        rp_hash = hashlib.sha256(self.relying_party_id.encode("utf-8")).digest()
        # rpIdHash || flags (UP) || signCount
        authenticator_data = rp_hash + b"\x01" + struct.pack(">I", 0)
        signature = hashlib.sha256(credential_id.encode("utf-8") + challenge).digest()
        return Assertion(credential_id, authenticator_data, signature)


def create_gate(settings: Settings, prompt: t.Callable[[str], None] = stderr_prompt) -> CredentialGate:
    if settings.gate == "fido2":
        from .fido2_gate import Fido2Gate

        return Fido2Gate(
            settings.relying_party_id, settings.relying_party_name, prompt=prompt
        )
    return SimulatedGate(
        settings.relying_party_id,
        settings.relying_party_name,
        delay=settings.simulated_delay,
        outcome=settings.simulated_outcome,
        prompt=prompt,
    )
