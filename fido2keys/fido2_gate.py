import os
import threading
import typing as t

from fido2 import cbor
from fido2.client import ClientError, Fido2Client, UserInteraction
from fido2.ctap import CtapError
from fido2.hid import CtapHidDevice
from fido2.utils import websafe_decode, websafe_encode

from .constants import RP_ID, RP_NAME
from .errors import (
    AuthenticatorTimeout,
    DeviceUnavailable,
    GateError,
    NotAllowed,
    UserCancelled,
)
from .gate import Assertion, CredentialGate, Enrollment
from .log import get_logger, prompt as stderr_prompt

log = get_logger(__name__)

ES256 = -7
CANCEL_CODES = {CtapError.ERR.KEEPALIVE_CANCEL, CtapError.ERR.OPERATION_DENIED}
TIMEOUT_CODES = {CtapError.ERR.ACTION_TIMEOUT, CtapError.ERR.USER_ACTION_TIMEOUT}


class CliInteraction(UserInteraction):
    def __init__(self, prompt: t.Callable[[str], None]):
        self._prompt = prompt

    def prompt_up(self):
        self._prompt("Touch your authenticator now ...")

    def request_pin(self, permissions, rp_id):
        # PIN-protected credentials are not supported for unattended resolution
        return None

    def request_uv(self, permissions, rp_id):
        return False


def translate_client_error(err: Exception, timed_out: bool = False) -> GateError:
    """Map a python-fido2 failure onto the gate error vocabulary."""
    if timed_out:
        return AuthenticatorTimeout()
    cause = getattr(err, "cause", None)
    if isinstance(err, CtapError):
        cause = err
    if isinstance(cause, CtapError):
        if cause.code in CANCEL_CODES:
            return UserCancelled()
        if cause.code in TIMEOUT_CODES:
            return AuthenticatorTimeout()
    if isinstance(err, ClientError):
        if err.code == ClientError.ERR.TIMEOUT:
            return AuthenticatorTimeout()
    return NotAllowed()


class Fido2Gate(CredentialGate):
    """Gate backed by the first CTAP2 HID authenticator found."""

    def __init__(
        self,
        relying_party_id: str = RP_ID,
        relying_party_name: str = RP_NAME,
        prompt: t.Callable[[str], None] = stderr_prompt,
    ):
        super().__init__(relying_party_id, relying_party_name, prompt)
        self.origin = f"https://{relying_party_id}"

    def _find_device(self):
        for dev in CtapHidDevice.list_devices():
            log.debug("Using device at %s", dev.descriptor.path)
            return dev
        raise DeviceUnavailable()

    def _client(self) -> Fido2Client:
        return Fido2Client(
            self._find_device(),
            self.origin,
            user_interaction=CliInteraction(self.prompt),
        )

    def is_available(self) -> bool:
        return any(True for _ in CtapHidDevice.list_devices())

    def describe(self) -> str:
        return f"FIDO2 HID authenticator for {self.relying_party_id}"

    def _with_deadline(self, timeout: float, call: t.Callable[[threading.Event], t.Any]):
        event = threading.Event()
        timer = threading.Timer(timeout, event.set)
        timer.daemon = True
        timer.start()
        try:
            return call(event)
        except (ClientError, CtapError) as err:
            raise translate_client_error(err, timed_out=event.is_set()) from None
        except OSError as err:
            log.debug("HID transport failed: %s", err)
            raise DeviceUnavailable() from None
        finally:
            timer.cancel()

    def _enroll(self, user_id: bytes, user_label: str, timeout: float) -> Enrollment:
        client = self._client()
        options = {
            "rp": {"id": self.relying_party_id, "name": self.relying_party_name},
            "user": {"id": user_id, "name": user_label, "displayName": user_label},
            "challenge": os.urandom(32),
            "pubKeyCredParams": [{"type": "public-key", "alg": ES256}],
            "timeout": int(timeout * 1000),
        }
        result = self._with_deadline(
            timeout, lambda event: client.make_credential(options, event=event)
        )
        credential = result.attestation_object.auth_data.credential_data
        return Enrollment(
            credential_id=websafe_encode(credential.credential_id),
            public_key=cbor.encode(dict(credential.public_key)),
        )

    def _verify(self, credential_id: str, challenge: bytes, timeout: float) -> Assertion:
        try:
            raw_id = websafe_decode(credential_id)
        except ValueError:
            raise NotAllowed("Credential id was not issued by a FIDO2 device") from None
        client = self._client()
        options = {
            "rpId": self.relying_party_id,
            "challenge": challenge,
            "allowCredentials": [{"type": "public-key", "id": raw_id}],
            "userVerification": "discouraged",
            "timeout": int(timeout * 1000),
        }
        selection = self._with_deadline(
            timeout, lambda event: client.get_assertion(options, event=event)
        )
        response = selection.get_response(0)
        return Assertion(
            credential_id=credential_id,
            authenticator_data=bytes(response.authenticator_data),
            signature=response.signature,
        )
