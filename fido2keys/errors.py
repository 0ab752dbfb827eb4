"""Error taxonomy shared by the resolver and the management commands.

Every error carries a stable wire ``code`` and a ``message`` drawn from a
fixed vocabulary. Messages may name the offending secret id but never carry
primitive-level detail.
"""

import typing as t


class Fido2KeysError(Exception):
    code = "error"
    retryable = False
    message = "Unexpected error"

    def __init__(self, message: t.Optional[str] = None, key_id: t.Optional[str] = None):
        self.key_id = key_id
        if message is None:
            message = self.message
            if key_id is not None:
                message = f"{message}: {key_id!r}"
        super().__init__(message)

    def to_entry(self) -> dict:
        return {"message": str(self), "code": self.code, "retryable": self.retryable}


class ConfigError(Fido2KeysError):
    code = "config_error"
    message = "Invalid configuration"


# ---------- Request-fatal ----------
class RequestError(Fido2KeysError):
    code = "invalid_request"
    message = "Invalid request"


class InvalidRequest(RequestError):
    pass


class UnsupportedVersion(RequestError):
    code = "unsupported_version"
    message = "Unsupported protocol version"


class ProviderMismatch(RequestError):
    code = "provider_mismatch"
    message = "Unsupported provider"


# ---------- Store-fatal ----------
class StoreCorrupt(Fido2KeysError):
    code = "storage_read_failed"
    message = "Secret store is unreadable or corrupt"


# ---------- Per-identifier ----------
class KeyNotFound(Fido2KeysError):
    code = "key_not_found"
    message = "Key not found in FIDO2 storage"


class UnsupportedRecord(Fido2KeysError):
    code = "unsupported_record"
    message = "Stored record is not hardware-bound"


class DecryptionFailed(Fido2KeysError):
    code = "decryption_failed"
    message = "Decryption failed"


class EncryptionFailed(Fido2KeysError):
    code = "encryption_failed"
    message = "Encryption failed"


# ---------- Authenticator ----------
class GateError(Fido2KeysError):
    """Raised by a credential gate; device-side, usually worth a retry."""

    retryable = True


class UserCancelled(GateError):
    code = "fido2_cancelled"
    message = "FIDO2 operation cancelled by user"


class AuthenticatorTimeout(GateError):
    code = "fido2_timeout"
    message = "FIDO2 operation timed out"


class DeviceUnavailable(GateError):
    code = "fido2_unavailable"
    message = "No FIDO2 authenticator available"


class NotAllowed(GateError):
    code = "fido2_not_allowed"
    message = "FIDO2 authenticator refused the operation"
    retryable = False
