"""Exec-provider resolver.

The host spawns the resolver, writes one request to stdin and reads one
response from stdout::

    request:  {"protocolVersion": 1, "provider": "fido2", "ids": ["a", "b"]}
    response: {"protocolVersion": 1, "provider": "fido2",
               "values": {"a": "..."},
               "errors": {"b": {"message": "...", "code": "...", "retryable": false}}}

Version, provider or id-list problems reject the whole request: the process
exits 1 and ``errors`` holds the single ``_system`` entry. Once accepted,
every id is resolved on its own and lands in exactly one of ``values`` or
``errors``. Only JSON goes to stdout; prompts and logs go to stderr.
"""

import json
import threading
import time
import typing as t
from dataclasses import dataclass, field

from .config import Settings
from .constants import PROTOCOL_VERSION, SYSTEM_ERROR_KEY
from .crypto import decrypt_text, derive_key, random_challenge
from .errors import (
    AuthenticatorTimeout,
    Fido2KeysError,
    InvalidRequest,
    KeyNotFound,
    ProviderMismatch,
    UnsupportedRecord,
    UnsupportedVersion,
)
from .gate import CredentialGate, create_gate
from .log import get_logger
from .store import SecretStore, StoredSecretRecord, find_by_id

log = get_logger(__name__)


@dataclass
class ResolveRequest:
    protocol_version: int
    provider: str
    ids: t.List[str]


@dataclass
class ResolveResponse:
    provider: str
    values: t.Dict[str, str] = field(default_factory=dict)
    errors: t.Dict[str, dict] = field(default_factory=dict)
    protocol_version: int = PROTOCOL_VERSION

    def to_dict(self) -> dict:
        return {
            "protocolVersion": self.protocol_version,
            "provider": self.provider,
            "values": self.values,
            "errors": self.errors,
        }

    def covers(self, ids: t.Iterable[str]) -> bool:
        """Every id is in exactly one of values/errors, and nothing else is."""
        wanted = set(ids)
        if set(self.values) & set(self.errors):
            return False
        return set(self.values) | set(self.errors) == wanted


def error_entry(err: Fido2KeysError, key_id: str) -> dict:
    # Per-id messages stay within the fixed vocabulary plus the id.
    return {
        "message": f"{type(err).message}: {key_id!r}",
        "code": err.code,
        "retryable": err.retryable,
    }


# ---------- Request ----------
def read_request(stream: t.TextIO, timeout: float) -> str:
    box: dict = {}

    def reader():
        try:
            box["text"] = stream.read()
        except (OSError, UnicodeDecodeError) as err:
            box["error"] = err

    th = threading.Thread(target=reader, daemon=True)
    th.start()
    th.join(timeout)
    if th.is_alive():
        raise InvalidRequest("Timed out reading request")
    if "error" in box:
        raise InvalidRequest("Failed to read request") from box["error"]
    return box["text"]


def parse_request(text: str, provider_id: str) -> ResolveRequest:
    try:
        data = json.loads(text.strip() or "{}")
    except json.JSONDecodeError as err:
        raise InvalidRequest(f"Invalid JSON request: {err.msg}") from None
    if not isinstance(data, dict):
        raise InvalidRequest("Request must be a JSON object")

    version = data.get("protocolVersion")
    if isinstance(version, bool) or not isinstance(version, int) or version != PROTOCOL_VERSION:
        raise UnsupportedVersion(
            f"Unsupported protocol version: {version!r}, supported: {PROTOCOL_VERSION}"
        )

    provider = data.get("provider")
    if provider != provider_id:
        raise ProviderMismatch(f"Unsupported provider: {provider!r}")

    ids = data.get("ids")
    if not isinstance(ids, list) or not ids:
        raise InvalidRequest("Request is missing a non-empty ids list")
    if not all(isinstance(i, str) and i for i in ids):
        raise InvalidRequest("Request ids must be non-empty strings")

    return ResolveRequest(protocol_version=version, provider=provider, ids=ids)


# ---------- Resolution ----------
class Resolver:
    def __init__(
        self,
        store: SecretStore,
        gate: CredentialGate,
        settings: Settings,
        clock: t.Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.gate = gate
        self.settings = settings
        self.clock = clock

    def resolve(self, request: ResolveRequest) -> ResolveResponse:
        deadline = self.clock() + self.settings.request_timeout
        records = self.store.load()
        response = ResolveResponse(provider=request.provider)

        # one result per distinct id; duplicates share it
        for key_id in dict.fromkeys(request.ids):
            remaining = deadline - self.clock()
            if remaining <= 0:
                log.warning("Deadline passed before resolving %r", key_id)
                response.errors[key_id] = error_entry(AuthenticatorTimeout(), key_id)
                continue
            try:
                timeout = min(remaining, self.settings.verify_timeout)
                response.values[key_id] = self.resolve_one(key_id, records, timeout)
            except Fido2KeysError as err:
                log.warning("Failed to resolve %r: %s", key_id, type(err).message)
                response.errors[key_id] = error_entry(err, key_id)
            except Exception:
                log.debug("Unexpected failure resolving %r", key_id, exc_info=True)
                response.errors[key_id] = error_entry(Fido2KeysError(), key_id)
            else:
                log.info("Resolved %r", key_id)

        if not response.covers(request.ids):
            raise RuntimeError("resolver produced an incomplete response")
        return response

    def resolve_one(
        self, key_id: str, records: t.Sequence[StoredSecretRecord], timeout: float
    ) -> str:
        record = find_by_id(records, key_id)
        if record is None:
            raise KeyNotFound(key_id=key_id)
        if not record.is_hardware_bound:
            raise UnsupportedRecord(key_id=key_id)

        log.info("Resolving %r, waiting for authenticator", key_id)
        self.gate.verify(record.credential_id, random_challenge(), timeout)

        # derivation parameters come from the record only
        key = derive_key(record.credential_id, record.credential_public_key)
        return decrypt_text(record.ciphertext, record.nonce, key)


def fatal_response(err: Fido2KeysError, provider: str) -> ResolveResponse:
    return ResolveResponse(
        provider=provider,
        errors={SYSTEM_ERROR_KEY: err.to_entry()},
    )


def write_response(stream: t.TextIO, response: ResolveResponse):
    stream.write(json.dumps(response.to_dict(), indent=2))
    stream.write("\n")
    stream.flush()


def run(
    stdin: t.TextIO,
    stdout: t.TextIO,
    settings: Settings,
    gate: t.Optional[CredentialGate] = None,
    clock: t.Callable[[], float] = time.monotonic,
) -> int:
    """Serve one request; returns the process exit code."""
    try:
        request = parse_request(read_request(stdin, settings.read_timeout), settings.provider_id)
        store = SecretStore(settings.store_path)
        resolver = Resolver(store, gate or create_gate(settings), settings, clock)
        response = resolver.resolve(request)
    except Fido2KeysError as err:
        log.error("%s", err)
        write_response(stdout, fatal_response(err, settings.provider_id))
        return 1
    except Exception:
        log.debug("Unexpected resolver failure", exc_info=True)
        err = Fido2KeysError()
        write_response(stdout, fatal_response(err, settings.provider_id))
        return 1
    write_response(stdout, response)
    return 0
