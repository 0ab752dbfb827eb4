import math
import os
import typing as t
from dataclasses import dataclass, field, replace
from pathlib import Path

from .constants import (
    ENV_PREFIX,
    PROVIDER_ID,
    READ_TIMEOUT,
    REQUEST_TIMEOUT,
    RP_ID,
    RP_NAME,
    SIMULATED_DELAY,
    STORE_FILE,
    VERIFY_TIMEOUT,
)
from .errors import ConfigError


GATES = ("simulated", "fido2")
SIMULATED_OUTCOMES = ("", "cancel", "timeout", "unavailable", "deny")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, threaded explicitly into stores and gates."""

    store_path: Path = field(default_factory=lambda: STORE_FILE)
    provider_id: str = PROVIDER_ID
    relying_party_id: str = RP_ID
    relying_party_name: str = RP_NAME
    request_timeout: float = REQUEST_TIMEOUT
    verify_timeout: float = VERIFY_TIMEOUT
    read_timeout: float = READ_TIMEOUT
    gate: str = "simulated"
    simulated_delay: float = SIMULATED_DELAY
    simulated_outcome: str = ""
    log_level: str = "WARNING"

    def __post_init__(self):
        if self.gate not in GATES:
            raise ConfigError(f"Unknown gate {self.gate!r}, expected one of {', '.join(GATES)}")
        if self.simulated_outcome not in SIMULATED_OUTCOMES:
            raise ConfigError(f"Unknown simulated outcome {self.simulated_outcome!r}")
        for name in ("request_timeout", "verify_timeout", "read_timeout"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigError(f"{name} must be a positive number of seconds")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Unknown log level {self.log_level!r}")
        if not math.isfinite(self.simulated_delay) or self.simulated_delay < 0:
            raise ConfigError("simulated_delay must not be negative")

    @classmethod
    def from_env(cls, environ: t.Optional[t.Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        kwargs: dict = {}

        def get(name):
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        if get("STORE"):
            kwargs["store_path"] = Path(os.path.expanduser(get("STORE")))
        for name, attr in [
            ("PROVIDER", "provider_id"),
            ("RP_ID", "relying_party_id"),
            ("GATE", "gate"),
            ("SIMULATED_OUTCOME", "simulated_outcome"),
            ("LOG_LEVEL", "log_level"),
        ]:
            if get(name):
                kwargs[attr] = get(name)
        for name, attr in [
            ("REQUEST_TIMEOUT", "request_timeout"),
            ("VERIFY_TIMEOUT", "verify_timeout"),
            ("READ_TIMEOUT", "read_timeout"),
            ("SIMULATED_DELAY", "simulated_delay"),
        ]:
            if get(name):
                kwargs[attr] = _parse_seconds(ENV_PREFIX + name, get(name))
        return cls(**kwargs)

    def override(self, **changes) -> "Settings":
        """Return a copy with every non-None change applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _parse_seconds(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as err:
        raise ConfigError(f"{name} must be a number of seconds, got {raw!r}") from err
    if not math.isfinite(value):
        raise ConfigError(f"{name} must be a finite number of seconds, got {raw!r}")
    return value
