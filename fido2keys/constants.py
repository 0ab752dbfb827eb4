import os
import re
from pathlib import Path


STORE_DIR = Path(os.path.expanduser("~/.openclaw"))
STORE_FILE = STORE_DIR / "fido2-keys.json"

# ===== Protocol =====
PROTOCOL_VERSION = 1
PROVIDER_ID = "fido2"
SYSTEM_ERROR_KEY = "_system"

# ===== Relying party =====
RP_ID = "openclaw.ai"
RP_NAME = "OpenClaw FIDO2 Secrets"
USER_ID_PREFIX = "openclaw-"

# ===== Formats & constants =====
PBKDF2_ITERATIONS = 100_000
KEY_LEN = 32  # AES-256
NONCE_LEN = 12  # AES-GCM IV
CHALLENGE_LEN = 32

# ===== Timeouts (seconds) =====
REQUEST_TIMEOUT = 120.0
VERIFY_TIMEOUT = 60.0
READ_TIMEOUT = 30.0
SIMULATED_DELAY = 2.5

# ===== Environment =====
ENV_PREFIX = "FIDO2KEYS_"

# Ids accepted by the interactive import
IMPORT_ID_RE = re.compile(r"^[a-z0-9-]+$")
