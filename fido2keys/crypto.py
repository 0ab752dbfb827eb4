import os
import typing as t

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .constants import CHALLENGE_LEN, KEY_LEN, NONCE_LEN, PBKDF2_ITERATIONS
from .errors import DecryptionFailed, EncryptionFailed


# ---------- Randomness ----------
def random_nonce() -> bytes:
    return os.urandom(NONCE_LEN)


def random_challenge() -> bytes:
    """Single-use assertion challenge; never reuse one across verify calls."""
    return os.urandom(CHALLENGE_LEN)


# ---------- Derivation ----------
def derive_key(credential_id: str, credential_public_key: bytes) -> AESGCM:
    """Derive the AES-256-GCM key bound to an enrolled credential.

    Input key material is UTF-8(credential_id) || public key, and the public
    key doubles as the PBKDF2 salt. No random input: the same credential
    always yields the same key, which is what lets a stored record be
    decrypted again later. Only the AEAD object is returned; the raw key
    bytes never leave this function.
    """
    if not credential_public_key:
        raise ValueError("credential public key is required for key derivation")
    ikm = credential_id.encode("utf-8") + bytes(credential_public_key)
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LEN,
        salt=bytes(credential_public_key),
        iterations=PBKDF2_ITERATIONS,
    )
    return AESGCM(kdf.derive(ikm))


# ---------- AEAD ----------
def encrypt(plaintext: bytes, key: AESGCM) -> t.Tuple[bytes, bytes]:
    """Encrypt under a fresh 96-bit nonce; returns (ciphertext, nonce)."""
    nonce = random_nonce()
    try:
        ct = key.encrypt(nonce, plaintext, None)
    except (TypeError, ValueError, OverflowError) as err:
        raise EncryptionFailed() from err
    return ct, nonce


def decrypt(ciphertext: bytes, nonce: bytes, key: AESGCM) -> bytes:
    # Wrong key, corrupted data and tampering all look the same to the caller.
    if len(nonce) != NONCE_LEN:
        raise DecryptionFailed()
    try:
        return key.decrypt(nonce, ciphertext, None)
    except (InvalidTag, ValueError):
        raise DecryptionFailed() from None


def encrypt_text(value: str, key: AESGCM) -> t.Tuple[bytes, bytes]:
    return encrypt(value.encode("utf-8"), key)


def decrypt_text(ciphertext: bytes, nonce: bytes, key: AESGCM) -> str:
    pt = decrypt(ciphertext, nonce, key)
    try:
        return pt.decode("utf-8")
    except UnicodeDecodeError:
        raise DecryptionFailed() from None
