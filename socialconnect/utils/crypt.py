# socialconnect/utils/crypt.py

import base64
import hashlib
import json
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12


def _cipher():
    """AES-256-GCM keyed by SHA-256(SECRET_KEY); read per call so tests and workers can set it late."""
    passphrase = os.getenv("SECRET_KEY")
    if not passphrase:
        raise ValueError("SECRET_KEY is not set; platform credentials cannot be encrypted")
    return AESGCM(hashlib.sha256(passphrase.encode()).digest())


def encrypt_data(data):
    """JSON-serialisable value -> base64(nonce + ciphertext + tag)."""
    nonce = os.urandom(NONCE_SIZE)
    sealed = _cipher().encrypt(nonce, json.dumps(data).encode(), None)
    return base64.b64encode(nonce + sealed).decode()


def decrypt_data(encrypted_data):
    raw = base64.b64decode(encrypted_data)
    try:
        plain = _cipher().decrypt(raw[:NONCE_SIZE], raw[NONCE_SIZE:], None)
    except InvalidTag:
        raise ValueError("Stored credential cannot be decrypted; was SECRET_KEY rotated?")
    return json.loads(plain.decode())
