"""AES-256-GCM envelope shared by state tokens and session cookies.

Format: ``v1.<iv>.<tag>.<ciphertext>``, each segment unpadded base64url.
The additional authenticated data names the purpose of the token, so a
sealed state can never be opened as a session and vice versa.
"""

import base64
import binascii
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

TOKEN_PREFIX = "v1"
IV_BYTES = 12
TAG_BYTES = 16

STATE_AAD = b"hf_oauth_state"
SESSION_AAD = b"hf_oauth_session"


class SealError(Exception):
    """Token is malformed, tampered with, or sealed under another key/AAD."""


def encode_base64url(value: bytes) -> str:
    return base64.urlsafe_b64encode(value).rstrip(b"=").decode("ascii")


def decode_base64url(value: str) -> bytes:
    try:
        return base64.urlsafe_b64decode(value + "=" * (-len(value) % 4))
    except (binascii.Error, ValueError) as e:
        raise SealError("segment is not base64url") from e


def seal_json(payload: dict[str, Any], key: bytes, aad: bytes) -> str:
    """Encrypt ``payload`` as compact JSON under a fresh random IV."""
    iv = os.urandom(IV_BYTES)
    plaintext = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    sealed = AESGCM(key).encrypt(iv, plaintext, aad)
    ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
    return ".".join(
        [
            TOKEN_PREFIX,
            encode_base64url(iv),
            encode_base64url(tag),
            encode_base64url(ciphertext),
        ]
    )


def open_json(token: str, key: bytes, aad: bytes) -> Any:
    """Decrypt a token produced by :func:`seal_json` and parse its JSON.

    Raises:
        SealError: on any structural, cryptographic or parse failure.
    """
    parts = token.split(".")
    if len(parts) != 4 or parts[0] != TOKEN_PREFIX:
        raise SealError("unexpected token structure")

    iv = decode_base64url(parts[1])
    tag = decode_base64url(parts[2])
    ciphertext = decode_base64url(parts[3])
    if len(iv) != IV_BYTES or len(tag) != TAG_BYTES or not ciphertext:
        raise SealError("unexpected segment length")

    try:
        plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, aad)
    except (InvalidTag, ValueError) as e:
        raise SealError("authentication failed") from e

    try:
        return json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise SealError("payload is not JSON") from e
