"""Security utilities for provider token encryption and API session JWTs.

WHAT:
    - `CredentialVault`: AES-256-GCM encryption for OAuth tokens at rest.
    - `decode_access_token` / `create_access_token`: HS256 JWT helpers used to
      resolve the dashboard user on API requests.

WHY:
    Provider credentials must never land in the database (or logs) in plaintext.
    The vault's blob layout is shared with every other consumer of the
    `integrations` table, so it is fixed:

        base64( salt[64] || iv[16] || auth_tag[16] || ciphertext )

    The salt is random per call and stored for layout compatibility; the key
    itself comes straight from configuration.

REFERENCES:
    - adpulse/services/token_service.py (decrypt/refresh/persist)
    - adpulse/services/oauth_service.py (encrypt on connect)
"""

import base64
import binascii
import logging
import os
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from jose import JWTError, jwt

from .errors import ConfigurationError, IntegrityError


logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

KEY_LENGTH = 32
SALT_LENGTH = 64
IV_LENGTH = 16
TAG_LENGTH = 16

_HEX_KEY = re.compile(r"^[0-9a-fA-F]{64}$")


def derive_key(raw_key: str) -> bytes:
    """Decode the configured key material into exactly 32 bytes.

    A 64-character hex string is read as hex; anything else is read as base64
    (standard or URL-safe alphabet, padding optional).

    Raises:
        ConfigurationError: empty, undecodable, or not 32 bytes after decoding.
    """
    if not raw_key:
        raise ConfigurationError("TOKEN_ENCRYPTION_KEY is not set")

    raw_key = raw_key.strip()
    try:
        if _HEX_KEY.match(raw_key):
            key = bytes.fromhex(raw_key)
        else:
            # URL-safe alphabet and stripped padding are accepted too
            normalized = raw_key.replace("-", "+").replace("_", "/")
            normalized += "=" * (-len(normalized) % 4)
            key = base64.b64decode(normalized, validate=True)
    except (ValueError, binascii.Error) as exc:
        raise ConfigurationError("TOKEN_ENCRYPTION_KEY must be hex or base64 encoded") from exc

    if len(key) != KEY_LENGTH:
        raise ConfigurationError(
            f"TOKEN_ENCRYPTION_KEY must decode to {KEY_LENGTH} bytes (got {len(key)})"
        )
    return key


class CredentialVault:
    """Symmetric encryption for provider secrets.

    The key is derived once at construction; instances are immutable and safe to
    share between threads (AESGCM holds no per-call state).
    """

    def __init__(self, raw_key: str):
        self._aead = AESGCM(derive_key(raw_key))

    def encrypt(self, plaintext: str, *, context: str = "token") -> str:
        """Encrypt a secret before persisting.

        Args:
            plaintext: Raw secret (access or refresh token).
            context:   Friendly label for logs (provider/account).

        Returns:
            base64 blob in the salt||iv||tag||ciphertext layout.
        """
        if not plaintext:
            raise ValueError("Cannot encrypt empty secret.")

        salt = os.urandom(SALT_LENGTH)
        iv = os.urandom(IV_LENGTH)
        # AESGCM appends the tag to the ciphertext
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]

        blob = base64.b64encode(salt + iv + tag + ciphertext).decode("ascii")
        logger.debug(f"[VAULT] Secret encrypted for {context} (length={len(plaintext)})")
        return blob

    def decrypt(self, blob: str, *, context: str = "token") -> str:
        """Reverse `encrypt`.

        Raises:
            IntegrityError: malformed blob, tampered ciphertext, or wrong key.
        """
        if not blob:
            raise IntegrityError("Cannot decrypt empty secret.")

        try:
            raw = base64.b64decode(blob, validate=True)
        except (ValueError, binascii.Error) as exc:
            logger.error(f"[VAULT] Malformed ciphertext for {context}")
            raise IntegrityError("Stored token is not valid base64.") from exc

        header = SALT_LENGTH + IV_LENGTH + TAG_LENGTH
        if len(raw) <= header:
            logger.error(f"[VAULT] Truncated ciphertext for {context}")
            raise IntegrityError("Stored token is truncated.")

        iv = raw[SALT_LENGTH:SALT_LENGTH + IV_LENGTH]
        tag = raw[SALT_LENGTH + IV_LENGTH:header]
        ciphertext = raw[header:]

        try:
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as exc:
            logger.error(f"[VAULT] Authentication tag mismatch for {context}")
            raise IntegrityError("Unable to decrypt stored token.") from exc

        return plaintext.decode("utf-8")


def create_access_token(
    subject: str,
    secret: str,
    expires_minutes: int = 60 * 24 * 7,
    extra: Optional[Dict[str, Any]] = None,
) -> str:
    """Issue an HS256 JWT. Used by tests and local tooling; login lives elsewhere."""
    if not secret:
        raise ConfigurationError("JWT_SECRET is not set")
    payload: Dict[str, Any] = {
        "sub": subject,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> Dict[str, Any]:
    """Decode and verify a JWT. Raises `jose.JWTError` on invalid tokens."""
    if not secret:
        raise ConfigurationError("JWT_SECRET is not set")
    return jwt.decode(token, secret, algorithms=[ALGORITHM])


__all__ = [
    "CredentialVault",
    "JWTError",
    "create_access_token",
    "decode_access_token",
    "derive_key",
]
