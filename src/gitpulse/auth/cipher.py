"""AES-256-GCM sealing of the access token.

:class:`CredentialCipher` turns a token string into a :class:`SealedToken`
(nonce, tag, ciphertext) and back. GCM authenticates the ciphertext, so any
bit flipped in any of the three parts makes :meth:`CredentialCipher.open`
raise :class:`~gitpulse.exceptions.DecryptError` instead of returning
different plaintext.

A fresh 96-bit nonce is drawn from ``os.urandom`` on every
:meth:`~CredentialCipher.seal`; reusing a nonce under one key breaks GCM.
"""

from __future__ import annotations

import os
from typing import NamedTuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from gitpulse.exceptions import DecryptError
from gitpulse.models import ENCRYPTION_KEY_LENGTH

NONCE_SIZE = 12
TAG_SIZE = 16


class SealedToken(NamedTuple):
    """The three parts of a sealed token. All are required to open it."""

    nonce: bytes
    tag: bytes
    ciphertext: bytes


class CredentialCipher:
    """Seal and open token strings with AES-256-GCM.

    Args:
        key: 32-byte symmetric key.

    Raises:
        ValueError: If *key* is not exactly 32 bytes.

    Example::

        cipher = CredentialCipher(b"0" * 32)
        sealed = cipher.seal("gho_abc")
        assert cipher.open(sealed) == "gho_abc"
    """

    def __init__(self, key: bytes) -> None:
        if len(key) != ENCRYPTION_KEY_LENGTH:
            raise ValueError(
                f"Encryption key must be {ENCRYPTION_KEY_LENGTH} bytes, got {len(key)}"
            )
        self._aesgcm = AESGCM(key)

    def seal(self, plaintext: str) -> SealedToken:
        """Encrypt *plaintext* under a fresh random nonce."""
        nonce = os.urandom(NONCE_SIZE)
        # AESGCM appends the tag to the ciphertext.
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return SealedToken(
            nonce=nonce,
            tag=sealed[-TAG_SIZE:],
            ciphertext=sealed[:-TAG_SIZE],
        )

    def open(self, sealed: SealedToken) -> str:
        """Verify and decrypt a sealed token.

        Args:
            sealed: Nonce, tag and ciphertext as produced by :meth:`seal`.

        Returns:
            The original plaintext.

        Raises:
            DecryptError: If the nonce or tag has the wrong length, the tag
                does not verify, or the plaintext is not valid UTF-8.
        """
        if len(sealed.nonce) != NONCE_SIZE:
            raise DecryptError(
                f"Invalid nonce length: expected {NONCE_SIZE} bytes, got {len(sealed.nonce)}"
            )
        if len(sealed.tag) != TAG_SIZE:
            raise DecryptError(
                f"Invalid auth tag length: expected {TAG_SIZE} bytes, got {len(sealed.tag)}"
            )
        try:
            plaintext = self._aesgcm.decrypt(
                sealed.nonce, sealed.ciphertext + sealed.tag, None
            )
        except InvalidTag as exc:
            raise DecryptError(
                "Stored token failed authentication (wrong key or tampered file)"
            ) from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptError("Decrypted token is not valid UTF-8") from exc
