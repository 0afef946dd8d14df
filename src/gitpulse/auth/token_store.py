"""Encrypted single-record token store.

Stores the access token in one JSON file (by default
``~/.local/share/gitpulse/credentials/token.json``) holding an
:class:`~gitpulse.models.EncryptedTokenRecord`::

    {"iv": "<b64 nonce>", "authTag": "<b64 tag>", "encrypted": "<b64 ciphertext>"}

Every :meth:`TokenStore.store` replaces the file wholesale. Writes are atomic
via :func:`tempfile.NamedTemporaryFile` and ``os.replace`` with ``0o600``
permissions so the record is never world-readable, even momentarily, and a
crash mid-write leaves the previous record intact.

Any problem reading the record back -- missing file, bad JSON, wrong shape,
bad base64, failed authentication -- is a
:class:`~gitpulse.exceptions.ConfigError`: it is local state that needs a
fresh ``gitpulse auth login``, not a remote failure.

Concurrent processes writing the same file are not guarded against.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from gitpulse.auth.cipher import CredentialCipher, SealedToken
from gitpulse.exceptions import ConfigError, DecryptError
from gitpulse.models import EncryptedTokenRecord, describe_validation_error

logger = logging.getLogger(__name__)


def _b64decode(value: str, field: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigError(f"Token file field '{field}' is not valid base64") from exc


class TokenStore:
    """Read/write the encrypted access token.

    Args:
        path: Location of the token file.
        cipher: Cipher used to seal and open the token.

    Example::

        store = TokenStore(Path("token.json"), CredentialCipher(key))
        store.store("gho_abc")
        assert store.load() == "gho_abc"
    """

    def __init__(self, path: Path, cipher: CredentialCipher) -> None:
        self._path = path
        self._cipher = cipher

    @property
    def path(self) -> Path:
        """The filesystem path of the token file."""
        return self._path

    def exists(self) -> bool:
        """Whether a token file is present (it may still fail to load)."""
        return self._path.is_file()

    def store(self, token: str) -> None:
        """Seal *token* and atomically replace the token file.

        Raises:
            OSError: If the file cannot be written (permissions, disk full).
        """
        sealed = self._cipher.seal(token)
        record = EncryptedTokenRecord(
            iv=base64.b64encode(sealed.nonce).decode("ascii"),
            auth_tag=base64.b64encode(sealed.tag).decode("ascii"),
            encrypted=base64.b64encode(sealed.ciphertext).decode("ascii"),
        )
        text = json.dumps(record.model_dump(by_alias=True)) + "\n"

        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd = None
        tmp_path: Optional[str] = None
        try:
            fd = tempfile.NamedTemporaryFile(
                mode="w",
                dir=self._path.parent,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            )
            tmp_path = fd.name
            # Restrict permissions before any content is written
            os.chmod(tmp_path, 0o600)
            fd.write(text)
            fd.flush()
            os.fsync(fd.fileno())
            fd.close()
            fd = None
            os.replace(tmp_path, self._path)
        except BaseException:
            if fd is not None:
                fd.close()
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
            raise

        logger.info("Stored encrypted token at %s", self._path)

    def load(self) -> str:
        """Read, validate and decrypt the stored token.

        Returns:
            The access token.

        Raises:
            ConfigError: If the file is missing, unreadable, malformed, or
                fails decryption.
        """
        if not self._path.is_file():
            raise ConfigError(f"No stored token at {self._path}")

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(f"Cannot read token file {self._path}: {exc}") from exc
        except ValueError as exc:
            # JSONDecodeError, or UnicodeDecodeError from non-UTF-8 bytes
            logger.error("Token file %s is not valid JSON", self._path)
            raise ConfigError(f"Token file {self._path} is not valid JSON") from exc

        try:
            record = EncryptedTokenRecord.model_validate(data)
        except ValidationError as exc:
            details = describe_validation_error(exc)
            logger.error("Could not read token file: %s", details)
            raise ConfigError(f"Malformed token file {self._path}: {details}") from exc

        sealed = SealedToken(
            nonce=_b64decode(record.iv, "iv"),
            tag=_b64decode(record.auth_tag, "authTag"),
            ciphertext=_b64decode(record.encrypted, "encrypted"),
        )
        try:
            return self._cipher.open(sealed)
        except DecryptError as exc:
            logger.error("Could not decrypt token file %s", self._path)
            raise ConfigError(f"Cannot decrypt token file {self._path}: {exc}") from exc

    def clear(self) -> None:
        """Delete the token file. No-op when it does not exist."""
        if self._path.is_file():
            self._path.unlink()
            logger.info("Removed token file %s", self._path)
