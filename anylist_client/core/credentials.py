"""
Encrypted persistence of session credentials.

Credentials are stored as JSON with two hex-encoded fields, `iv` and
`cipher`. The cipher text is AES-256-CBC of the JSON-encoded
{obj}`CredentialRecord`, keyed by a key derived from the account password.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
from dataclasses import dataclass
from logging import Logger
from pathlib import Path
from typing import Any

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .exceptions import PersistenceError

__all__ = [
    "CredentialRecord",
    "CredentialStore",
    "encrypt_credentials",
    "decrypt_credentials",
]

IV_SIZE = 16
"""
Size of initialization vector in bytes, equal to AES block size.
"""

KEY_SIZE = 32
"""
Size of AES-256 key in bytes.
"""

CLIENT_ID_KEY = "clientId"
ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"


@dataclass(frozen=True)
class CredentialRecord:
    """
    Subset of session state which is persisted between runs.
    """

    client_id: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            CLIENT_ID_KEY: self.client_id,
            ACCESS_TOKEN_KEY: self.access_token,
            REFRESH_TOKEN_KEY: self.refresh_token,
        }

    @classmethod
    def from_dict(cls, data: Any) -> CredentialRecord:
        if not isinstance(data, dict):
            raise PersistenceError(f"Invalid credentials: {type(data)}")

        def get(key: str) -> str | None:
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise PersistenceError(f"Invalid credential field: {key}")
            return value

        return cls(
            client_id=get(CLIENT_ID_KEY),
            access_token=get(ACCESS_TOKEN_KEY),
            refresh_token=get(REFRESH_TOKEN_KEY),
        )


def derive_key(secret: str) -> bytes:
    """
    Derive the symmetric key from a secret: the base64 encoding of its
    SHA-256 digest, truncated to the key size.
    """
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.b64encode(digest)[:KEY_SIZE]


def encrypt_credentials(record: CredentialRecord, secret: str) -> bytes:
    """
    Encrypt credentials using a fresh initialization vector, which is
    stored alongside the cipher text.
    """
    plain = json.dumps(record.to_dict()).encode("utf-8")

    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plain) + padder.finalize()

    iv = os.urandom(IV_SIZE)
    encryptor = Cipher(algorithms.AES(derive_key(secret)), modes.CBC(iv)).encryptor()
    encrypted = encryptor.update(padded) + encryptor.finalize()

    return json.dumps({"iv": iv.hex(), "cipher": encrypted.hex()}).encode(
        "utf-8"
    )


def decrypt_credentials(blob: bytes, secret: str) -> CredentialRecord:
    """
    Decrypt credentials.

    :raises PersistenceError: If the blob is malformed or was encrypted
    with a different secret
    """
    try:
        encrypted = json.loads(blob)
        iv = bytes.fromhex(encrypted["iv"])
        cipher_text = bytes.fromhex(encrypted["cipher"])

        decryptor = Cipher(
            algorithms.AES(derive_key(secret)), modes.CBC(iv)
        ).decryptor()
        padded = decryptor.update(cipher_text) + decryptor.finalize()

        unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
        plain = unpadder.update(padded) + unpadder.finalize()

        data = json.loads(plain.decode("utf-8"))
    except (ValueError, KeyError, TypeError) as e:
        # covers bad json, hex, iv size, padding and utf-8 errors
        raise PersistenceError(
            f"Failed to decrypt credentials: {type(e).__name__}: {e}"
        ) from e

    return CredentialRecord.from_dict(data)


class CredentialStore:
    """
    Reads and writes encrypted credentials at a configurable path. Failures
    are logged and never propagated.
    """

    _path: Path | None
    _secret: str
    _logger: Logger

    def __init__(
        self, path: Path | None, secret: str, logger: Logger | None = None
    ):
        """
        :param path: Path of credentials file, or `None` to disable persistence
        :param secret: Secret from which the encryption key is derived
        :param logger: Logger to use
        """
        self._path = path
        self._secret = secret
        self._logger = logger or logging.getLogger("anylist_client")

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self) -> CredentialRecord | None:
        """
        Load stored credentials, or `None` if none could be loaded.
        """
        if self._path is None:
            return None

        if not self._path.is_file():
            self._logger.info(
                "Credentials file does not exist, not loading saved credentials"
            )
            return None

        try:
            try:
                blob = self._path.read_bytes()
            except OSError as e:
                raise PersistenceError(
                    f"Failed to read {self._path}: {e}"
                ) from e

            return decrypt_credentials(blob, self._secret)
        except PersistenceError as e:
            self._logger.error(f"Failed to read stored credentials: {e}")
            return None

    def store(self, record: CredentialRecord):
        """
        Encrypt and write credentials.
        """
        if self._path is None:
            return

        try:
            blob = encrypt_credentials(record, self._secret)

            try:
                self._path.write_bytes(blob)
            except OSError as e:
                raise PersistenceError(
                    f"Failed to write {self._path}: {e}"
                ) from e
        except PersistenceError as e:
            self._logger.error(f"Failed to write credentials to storage: {e}")
