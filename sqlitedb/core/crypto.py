"""
Encryption capability threaded through record and meta accessors.
The data model never encrypts by itself; it only calls an ICryptoProvider.
"""

import os
import secrets
from abc import ABC, abstractmethod
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .config import KDF_ITERATIONS, CRYPTO_PASSWORD


class CryptoError(Exception):
    """Raised by crypto providers when a value cannot be encrypted or decrypted."""
    pass


class ICryptoProvider(ABC):
    """Abstract interface for text encryption."""

    @abstractmethod
    def encrypt(self, value: str) -> str:
        """Encrypt plain text and return a text-safe ciphertext."""
        pass

    @abstractmethod
    def decrypt(self, value: str) -> str:
        """Reverse encrypt()."""
        pass


def _derive_key(password: str, salt: bytes, iterations: int = KDF_ITERATIONS) -> bytes:
    """Derive encryption key from password using PBKDF2."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode())


def _encrypt_data(data: bytes, key: bytes) -> bytes:
    """Encrypt data using AES-256-GCM."""
    nonce = os.urandom(12)
    cipher = Cipher(algorithms.AES(key), modes.GCM(nonce))
    encryptor = cipher.encryptor()

    ciphertext = encryptor.update(data) + encryptor.finalize()

    # nonce + tag + ciphertext
    return nonce + encryptor.tag + ciphertext


def _decrypt_data(encrypted_data: bytes, key: bytes) -> bytes:
    """Decrypt data using AES-256-GCM."""
    if len(encrypted_data) < 28:  # nonce (12) + tag (16)
        raise CryptoError("Encrypted data too short")

    nonce = encrypted_data[:12]
    tag = encrypted_data[12:28]
    ciphertext = encrypted_data[28:]

    cipher = Cipher(algorithms.AES(key), modes.GCM(nonce, tag))
    decryptor = cipher.decryptor()
    try:
        return decryptor.update(ciphertext) + decryptor.finalize()
    except InvalidTag as e:
        raise CryptoError("Decryption failed: wrong key or corrupted data") from e


class AESCryptoProvider(ICryptoProvider):
    """AES-256-GCM provider with a PBKDF2 derived key.

    Ciphertext is returned as lowercase hex so it can live in TEXT
    columns and JSON documents. Keep `salt` alongside the data: the same
    password and salt are needed to decrypt.
    """

    def __init__(self, password: str, salt: Optional[bytes] = None, iterations: int = KDF_ITERATIONS):
        if not password:
            raise CryptoError("A password is required")
        self.salt = salt if salt is not None else secrets.token_bytes(16)
        self._key = _derive_key(password, self.salt, iterations)

    @classmethod
    def from_env(cls, salt: Optional[bytes] = None) -> 'AESCryptoProvider':
        """Build a provider from SQLITEDB_CRYPTO_PASSWORD."""
        if not CRYPTO_PASSWORD:
            raise CryptoError("SQLITEDB_CRYPTO_PASSWORD is not set")
        return cls(CRYPTO_PASSWORD, salt, KDF_ITERATIONS)

    def encrypt(self, value: str) -> str:
        return _encrypt_data(value.encode("utf-8"), self._key).hex()

    def decrypt(self, value: str) -> str:
        try:
            data = bytes.fromhex(value)
        except ValueError as e:
            raise CryptoError("Ciphertext is not valid hex") from e
        try:
            return _decrypt_data(data, self._key).decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError("Decrypted data is not valid UTF-8") from e
