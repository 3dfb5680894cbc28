from __future__ import annotations

import base64
import logging

from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from cryptography.hazmat.primitives.serialization import load_pem_public_key
from django.core.exceptions import ImproperlyConfigured

from .exceptions import EncryptionError

logger = logging.getLogger(__name__)

MODE_RSA = "rsa"
MODE_PLACEHOLDER = "placeholder"
PLACEHOLDER_PREFIX = "encrypted_"


def load_public_key(path: str) -> RSAPublicKey:
    try:
        with open(path, "rb") as fh:
            key = load_pem_public_key(fh.read())
    except (OSError, ValueError) as e:
        raise ImproperlyConfigured(f"Cannot load e-SADAD public key from {path}: {e}") from e
    if not isinstance(key, RSAPublicKey):
        raise ImproperlyConfigured(f"e-SADAD public key at {path} is not an RSA key")
    return key


class CredentialEncryptor:
    """Wraps customer secrets (password, OTP) with the gateway's public key.

    Without a key the encryptor runs in placeholder mode and returns
    ``"encrypted_" + plaintext``. Production settings refuse to start without
    ``ESADAD_PUBLIC_KEY_PATH``, so that mode is for development and tests only.
    """

    def __init__(self, public_key: RSAPublicKey | None = None) -> None:
        self.public_key = public_key

    @classmethod
    def from_path(cls, path: str | None) -> "CredentialEncryptor":
        return cls(load_public_key(path) if path else None)

    @property
    def mode(self) -> str:
        return MODE_RSA if self.public_key is not None else MODE_PLACEHOLDER

    @property
    def is_placeholder(self) -> bool:
        return self.mode == MODE_PLACEHOLDER

    def encrypt(self, plaintext: str) -> str:
        if self.public_key is None:
            logger.warning("e-SADAD public key not configured; sending placeholder ciphertext")
            return PLACEHOLDER_PREFIX + plaintext
        try:
            raw = self.public_key.encrypt(plaintext.encode("utf-8"), padding.PKCS1v15())
        except (ValueError, TypeError) as e:
            raise EncryptionError(f"Failed to encrypt data with public key: {e}") from e
        return base64.b64encode(raw).decode("ascii")
