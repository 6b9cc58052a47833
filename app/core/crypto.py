"""
Chiffrement des configurations d'intégration (URL, en-têtes, secrets d'auth)

Format d'un blob chiffré : base64(IV[16] + AuthTag[16] + Ciphertext), AES-256-GCM.
"""

import base64
import hashlib
import json
import logging
import os
from typing import Any, Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

IV_LENGTH = 16
AUTH_TAG_LENGTH = 16


def derive_key(raw_key: str) -> bytes:
    """Dérive une clé de 32 octets depuis la valeur de ENCRYPTION_KEY"""
    # 64 caractères : clé encodée en hexadécimal
    if len(raw_key) == 64:
        return bytes.fromhex(raw_key)

    # 44 caractères : clé encodée en base64
    if len(raw_key) == 44:
        return base64.b64decode(raw_key)

    return hashlib.sha256(raw_key.encode("utf-8")).digest()


class ConfigEncryption:
    """Chiffre et déchiffre les blobs de configuration stockés en base"""

    def __init__(self, encryption_key: Optional[str]):
        if not encryption_key:
            raise ConfigurationError("ENCRYPTION_KEY environment variable is not set")
        self._aesgcm = AESGCM(derive_key(encryption_key))

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        sealed = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        # AESGCM renvoie ciphertext + tag, le format stocké place le tag avant
        ciphertext, auth_tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return base64.b64encode(iv + auth_tag + ciphertext).decode("ascii")

    def decrypt(self, encrypted_data: str) -> str:
        combined = base64.b64decode(encrypted_data)
        if len(combined) < IV_LENGTH + AUTH_TAG_LENGTH:
            raise ValueError("Encrypted payload is too short")

        iv = combined[:IV_LENGTH]
        auth_tag = combined[IV_LENGTH:IV_LENGTH + AUTH_TAG_LENGTH]
        ciphertext = combined[IV_LENGTH + AUTH_TAG_LENGTH:]

        plaintext = self._aesgcm.decrypt(iv, ciphertext + auth_tag, None)
        return plaintext.decode("utf-8")

    def encrypt_json(self, data: Any) -> str:
        return self.encrypt(json.dumps(data))

    def decrypt_json(self, encrypted_data: str) -> Any:
        return json.loads(self.decrypt(encrypted_data))
