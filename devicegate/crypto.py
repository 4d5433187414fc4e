"""Key derivation and symmetric encryption of persisted payloads.

The encryption key is SHA-256(device_id || pin_salt), base64-encoded for
Fernet (AES-128-CBC with HMAC-SHA256, random IV per token). Because the salt
is regenerated whenever the PIN is configured, a PIN reset makes earlier
ciphertext unreadable.

Payloads are a tagged variant: Plaintext before any PIN is configured,
Encrypted afterwards. On the wire they carry a "plain:" or "fernet:" prefix
so one can never be mistaken for the other.
"""

import base64
import binascii
import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from devicegate.audit import AuditLog
from devicegate.config import PIN_SALT_KEY
from devicegate.identity import DeviceIdentity
from devicegate.models import SecurityEvent
from devicegate.secure_memory import SecureBytes
from devicegate.state import SecurityStateStore
from devicegate.storage import KeyValueStore


logger = logging.getLogger(__name__)

PLAINTEXT_TAG = "plain:"
ENCRYPTED_TAG = "fernet:"


@dataclass(frozen=True)
class Plaintext:
    """Pass-through payload written while encryption is disabled."""
    data: bytes


@dataclass(frozen=True)
class Encrypted:
    """Fernet token produced under the current derived key."""
    token: str


Payload = Union[Plaintext, Encrypted]


def encode_blob(payload: Payload) -> str:
    """Serialize a payload to its stored string form."""
    if isinstance(payload, Encrypted):
        return ENCRYPTED_TAG + payload.token
    return PLAINTEXT_TAG + base64.b64encode(payload.data).decode("ascii")


def decode_blob(blob: str) -> Optional[Payload]:
    """Parse a stored string back into a payload.

    Returns:
        The payload, or None if the string is not a recognised blob
    """
    if blob.startswith(ENCRYPTED_TAG):
        return Encrypted(blob[len(ENCRYPTED_TAG):])
    if blob.startswith(PLAINTEXT_TAG):
        try:
            return Plaintext(base64.b64decode(blob[len(PLAINTEXT_TAG):], validate=True))
        except (binascii.Error, ValueError):
            return None
    return None


def derive_key(device_id: str, salt: str) -> bytes:
    """Derive a Fernet-compatible key from the device identity and PIN salt.

    Args:
        device_id: Device identifier
        salt: Salt stored alongside the PIN credential

    Returns:
        Base64-encoded 32-byte key suitable for Fernet
    """
    digest = hashlib.sha256((device_id + salt).encode()).digest()
    return base64.urlsafe_b64encode(digest)


class EncryptionService:
    """Encrypts and decrypts opaque byte payloads for the persistence layer."""

    def __init__(
        self,
        identity: DeviceIdentity,
        store: KeyValueStore,
        state: SecurityStateStore,
        audit: AuditLog,
    ):
        self._identity = identity
        self._store = store
        self._state = state
        self._audit = audit
        self._key: Optional[SecureBytes] = None
        self._key_salt: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return self._state.state.encryption_enabled

    def _current_salt(self) -> Optional[str]:
        return self._store.get(PIN_SALT_KEY)

    def derive_key(self) -> Optional[bytes]:
        """Return the key for the current salt, deriving it on first use.

        Returns:
            Fernet key, or None if no PIN salt is configured
        """
        salt = self._current_salt()
        if not salt:
            self.clear_key()
            return None

        if self._key is None or self._key.is_cleared or self._key_salt != salt:
            self.clear_key()
            self._key = SecureBytes(derive_key(self._identity.get_or_create(), salt))
            self._key_salt = salt
        return self._key.get()

    def clear_key(self) -> None:
        """Wipe cached key material from memory."""
        if self._key is not None:
            self._key.clear()
        self._key = None
        self._key_salt = None

    def _seal(self, data: bytes) -> Payload:
        if not self.enabled:
            return Plaintext(data)
        key = self.derive_key()
        if key is None:
            return Plaintext(data)
        return Encrypted(Fernet(key).encrypt(data).decode("ascii"))

    def _open(self, payload: Payload) -> Optional[bytes]:
        if isinstance(payload, Plaintext):
            # Plaintext written before a PIN existed is not trusted afterwards
            return None if self.enabled else payload.data

        key = self.derive_key()
        if key is None:
            return None
        try:
            return Fernet(key).decrypt(payload.token.encode("ascii"))
        except (InvalidToken, ValueError, TypeError):
            return None

    def encrypt(self, data: bytes) -> Payload:
        """Encrypt a payload, or pass it through while encryption is disabled.

        Args:
            data: Bytes to protect

        Returns:
            Encrypted token, or Plaintext in pass-through mode
        """
        payload = self._seal(data)
        if isinstance(payload, Encrypted):
            self._audit.append(SecurityEvent.DATA_ENCRYPTED, {"data_size": len(data)})
        return payload

    def decrypt(self, payload: Payload) -> Optional[bytes]:
        """Decrypt a payload.

        Never raises: a wrong key, a corrupted token, or pass-through data
        read after encryption was enabled all yield None.
        """
        data = self._open(payload)
        if isinstance(payload, Encrypted):
            self._audit.append(
                SecurityEvent.DATA_DECRYPTED,
                {"success": data is not None},
                success=data is not None,
            )
        if data is None:
            logger.debug("Decryption yielded no data")
        return data

    def validate_encryption(self) -> bool:
        """Round-trip a random sample through the current mode."""
        sample = secrets.token_bytes(32)
        return self._open(self._seal(sample)) == sample
