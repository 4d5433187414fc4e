"""Device authentication and encrypted-persistence core.

Provides modular components for a local PIN gate over a key-value store:
- config: Centralized configuration constants
- storage: Host key-value stores (file and in-memory)
- identity: Per-device identifier
- auth: PIN setup, verification and lockout
- session: Session tokens and idle timeout
- crypto: Key derivation and payload encryption
- audit: Bounded security audit trail
- persistence: Encrypted save/load adapter
- service: SecurityCore facade tying it all together
"""

from devicegate.audit import AuditLog
from devicegate.auth import PinAuthenticator, hash_pin, validate_pin
from devicegate.crypto import EncryptionService, Encrypted, Plaintext, decode_blob, encode_blob
from devicegate.identity import DeviceIdentity
from devicegate.models import (
    AuditEvent,
    AuthError,
    AuthMethod,
    AuthResult,
    AuthState,
    PinCredential,
    SecurityEvent,
    SecurityState,
)
from devicegate.persistence import EncryptedPersistenceAdapter
from devicegate.service import NotInitializedError, SecurityCore
from devicegate.session import SessionManager
from devicegate.storage import (
    FileCorruptedError,
    FileStore,
    KeyValueStore,
    MemoryStore,
    StorageError,
    StorageUnavailableError,
)

__all__ = [
    # Facade
    "SecurityCore",
    "NotInitializedError",
    # Components
    "AuditLog",
    "DeviceIdentity",
    "EncryptedPersistenceAdapter",
    "EncryptionService",
    "PinAuthenticator",
    "SessionManager",
    # Crypto helpers
    "Encrypted",
    "Plaintext",
    "decode_blob",
    "encode_blob",
    "hash_pin",
    "validate_pin",
    # Models
    "AuditEvent",
    "AuthError",
    "AuthMethod",
    "AuthResult",
    "AuthState",
    "PinCredential",
    "SecurityEvent",
    "SecurityState",
    # Storage
    "KeyValueStore",
    "FileStore",
    "MemoryStore",
    "StorageError",
    "StorageUnavailableError",
    "FileCorruptedError",
]
