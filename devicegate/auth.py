"""PIN authentication module.

Handles PIN validation, hashing, credential storage and the failure-count /
lockout state machine. Lockout is attempt based: MAX_AUTH_ATTEMPTS
consecutive failures lock the gate for LOCKOUT_DURATION_SECONDS, and any
success resets the count.

Callers must serialize authenticate() calls; overlapping calls are not
guarded against.
"""

import hashlib
import hmac
import logging
import math
import secrets
import time
from typing import Callable, Optional, Tuple

from devicegate.audit import AuditLog
from devicegate.config import (
    LOCKOUT_DURATION_SECONDS,
    MAX_AUTH_ATTEMPTS,
    PIN_HASH_ITERATIONS,
    PIN_HASH_KEY,
    PIN_MAX_LENGTH,
    PIN_MIN_LENGTH,
    PIN_SALT_BYTES,
    PIN_SALT_KEY,
)
from devicegate.identity import DeviceIdentity
from devicegate.models import (
    AuthError,
    AuthMethod,
    AuthResult,
    AuthState,
    PinCredential,
    SecurityEvent,
)
from devicegate.session import SessionManager
from devicegate.state import SecurityStateStore
from devicegate.storage import KeyValueStore


logger = logging.getLogger(__name__)


def hash_pin(pin: str, salt: str, device_id: str, iterations: int = PIN_HASH_ITERATIONS) -> str:
    """Hash a PIN using PBKDF2-SHA256.

    Single source of truth for PIN hashing. The device identifier is mixed in
    so a copied credential is useless on another device.

    Args:
        pin: PIN to hash
        salt: Hex salt from the stored credential
        device_id: Device identifier
        iterations: PBKDF2 rounds

    Returns:
        Hex digest
    """
    return hashlib.pbkdf2_hmac(
        "sha256",
        (pin + device_id).encode(),
        salt.encode(),
        iterations,
    ).hex()


def generate_salt() -> str:
    """Generate a cryptographically secure random salt.

    Returns:
        Hex-encoded 16-byte salt
    """
    return secrets.token_hex(PIN_SALT_BYTES)


def validate_pin(
    pin: str,
    min_length: int = PIN_MIN_LENGTH,
    max_length: int = PIN_MAX_LENGTH,
) -> Tuple[bool, str]:
    """Validate PIN format.

    Args:
        pin: Candidate PIN

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(pin, str) or not (pin.isascii() and pin.isdigit()):
        return False, "PIN must contain digits only."
    if not min_length <= len(pin) <= max_length:
        return False, f"PIN must be {min_length}-{max_length} digits long."
    return True, ""


class PinAuthenticator:
    """PIN setup, verification and lockout."""

    def __init__(
        self,
        identity: DeviceIdentity,
        store: KeyValueStore,
        state: SecurityStateStore,
        session: SessionManager,
        audit: AuditLog,
        clock: Callable[[], float] = time.time,
        min_length: int = PIN_MIN_LENGTH,
        max_length: int = PIN_MAX_LENGTH,
        max_attempts: int = MAX_AUTH_ATTEMPTS,
        lockout_seconds: int = LOCKOUT_DURATION_SECONDS,
        iterations: int = PIN_HASH_ITERATIONS,
    ):
        self._identity = identity
        self._store = store
        self._state = state
        self._session = session
        self._audit = audit
        self._clock = clock
        self.min_length = min_length
        self.max_length = max_length
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self.iterations = iterations

    def load_credential(self) -> Optional[PinCredential]:
        """Load the stored PIN hash and salt.

        Returns:
            PinCredential, or None if no PIN is configured
        """
        pin_hash = self._store.get(PIN_HASH_KEY)
        salt = self._store.get(PIN_SALT_KEY)
        if not pin_hash or not salt:
            return None
        return PinCredential(pin_hash=pin_hash, salt=salt)

    def has_pin(self) -> bool:
        """Check if a PIN has been configured."""
        return self.load_credential() is not None

    def _hash(self, pin: str, salt: str) -> str:
        return hash_pin(pin, salt, self._identity.get_or_create(), self.iterations)

    def verify_pin(self, pin: str) -> bool:
        """Check a PIN against the stored credential without touching state."""
        credential = self.load_credential()
        if credential is None:
            return False
        return hmac.compare_digest(self._hash(pin, credential.salt), credential.pin_hash)

    def _lockout_remaining(self) -> int:
        lockout_until = self._state.state.lockout_until
        if lockout_until is None:
            return 0
        return max(0, math.ceil(lockout_until - self._clock()))

    def current_state(self) -> AuthState:
        """Report where the gate currently is in its state machine."""
        state = self._state.state
        if not self.has_pin():
            return AuthState.NO_PIN_CONFIGURED
        if state.is_locked(self._clock()):
            return AuthState.LOCKED
        if state.is_authenticated:
            return AuthState.AUTHENTICATED
        return AuthState.UNLOCKED_PENDING_PIN

    def setup_pin(self, pin: str) -> AuthResult:
        """Configure (or reconfigure) the PIN.

        A fresh salt is generated every time, so anything encrypted under the
        previous PIN becomes unreadable. Callers must wipe or re-encrypt it.

        Args:
            pin: New PIN

        Returns:
            AuthResult; INVALID_FORMAT if the PIN is malformed
        """
        is_valid, error = validate_pin(pin, self.min_length, self.max_length)
        if not is_valid:
            self._audit.append(
                SecurityEvent.PIN_CHANGED,
                {"error": "Invalid PIN format"},
                success=False,
            )
            return AuthResult(success=False, error=AuthError.INVALID_FORMAT, message=error)

        salt = generate_salt()
        pin_hash = self._hash(pin, salt)
        self._store.set(PIN_HASH_KEY, pin_hash)
        self._store.set(PIN_SALT_KEY, salt)

        state = self._state.state
        state.encryption_enabled = True
        state.failed_attempts = 0
        state.lockout_until = None
        self._state.save()

        self._audit.append(SecurityEvent.PIN_CHANGED, {"digits": len(pin)})
        logger.info("PIN authentication configured")
        return AuthResult(success=True, message="PIN configured.")

    def authenticate(self, pin: str) -> AuthResult:
        """Authenticate with the PIN, enforcing attempt limits and lockout.

        Args:
            pin: Candidate PIN

        Returns:
            AuthResult carrying the session token on success, or the failure
            reason with remaining attempts / lockout seconds
        """
        state = self._state.state
        now = self._clock()

        if state.is_locked(now):
            remaining = self._lockout_remaining()
            return AuthResult(
                success=False,
                error=AuthError.LOCKED,
                message=f"Locked. Try again in {remaining} seconds.",
                remaining_attempts=0,
                lockout_until=state.lockout_until,
                remaining_seconds=remaining,
            )

        # Lockout window has passed. The failure count stands until a success,
        # so the next wrong PIN locks again.
        if state.lockout_until is not None:
            state.lockout_until = None
            self._state.save()

        credential = self.load_credential()
        if credential is None:
            return AuthResult(
                success=False,
                error=AuthError.NOT_CONFIGURED,
                message="No PIN configured.",
            )

        candidate = self._hash(pin if isinstance(pin, str) else "", credential.salt)
        if hmac.compare_digest(candidate, credential.pin_hash):
            return self._on_success()
        return self._on_failure(now)

    def _on_success(self) -> AuthResult:
        state = self._state.state
        state.is_authenticated = True
        state.auth_method = AuthMethod.PIN
        token, expiry = self._session.mint_session()
        state.failed_attempts = 0
        state.lockout_until = None
        self._state.save()

        self._audit.append(SecurityEvent.AUTH_SUCCESS, {"method": AuthMethod.PIN.value})
        return AuthResult(
            success=True,
            message="Authenticated.",
            session_token=token,
            session_expiry=expiry,
        )

    def _on_failure(self, now: float) -> AuthResult:
        state = self._state.state
        state.failed_attempts += 1
        attempts = state.failed_attempts

        locked = attempts >= self.max_attempts
        if locked:
            state.lockout_until = now + self.lockout_seconds
            self._audit.append(SecurityEvent.AUTH_LOCKOUT, {"attempts": attempts})
            logger.warning("Too many failed PIN attempts, locking for %d seconds", self.lockout_seconds)

        self._state.save()
        self._audit.append(
            SecurityEvent.AUTH_FAILURE,
            {"method": AuthMethod.PIN.value, "attempts": attempts},
            success=False,
        )

        remaining_attempts = max(0, self.max_attempts - attempts)
        if locked:
            return AuthResult(
                success=False,
                error=AuthError.LOCKED,
                message=f"Too many failed attempts. Locked for {self.lockout_seconds} seconds.",
                remaining_attempts=remaining_attempts,
                lockout_until=state.lockout_until,
                remaining_seconds=self._lockout_remaining(),
            )
        return AuthResult(
            success=False,
            error=AuthError.INVALID_PIN,
            message=f"Incorrect PIN. {remaining_attempts} attempt(s) remaining.",
            remaining_attempts=remaining_attempts,
        )
