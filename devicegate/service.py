"""Consumer-facing security core.

SecurityCore wires the components together around a single host store. Build
one at process start and pass it to whatever needs the gate or the encrypted
store; there is no module-level instance.
"""

import logging
import time
from typing import Any, Callable, Optional

from devicegate.audit import AuditLog
from devicegate.auth import PinAuthenticator, validate_pin
from devicegate.config import (
    AUDIT_LOG_MAX_ENTRIES,
    LOCKOUT_DURATION_SECONDS,
    MAX_AUTH_ATTEMPTS,
    PIN_HASH_ITERATIONS,
    PIN_MAX_LENGTH,
    PIN_MIN_LENGTH,
    SESSION_TIMEOUT_SECONDS,
)
from devicegate.crypto import EncryptionService
from devicegate.identity import DeviceIdentity
from devicegate.models import (
    AuditEvent,
    AuthError,
    AuthResult,
    AuthState,
    SecurityEvent,
    SecurityState,
)
from devicegate.persistence import EncryptedPersistenceAdapter
from devicegate.session import SessionManager, session_fingerprint
from devicegate.state import SecurityStateStore
from devicegate.storage import KeyValueStore, StorageError, StorageUnavailableError


logger = logging.getLogger(__name__)


class NotInitializedError(RuntimeError):
    """SecurityCore used before initialize()."""
    pass


class SecurityCore:
    """PIN gate, session handling and encrypted persistence for one device."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
        pin_min_length: int = PIN_MIN_LENGTH,
        pin_max_length: int = PIN_MAX_LENGTH,
        max_attempts: int = MAX_AUTH_ATTEMPTS,
        lockout_seconds: int = LOCKOUT_DURATION_SECONDS,
        session_timeout_seconds: int = SESSION_TIMEOUT_SECONDS,
        hash_iterations: int = PIN_HASH_ITERATIONS,
        audit_max_entries: int = AUDIT_LOG_MAX_ENTRIES,
    ):
        self.store = store
        self.state_store = SecurityStateStore(store)
        self.identity = DeviceIdentity(store)
        self.audit = AuditLog(
            store,
            clock=clock,
            session_id_provider=lambda: session_fingerprint(self.state_store.state.session_token),
            max_entries=audit_max_entries,
        )
        self.sessions = SessionManager(
            self.state_store, self.audit, clock=clock, timeout_seconds=session_timeout_seconds
        )
        self.encryption = EncryptionService(self.identity, store, self.state_store, self.audit)
        self.auth = PinAuthenticator(
            self.identity,
            store,
            self.state_store,
            self.sessions,
            self.audit,
            clock=clock,
            min_length=pin_min_length,
            max_length=pin_max_length,
            max_attempts=max_attempts,
            lockout_seconds=lockout_seconds,
            iterations=hash_iterations,
        )
        self.persistence = EncryptedPersistenceAdapter(store, self.encryption)
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _require_init(self) -> None:
        if not self._initialized:
            raise NotInitializedError("Security core not initialized. Call initialize() first.")

    def initialize(self) -> None:
        """Load and validate persisted state. Idempotent.

        Raises:
            StorageUnavailableError: If the host store can't be used
        """
        if self._initialized:
            return

        try:
            self.store.check_available()
            self.identity.get_or_create()
            self.state_store.load()
            self.audit.load()
            has_pin = self.auth.has_pin()
        except StorageError as e:
            logger.error("Security initialization failed: %s", e)
            if isinstance(e, StorageUnavailableError):
                raise
            raise StorageUnavailableError(f"Security initialization failed: {e}") from e

        self._reconcile(has_pin)
        self._initialized = True
        self.sessions.check_validity()
        logger.info("Security system initialized")

    def _reconcile(self, has_pin: bool) -> None:
        """Make the loaded state agree with the stored credential."""
        state = self.state_store.state
        if has_pin and not state.encryption_enabled:
            logger.warning("PIN configured but encryption flag was off, re-enabling")
            state.encryption_enabled = True
            self.state_store.save()
        elif not has_pin and (state.encryption_enabled or state.is_authenticated):
            logger.warning("No PIN credential found, resetting security state")
            state.encryption_enabled = False
            state.clear_session()
            self.state_store.save()

    # Gate

    def is_authenticated(self) -> bool:
        """Check the gate, expiring an idle session first."""
        self._require_init()
        self.sessions.check_validity()
        return self.state_store.state.is_authenticated

    def get_security_status(self) -> SecurityState:
        """Return a copy of the current security state, expiring an idle session first."""
        self._require_init()
        self.sessions.check_validity()
        return self.state_store.snapshot()

    def auth_state(self) -> AuthState:
        self._require_init()
        self.sessions.check_validity()
        return self.auth.current_state()

    def has_pin(self) -> bool:
        self._require_init()
        return self.auth.has_pin()

    def session_remaining_seconds(self) -> int:
        self._require_init()
        self.sessions.check_validity()
        return self.sessions.remaining_seconds()

    def setup_pin(self, pin: str) -> bool:
        """Configure the PIN.

        Destructive for data encrypted under a previous PIN; use change_pin()
        to keep it.
        """
        self._require_init()
        return self.auth.setup_pin(pin).success

    def authenticate(self, pin: str) -> AuthResult:
        self._require_init()
        return self.auth.authenticate(pin)

    def change_pin(self, current_pin: str, new_pin: str) -> AuthResult:
        """Replace the PIN and re-encrypt every stored record under the new key.

        The current PIN goes through authenticate(), so wrong guesses count
        toward lockout.
        """
        self._require_init()

        is_valid, error = validate_pin(new_pin, self.auth.min_length, self.auth.max_length)
        if not is_valid:
            return AuthResult(success=False, error=AuthError.INVALID_FORMAT, message=error)

        result = self.auth.authenticate(current_pin)
        if not result.success:
            return result

        snapshot = self.persistence.export_plaintext()
        changed = self.auth.setup_pin(new_pin)
        if not changed.success:
            return changed

        migrated = self.persistence.import_plaintext(snapshot)
        logger.info("PIN changed, %d record(s) re-encrypted", migrated)
        return AuthResult(
            success=True,
            message=f"PIN changed. {migrated} record(s) re-encrypted.",
            session_token=result.session_token,
            session_expiry=result.session_expiry,
        )

    def sign_out(self) -> None:
        self._require_init()
        self.sessions.sign_out()
        self.encryption.clear_key()

    def wipe_all_data(self) -> bool:
        """Delete every namespaced record and reset the security state.

        Best effort: in-memory state is cleared even if some deletes fail.

        Returns:
            True if every record was deleted
        """
        self._require_init()
        complete = True
        deleted = 0

        try:
            keys = self.store.keys()
        except StorageError as e:
            logger.error("Data wipe could not list records: %s", e)
            keys = []
            complete = False

        for key in keys:
            try:
                if self.store.delete(key):
                    deleted += 1
            except StorageError as e:
                logger.error("Data wipe failed for %s: %s", key, e)
                complete = False

        # Records the store lists but cannot delete (foreign file names)
        if complete:
            try:
                leftover = self.store.keys()
            except StorageError as e:
                logger.error("Data wipe could not verify deletion: %s", e)
                complete = False
            else:
                if leftover:
                    logger.error("Data wipe left %d record(s) behind", len(leftover))
                    complete = False

        self.encryption.clear_key()
        self.identity.forget()
        self.state_store.reset()

        details = {"records": deleted}
        if not complete:
            details["error"] = "Partial wipe"
        self.audit.append(SecurityEvent.DATA_WIPED, details, success=complete)

        if complete:
            logger.info("All data wiped")
        return complete

    # Audit

    def get_audit_log(self, limit: Optional[int] = None) -> list[AuditEvent]:
        self._require_init()
        return self.audit.events(limit)

    def export_audit_log(self) -> str:
        self._require_init()
        return self.audit.export_csv()

    # Persistence contract

    def save(self, key: str, value: Any) -> bool:
        """Persist a JSON-serializable object through the encrypted store."""
        self._require_init()
        return self.persistence.save(key, value)

    def load(self, key: str) -> Optional[Any]:
        """Load a previously saved object, or None if absent or unreadable."""
        self._require_init()
        return self.persistence.load(key)

    def validate_encryption(self) -> bool:
        self._require_init()
        return self.encryption.validate_encryption()
