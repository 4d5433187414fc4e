"""Session tokens and idle timeout.

Expiry is pull-based: nothing fires when a session times out. The next call
to check_validity() (made by every state-reading entry point) observes the
elapsed expiry and clears the session then.
"""

import hashlib
import logging
import math
import secrets
import time
from typing import Callable, Optional, Tuple

from devicegate.audit import AuditLog
from devicegate.config import SESSION_TIMEOUT_SECONDS, SESSION_TOKEN_BYTES
from devicegate.models import SecurityEvent
from devicegate.state import SecurityStateStore


logger = logging.getLogger(__name__)

NO_SESSION = "no_session"


def session_fingerprint(token: Optional[str]) -> str:
    """Short, non-reversible identifier for a session token.

    The audit trail is stored in plaintext, so it records this instead of
    the token itself.
    """
    if not token:
        return NO_SESSION
    return hashlib.sha256(token.encode()).hexdigest()[:16]


class SessionManager:
    """Issues session tokens and enforces the idle timeout."""

    def __init__(
        self,
        state: SecurityStateStore,
        audit: AuditLog,
        clock: Callable[[], float] = time.time,
        timeout_seconds: int = SESSION_TIMEOUT_SECONDS,
    ):
        self._state = state
        self._audit = audit
        self._clock = clock
        self.timeout_seconds = timeout_seconds

    def mint_session(self) -> Tuple[str, float]:
        """Generate a fresh token and expiry on the security state.

        The caller is responsible for persisting the state once its own
        mutation is complete.

        Returns:
            Tuple of (token, expiry_epoch_seconds)
        """
        token = secrets.token_hex(SESSION_TOKEN_BYTES)
        expiry = self._clock() + self.timeout_seconds

        state = self._state.state
        state.session_token = token
        state.session_expiry = expiry

        self._audit.append(SecurityEvent.SESSION_CREATED, {"timeout_seconds": self.timeout_seconds})
        return token, expiry

    def check_validity(self) -> bool:
        """Expire the session if its deadline has passed.

        Returns:
            True if a session was expired by this call
        """
        state = self._state.state
        if state.session_expiry is None or self._clock() <= state.session_expiry:
            return False

        logger.info("Session expired after inactivity")
        self._audit.append(SecurityEvent.SESSION_EXPIRED, {"manual": False})
        state.clear_session()
        self._state.save()
        return True

    def sign_out(self) -> None:
        """End the session immediately. No-op without an active session."""
        if self._state.state.session_token is None:
            return
        self._audit.append(SecurityEvent.SESSION_EXPIRED, {"manual": True})
        self._state.state.clear_session()
        self._state.save()

    def remaining_seconds(self) -> int:
        """Seconds until the current session expires, 0 if none is active."""
        expiry = self._state.state.session_expiry
        if expiry is None:
            return 0
        return max(0, math.ceil(expiry - self._clock()))
