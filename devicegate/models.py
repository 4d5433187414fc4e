"""Pydantic models for security state, audit events and auth results.

SecurityState and AuditEvent are persisted as JSON in the host store, so
they are validated on load; anything that fails validation is treated as
corrupt and replaced with defaults by the caller.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AuthMethod(str, Enum):
    """How the current session was authenticated."""
    NONE = "none"
    PIN = "pin"


class AuthError(str, Enum):
    """Structured failure reasons returned by the authenticator."""
    INVALID_FORMAT = "invalid_format"
    LOCKED = "locked"
    NOT_CONFIGURED = "not_configured"
    INVALID_PIN = "invalid_pin"


class AuthState(str, Enum):
    """Authenticator state machine."""
    NO_PIN_CONFIGURED = "no_pin_configured"
    LOCKED = "locked"
    UNLOCKED_PENDING_PIN = "unlocked_pending_pin"
    AUTHENTICATED = "authenticated"


class SecurityEvent(str, Enum):
    """Security-relevant transitions recorded in the audit trail."""
    AUTH_SUCCESS = "auth_success"
    AUTH_FAILURE = "auth_failure"
    AUTH_LOCKOUT = "auth_lockout"
    DATA_ENCRYPTED = "data_encrypted"
    DATA_DECRYPTED = "data_decrypted"
    DATA_WIPED = "data_wiped"
    SESSION_CREATED = "session_created"
    SESSION_EXPIRED = "session_expired"
    PIN_CHANGED = "pin_changed"


class SecurityState(BaseModel):
    """Authenticator working state, persisted in plaintext."""
    is_authenticated: bool = False
    auth_method: AuthMethod = AuthMethod.NONE
    session_token: Optional[str] = None
    session_expiry: Optional[float] = Field(default=None, description="Epoch seconds")
    failed_attempts: int = Field(default=0, ge=0)
    lockout_until: Optional[float] = Field(default=None, description="Epoch seconds")
    encryption_enabled: bool = False

    def clear_session(self) -> None:
        """Drop every authentication field."""
        self.is_authenticated = False
        self.auth_method = AuthMethod.NONE
        self.session_token = None
        self.session_expiry = None

    def is_locked(self, now: float) -> bool:
        return self.lockout_until is not None and now < self.lockout_until


class PinCredential(BaseModel):
    """Stored PIN digest and the salt it was computed with."""
    pin_hash: str
    salt: str


class AuditEvent(BaseModel):
    """Immutable record of a security-relevant state transition."""
    model_config = {"frozen": True}

    event: SecurityEvent
    timestamp: float
    session_id: str = "no_session"
    success: bool = True
    details: dict[str, Any] = Field(default_factory=dict)


class AuthResult(BaseModel):
    """Outcome of setup_pin / authenticate / change_pin.

    Failures are reported here rather than raised.
    """
    success: bool
    error: Optional[AuthError] = None
    message: str = ""
    session_token: Optional[str] = None
    session_expiry: Optional[float] = None
    remaining_attempts: Optional[int] = None
    lockout_until: Optional[float] = None
    remaining_seconds: Optional[int] = None

    @property
    def is_locked(self) -> bool:
        return self.error == AuthError.LOCKED
