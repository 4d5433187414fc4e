"""Tests for session tokens and lazy idle timeout."""

from devicegate import SecurityEvent
from devicegate.session import NO_SESSION, session_fingerprint


def _expired_events(core):
    return [e for e in core.get_audit_log() if e.event == SecurityEvent.SESSION_EXPIRED]


class TestMintSession:
    """Test session creation."""

    def test_expiry_is_timeout_from_now(self, pin_core, clock):
        result = pin_core.authenticate("1234")
        assert result.session_expiry == clock.now + 1800
        assert pin_core.session_remaining_seconds() == 1800

    def test_session_created_event(self, pin_core):
        pin_core.authenticate("1234")
        events = [e for e in pin_core.get_audit_log() if e.event == SecurityEvent.SESSION_CREATED]
        assert len(events) == 1

    def test_custom_timeout(self, pin_core):
        pin_core.sessions.timeout_seconds = 60
        pin_core.authenticate("1234")
        assert pin_core.session_remaining_seconds() == 60


class TestCheckValidity:
    """Test pull-based expiry."""

    def test_session_valid_before_expiry(self, pin_core, clock):
        pin_core.authenticate("1234")
        clock.advance(1800)
        assert pin_core.is_authenticated()
        assert _expired_events(pin_core) == []

    def test_expiry_clears_authentication(self, pin_core, clock):
        """Reading the gate after the deadline clears every auth field."""
        pin_core.authenticate("1234")
        clock.advance(1801)

        assert not pin_core.is_authenticated()
        status = pin_core.get_security_status()
        assert status.session_token is None
        assert status.session_expiry is None
        assert status.auth_method.value == "none"

    def test_exactly_one_expired_event(self, pin_core, clock):
        """Repeated checks after expiry are no-ops."""
        pin_core.authenticate("1234")
        clock.advance(1801)

        assert pin_core.sessions.check_validity() is True
        assert pin_core.sessions.check_validity() is False
        pin_core.is_authenticated()
        pin_core.get_security_status()

        events = _expired_events(pin_core)
        assert len(events) == 1
        assert events[0].details["manual"] is False

    def test_expiry_only_observed_on_read(self, pin_core, clock):
        """Nothing happens until a state-reading entry point runs."""
        pin_core.authenticate("1234")
        clock.advance(5000)
        assert pin_core.state_store.state.is_authenticated
        assert not pin_core.is_authenticated()

    def test_expiry_persisted(self, pin_core, store, clock):
        from devicegate.config import SECURITY_STATE_KEY

        pin_core.authenticate("1234")
        clock.advance(1801)
        pin_core.is_authenticated()
        assert '"is_authenticated":false' in store.get(SECURITY_STATE_KEY)

    def test_expired_event_carries_session_id(self, pin_core, clock):
        token = pin_core.authenticate("1234").session_token
        clock.advance(1801)
        pin_core.is_authenticated()
        assert _expired_events(pin_core)[0].session_id == session_fingerprint(token)


class TestSignOut:
    """Test voluntary sign-out."""

    def test_sign_out_clears_session(self, pin_core):
        pin_core.authenticate("1234")
        pin_core.sign_out()
        assert not pin_core.is_authenticated()
        assert pin_core.session_remaining_seconds() == 0

    def test_sign_out_marked_manual(self, pin_core):
        pin_core.authenticate("1234")
        pin_core.sign_out()
        events = _expired_events(pin_core)
        assert len(events) == 1
        assert events[0].details["manual"] is True

    def test_sign_out_without_session_not_audited(self, pin_core):
        pin_core.sign_out()
        assert _expired_events(pin_core) == []

    def test_second_sign_out_is_noop(self, pin_core):
        pin_core.authenticate("1234")
        pin_core.sign_out()
        pin_core.sign_out()
        assert len(_expired_events(pin_core)) == 1


class TestSessionFingerprint:
    """Test audit session identifiers."""

    def test_no_token(self):
        assert session_fingerprint(None) == NO_SESSION
        assert session_fingerprint("") == NO_SESSION

    def test_token_not_leaked(self):
        token = "ab" * 32
        fingerprint = session_fingerprint(token)
        assert len(fingerprint) == 16
        assert fingerprint not in token
        assert fingerprint == session_fingerprint(token)
