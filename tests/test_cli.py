"""Tests for the operator CLI flows."""

import os

import pytest

from cli import (
    change_pin_flow,
    export_audit_flow,
    save_note_flow,
    setup_pin_flow,
    unlock_flow,
    wipe_flow,
)


def _feed(monkeypatch, target, answers):
    """Replace an input function with one that returns canned answers."""
    responses = iter(answers)
    monkeypatch.setattr(target, lambda *args, **kwargs: next(responses))


@pytest.fixture
def pins(monkeypatch):
    return lambda *answers: _feed(monkeypatch, "getpass.getpass", answers)


@pytest.fixture
def typed(monkeypatch):
    return lambda *answers: _feed(monkeypatch, "builtins.input", answers)


class TestGateFlows:
    """Test PIN setup, unlock and change prompts."""

    def test_setup(self, core, pins):
        pins("1234", "1234")
        assert setup_pin_flow(core)
        assert core.has_pin()

    def test_setup_retries_on_mismatch(self, core, pins, capsys):
        pins("1234", "4321", "5678", "5678")
        assert setup_pin_flow(core)
        assert "do not match" in capsys.readouterr().out
        assert core.auth.verify_pin("5678")

    def test_setup_refused_when_configured(self, pin_core):
        assert not setup_pin_flow(pin_core)

    def test_unlock_after_wrong_pin(self, pin_core, pins, capsys):
        pins("0000", "1234")
        assert unlock_flow(pin_core)
        assert "4 attempt(s) remaining" in capsys.readouterr().out
        assert pin_core.is_authenticated()

    def test_unlock_stops_at_lockout(self, pin_core, pins, capsys):
        pins(*["0000"] * 5)
        assert not unlock_flow(pin_core)
        assert "Try again in 300 seconds" in capsys.readouterr().out

    def test_unlock_cancel(self, pin_core, pins):
        pins("")
        assert not unlock_flow(pin_core)

    def test_change_pin(self, pin_core, pins):
        pin_core.save("ward", {"beds": 4})
        pins("1234", "5678", "5678")
        assert change_pin_flow(pin_core)
        assert pin_core.load("ward") == {"beds": 4}


class TestWipeFlow:
    """Test the double-confirmed wipe."""

    def test_confirmed(self, pin_core, typed):
        typed("y", "WIPE")
        assert wipe_flow(pin_core)
        assert not pin_core.has_pin()

    @pytest.mark.parametrize("answers", [("n",), ("y", "wipe")])
    def test_declined(self, pin_core, typed, answers):
        typed(*answers)
        assert not wipe_flow(pin_core)
        assert pin_core.has_pin()


class TestNoteFlows:
    """Test saving notes through the CLI."""

    def test_save_when_unlocked(self, pin_core, typed):
        pin_core.authenticate("1234")
        typed("ward-3", "two patients")
        assert save_note_flow(pin_core)
        assert pin_core.load("ward-3")["text"] == "two patients"

    def test_save_requires_unlock(self, pin_core, capsys):
        assert not save_note_flow(pin_core)
        assert "Locked" in capsys.readouterr().out

    def test_label_with_spaces(self, core, typed):
        typed("ward 3 notes", "stable")
        assert save_note_flow(core)
        assert core.load("ward 3 notes")["text"] == "stable"


class TestAuditExport:
    """Test writing the audit report."""

    def test_export_writes_csv(self, pin_core, tmp_path):
        pin_core.authenticate("0000")
        path = export_audit_flow(pin_core, report_dir=str(tmp_path))

        assert os.path.dirname(path) == str(tmp_path)
        with open(path, encoding="utf-8") as f:
            lines = f.read().splitlines()
        assert lines[0] == '"Timestamp","Event","Session ID","Success","Details"'
        assert any('"auth_failure"' in line for line in lines)
