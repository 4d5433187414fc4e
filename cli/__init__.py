"""CLI package for the device gate.

Provides modular CLI flows over a SecurityCore instance.
"""

from cli.audit import export_audit_flow, view_audit_flow
from cli.gate import (
    change_pin_flow,
    setup_pin_flow,
    sign_out_flow,
    status_flow,
    unlock_flow,
    wipe_flow,
)
from cli.records import save_note_flow, view_notes_flow

__all__ = [
    "change_pin_flow",
    "export_audit_flow",
    "save_note_flow",
    "setup_pin_flow",
    "sign_out_flow",
    "status_flow",
    "unlock_flow",
    "view_audit_flow",
    "view_notes_flow",
    "wipe_flow",
]
