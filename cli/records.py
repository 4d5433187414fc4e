"""Saved note CLI flows.

Notes go through the encrypted persistence contract like any other
application record; this is the operator's way to store and read them.
"""

from datetime import datetime
from typing import Optional

from devicegate import SecurityCore

from cli.prompts import confirm_action


def _require_access(core: SecurityCore) -> bool:
    """Protected views need an unlocked session once a PIN exists."""
    if core.has_pin() and not core.is_authenticated():
        print("Locked. Unlock with your PIN first.")
        return False
    return True


def save_note_flow(core: SecurityCore) -> bool:
    """Prompt for a label and text and save it.

    Returns:
        True on success
    """
    if not _require_access(core):
        return False

    label = input("Note label: ").strip()
    if not label:
        print("Label cannot be empty.")
        return False

    if core.persistence.exists(label) and not confirm_action(f"'{label}' exists. Overwrite?"):
        return False

    text = input("Note text: ").strip()
    note = {"text": text, "created": datetime.now().isoformat()}

    if core.save(label, note):
        print(f"'{label}' saved.")
        return True

    print("Failed to save note.")
    return False


def select_note(core: SecurityCore) -> Optional[str]:
    """List saved notes and let the user select one.

    Returns:
        Selected label, or None to cancel
    """
    labels = core.persistence.list_keys()
    if not labels:
        print("No saved notes found.")
        return None

    print("\n--- Saved Notes ---")
    for idx, label in enumerate(labels, start=1):
        print(f"{idx}. {label}")

    sel = input(f"Select a note (1 to {len(labels)}), or 'b' to go back: ").strip().lower()
    if sel.isdigit() and 1 <= int(sel) <= len(labels):
        return labels[int(sel) - 1]
    if sel != 'b':
        print("Invalid selection.")
    return None


def view_notes_flow(core: SecurityCore) -> None:
    """Browse, view and delete saved notes."""
    if not _require_access(core):
        return

    label = select_note(core)
    if label is None:
        return

    note = core.load(label)
    if note is None:
        print(f"'{label}' could not be read (it may predate the current PIN).")
    else:
        print(f"\n--- {label} ---")
        if isinstance(note, dict):
            print(note.get("text", ""))
            print(f"Created: {note.get('created', 'Unknown')}")
        else:
            print(note)

    if confirm_action(f"Delete '{label}'?"):
        core.persistence.delete(label)
        print(f"'{label}' has been deleted.")
