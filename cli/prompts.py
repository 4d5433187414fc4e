"""Shared CLI prompt utilities.

Common input prompts and validation used across CLI flows.
"""

import getpass
from typing import Optional

from devicegate import validate_pin
from devicegate.config import PIN_MAX_LENGTH, PIN_MIN_LENGTH


def prompt_pin(prompt_text: str = "Enter PIN: ") -> str:
    """Prompt for a PIN without echoing it.

    Returns:
        PIN string (unvalidated)
    """
    return getpass.getpass(prompt_text).strip()


def prompt_new_pin(prompt_text: str = "Enter new PIN: ") -> Optional[str]:
    """Prompt for a new PIN with confirmation.

    Returns:
        Validated PIN, or None to cancel (empty input)

    Note:
        Loops until a valid PIN with matching confirmation is entered.
    """
    print(f"\n(PIN must be {PIN_MIN_LENGTH}-{PIN_MAX_LENGTH} digits, leave empty to cancel)")

    while True:
        pin1 = prompt_pin(prompt_text)
        if not pin1:
            return None
        pin2 = prompt_pin("Confirm PIN: ")

        if pin1 != pin2:
            print("PINs do not match. Try again.")
            continue

        is_valid, error = validate_pin(pin1)
        if not is_valid:
            print(error)
            continue

        return pin1


def confirm_action(prompt: str, require_word: Optional[str] = None) -> bool:
    """Prompt for confirmation with optional keyword requirement.

    Args:
        prompt: Question to ask
        require_word: If set, user must type this word to confirm

    Returns:
        True if confirmed, False otherwise
    """
    if require_word:
        response = input(f"{prompt} Type {require_word} to confirm: ").strip()
        return response == require_word
    else:
        response = input(f"{prompt} (y/n): ").strip().lower()
        return response == 'y'


def double_confirm(action_desc: str) -> bool:
    """Require two confirmations for destructive actions.

    Args:
        action_desc: Description of the action

    Returns:
        True if both confirmations pass
    """
    if not confirm_action(f"Are you sure you want to {action_desc}?"):
        return False
    return confirm_action("This cannot be undone.", require_word="WIPE")
