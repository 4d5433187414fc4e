"""PIN gate CLI flows.

Setup, unlock, PIN change, status, sign-out and wipe.
"""

from datetime import datetime

from devicegate import AuthError, SecurityCore

from cli.prompts import double_confirm, prompt_new_pin, prompt_pin


def setup_pin_flow(core: SecurityCore) -> bool:
    """Configure the first PIN.

    Returns:
        True if a PIN was configured
    """
    if core.has_pin():
        print("A PIN is already configured. Use 'Change PIN' instead.")
        return False

    pin = prompt_new_pin()
    if pin is None:
        print("PIN setup canceled.")
        return False

    if core.setup_pin(pin):
        print("PIN configured. Saved records will now be encrypted.")
        return True

    print("PIN setup failed.")
    return False


def unlock_flow(core: SecurityCore) -> bool:
    """Prompt for the PIN until success, lockout, or cancel.

    Returns:
        True once authenticated
    """
    if not core.has_pin():
        print("No PIN configured. Set one up first.")
        return False

    while True:
        pin = prompt_pin("Enter PIN (empty to cancel): ")
        if not pin:
            return False

        result = core.authenticate(pin)
        if result.success:
            print("Unlocked.")
            return True

        if result.error == AuthError.LOCKED:
            print(f"Too many failed attempts. Try again in {result.remaining_seconds} seconds.")
            return False

        print(result.message)


def change_pin_flow(core: SecurityCore) -> bool:
    """Replace the PIN, keeping saved records readable.

    Returns:
        True if the PIN was changed
    """
    if not core.has_pin():
        print("No PIN configured. Set one up first.")
        return False

    current = prompt_pin("Enter current PIN: ")
    if not current:
        return False

    new_pin = prompt_new_pin()
    if new_pin is None:
        print("PIN change canceled.")
        return False

    result = core.change_pin(current, new_pin)
    print(result.message)
    return result.success


def status_flow(core: SecurityCore) -> None:
    """Print the current gate status."""
    status = core.get_security_status()

    print("\n=== Security Status ===")
    print(f"State: {core.auth_state().value}")
    print(f"Encryption: {'enabled' if status.encryption_enabled else 'disabled'}")
    print(f"Failed attempts: {status.failed_attempts}")

    if status.is_authenticated:
        minutes, seconds = divmod(core.session_remaining_seconds(), 60)
        print(f"Session expires in {minutes}m {seconds:02d}s")
    if status.lockout_until:
        until = datetime.fromtimestamp(status.lockout_until).strftime("%H:%M:%S")
        print(f"Locked until {until}")
    print(f"Encryption self-test: {'passed' if core.validate_encryption() else 'FAILED'}")


def sign_out_flow(core: SecurityCore) -> None:
    core.sign_out()
    print("Signed out.")


def wipe_flow(core: SecurityCore) -> bool:
    """Delete every stored record after double confirmation.

    Returns:
        True if a wipe ran and completed
    """
    if not double_confirm("wipe all data, including your PIN and saved records"):
        print("Wipe canceled.")
        return False

    if core.wipe_all_data():
        print("All data wiped.")
        return True

    print("Some records could not be deleted. You have been signed out; see the log for details.")
    return False
