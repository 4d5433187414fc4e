# Device Gate
# Purpose: Operator console for the PIN gate and encrypted local store.
# Records saved through the gate are encrypted with a key bound to this device and the current PIN.

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from devicegate import FileStore, SecurityCore, StorageUnavailableError
from devicegate.config import DATA_DIR, LOG_BACKUP_COUNT, LOG_DIR, LOG_FILE, LOG_MAX_BYTES

from cli import (
    change_pin_flow,
    export_audit_flow,
    save_note_flow,
    setup_pin_flow,
    sign_out_flow,
    status_flow,
    unlock_flow,
    view_audit_flow,
    view_notes_flow,
    wipe_flow,
)


# configure application logging with rotation; the library itself never adds handlers
def configure_logging(level=logging.INFO):
    os.makedirs(LOG_DIR, exist_ok=True)
    handler = RotatingFileHandler(LOG_FILE, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
    handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    logger = logging.getLogger("devicegate")
    logger.setLevel(level)
    logger.addHandler(handler)


# main app menu and selection options
def main_menu(core: SecurityCore):
    actions = {
        '1': ("Set up PIN", setup_pin_flow),
        '2': ("Unlock", unlock_flow),
        '3': ("Save a note", save_note_flow),
        '4': ("View saved notes", view_notes_flow),
        '5': ("Security status", status_flow),
        '6': ("View audit log", view_audit_flow),
        '7': ("Export audit log", export_audit_flow),
        '8': ("Change PIN", change_pin_flow),
        '9': ("Sign out", sign_out_flow),
        '10': ("Wipe all data", wipe_flow),
    }
    exit_choice = str(len(actions) + 1)

    while True:
        print("\n=== Device Gate Menu ===")
        for key, (label, _) in actions.items():
            print(f"{key}. {label}")
        print(f"{exit_choice}. Exit")

        choice = input(f"Choose an option (1-{exit_choice}): ").strip()
        if choice == exit_choice:
            print("Exiting the program. Goodbye.")
            break
        if choice in actions:
            actions[choice][1](core)
        else:
            print(f"Invalid choice. Please enter a number from 1 to {exit_choice}.")


def main():
    configure_logging()
    core = SecurityCore(FileStore(DATA_DIR))
    try:
        core.initialize()
    except StorageUnavailableError as e:
        print(f"Cannot open the local data store: {e}")
        return 1

    main_menu(core)
    return 0


# script entry
if __name__ == "__main__":
    sys.exit(main())
