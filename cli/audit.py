"""Audit trail CLI flows."""

import os
from datetime import datetime

from devicegate import SecurityCore
from devicegate.config import REPORT_DIR


def view_audit_flow(core: SecurityCore, count: int = 20) -> None:
    """Print the most recent audit events and any suspicious patterns."""
    events = core.get_audit_log(limit=count)
    if not events:
        print("Audit log is empty.")
        return

    print(f"\n=== Last {len(events)} Security Events ===")
    for event in events:
        when = datetime.fromtimestamp(event.timestamp).strftime("%Y-%m-%d %H:%M:%S")
        status = "SUCCESS" if event.success else "FAILURE"
        print(f"{when} - {event.event.value} - {status}")

    for entry in core.audit.review_activity(count):
        for warning in entry["warnings"]:
            when = datetime.fromtimestamp(entry["event"].timestamp).strftime("%H:%M:%S")
            print(f"Warning ({when}): {warning}")


def export_audit_flow(core: SecurityCore, report_dir: str = REPORT_DIR) -> str:
    """Write the audit trail as CSV into the report directory.

    Returns:
        Path of the written report
    """
    os.makedirs(report_dir, exist_ok=True)
    filename = f"audit_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    filepath = os.path.join(report_dir, filename)

    with open(filepath, "w", encoding="utf-8", newline="") as f:
        f.write(core.export_audit_log() + "\n")

    print(f"Audit log exported to {filepath}")
    return filepath
