"""Append-only security audit trail.

Events are kept in memory and the whole (bounded) sequence is rewritten to
the host store as one JSON blob after every append. At the default bound of
1000 entries that is a few hundred KB per write; the bound is a design
limit, not something that scales.
"""

import csv
import io
import json
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import TypeAdapter, ValidationError

from devicegate.config import AUDIT_DETAIL_MAX_CHARS, AUDIT_LOG_KEY, AUDIT_LOG_MAX_ENTRIES
from devicegate.models import AuditEvent, SecurityEvent
from devicegate.storage import FileCorruptedError, KeyValueStore, StorageError


logger = logging.getLogger(__name__)

_event_list = TypeAdapter(list[AuditEvent])

# Detail keys are split into words (snake_case or camelCase). Any of these
# words marks the value as secret; "key" only does as a whole key name.
_KEY_WORD = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])")
_SENSITIVE_WORDS = {"pin", "passcode", "password", "secret", "token"}
_SENSITIVE_KEYS = {"key", "apikey", "encryptionkey", "privatekey", "secretkey"}

CSV_HEADERS = ["Timestamp", "Event", "Session ID", "Success", "Details"]


def _is_sensitive(name: str) -> bool:
    words = [word.lower() for word in _KEY_WORD.findall(str(name))]
    return bool(_SENSITIVE_WORDS.intersection(words)) or "".join(words) in _SENSITIVE_KEYS


def sanitize_details(details: Optional[dict]) -> dict[str, Any]:
    """Redact secret-looking keys and truncate oversized strings.

    Args:
        details: Raw event details

    Returns:
        Copy safe to persist in plaintext
    """
    if not details:
        return {}

    sanitized = {}
    for key, value in details.items():
        if _is_sensitive(key):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, str) and len(value) > AUDIT_DETAIL_MAX_CHARS:
            sanitized[key] = value[:AUDIT_DETAIL_MAX_CHARS] + "...[TRUNCATED]"
        else:
            sanitized[key] = value
    return sanitized


class AuditLog:
    """Bounded FIFO of AuditEvent records mirrored to the host store."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
        session_id_provider: Optional[Callable[[], str]] = None,
        max_entries: int = AUDIT_LOG_MAX_ENTRIES,
    ):
        self._store = store
        self._clock = clock
        self._session_id_provider = session_id_provider or (lambda: "no_session")
        self.max_entries = max_entries
        self._events: list[AuditEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def load(self) -> int:
        """Restore the persisted trail.

        A corrupt blob is discarded; the trail then starts empty.

        Returns:
            Number of events restored
        """
        try:
            raw = self._store.get(AUDIT_LOG_KEY)
        except FileCorruptedError as e:
            logger.warning("Discarding unreadable audit log: %s", e)
            raw = None

        if not raw:
            self._events = []
            return 0

        try:
            events = _event_list.validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding corrupt audit log: %s", e.error_count())
            events = []

        self._events = events[-self.max_entries:]
        return len(self._events)

    def append(
        self,
        event: SecurityEvent,
        details: Optional[dict] = None,
        success: Optional[bool] = None,
    ) -> AuditEvent:
        """Record a security event.

        Args:
            event: Event type
            details: Optional additional event details (sanitized before storing)
            success: Outcome; defaults to True unless details carry an "error"

        Returns:
            The stored event
        """
        if success is None:
            success = not (details or {}).get("error")

        record = AuditEvent(
            event=event,
            timestamp=self._clock(),
            session_id=self._session_id_provider(),
            success=success,
            details=sanitize_details(details),
        )
        return self.record(record)

    def record(self, audit_event: AuditEvent) -> AuditEvent:
        """Push a prepared event, evict the oldest overflow, and persist."""
        self._events.append(audit_event)
        overflow = len(self._events) - self.max_entries
        if overflow > 0:
            del self._events[:overflow]

        logger.info(
            "Security event - %s - %s",
            audit_event.event.value,
            "SUCCESS" if audit_event.success else "FAILURE",
        )
        self._persist()
        return audit_event

    def _persist(self) -> None:
        try:
            self._store.set(AUDIT_LOG_KEY, _event_list.dump_json(self._events).decode())
        except StorageError as e:
            # The in-memory trail stays authoritative until the next append
            logger.error("Failed to persist audit log: %s", e)

    def events(self, limit: Optional[int] = None) -> list[AuditEvent]:
        """Return a copy of the trail, oldest first.

        Args:
            limit: Only return the most recent N events
        """
        if limit is None:
            return list(self._events)
        return self._events[-limit:] if limit > 0 else []

    def export_csv(self) -> str:
        """Export the trail as quoted CSV text.

        Columns: ISO-8601 timestamp, event, session id, Yes/No, details JSON.
        """
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for audit_event in self._events:
            writer.writerow([
                datetime.fromtimestamp(audit_event.timestamp, tz=timezone.utc).isoformat(),
                audit_event.event.value,
                audit_event.session_id,
                "Yes" if audit_event.success else "No",
                json.dumps(audit_event.details, sort_keys=True, default=str),
            ])
        return buffer.getvalue().rstrip("\n")

    def count_by_event(self, success: Optional[bool] = None) -> dict[str, int]:
        """Count events grouped by type.

        Args:
            success: Optional filter on outcome
        """
        counts: dict[str, int] = {}
        for audit_event in self._events:
            if success is not None and audit_event.success != success:
                continue
            name = audit_event.event.value
            counts[name] = counts.get(name, 0) + 1
        return counts

    def review_activity(self, count: int = 10) -> list[dict]:
        """Review recent authentication activity and flag suspicious patterns.

        Args:
            count: Number of recent authentication events to review

        Returns:
            List of {"event": AuditEvent, "warnings": [...]} entries
        """
        auth_events = [
            e for e in self._events
            if e.event in (SecurityEvent.AUTH_SUCCESS, SecurityEvent.AUTH_FAILURE,
                           SecurityEvent.AUTH_LOCKOUT)
        ][-count:] if count > 0 else []

        entries = []
        failures_in_row = 0

        for audit_event in auth_events:
            entry = {"event": audit_event, "warnings": []}

            if audit_event.event == SecurityEvent.AUTH_FAILURE:
                failures_in_row += 1
                if failures_in_row == 3:
                    entry["warnings"].append("Suspicious - Multiple consecutive failures")
            elif audit_event.event == SecurityEvent.AUTH_LOCKOUT:
                entry["warnings"].append("Lockout triggered")
            else:
                if failures_in_row:
                    entry["warnings"].append("Suspicious - Success after prior failures")
                failures_in_row = 0

            entries.append(entry)

        return entries
