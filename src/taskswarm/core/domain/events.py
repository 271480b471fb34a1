"""
Domain Events for Planning and Execution

Events are immutable facts recorded in the append-only event log. Each event
serializes to one self-contained line `{ts, kind, ...fields}` so readers can
parse lines independently even when writers interleave.
"""

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    """Kinds of records written to the event log."""

    TASK_STARTED = "task_started"
    TASK_COMPLETE = "task_complete"
    POLICY_VIOLATION = "policy_violation"
    SELECTOR_GENERATED = "selector_generated"
    DECOMPOSER_GENERATED = "decomposer_generated"
    DAG_VALID = "dag_valid"
    DECOMPOSER_INVALID = "decomposer_invalid"
    TELEMETRY = "telemetry"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class Event:
    """
    A single event log record.

    Attributes:
        kind: Event kind
        fields: Kind-specific payload, flattened into the record
        ts: ISO-8601 UTC timestamp
    """

    kind: EventKind
    fields: dict[str, Any] = field(default_factory=dict)
    ts: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {"ts": self.ts, "kind": self.kind.value, **self.fields}


def new_run_id() -> str:
    """`<epoch-ms>-<6 random base36 chars>`, used for task and session ids."""
    alphabet = string.digits + string.ascii_lowercase
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"{int(time.time() * 1000)}-{suffix}"
