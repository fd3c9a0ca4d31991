"""Provisioning journal: append-only intent log for multi-system operations.

Create and delete touch the identity directory and the record store with
no shared transaction. Before the first side effect the orchestrator
appends an intent entry, then one entry per completed step. The
reconciliation pass folds the log to find operations that stopped halfway.

File format (JSONL, one object per line)::

    {"intent": "<uuid>", "timestamp": "...", "operation": "create_user",
     "email": "...", "step": "begin", "details": {...}}
"""
from __future__ import annotations
import datetime
import json
import os
import threading
import uuid
from pathlib import Path
from typing import Any, Iterator, Optional

STEP_BEGIN = "begin"
STEP_IDENTITY_CREATED = "identity_created"
STEP_RECORD_CREATED = "record_created"
STEP_IDENTITY_DELETED = "identity_deleted"
STEP_IDENTITY_DELETE_FAILED = "identity_delete_failed"
STEP_RECORD_DELETED = "record_deleted"
STEP_COMPLETED = "completed"
STEP_FAILED = "failed"
STEP_RECONCILED = "reconciled"

_TERMINAL_STEPS = {STEP_COMPLETED, STEP_FAILED}


class ProvisioningJournal:
    """JSONL-backed intent log."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _append(self, entry: dict[str, Any]) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, sort_keys=True) + "\n")

    def begin(self, operation: str, email: str, **details: Any) -> str:
        """Record the intent to run ``operation`` for ``email``; return its id."""
        intent_id = str(uuid.uuid4())
        self._append({
            "intent": intent_id,
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "operation": operation,
            "email": email,
            "step": STEP_BEGIN,
            "details": details,
        })
        return intent_id

    def record(self, intent_id: str, step: str, **details: Any) -> None:
        """Append a step entry for an existing intent."""
        self._append({
            "intent": intent_id,
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "step": step,
            "details": details,
        })

    def entries(self) -> Iterator[dict[str, Any]]:
        """Yield raw entries, skipping lines that are not valid JSON."""
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    continue

    def intents(self) -> dict[str, dict[str, Any]]:
        """Fold the log into one state dict per intent.

        Each state has ``operation``, ``email``, ``steps`` (in order),
        ``status`` (``open``, ``completed`` or ``failed``), ``reconciled``
        and the merged ``details``.
        """
        states: dict[str, dict[str, Any]] = {}
        for entry in self.entries():
            intent_id = entry.get("intent")
            if not intent_id:
                continue
            step = entry.get("step")
            if step == STEP_BEGIN:
                states[intent_id] = {
                    "intent": intent_id,
                    "operation": entry.get("operation"),
                    "email": entry.get("email"),
                    "started": entry.get("timestamp"),
                    "steps": [],
                    "status": "open",
                    "reconciled": False,
                    "details": dict(entry.get("details") or {}),
                }
                continue
            state = states.get(intent_id)
            if state is None:
                continue
            state["steps"].append(step)
            state["details"].update(entry.get("details") or {})
            if step in _TERMINAL_STEPS:
                state["status"] = step
            elif step == STEP_RECONCILED:
                state["reconciled"] = True
        return states

    def find(self, intent_id: str) -> Optional[dict[str, Any]]:
        return self.intents().get(intent_id)

    def compact(self) -> int:
        """Rewrite the log without intents that need no further attention.

        Kept: open intents (possibly still running) and intents that left an
        identity behind and are not yet reconciled. Everything else is
        dropped. Returns the number of intents removed.
        """
        with self._lock:
            states = self.intents()
            keep = {
                intent_id for intent_id, state in states.items()
                if state["status"] == "open" or (leaves_identity(state) and not state["reconciled"])
            }
            removed = len(states) - len(keep)
            if not removed:
                return 0
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as f:
                for entry in self.entries():
                    if entry.get("intent") in keep:
                        f.write(json.dumps(entry, ensure_ascii=False, sort_keys=True) + "\n")
            os.replace(tmp_path, self.path)
        return removed


def leaves_identity(state: dict[str, Any]) -> bool:
    """Whether a folded intent may have left a directory identity without a record."""
    steps = state["steps"]
    if state["operation"] == "create_user":
        return STEP_IDENTITY_CREATED in steps and STEP_RECORD_CREATED not in steps
    if state["operation"] == "delete_user":
        return STEP_IDENTITY_DELETE_FAILED in steps
    return False
