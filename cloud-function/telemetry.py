"""
Scan log and user feedback store.

Write-only from the scorer's point of view: results are recorded here
after scoring, and nothing in here is ever read back into a score.
Backed by a single JSON file:

  {
    "totals":     {"scanned", "blocked", "scoreSum"},
    "scans":      [{"timestamp", "score", "riskTier", "messageId"}],
    "messageIds": {"<message id>": "<timestamp>"},
    "feedback":   {"<sender>": [{"timestamp", "verdict", "note"}]}
  }

"totals" counts every scan ever recorded. "scans" keeps only the most
recent entries and "messageIds" only the most recent ids, so the file
stays bounded no matter how long the function runs.
"""

import json
import os
from datetime import datetime, timezone
from threading import Lock

from logging_utils import get_logger
from models import RiskTier

logger = get_logger(__name__)

FEEDBACK_VERDICTS = ("phishing", "safe")

MAX_RECENT_SCANS = 500
MAX_MESSAGE_IDS = 10000


class TelemetryError(RuntimeError):
    """Raised when the scan log exists but cannot be read."""


class ScanLog:

    def __init__(self, path, max_scans=MAX_RECENT_SCANS, max_message_ids=MAX_MESSAGE_IDS):
        self.path = path
        self.max_scans = max_scans
        self.max_message_ids = max_message_ids
        self._lock = Lock()

    def record_scan(self, result, message_id=None):
        entry = _scan_entry(result, message_id)
        with self._lock:
            state = self._load()
            self._append(state, entry)
            self._save(state)
        return entry

    def record_scan_once(self, result, message_id=None):
        """
        Record a scan unless this message id was already recorded.

        The check and the write happen under one lock, so concurrent
        requests for the same message record it exactly once. Returns
        False for a repeat. Scans without an id are always recorded.
        """
        entry = _scan_entry(result, message_id)
        with self._lock:
            state = self._load()
            if entry["messageId"] and entry["messageId"] in state["messageIds"]:
                return False
            self._append(state, entry)
            self._save(state)
        return True

    def has_scanned(self, message_id):
        """True when a scan with this message id was already recorded."""
        if not message_id:
            return False
        with self._lock:
            state = self._load()
        return str(message_id) in state["messageIds"]

    def record_feedback(self, sender, verdict, note=""):
        """Store a raw user report about a sender. Raises ValueError on bad input."""
        sender = (sender or "").strip().lower()
        if not sender:
            raise ValueError("feedback requires a sender")
        if verdict not in FEEDBACK_VERDICTS:
            raise ValueError("verdict must be one of: {}".format(", ".join(FEEDBACK_VERDICTS)))

        entry = {"timestamp": _now(), "verdict": verdict, "note": note or ""}
        with self._lock:
            state = self._load()
            state["feedback"].setdefault(sender, []).append(entry)
            self._save(state)
        logger.info("feedback recorded: verdict=%s", verdict)
        return entry

    def feedback_for(self, sender):
        with self._lock:
            state = self._load()
        return list(state["feedback"].get((sender or "").strip().lower(), []))

    def stats(self):
        """Aggregate counters: scanned emails, HIGH-risk ones, average score."""
        with self._lock:
            state = self._load()
        totals = state["totals"]
        scanned = totals["scanned"]
        average = round(totals["scoreSum"] / scanned, 1) if scanned else None
        return {"scanned": scanned, "blocked": totals["blocked"], "averageScore": average}

    def _append(self, state, entry):
        totals = state["totals"]
        totals["scanned"] += 1
        totals["scoreSum"] += entry["score"]
        if entry["riskTier"] == RiskTier.HIGH.value:
            totals["blocked"] += 1

        scans = state["scans"]
        scans.append(entry)
        del scans[:-self.max_scans]

        if entry["messageId"]:
            ids = state["messageIds"]
            ids[entry["messageId"]] = entry["timestamp"]
            # Dicts keep insertion order, so the oldest ids go first
            while len(ids) > self.max_message_ids:
                del ids[next(iter(ids))]

    def _load(self):
        if not os.path.exists(self.path):
            return _empty_state()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                state = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise TelemetryError("cannot read scan log {}: {}".format(self.path, exc)) from exc
        if not isinstance(state, dict):
            raise TelemetryError("scan log {} is not a JSON object".format(self.path))
        for key, value in _empty_state().items():
            state.setdefault(key, value)
        return state

    def _save(self, state):
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(state, f)
        os.replace(tmp_path, self.path)


def _scan_entry(result, message_id):
    return {
        "timestamp": _now(),
        "score": result.score,
        "riskTier": result.risk_tier.value,
        # JSON object keys are strings; numeric ids are stored the same way
        "messageId": str(message_id) if message_id else None,
    }


def _empty_state():
    return {
        "totals": {"scanned": 0, "blocked": 0, "scoreSum": 0},
        "scans": [],
        "messageIds": {},
        "feedback": {},
    }


def _now():
    return datetime.now(timezone.utc).isoformat()
