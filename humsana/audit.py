"""
Audit Trail and Review Snapshots
================================

Records interlock overrides and blocks to a flat JSON-lines log, and saves
blocked file content to a review folder for the user to look at later.

Everything here is best-effort: a failing audit write is logged and
swallowed so the interlock outcome still reaches the caller.
"""

import json
import logging
import re
import urllib.error
import urllib.request
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from humsana.config import HumsanaPaths

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT_SECONDS = 5

_PATH_SEPARATORS = re.compile(r"[/\\:]")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AuditEntry:
    """One line of the audit log."""
    action_description: str
    outcome: str
    override_reason: Optional[str] = None
    timestamp: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AuditEntry":
        return cls(
            action_description=str(data.get("action_description", "")),
            outcome=str(data.get("outcome", "")),
            override_reason=data.get("override_reason"),
            timestamp=str(data.get("timestamp", "")),
        )


def snapshot_name(filepath: str, when: Optional[datetime] = None) -> str:
    """Review file name: ISO timestamp (':' and '.' -> '-') + sanitized original path."""
    if when is None:
        when = datetime.now(timezone.utc)
    stamp = when.isoformat().replace(":", "-").replace(".", "-")
    return f"{stamp}_{_PATH_SEPARATORS.sub('_', filepath)}"


class AuditSink:
    """Append-only audit log plus the pending-review snapshot folder."""

    def __init__(self, paths: HumsanaPaths, webhook_url: Optional[str] = None):
        self.log_path = paths.audit_log
        self.review_dir = paths.review_dir
        self.webhook_url = webhook_url

    def _append(self, entry: AuditEntry) -> bool:
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict()) + "\n")
            return True
        except OSError as e:
            logger.warning("Failed to write audit entry to %s: %s", self.log_path, e)
            return False

    def record_override(
        self,
        action_description: str,
        reason: str,
        outcome: str,
        extra: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        """Log an override and notify the webhook, if one is configured."""
        entry = AuditEntry(
            action_description=action_description,
            outcome=outcome,
            override_reason=reason,
        )
        logger.warning("[AUDIT] Override: %s | Reason: %s | Outcome: %s", action_description, reason, outcome)
        self._append(entry)
        if self.webhook_url:
            self.notify_webhook(entry, extra)
        return entry

    def record_block(self, action_description: str, outcome: str) -> AuditEntry:
        entry = AuditEntry(action_description=action_description, outcome=outcome)
        logger.info("[AUDIT] Blocked: %s", action_description)
        self._append(entry)
        return entry

    def notify_webhook(self, entry: AuditEntry, extra: Optional[dict[str, Any]] = None) -> bool:
        """POST the override event as JSON. Returns False on any delivery failure."""
        payload = {"event": "interlock_override", **entry.to_dict(), **(extra or {})}
        try:
            req = urllib.request.Request(
                self.webhook_url,
                data=json.dumps(payload).encode("utf-8"),
                method="POST",
            )
            req.add_header("Content-Type", "application/json")
            req.add_header("User-Agent", "Humsana-Interlock/2.1")
            with urllib.request.urlopen(req, timeout=WEBHOOK_TIMEOUT_SECONDS) as response:
                return response.status < 400
        except urllib.error.HTTPError as e:
            logger.warning("Override webhook returned HTTP %s", e.code)
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.warning("Override webhook failed: %s", e)
        return False

    def snapshot_for_review(self, filepath: str, content: str) -> str:
        """
        Save proposed (unapplied) content to the review folder.

        Returns:
            Path of the snapshot file

        Raises:
            OSError if the snapshot cannot be written; the caller decides
            how to report that.
        """
        self.review_dir.mkdir(parents=True, exist_ok=True)
        review_path = self.review_dir / snapshot_name(filepath)
        review_path.write_text(content, encoding="utf-8")
        return str(review_path)

    def read_entries(self, limit: int = 50) -> list[AuditEntry]:
        """Most recent entries, oldest first. Malformed lines are skipped."""
        if not self.log_path.exists():
            return []
        entries = []
        try:
            lines = self.log_path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning("Could not read audit log %s: %s", self.log_path, e)
            return []
        for line in lines:
            if not line.strip():
                continue
            try:
                entries.append(AuditEntry.from_dict(json.loads(line)))
            except (json.JSONDecodeError, AttributeError):
                continue
        return entries[-limit:] if limit > 0 else entries

    def list_snapshots(self) -> list[Path]:
        """Review snapshots, newest first."""
        if not self.review_dir.is_dir():
            return []
        return sorted(
            (p for p in self.review_dir.iterdir() if p.is_file()),
            key=lambda p: p.name,
            reverse=True,
        )
