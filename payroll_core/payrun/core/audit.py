"""
Audit logging for payroll run lifecycle events.
Appends one JSON line per transition so the trail can be shipped to an
external audit store.
"""
import json
from pathlib import Path
from typing import Dict, List, Any, Optional
from datetime import datetime

from .config import settings

class AuditLogger:
    """Append-only JSONL sink for payroll transition events."""

    def __init__(self, company_id: str, audit_dir: Optional[str] = None):
        self.company_id = company_id

        self.audit_dir = Path(audit_dir or settings.AUDIT_LOG_PATH)
        self.audit_dir.mkdir(parents=True, exist_ok=True)

        self.events_log = self.audit_dir / f"{company_id}_payroll_audit.jsonl"

    def record(self, event) -> Dict[str, Any]:
        """Append a transition event (anything with ``to_dict()`` or a plain dict)."""
        payload = event.to_dict() if hasattr(event, "to_dict") else dict(event)
        log_entry = {
            'logged_at': datetime.now().isoformat(),
            'company_id': self.company_id,
            'entity_type': 'payroll_run',
            **payload,
        }

        with open(self.events_log, 'a', encoding='utf-8') as f:
            f.write(json.dumps(log_entry, default=str) + '\n')

        return log_entry

    def get_run_history(self, run_id: str) -> List[Dict[str, Any]]:
        """Get transition events for one run, oldest first."""
        if not self.events_log.exists():
            return []

        events = []

        with open(self.events_log, 'r', encoding='utf-8') as f:
            for line in f:
                try:
                    entry = json.loads(line.strip())
                except json.JSONDecodeError:
                    continue
                if entry.get('run_id') == run_id:
                    events.append(entry)

        events.sort(key=lambda x: (x.get('timestamp', ''), x.get('sequence', 0)))
        return events

    def get_action_counts(self) -> Dict[str, int]:
        """Count logged events by action across all runs."""
        if not self.events_log.exists():
            return {}

        breakdown = {}
        with open(self.events_log, 'r', encoding='utf-8') as f:
            for line in f:
                try:
                    entry = json.loads(line.strip())
                except json.JSONDecodeError:
                    continue
                action = entry.get('action', 'unknown')
                breakdown[action] = breakdown.get(action, 0) + 1
        return breakdown
