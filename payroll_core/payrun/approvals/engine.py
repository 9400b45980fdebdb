"""
Payroll run review/approval workflow.

Every permitted move lives in ``TRANSITIONS``; nothing else in the codebase
changes a run's status. Runs only move forward, except that a rejection sends
a pending run back to draft for correction and re-submission:

    draft --submit--> pending_approval --approve--> approved --process--> processed
      ^                      |
      +-------reject---------+

Each transition is a compare-and-set on (status, version), so two callers
racing on the same run cannot both succeed. The status change, the staff
record status mirror and the audit event commit in one transaction; the event
is then forwarded to the audit sink.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..core.audit import AuditLogger
from ..core.exceptions import (
    ConcurrentTransitionError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..core.repositories import PayrollRunRepository
from ..core.utils import setup_logging, utcnow
from ..db.models import PayrollRunRow
from ..payroll.runs import RECORD_STATUS_FOR_RUN, PayrollRun, RunStatus, TransitionEvent

@dataclass(frozen=True)
class Transition:
    action: str
    from_status: RunStatus
    to_status: RunStatus
    actor_field: Optional[str] = None
    timestamp_field: Optional[str] = None
    requires_reason: bool = False

TRANSITIONS: Dict[str, Transition] = {
    t.action: t for t in (
        Transition("submit", RunStatus.DRAFT, RunStatus.PENDING_APPROVAL,
                   actor_field="submitted_by", timestamp_field="submitted_at"),
        Transition("approve", RunStatus.PENDING_APPROVAL, RunStatus.APPROVED,
                   actor_field="approved_by", timestamp_field="approved_at"),
        Transition("reject", RunStatus.PENDING_APPROVAL, RunStatus.DRAFT, requires_reason=True),
        Transition("process", RunStatus.APPROVED, RunStatus.PROCESSED,
                   actor_field="processed_by", timestamp_field="processed_at"),
    )
}

class PayrollLifecycle:
    def __init__(self, company_id: str, repository: PayrollRunRepository = None, audit_sink=None):
        self.company_id = company_id
        self.repository = repository or PayrollRunRepository()
        self.audit_sink = audit_sink if audit_sink is not None else AuditLogger(company_id)
        self.logger = setup_logging(company_id)

    def submit(self, run_id: str, actor_id: str) -> TransitionEvent:
        return self.apply(run_id, "submit", actor_id)

    def approve(self, run_id: str, actor_id: str) -> TransitionEvent:
        return self.apply(run_id, "approve", actor_id)

    def reject(self, run_id: str, actor_id: str, reason: str) -> TransitionEvent:
        return self.apply(run_id, "reject", actor_id, reason=reason)

    def process(self, run_id: str, actor_id: str) -> TransitionEvent:
        return self.apply(run_id, "process", actor_id)

    def allowed_actions(self, status: RunStatus) -> List[str]:
        return [a for a, t in TRANSITIONS.items() if t.from_status == status]

    def apply(self, run_id: str, action: str, actor_id: str, reason: Optional[str] = None) -> TransitionEvent:
        transition = TRANSITIONS.get(action)
        if transition is None:
            raise ValidationError(f"unknown action {action!r}", field="action")
        if not actor_id:
            raise ValidationError("an actor is required", field="actor_id")
        if transition.requires_reason and not (reason and reason.strip()):
            raise ValidationError("a reason is required", field="reason")

        with self.repository.unit_of_work() as session:
            row = session.get(PayrollRunRow, run_id)
            if row is None or row.company_id != self.company_id:
                raise NotFoundError("Payroll run", run_id)
            current = RunStatus(row.status)
            if current != transition.from_status:
                raise InvalidTransitionError(action, current.value, transition.from_status.value, run_id)
            if action == "approve":
                self._check_approvable(session, row)

            now = utcnow()
            stamps = {}
            if transition.actor_field:
                stamps[transition.actor_field] = actor_id
                stamps[transition.timestamp_field] = now
            if action == "reject":
                stamps["rejection_reason"] = reason
            elif action == "submit":
                stamps["rejection_reason"] = None

            applied = self.repository.compare_and_set_status(
                session, run_id, current, row.version, transition.to_status, stamps
            )
            if not applied:
                session.refresh(row)
                raise ConcurrentTransitionError(action, row.status, transition.from_status.value, run_id)

            self.repository.mirror_record_status(session, run_id, RECORD_STATUS_FOR_RUN[transition.to_status])
            event = self.repository.add_event(session, TransitionEvent(
                run_id=run_id,
                action=action,
                from_status=current.value,
                to_status=transition.to_status.value,
                actor_id=actor_id,
                timestamp=now,
                reason=reason,
            ))

        self.logger.info("Run %s %s: %s -> %s by %s", run_id, action, current.value,
                         transition.to_status.value, actor_id)
        self.audit_sink.record(event)
        return event

    def _check_approvable(self, session, row: PayrollRunRow):
        if not row.is_complete:
            ids = ", ".join(f["staff_id"] for f in row.failed_staff or [])
            raise ValidationError(f"run {row.id} is incomplete (failed staff: {ids})", field="run")
        negative = [r.staff_id for r in row.records if r.calculation.get("final_net_pay", 0) < 0]
        if negative:
            raise ValidationError(
                f"run {row.id} has negative net pay for staff {', '.join(negative)}", field="run"
            )

    def get_run(self, run_id: str) -> PayrollRun:
        run = self.repository.get_run(run_id)
        if run.company_id != self.company_id:
            raise NotFoundError("Payroll run", run_id)
        return run

    def history(self, run_id: str) -> List[TransitionEvent]:
        self.get_run(run_id)
        return self.repository.get_events(run_id)
