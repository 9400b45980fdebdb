"""
Payroll run, per-staff record and lifecycle event value types.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from payrun.payroll.aggregator import RunTotals
from payrun.payroll.engine import PayrollCalculation


class RunStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PROCESSED = "processed"


# status a staff record shows while its run is in a given state
RECORD_STATUS_FOR_RUN = {
    RunStatus.DRAFT: "calculated",
    RunStatus.PENDING_APPROVAL: "calculated",
    RunStatus.APPROVED: "approved",
    RunStatus.PROCESSED: "processed",
}


@dataclass(frozen=True)
class StaffPayrollRecord:
    run_id: str
    staff_id: str
    calculation: PayrollCalculation
    staff_name: str = ""
    status: str = "calculated"
    deduction_breakdown: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class TransitionEvent:
    run_id: str
    action: str
    from_status: Optional[str]
    to_status: str
    actor_id: str
    timestamp: datetime
    reason: Optional[str] = None
    sequence: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "action": self.action,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "timestamp": self.timestamp.isoformat(),
            "reason": self.reason,
            "sequence": self.sequence,
        }


@dataclass(frozen=True)
class PayrollRun:
    id: str
    company_id: str
    period: str
    status: RunStatus
    totals: RunTotals
    tax_config: Dict[str, Any]
    created_by: str
    created_at: datetime
    updated_at: datetime
    version: int = 1
    is_complete: bool = True
    failed_staff: List[Dict[str, str]] = field(default_factory=list)
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def staff_count(self) -> int:
        return self.totals.staff_count
