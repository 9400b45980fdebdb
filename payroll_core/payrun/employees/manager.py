"""
Staff roster and payment records as handed over by the HR side, reduced to
the gross composition the payroll engine needs.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from ..core.exceptions import ValidationError
from ..core.utils import is_valid_period
from ..payroll.engine import StaffPayInput

PAYMENT_KINDS = ("basic", "transport", "allowance")

@dataclass(frozen=True)
class StaffMember:
    staff_id: str
    name: str = ""
    is_active: bool = True

@dataclass(frozen=True)
class StaffPayment:
    staff_id: str
    name: str
    amount: int
    kind: str = "allowance"  # 'basic', 'transport' or 'allowance'
    start_period: Optional[str] = None
    end_period: Optional[str] = None
    is_active: bool = True

    def applies_to(self, period: str) -> bool:
        if not self.is_active:
            return False
        # YYYY-MM strings compare chronologically
        if self.start_period and self.start_period > period:
            return False
        if self.end_period and self.end_period < period:
            return False
        return True

class StaffPayrollManager:
    """Turns roster + payment records into per-staff engine inputs for a period."""

    def __init__(self, company_id: str):
        self.company_id = company_id

    def active_staff(self, roster: Iterable[StaffMember]) -> List[StaffMember]:
        return [s for s in roster if s.is_active]

    def payments_for(self, staff_id: str, period: str, payments: Iterable[StaffPayment]) -> List[StaffPayment]:
        return [p for p in payments if p.staff_id == staff_id and p.applies_to(period)]

    def build_input(self, staff: StaffMember, period: str, payments: Iterable[StaffPayment]) -> StaffPayInput:
        basic = transport = 0
        breakdown: Dict[str, int] = {}
        for payment in self.payments_for(staff.staff_id, period, payments):
            if payment.kind not in PAYMENT_KINDS:
                raise ValidationError(
                    f"unknown payment kind {payment.kind!r} for staff {staff.staff_id}", field="kind"
                )
            if payment.kind == "basic":
                basic += payment.amount
            elif payment.kind == "transport":
                transport += payment.amount
            else:
                breakdown[payment.name] = breakdown.get(payment.name, 0) + payment.amount
        return StaffPayInput(
            staff_id=staff.staff_id,
            staff_name=staff.name,
            gross_pay=basic + transport + sum(breakdown.values()),
            basic_pay=basic,
            transport_allowance=transport,
            allowance_breakdown=breakdown,
        )

    def build_inputs(
        self,
        period: str,
        roster: Iterable[StaffMember],
        payments: Iterable[StaffPayment],
    ) -> List[StaffPayInput]:
        """One input per active staff member, from payments active in ``period``."""
        if not is_valid_period(period):
            raise ValidationError(f"expected YYYY-MM, got {period!r}", field="period")
        payments = list(payments)
        return [self.build_input(s, period, payments) for s in self.active_staff(roster)]
