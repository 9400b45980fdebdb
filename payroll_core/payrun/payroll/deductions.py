from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from payrun.core.exceptions import ValidationError


@dataclass(frozen=True)
class StaffDeduction:
    """A non-statutory balance (loan, advance, welfare) recovered in instalments."""
    id: str
    staff_id: str
    name: str
    original_amount: int
    deducted_so_far: int = 0
    monthly_installment: int = 0
    is_active: bool = True

    @property
    def remaining_balance(self) -> int:
        return max(0, self.original_amount - self.deducted_so_far)


@dataclass(frozen=True)
class DeductionSchedule:
    total: int = 0
    breakdown: Dict[str, int] = field(default_factory=dict)


def schedule_deductions(deductions: Iterable[StaffDeduction], available: int,
                        staff_id: Optional[str] = None) -> DeductionSchedule:
    """Apply active deductions in order against the net pay left for them.

    Each deduction takes the smallest of its instalment, its outstanding
    balance and whatever is still available, so the total never exceeds
    ``available``.
    """
    remaining = max(0, available)
    breakdown = {}
    total = 0
    for deduction in deductions:
        if staff_id is not None and deduction.staff_id != staff_id:
            continue
        if not deduction.is_active:
            continue
        if deduction.monthly_installment < 0 or deduction.original_amount < 0:
            raise ValidationError(f"deduction {deduction.id} has a negative amount", field="deductions")
        if remaining <= 0:
            break
        applied = min(deduction.monthly_installment, deduction.remaining_balance, remaining)
        if applied > 0:
            breakdown[deduction.id] = applied
            total += applied
            remaining -= applied
    return DeductionSchedule(total=total, breakdown=breakdown)
