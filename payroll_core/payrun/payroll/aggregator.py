from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable

from payrun.payroll.engine import PayrollCalculation


@dataclass(frozen=True)
class RunTotals:
    total_gross: int = 0
    total_net: int = 0
    total_employee_tax: int = 0
    total_employer_contributions: int = 0
    staff_count: int = 0

    def __add__(self, other: "RunTotals") -> "RunTotals":
        if not isinstance(other, RunTotals):
            return NotImplemented
        return RunTotals(
            total_gross=self.total_gross + other.total_gross,
            total_net=self.total_net + other.total_net,
            total_employee_tax=self.total_employee_tax + other.total_employee_tax,
            total_employer_contributions=self.total_employer_contributions + other.total_employer_contributions,
            staff_count=self.staff_count + other.staff_count,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _calculation_of(record) -> PayrollCalculation:
    # StaffPayrollRecord carries its calculation; bare calculations pass through
    return getattr(record, "calculation", record)


class PayrollAggregator:
    """Folds per-staff results into run totals.

    Pure and associative, so partial totals computed over any split of the
    staff list can be added together.
    """

    def aggregate(self, staff_records: Iterable) -> RunTotals:
        totals = RunTotals()
        for record in staff_records:
            calc = _calculation_of(record)
            totals = totals + RunTotals(
                total_gross=calc.gross_pay,
                total_net=calc.final_net_pay,
                total_employee_tax=calc.total_employee_tax,
                total_employer_contributions=calc.total_employer_contributions,
                staff_count=1,
            )
        return totals

    def merge(self, *partials: RunTotals) -> RunTotals:
        return sum(partials, RunTotals())
