"""
Payroll run construction: compute every staff member, total the run and
persist it in one unit of work.
"""
import uuid
from typing import Dict, Iterable, List, Optional

from ..core.audit import AuditLogger
from ..core.exceptions import RunComputationError, ValidationError
from ..core.repositories import PayrollRunRepository
from ..core.utils import is_valid_period, setup_logging, utcnow
from ..tax.models import TaxConfiguration
from .aggregator import PayrollAggregator
from .deductions import StaffDeduction, schedule_deductions
from .engine import PayrollCalculationEngine, StaffPayInput
from .runs import PayrollRun, RunStatus, StaffPayrollRecord, TransitionEvent

class PayrollBulkProcessor:
    """Creates draft payroll runs for a company."""

    def __init__(self, company_id: str, repository: PayrollRunRepository = None,
                 engine: PayrollCalculationEngine = None, audit_sink=None):
        self.company_id = company_id
        self.repository = repository or PayrollRunRepository()
        self.engine = engine or PayrollCalculationEngine()
        self.aggregator = PayrollAggregator()
        self.audit_sink = audit_sink if audit_sink is not None else AuditLogger(company_id)
        self.logger = setup_logging(company_id)

    def compute_record(
        self,
        run_id: str,
        pay_input: StaffPayInput,
        tax_config: TaxConfiguration,
        deductions: Iterable[StaffDeduction] = (),
    ) -> StaffPayrollRecord:
        """Calculate one staff member, scheduling loan/advance deductions first.

        Scheduled deductions are capped at the net pay left after statutory
        deductions; an explicit ``other_deductions`` on the input is added as is.
        """
        breakdown: Dict[str, int] = {}
        other = pay_input.other_deductions
        deductions = [d for d in deductions if d.staff_id == pay_input.staff_id]
        if deductions:
            statutory_only = self.engine.calculate(
                pay_input.gross_pay, pay_input.basic_pay, pay_input.transport_allowance,
                other, tax_config,
            )
            schedule = schedule_deductions(deductions, statutory_only.final_net_pay)
            breakdown = schedule.breakdown
            other += schedule.total

        calculation = self.engine.calculate(
            pay_input.gross_pay,
            pay_input.basic_pay,
            pay_input.transport_allowance,
            other,
            tax_config,
            allowance_breakdown=pay_input.allowance_breakdown,
        )
        return StaffPayrollRecord(
            run_id=run_id,
            staff_id=pay_input.staff_id,
            staff_name=pay_input.staff_name,
            calculation=calculation,
            deduction_breakdown=breakdown,
        )

    def create_run(
        self,
        period: str,
        staff_inputs: Iterable[StaffPayInput],
        tax_config: TaxConfiguration,
        created_by: str,
        deductions: Iterable[StaffDeduction] = (),
        allow_partial: bool = False,
    ) -> PayrollRun:
        """
        Compute and persist a draft run.

        Args:
            period: Payroll period (YYYY-MM)
            staff_inputs: One gross composition per staff member
            tax_config: Configuration snapshot stored with the run
            created_by: Actor id for the run and its creation event
            deductions: Outstanding non-statutory balances, any staff
            allow_partial: Keep going past staff that fail validation; the run
                is then flagged incomplete and cannot be approved

        Raises RunComputationError (nothing persisted) when any staff member
        fails and ``allow_partial`` is False.
        """
        if not is_valid_period(period):
            raise ValidationError(f"expected YYYY-MM, got {period!r}", field="period")
        if not created_by:
            raise ValidationError("an actor is required", field="created_by")

        run_id = str(uuid.uuid4())
        deductions = list(deductions)
        records: List[StaffPayrollRecord] = []
        failures: List[Dict[str, str]] = []
        seen = set()

        for pay_input in staff_inputs:
            if pay_input.staff_id in seen:
                failures.append({"staff_id": pay_input.staff_id, "error": "duplicate staff id in run"})
                continue
            seen.add(pay_input.staff_id)
            try:
                records.append(self.compute_record(run_id, pay_input, tax_config, deductions))
            except ValidationError as e:
                self.logger.error("Payroll %s: staff %s failed: %s", period, pay_input.staff_id, e)
                failures.append({"staff_id": pay_input.staff_id, "error": str(e)})

        if failures and not allow_partial:
            raise RunComputationError(period, failures)

        totals = self.aggregator.aggregate(records)
        now = utcnow()
        run = PayrollRun(
            id=run_id,
            company_id=self.company_id,
            period=period,
            status=RunStatus.DRAFT,
            totals=totals,
            tax_config=tax_config.to_dict(),
            created_by=created_by,
            created_at=now,
            updated_at=now,
            is_complete=not failures,
            failed_staff=failures,
        )

        with self.repository.unit_of_work() as session:
            self.repository.add_run(session, run, records)
            event = self.repository.add_event(session, TransitionEvent(
                run_id=run_id,
                action="create",
                from_status=None,
                to_status=RunStatus.DRAFT.value,
                actor_id=created_by,
                timestamp=now,
            ))

        if failures:
            self.logger.warning("Payroll %s run %s created incomplete: %d staff failed",
                                period, run_id, len(failures))
        self.logger.info("Payroll %s run %s created: %d staff, gross %d, net %d",
                         period, run_id, totals.staff_count, totals.total_gross, totals.total_net)
        self.audit_sink.record(event)
        return run

    def get_payroll_runs(self, period: Optional[str] = None, limit: int = 10) -> List[PayrollRun]:
        """Get recent payroll runs, newest period first."""
        return self.repository.list_runs(company_id=self.company_id, period=period)[:limit]

    def get_records(self, run_id: str) -> List[StaffPayrollRecord]:
        return self.repository.get_records(run_id)
