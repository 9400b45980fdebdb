"""
Repository layer for payroll run persistence.
All writes go through ``unit_of_work()`` so a run and its staff records land
together or not at all.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update

from ..db.models import PayrollRunRow, PayrollTransitionRow, StaffPayrollRecordRow
from ..db.session import get_session_factory
from ..payroll.aggregator import RunTotals
from ..payroll.engine import PayrollCalculation
from ..payroll.runs import PayrollRun, RunStatus, StaffPayrollRecord, TransitionEvent
from .exceptions import NotFoundError
from .utils import utcnow

class PayrollRunRepository:
    """SQLAlchemy-backed store for runs, staff records and transition events."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or get_session_factory()

    @contextmanager
    def unit_of_work(self):
        """Session that commits on clean exit and rolls back on any error."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -- writes (inside a unit of work) --

    def add_run(self, session, run: PayrollRun, records: Iterable[StaffPayrollRecord]):
        row = PayrollRunRow(
            id=run.id,
            company_id=run.company_id,
            period=run.period,
            status=run.status.value,
            version=run.version,
            total_gross=run.totals.total_gross,
            total_net=run.totals.total_net,
            total_employee_tax=run.totals.total_employee_tax,
            total_employer_contributions=run.totals.total_employer_contributions,
            staff_count=run.totals.staff_count,
            is_complete=run.is_complete,
            failed_staff=list(run.failed_staff),
            tax_config=run.tax_config,
            created_by=run.created_by,
            created_at=run.created_at,
            updated_at=run.updated_at,
        )
        session.add(row)
        for record in records:
            session.add(StaffPayrollRecordRow(
                run_id=run.id,
                staff_id=record.staff_id,
                staff_name=record.staff_name,
                status=record.status,
                calculation=record.calculation.to_dict(),
                deduction_breakdown=dict(record.deduction_breakdown),
            ))
        session.flush()

    def compare_and_set_status(
        self,
        session,
        run_id: str,
        expected_status: RunStatus,
        expected_version: int,
        new_status: RunStatus,
        stamps: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Move a run to ``new_status`` only if nobody changed it since it was read."""
        values = dict(stamps or {})
        values.update(status=new_status.value, version=expected_version + 1, updated_at=utcnow())
        result = session.execute(
            update(PayrollRunRow)
            .where(
                PayrollRunRow.id == run_id,
                PayrollRunRow.status == expected_status.value,
                PayrollRunRow.version == expected_version,
            )
            .values(**values)
        )
        return result.rowcount == 1

    def mirror_record_status(self, session, run_id: str, status: str):
        session.execute(
            update(StaffPayrollRecordRow)
            .where(StaffPayrollRecordRow.run_id == run_id)
            .values(status=status)
        )

    def add_event(self, session, event: TransitionEvent) -> TransitionEvent:
        row = PayrollTransitionRow(
            run_id=event.run_id,
            action=event.action,
            from_status=event.from_status,
            to_status=event.to_status,
            actor_id=event.actor_id,
            reason=event.reason,
            timestamp=event.timestamp,
        )
        session.add(row)
        session.flush()
        return self._event_from_row(row)

    # -- reads --

    def get_run(self, run_id: str) -> PayrollRun:
        with self.unit_of_work() as session:
            row = session.get(PayrollRunRow, run_id)
            if row is None:
                raise NotFoundError("Payroll run", run_id)
            return self._run_from_row(row)

    def list_runs(self, company_id: Optional[str] = None, period: Optional[str] = None) -> List[PayrollRun]:
        with self.unit_of_work() as session:
            stmt = select(PayrollRunRow)
            if company_id:
                stmt = stmt.where(PayrollRunRow.company_id == company_id)
            if period:
                stmt = stmt.where(PayrollRunRow.period == period)
            stmt = stmt.order_by(PayrollRunRow.period.desc(), PayrollRunRow.created_at.desc())
            return [self._run_from_row(r) for r in session.scalars(stmt)]

    def get_records(self, run_id: str) -> List[StaffPayrollRecord]:
        with self.unit_of_work() as session:
            if session.get(PayrollRunRow, run_id) is None:
                raise NotFoundError("Payroll run", run_id)
            stmt = (select(StaffPayrollRecordRow)
                    .where(StaffPayrollRecordRow.run_id == run_id)
                    .order_by(StaffPayrollRecordRow.id))
            return [self._record_from_row(r) for r in session.scalars(stmt)]

    def get_record(self, run_id: str, staff_id: str) -> StaffPayrollRecord:
        with self.unit_of_work() as session:
            row = session.scalars(
                select(StaffPayrollRecordRow).where(
                    StaffPayrollRecordRow.run_id == run_id,
                    StaffPayrollRecordRow.staff_id == staff_id,
                )
            ).first()
            if row is None:
                raise NotFoundError("Staff payroll record", f"{run_id}/{staff_id}")
            return self._record_from_row(row)

    def get_events(self, run_id: str) -> List[TransitionEvent]:
        with self.unit_of_work() as session:
            stmt = (select(PayrollTransitionRow)
                    .where(PayrollTransitionRow.run_id == run_id)
                    .order_by(PayrollTransitionRow.sequence))
            return [self._event_from_row(r) for r in session.scalars(stmt)]

    # -- row mapping --

    @staticmethod
    def _run_from_row(row: PayrollRunRow) -> PayrollRun:
        return PayrollRun(
            id=row.id,
            company_id=row.company_id,
            period=row.period,
            status=RunStatus(row.status),
            version=row.version,
            totals=RunTotals(
                total_gross=row.total_gross,
                total_net=row.total_net,
                total_employee_tax=row.total_employee_tax,
                total_employer_contributions=row.total_employer_contributions,
                staff_count=row.staff_count,
            ),
            tax_config=row.tax_config,
            is_complete=row.is_complete,
            failed_staff=list(row.failed_staff or []),
            created_by=row.created_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
            submitted_by=row.submitted_by,
            submitted_at=row.submitted_at,
            approved_by=row.approved_by,
            approved_at=row.approved_at,
            processed_by=row.processed_by,
            processed_at=row.processed_at,
            rejection_reason=row.rejection_reason,
        )

    @staticmethod
    def _record_from_row(row: StaffPayrollRecordRow) -> StaffPayrollRecord:
        return StaffPayrollRecord(
            run_id=row.run_id,
            staff_id=row.staff_id,
            staff_name=row.staff_name or "",
            status=row.status,
            calculation=PayrollCalculation.from_dict(row.calculation),
            deduction_breakdown=dict(row.deduction_breakdown or {}),
        )

    @staticmethod
    def _event_from_row(row: PayrollTransitionRow) -> TransitionEvent:
        return TransitionEvent(
            run_id=row.run_id,
            action=row.action,
            from_status=row.from_status,
            to_status=row.to_status,
            actor_id=row.actor_id,
            timestamp=row.timestamp,
            reason=row.reason,
            sequence=row.sequence,
        )
