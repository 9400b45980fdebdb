from sqlalchemy import (
    Column, String, Integer, ForeignKey, DateTime, Boolean, JSON, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship

from payrun.core.utils import utcnow as _utcnow
from payrun.db.session import Base

class PayrollRunRow(Base):
    __tablename__ = "payroll_runs"
    id = Column(String, primary_key=True)
    company_id = Column(String, nullable=False, index=True)
    period = Column(String, nullable=False, index=True)  # YYYY-MM
    status = Column(String, nullable=False, default="draft")
    version = Column(Integer, nullable=False, default=1)

    total_gross = Column(Integer, nullable=False, default=0)
    total_net = Column(Integer, nullable=False, default=0)
    total_employee_tax = Column(Integer, nullable=False, default=0)
    total_employer_contributions = Column(Integer, nullable=False, default=0)
    staff_count = Column(Integer, nullable=False, default=0)

    is_complete = Column(Boolean, nullable=False, default=True)
    failed_staff = Column(JSON, default=list)
    tax_config = Column(JSON, nullable=False)

    created_by = Column(String, nullable=False)
    submitted_by = Column(String, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    approved_by = Column(String, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    processed_by = Column(String, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    records = relationship("StaffPayrollRecordRow", back_populates="run", order_by="StaffPayrollRecordRow.id")
    events = relationship("PayrollTransitionRow", back_populates="run", order_by="PayrollTransitionRow.sequence")

class StaffPayrollRecordRow(Base):
    __tablename__ = "staff_payroll_records"
    __table_args__ = (UniqueConstraint("run_id", "staff_id", name="uq_run_staff"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String, ForeignKey("payroll_runs.id"), nullable=False, index=True)
    staff_id = Column(String, nullable=False)
    staff_name = Column(String, nullable=True)
    status = Column(String, nullable=False, default="calculated")
    calculation = Column(JSON, nullable=False)
    deduction_breakdown = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow)

    run = relationship("PayrollRunRow", back_populates="records")

class PayrollTransitionRow(Base):
    __tablename__ = "payroll_transitions"
    sequence = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String, ForeignKey("payroll_runs.id"), nullable=False, index=True)
    action = Column(String, nullable=False)
    from_status = Column(String, nullable=True)
    to_status = Column(String, nullable=False)
    actor_id = Column(String, nullable=False)
    reason = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=_utcnow)

    run = relationship("PayrollRunRow", back_populates="events")
