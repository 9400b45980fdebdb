from datetime import datetime
from decimal import Decimal
from pathlib import Path

from payrun.core.audit import AuditLogger
from payrun.core.config import settings
from payrun.core.utils import (
    atomic_write_json,
    is_valid_date,
    is_valid_period,
    percent_of,
    round_half_up,
    setup_logging,
    to_decimal,
)
from payrun.payroll.runs import TransitionEvent

def test_rounding_helpers():
    assert round_half_up(Decimal("2.5")) == 3
    assert round_half_up(Decimal("2.4999")) == 2
    assert to_decimal(0.3) == Decimal("0.3")
    assert percent_of(1000, Decimal("7.5")) == Decimal("75")

def test_period_and_date_formats():
    assert is_valid_period("2025-12")
    assert not is_valid_period("2025-00")
    assert not is_valid_period(202512)
    assert is_valid_date("2024-02-29")
    assert not is_valid_date("2024-2-29")
    assert not is_valid_date("2024-02-31")
    assert not is_valid_date("2023-02-29")

def test_atomic_write_json(tmp_path):
    target = tmp_path / "nested" / "out.json"
    atomic_write_json(str(target), {"when": datetime(2025, 1, 1)})
    assert "2025-01-01" in target.read_text(encoding="utf-8")
    assert not target.with_suffix(".tmp").exists()

def test_setup_logging_is_idempotent():
    first = setup_logging("logtest-co")
    second = setup_logging("logtest-co")
    assert first is second
    assert len(first.handlers) == len(second.handlers) >= 1
    assert first.name == f"{settings.APP_NAME}.logtest-co"
    assert first.propagate is False
    first.info("hello")
    assert (Path(settings.AUDIT_LOG_PATH) / "logtest-co.log").exists()

def test_audit_logger_history(tmp_path):
    audit = AuditLogger("acme", audit_dir=str(tmp_path))
    t = datetime(2025, 3, 1, 9, 0, 0)
    audit.record(TransitionEvent("r1", "submit", "draft", "pending_approval", "u1", t, sequence=2))
    audit.record(TransitionEvent("r1", "create", None, "draft", "u1", t, sequence=1))
    audit.record({"run_id": "r2", "action": "create", "timestamp": t.isoformat(), "sequence": 3})

    history = audit.get_run_history("r1")
    assert [e["action"] for e in history] == ["create", "submit"]
    assert history[0]["company_id"] == "acme"
    assert history[0]["entity_type"] == "payroll_run"
    assert audit.get_action_counts() == {"submit": 1, "create": 2}
    assert audit.get_run_history("missing") == []
