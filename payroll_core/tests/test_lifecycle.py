import pytest

from payrun.approvals.engine import TRANSITIONS, PayrollLifecycle
from payrun.core.exceptions import (
    ConcurrentTransitionError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from payrun.payroll.engine import StaffPayInput
from payrun.payroll.runs import RunStatus

STAFF = [
    StaffPayInput("s1", 450000, 400000, 50000, staff_name="Alice"),
    StaffPayInput("s2", 250000, 250000, staff_name="Bob"),
]

# actions that bring a fresh draft run to each status
PATH_TO = {
    RunStatus.DRAFT: [],
    RunStatus.PENDING_APPROVAL: ["submit"],
    RunStatus.APPROVED: ["submit", "approve"],
    RunStatus.PROCESSED: ["submit", "approve", "process"],
}

ALLOWED = {
    (RunStatus.DRAFT, "submit"): RunStatus.PENDING_APPROVAL,
    (RunStatus.PENDING_APPROVAL, "approve"): RunStatus.APPROVED,
    (RunStatus.PENDING_APPROVAL, "reject"): RunStatus.DRAFT,
    (RunStatus.APPROVED, "process"): RunStatus.PROCESSED,
}

@pytest.fixture
def run(processor, tax_config):
    return processor.create_run("2025-03", STAFF, tax_config, created_by="hr-1")

def _advance(lifecycle, run_id, status):
    for action in PATH_TO[status]:
        lifecycle.apply(run_id, action, "mgr-1")

@pytest.mark.parametrize("status", list(RunStatus))
@pytest.mark.parametrize("action", ["submit", "approve", "reject", "process"])
def test_transition_table(lifecycle, run, status, action):
    _advance(lifecycle, run.id, status)
    before = lifecycle.get_run(run.id)
    assert before.status == status

    if (status, action) in ALLOWED:
        event = lifecycle.apply(run.id, action, "mgr-2", reason="needs another look")
        after = lifecycle.get_run(run.id)
        assert after.status == ALLOWED[(status, action)]
        assert after.version == before.version + 1
        assert (event.from_status, event.to_status) == (status.value, after.status.value)
    else:
        with pytest.raises(InvalidTransitionError) as exc:
            lifecycle.apply(run.id, action, "mgr-2", reason="needs another look")
        assert exc.value.current_status == status.value
        after = lifecycle.get_run(run.id)
        assert (after.status, after.version) == (before.status, before.version)

def test_transition_table_is_the_only_source_of_moves(lifecycle):
    assert set(TRANSITIONS) == {"submit", "approve", "reject", "process"}
    assert lifecycle.allowed_actions(RunStatus.PENDING_APPROVAL) == ["approve", "reject"]
    assert lifecycle.allowed_actions(RunStatus.PROCESSED) == []

def test_full_lifecycle_stamps_and_mirrors_records(lifecycle, repository, audit, run):
    lifecycle.submit(run.id, "clerk-1")
    lifecycle.approve(run.id, "mgr-1")
    assert {r.status for r in repository.get_records(run.id)} == {"approved"}
    lifecycle.process(run.id, "fin-1")

    final = lifecycle.get_run(run.id)
    assert final.status == RunStatus.PROCESSED
    assert (final.submitted_by, final.approved_by, final.processed_by) == ("clerk-1", "mgr-1", "fin-1")
    assert final.processed_at >= final.approved_at >= final.submitted_at
    assert {r.status for r in repository.get_records(run.id)} == {"processed"}

    history = lifecycle.history(run.id)
    assert [e.action for e in history] == ["create", "submit", "approve", "process"]
    assert [e.sequence for e in history] == sorted(e.sequence for e in history)
    assert [e["action"] for e in audit.get_run_history(run.id)] == ["create", "submit", "approve", "process"]
    assert audit.get_action_counts()["approve"] == 1

def test_reject_requires_reason_and_returns_to_draft(lifecycle, run):
    lifecycle.submit(run.id, "clerk-1")
    with pytest.raises(ValidationError):
        lifecycle.reject(run.id, "mgr-1", reason="  ")
    assert lifecycle.get_run(run.id).status == RunStatus.PENDING_APPROVAL

    event = lifecycle.reject(run.id, "mgr-1", reason="wrong transport amounts")
    assert event.reason == "wrong transport amounts"
    rejected = lifecycle.get_run(run.id)
    assert rejected.status == RunStatus.DRAFT
    assert rejected.rejection_reason == "wrong transport amounts"

    lifecycle.submit(run.id, "clerk-1")
    assert lifecycle.get_run(run.id).rejection_reason is None

def test_stale_version_write_is_refused(lifecycle, repository, run):
    stale_version = lifecycle.get_run(run.id).version
    lifecycle.submit(run.id, "clerk-1")
    with repository.unit_of_work() as session:
        applied = repository.compare_and_set_status(
            session, run.id, RunStatus.DRAFT, stale_version, RunStatus.PENDING_APPROVAL
        )
    assert applied is False
    assert lifecycle.get_run(run.id).status == RunStatus.PENDING_APPROVAL

def test_lost_race_raises_and_leaves_run_untouched(lifecycle, repository, audit, run, monkeypatch):
    lifecycle.submit(run.id, "clerk-1")
    monkeypatch.setattr(repository, "compare_and_set_status", lambda *args, **kwargs: False)
    with pytest.raises(ConcurrentTransitionError):
        lifecycle.approve(run.id, "mgr-1")

    current = lifecycle.get_run(run.id)
    assert current.status == RunStatus.PENDING_APPROVAL
    assert current.approved_by is None
    assert [e.action for e in lifecycle.history(run.id)] == ["create", "submit"]
    assert [e["action"] for e in audit.get_run_history(run.id)] == ["create", "submit"]

def test_negative_net_blocks_approval(processor, lifecycle, tax_config):
    staff = STAFF + [StaffPayInput("s3", 100000, 100000, other_deductions=500000)]
    run = processor.create_run("2025-03", staff, tax_config, created_by="hr-1")
    lifecycle.submit(run.id, "clerk-1")
    with pytest.raises(ValidationError) as exc:
        lifecycle.approve(run.id, "mgr-1")
    assert "s3" in str(exc.value)
    assert lifecycle.get_run(run.id).status == RunStatus.PENDING_APPROVAL

def test_incomplete_run_blocks_approval(processor, lifecycle, tax_config):
    staff = STAFF + [StaffPayInput("s3", 100000, 150000)]
    run = processor.create_run("2025-03", staff, tax_config, created_by="hr-1", allow_partial=True)
    lifecycle.submit(run.id, "clerk-1")
    with pytest.raises(ValidationError):
        lifecycle.approve(run.id, "mgr-1")

def test_unknown_action_and_missing_actor(lifecycle, run):
    with pytest.raises(ValidationError):
        lifecycle.apply(run.id, "cancel", "mgr-1")
    with pytest.raises(ValidationError):
        lifecycle.submit(run.id, "")

def test_runs_are_scoped_to_company(repository, audit, run):
    other = PayrollLifecycle("globex", repository=repository, audit_sink=audit)
    with pytest.raises(NotFoundError):
        other.submit(run.id, "mgr-1")
    with pytest.raises(NotFoundError):
        other.get_run(run.id)

def test_missing_run(lifecycle):
    with pytest.raises(NotFoundError):
        lifecycle.submit("no-such-run", "mgr-1")
