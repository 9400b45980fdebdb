import pytest

from payrun.approvals.engine import PayrollLifecycle
from payrun.core.audit import AuditLogger
from payrun.core.config import settings
from payrun.core.repositories import PayrollRunRepository
from payrun.db.session import init_db, make_engine, make_session_factory
from payrun.payroll.bulk_processor import PayrollBulkProcessor
from payrun.tax.config_manager import default_tax_configuration

@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    # keep logs, audit trails and config stores out of the working tree
    monkeypatch.setattr(settings, "AUDIT_LOG_PATH", str(tmp_path / "logs"))
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path / "data"))

@pytest.fixture
def tax_config():
    return default_tax_configuration()

@pytest.fixture
def repository():
    engine = make_engine("sqlite://")
    init_db(engine)
    return PayrollRunRepository(make_session_factory(engine))

@pytest.fixture
def audit(tmp_path):
    return AuditLogger("acme", audit_dir=str(tmp_path / "audit"))

@pytest.fixture
def processor(repository, audit):
    return PayrollBulkProcessor("acme", repository=repository, audit_sink=audit)

@pytest.fixture
def lifecycle(repository, audit):
    return PayrollLifecycle("acme", repository=repository, audit_sink=audit)
