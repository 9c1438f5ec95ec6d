import pytest

from app.services.report_store import ReportStore

from fakes import FakeSessionManager


@pytest.fixture
def report_store(tmp_path):
    return ReportStore(str(tmp_path / "reports"))


@pytest.fixture
def session_manager():
    return FakeSessionManager()
