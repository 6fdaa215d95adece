import pytest


@pytest.fixture(autouse=True)
def default_reporting_offset(monkeypatch):
    """Run every test against the default +05:30 reporting offset."""
    monkeypatch.delenv("FINTRACK_UTC_OFFSET_MINUTES", raising=False)
