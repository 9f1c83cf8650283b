import pytest

from selfgate.settings import settings


@pytest.fixture(autouse=True)
def no_event_log_file(monkeypatch):
    # Keep the JSON-lines audit sink out of the working tree during tests
    monkeypatch.setattr(settings, "EVENT_LOG_PATH", "")
