import pytest
import structlog

from workmeter.executors import instrumented
from workmeter.observability import metrics as exposition


@pytest.fixture
def captured_logs(monkeypatch):
    """Structlog events emitted by the executors and the Prometheus bridge."""
    structlog.reset_defaults()
    with structlog.testing.capture_logs() as logs:
        # module loggers may already be cached by an earlier configure_logging()
        monkeypatch.setattr(instrumented, "log", structlog.get_logger("executors"))
        monkeypatch.setattr(exposition, "log", structlog.get_logger("metrics"))
        yield logs
