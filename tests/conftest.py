"""
Global pytest fixtures for the exporter test suite.

Provides:
- Environment isolation (no GCP_* / collector variables leak in)
- Fake Compute Engine and Dataproc APIs
"""
import os

import pytest

# Set test environment BEFORE any app imports
os.environ["TESTING"] = "true"

from idleness_exporter.shared.core.config import get_settings  # noqa: E402
from tests.factories import FakeCompute, FakeDataproc  # noqa: E402

_ISOLATED_ENV = (
    "GCP_PROJECT_ID",
    "GCP_REGIONS",
    "GCP_EXPORTER_MAX_RETRIES",
    "GCP_EXPORTER_HTTP_TIMEOUT",
    "GCP_EXPORTER_MAX_BACKOFF_DURATION",
    "GCP_EXPORTER_BACKOFF_JITTER_BASE",
    "GCP_EXPORTER_RETRY_STATUSES",
    "COLLECTOR_DISABLE_DEFAULTS",
    "COLLECTORS_ENABLED",
    "COLLECTORS_DISABLED",
    "LISTEN_ADDRESS",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "GOOGLE_APPLICATION_CREDENTIALS",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    for name in _ISOLATED_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_compute():
    return FakeCompute()


@pytest.fixture
def fake_dataproc():
    return FakeDataproc()
