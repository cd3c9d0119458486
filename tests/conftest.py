"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from fluency.core.facts import FactSelection, FactorGroup  # noqa: E402
from fluency.core.mastery import MasteryStore  # noqa: E402
from fluency.db.database import make_engine  # noqa: E402
from fluency.db.json_store import JsonProgressStore  # noqa: E402
from fluency.db.sql_store import SqlProgressStore  # noqa: E402
from fluency.study.timers import ManualScheduler  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (store + drill together)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def rng():
    """Seeded random source so generator draws are repeatable."""
    return random.Random(1234)


@pytest.fixture
def scheduler():
    """Virtual clock for session and drill timers."""
    return ManualScheduler()


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from any .env file and the developer's database."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        json_store_path=str(tmp_path / "data.json"),
        log_file=None,
        timezone="America/Chicago",
    )


@pytest.fixture
def mastery():
    return MasteryStore()


@pytest.fixture
def low_groups():
    """Selection limited to factors 2-4."""
    return FactSelection(groups=[FactorGroup.LOW])


@pytest.fixture
def sql_store():
    """SqlProgressStore on a private in-memory SQLite database."""
    return SqlProgressStore(make_engine("sqlite://"))


@pytest.fixture
def json_store(tmp_path):
    """JsonProgressStore writing to a temporary file."""
    return JsonProgressStore(tmp_path / "data.json")


@pytest.fixture(params=["sql", "json"])
def store(request, tmp_path):
    """Each ProgressStore backend in turn."""
    if request.param == "sql":
        return SqlProgressStore(make_engine("sqlite://"))
    return JsonProgressStore(tmp_path / "data.json")
