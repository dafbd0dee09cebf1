"""Test-wide setup: an isolated data directory and a minimal YAML config."""

import os
import shutil
import tempfile
from pathlib import Path

import pytest
import yaml

TEST_CONFIG = {
    "log_level": "DEBUG",
    "sync_interval": 60,
    "radarr": {"url": "http://radarr:7878", "api_key": "radarr-key"},
    "movie_lists": [
        {
            "source": "mdblist",
            "id": "trending",
            "url": "https://mdblist.com/lists/user/trending",
            "tags": ["trending"],
        }
    ],
}

# The package configures its logger from this config at import time, so the
# file has to exist before anything under src is imported.
_DATA_DIR = Path(tempfile.mkdtemp(prefix="wb-tests-"))
os.environ["WB_DATA_PATH"] = str(_DATA_DIR)
(_DATA_DIR / "config.yaml").write_text(
    yaml.safe_dump(TEST_CONFIG, sort_keys=False), encoding="utf-8"
)

from src.config.settings import get_config  # noqa: E402
from src.web.state import get_app_state  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_state():
    """Give every test its own AppState and a freshly loaded config."""
    get_config.cache_clear()
    get_app_state.cache_clear()
    yield get_app_state()
    get_app_state.cache_clear()
    get_config.cache_clear()


def pytest_sessionfinish(session, exitstatus) -> None:
    shutil.rmtree(_DATA_DIR, ignore_errors=True)
