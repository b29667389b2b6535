import json
import time
from pathlib import Path

import pytest


def wait_until(predicate, timeout=5.0, interval=0.02):
    """Poll *predicate* until it is truthy or *timeout* seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


@pytest.fixture
def config_path(tmp_path) -> Path:
    path = tmp_path / "config.json"
    path.write_text("{}")
    return path


@pytest.fixture
def write_config(config_path):
    """Write a JSON document (or raw text) to the watched config file."""
    def _write(doc):
        text = doc if isinstance(doc, str) else json.dumps(doc)
        config_path.write_text(text)
    return _write
