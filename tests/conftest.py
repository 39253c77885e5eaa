"""Pytest configuration for test isolation.

The blob store defaults to ``./.insights`` under the working directory. When
tests run in the same working tree, files written by one test (notably the
enrichment cache) would be visible to the next and short-circuit the stubbed
remote paths, making call-count assertions flaky.

To keep tests hermetic, we redirect the data dir to a unique temporary
directory for each test via an autouse fixture.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Make ``tests.helpers`` importable regardless of the rootdir pytest picked.
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))


@pytest.fixture(autouse=True)
def _isolate_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Force a per-test data dir so tests don't share on-disk state."""

    data_root = tmp_path / "insights"
    data_root.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("INSIGHTS_DATA_DIR", os.fspath(data_root))
    monkeypatch.delenv("INSIGHTS_MODEL", raising=False)
    return data_root


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record backoff delays instead of sleeping."""

    import statement_insights.remote as remote_mod

    delays: list[float] = []
    monkeypatch.setattr(remote_mod.time, "sleep", delays.append)
    return delays
