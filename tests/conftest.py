from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make the package importable when the tests run from a plain checkout
PROJECT_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests.unit.helpers.factories import RecordingLogger  # noqa: E402


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture(scope="session")
def testdata_dir() -> Path:
    return Path(__file__).resolve().parent / "unit" / "testdata"
