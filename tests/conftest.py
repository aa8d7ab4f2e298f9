from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _reset_session_store() -> None:
    from eduassess.session import reset_session_store

    reset_session_store()
    yield
    reset_session_store()
