from __future__ import annotations

import itertools
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from socialfeed.core.settings import S  # noqa: E402
from socialfeed.services import comments as comments_service  # noqa: E402
from socialfeed.services import likes as likes_service  # noqa: E402
from socialfeed.services import posts as posts_service  # noqa: E402
from socialfeed.services import users as users_service  # noqa: E402

_CLOCKED_MODULES = (users_service, posts_service, likes_service, comments_service)


@pytest.fixture(autouse=True)
def clock(monkeypatch):
    """Strictly increasing timestamps so recency ordering is deterministic."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = itertools.count()

    def fake_now_iso() -> str:
        return (start + timedelta(seconds=next(ticks))).isoformat()

    for module in _CLOCKED_MODULES:
        monkeypatch.setattr(module, "now_iso", fake_now_iso)
    return fake_now_iso


@pytest.fixture
def settings_override():
    """Temporarily replace fields of the frozen settings object."""
    saved = {}

    def apply(**values):
        for name, value in values.items():
            saved.setdefault(name, getattr(S, name))
            object.__setattr__(S, name, value)

    yield apply
    for name, value in saved.items():
        object.__setattr__(S, name, value)
