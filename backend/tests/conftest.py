from __future__ import annotations

import pytest

from concierge.core.config import settings


@pytest.fixture(autouse=True)
def _quiet_debug_log(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "DEBUG_LOG_ENABLED", False)
