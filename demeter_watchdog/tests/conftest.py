from __future__ import annotations

import pytest

from demeter_watchdog.core.config import get_settings
from demeter_watchdog.core.logging import reset_logging
from demeter_watchdog.services.telemetry import reset_telemetry


@pytest.fixture(autouse=True)
def isolate_process_state() -> None:
    # Counters, cached settings and log handlers are process-wide; keep tests independent.
    reset_telemetry()
    get_settings.cache_clear()
    yield
    reset_logging()
    reset_telemetry()
    get_settings.cache_clear()
