"""Pytest configuration and shared fixtures."""
import pytest

from livecanvas import Canvas, TimerQueue, WidgetRegistry, reset_current_config
from widget_sources import BROKEN_SOURCE, COUNTER_SOURCE, RECORDER_SOURCE


@pytest.fixture(autouse=True)
def reset_config():
    """Start and end every test with the default config."""
    reset_current_config()
    yield
    reset_current_config()


@pytest.fixture
def timers():
    """Timer queue on a frozen clock; only ``advance`` moves time."""
    return TimerQueue(clock=lambda: 0.0)


@pytest.fixture
def registry(timers):
    """Registry with the bundled widgets, driven by ``timers``."""
    return WidgetRegistry.with_builtins(scheduler=timers)


@pytest.fixture
def canvas(registry):
    """Canvas with the bundled widgets plus the test widgets."""
    registry.add("Recorder", RECORDER_SOURCE)
    registry.add("Broken", BROKEN_SOURCE)
    registry.add("Counter", COUNTER_SOURCE)
    return Canvas(registry=registry)
