"""
Canvas configuration and thread-local current-config storage.

CanvasConfig holds the tunables of the runtime (debounce window, size limits,
paste offset, group palette). Components take an explicit config or fall back
to the current one, which lives in thread-local storage so tests and embedding
applications can swap it without threading it through every constructor.
"""

import threading
from dataclasses import dataclass
from typing import Optional, Tuple


DEFAULT_GROUP_PALETTE: Tuple[str, ...] = (
    "#e7040f",
    "#357edd",
    "#19a974",
    "#ff6300",
    "#a463f2",
    "#ffb700",
    "#ff41b4",
    "#00449e",
)


@dataclass(frozen=True)
class CanvasConfig:
    """Tunables for the canvas runtime.

    Attributes:
        debounce_seconds: Quiet period after the last source edit before the
            widget is recompiled.
        min_width: Smallest width a document can be resized to.
        min_height: Smallest height a document can be resized to.
        default_width: Width of newly created documents.
        default_height: Height of newly created documents.
        paste_offset: (dx, dy) applied to a pasted clone relative to its source.
        group_palette: Highlight colors assigned to connectivity groups.
    """
    debounce_seconds: float = 1.0
    min_width: float = 200
    min_height: float = 100
    default_width: float = 300
    default_height: float = 200
    paste_offset: Tuple[float, float] = (100, 100)
    group_palette: Tuple[str, ...] = DEFAULT_GROUP_PALETTE


_current_config = threading.local()


def set_current_config(config: CanvasConfig) -> None:
    """Set the config components use when none is passed explicitly.

    Args:
        config: The config instance to make current for this thread
    """
    _current_config.value = config


def get_current_config() -> CanvasConfig:
    """Get the current config, creating the default one on first use."""
    config: Optional[CanvasConfig] = getattr(_current_config, 'value', None)
    if config is None:
        config = CanvasConfig()
        _current_config.value = config
    return config


def reset_current_config() -> None:
    """Drop the current config so the next lookup yields defaults."""
    _current_config.value = None
