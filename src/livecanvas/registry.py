"""
WidgetRegistry: widget name -> source text and current CompiledWidget.

Source edits are stored immediately so the editor reflects them, while
recompilation is debounced per name: every edit cancels the name's pending
timer and schedules a new one, and the timer compiles whatever text is stored
when it fires. Rapid edits therefore collapse into one compile of the last
text, and edits to different names never delay each other.

The scheduler is any object with ``call_later(delay, callback, *args)``
returning a handle with ``cancel()``; an asyncio event loop or a
livecanvas.timers.TimerQueue both work.

Thread safety: Not thread-safe (all operations expected on the event loop thread).
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from livecanvas.builtin_widgets import BUILTIN_WIDGETS, EMPTY_WIDGET_SOURCE
from livecanvas.compiler import CompiledWidget, compile_widget
from livecanvas.config import get_current_config
from livecanvas.errors import UnknownWidgetError
from livecanvas.timers import TimerQueue

logger = logging.getLogger(__name__)

CompiledCallback = Callable[[str, CompiledWidget], None]


class WidgetRegistry:
    """Sources and compiled definitions of every widget, keyed by name.

    Widgets are never removed: a widget persists even when no document uses it.

    Args:
        scheduler: Timer source for debounced recompilation. A private
            TimerQueue is created when omitted; its owner must then drive it
            through ``registry.scheduler``.
        debounce_seconds: Quiet period before recompiling. Defaults to the
            current CanvasConfig.
        sources: Initial name -> source mapping, compiled eagerly.
    """

    def __init__(
        self,
        scheduler: Optional[Any] = None,
        debounce_seconds: Optional[float] = None,
        sources: Optional[Mapping[str, str]] = None,
    ):
        self.scheduler = scheduler if scheduler is not None else TimerQueue()
        if debounce_seconds is None:
            debounce_seconds = get_current_config().debounce_seconds
        self.debounce_seconds = debounce_seconds

        self._sources: Dict[str, str] = {}
        self._compiled: Dict[str, CompiledWidget] = {}
        self._pending: Dict[str, Any] = {}
        self._compiled_callbacks: List[CompiledCallback] = []
        self.compile_count = 0

        for name, source in (sources or {}).items():
            self.add(name, source)

    @classmethod
    def with_builtins(cls, scheduler: Optional[Any] = None, debounce_seconds: Optional[float] = None) -> 'WidgetRegistry':
        """Registry preloaded with the bundled example widgets."""
        return cls(scheduler=scheduler, debounce_seconds=debounce_seconds, sources=BUILTIN_WIDGETS)

    # ========== CALLBACKS ==========

    def add_compiled_callback(self, callback: CompiledCallback) -> None:
        """Subscribe to compile results. Callbacks receive (name, compiled)."""
        if callback not in self._compiled_callbacks:
            self._compiled_callbacks.append(callback)

    def remove_compiled_callback(self, callback: CompiledCallback) -> None:
        if callback in self._compiled_callbacks:
            self._compiled_callbacks.remove(callback)

    def _fire_compiled_callbacks(self, name: str, compiled: CompiledWidget) -> None:
        for callback in list(self._compiled_callbacks):
            try:
                callback(name, compiled)
            except Exception as e:
                logger.warning(f"Error in compiled callback for {name!r}: {e}")

    # ========== SOURCES ==========

    def add(self, name: str, source: str) -> CompiledWidget:
        """Store a source and compile it right away."""
        self._sources[name] = source
        return self.compile_now(name)

    def ensure(self, name: str) -> CompiledWidget:
        """Make sure a widget exists, seeding a placeholder body for new names."""
        if name not in self._sources:
            logger.debug(f"Seeding new widget {name!r}")
            return self.add(name, EMPTY_WIDGET_SOURCE)
        if name not in self._compiled:
            return self.compile_now(name)
        return self._compiled[name]

    def set_source(self, name: str, text: str) -> None:
        """Store edited source text and schedule a debounced recompile."""
        self._sources[name] = text
        self._schedule(name)

    def source(self, name: str) -> str:
        try:
            return self._sources[name]
        except KeyError:
            raise UnknownWidgetError(name) from None

    def has(self, name: str) -> bool:
        return name in self._sources

    __contains__ = has

    def names(self) -> List[str]:
        return list(self._sources)

    # ========== COMPILATION ==========

    def get(self, name: str) -> CompiledWidget:
        """Current compiled state of a widget."""
        try:
            return self._compiled[name]
        except KeyError:
            raise UnknownWidgetError(name) from None

    def is_pending(self, name: str) -> bool:
        """True while a debounced recompile of name is scheduled."""
        return name in self._pending

    def _schedule(self, name: str) -> None:
        handle = self._pending.pop(name, None)
        if handle is not None:
            handle.cancel()
        self._pending[name] = self.scheduler.call_later(self.debounce_seconds, self._on_timer, name)
        logger.debug(f"Scheduled recompile of {name!r} in {self.debounce_seconds}s")

    def _on_timer(self, name: str) -> None:
        self._pending.pop(name, None)
        self._compile(name)

    def compile_now(self, name: str) -> CompiledWidget:
        """Cancel any pending timer for name and compile its current source."""
        handle = self._pending.pop(name, None)
        if handle is not None:
            handle.cancel()
        return self._compile(name)

    def flush(self) -> int:
        """Compile every widget with a pending edit. Returns how many."""
        names = list(self._pending)
        for name in names:
            self.compile_now(name)
        return len(names)

    def _compile(self, name: str) -> CompiledWidget:
        source = self.source(name)
        compiled = compile_widget(source, name)
        self.compile_count += 1
        previous = self._compiled.get(name)
        self._compiled[name] = compiled
        if previous is None or previous.identity_token != compiled.identity_token:
            logger.debug(f"Widget {name!r} now at {compiled.identity_token[:8]}")
        self._fire_compiled_callbacks(name, compiled)
        return compiled
