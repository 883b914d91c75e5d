"""
Content store: opaque payload values keyed by id.

A Content is what a document produces or edits. Clones share one Content by
reference, so an edit through any of them is visible to all. Change callbacks
are how the dataflow layer learns about new values; they fire once per update
and only when the value actually changed.

Thread safety: Not thread-safe (all operations expected on the event loop thread).
"""
from dataclasses import dataclass
import logging
from typing import Any, Callable, Dict, List, Optional
import uuid

from livecanvas.errors import UnknownContentError

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, Any, Any], None]


@dataclass
class Content:
    """Payload produced by a document, possibly shared by clones."""
    id: str
    value: Any = ""


class ContentStore:
    """Holds every live Content of a canvas."""

    def __init__(self):
        self._contents: Dict[str, Content] = {}
        # Callbacks receive (content_id, old_value, new_value)
        self._change_callbacks: List[ChangeCallback] = []

    def add_change_callback(self, callback: ChangeCallback) -> None:
        """Subscribe to value changes."""
        if callback not in self._change_callbacks:
            self._change_callbacks.append(callback)

    def remove_change_callback(self, callback: ChangeCallback) -> None:
        """Unsubscribe from value changes."""
        if callback in self._change_callbacks:
            self._change_callbacks.remove(callback)

    def _fire_change_callbacks(self, content_id: str, old: Any, new: Any) -> None:
        for callback in list(self._change_callbacks):
            try:
                callback(content_id, old, new)
            except Exception as e:
                logger.warning(f"Error in content change callback for {content_id}: {e}")

    def create(self, value: Any = "", content_id: Optional[str] = None) -> Content:
        """Allocate a new Content.

        Args:
            value: Initial payload
            content_id: Explicit id; a uuid4 string is generated when omitted

        Returns:
            The new Content
        """
        content_id = content_id or str(uuid.uuid4())
        if content_id in self._contents:
            logger.warning(f"Overwriting existing content: {content_id}")
        content = Content(id=content_id, value=value)
        self._contents[content_id] = content
        logger.debug(f"Created content {content_id}")
        return content

    def get(self, content_id: str) -> Content:
        try:
            return self._contents[content_id]
        except KeyError:
            raise UnknownContentError(content_id) from None

    def value_of(self, content_id: Optional[str], default: Any = None) -> Any:
        """Value of a content, or default for a missing/None id."""
        content = self._contents.get(content_id) if content_id else None
        return content.value if content is not None else default

    def contains(self, content_id: Optional[str]) -> bool:
        return content_id is not None and content_id in self._contents

    __contains__ = contains

    def ids(self) -> List[str]:
        return list(self._contents)

    def __len__(self) -> int:
        return len(self._contents)

    def update(self, content_id: str, updater: Any) -> Any:
        """Replace a content's value.

        Args:
            content_id: Content to change
            updater: Callable receiving the current value and returning the
                new one. Any other object is used as the new value directly.

        Returns:
            The stored value after the update
        """
        content = self.get(content_id)
        old = content.value
        new = updater(old) if callable(updater) else updater
        content.value = new
        if old != new:
            self._fire_change_callbacks(content_id, old, new)
        return new

    def remove(self, content_id: str) -> Content:
        """Remove a content and return it."""
        try:
            content = self._contents.pop(content_id)
        except KeyError:
            raise UnknownContentError(content_id) from None
        logger.debug(f"Removed content {content_id}")
        return content

    def clear(self) -> None:
        self._contents.clear()
