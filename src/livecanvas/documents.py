"""
Document store: positioned, selectable widget instances on the canvas.

Each Document references a widget by name, owns a primary content ("produces
or edits") and optionally consumes another document's content through
``expected_content_id``. Clones share the primary content by reference.

Invariants maintained here:
- At most one document is selected.
- Every content_id and expected_content_id refers to a live content.
- A content is collected when the last document using it as primary content
  is deleted; expectations pointing at a collected content are severed.

Thread safety: Not thread-safe (all operations expected on the event loop thread).
"""
from dataclasses import dataclass, replace
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
import uuid

from livecanvas.config import CanvasConfig, get_current_config
from livecanvas.content import ContentStore
from livecanvas.errors import UnknownContentError, UnknownDocumentError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rect:
    """Document geometry: top-left corner plus size."""
    x: float
    y: float
    w: float
    h: float

    def moved_to(self, x: float, y: float) -> 'Rect':
        return replace(self, x=x, y=y)

    def moved_by(self, dx: float, dy: float) -> 'Rect':
        return replace(self, x=self.x + dx, y=self.y + dy)

    def resized(self, w: float, h: float) -> 'Rect':
        return replace(self, w=w, h=h)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.w, self.h)


@dataclass
class Document:
    """A widget placed on the canvas."""
    id: str
    rect: Rect
    widget_name: str
    content_id: str
    expected_content_id: Optional[str] = None
    selected: bool = False


class DocumentStore:
    """All documents of a canvas, in creation order.

    Args:
        contents: Content store the documents reference.
        config: Size limits and paste offset. Defaults to the current config.
    """

    def __init__(self, contents: ContentStore, config: Optional[CanvasConfig] = None):
        self.contents = contents
        self.config = config or get_current_config()
        self._documents: Dict[str, Document] = {}
        # Callbacks receive (document, content_id) when an expectation is set
        self._expected_callbacks: List[Callable[[Document, str], None]] = []
        # Callbacks receive (document,) after removal
        self._delete_callbacks: List[Callable[[Document], None]] = []

    # ========== CALLBACKS ==========

    def add_expected_callback(self, callback: Callable[[Document, str], None]) -> None:
        """Subscribe to newly established expectations."""
        if callback not in self._expected_callbacks:
            self._expected_callbacks.append(callback)

    def remove_expected_callback(self, callback: Callable[[Document, str], None]) -> None:
        if callback in self._expected_callbacks:
            self._expected_callbacks.remove(callback)

    def add_delete_callback(self, callback: Callable[[Document], None]) -> None:
        """Subscribe to document deletion."""
        if callback not in self._delete_callbacks:
            self._delete_callbacks.append(callback)

    def remove_delete_callback(self, callback: Callable[[Document], None]) -> None:
        if callback in self._delete_callbacks:
            self._delete_callbacks.remove(callback)

    def _fire(self, callbacks: List[Callable[..., None]], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception as e:
                logger.warning(f"Error in document callback {callback!r}: {e}")

    # ========== LOOKUP ==========

    def get(self, doc_id: str) -> Document:
        try:
            return self._documents[doc_id]
        except KeyError:
            raise UnknownDocumentError(doc_id) from None

    def all(self) -> List[Document]:
        return list(self._documents.values())

    def __iter__(self) -> Iterator[Document]:
        return iter(list(self._documents.values()))

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._documents

    def selected(self) -> Optional[Document]:
        """The selected document, if any."""
        for doc in self._documents.values():
            if doc.selected:
                return doc
        return None

    def documents_with_content(self, content_id: str) -> List[Document]:
        """Documents whose primary content is content_id (the clones)."""
        return [doc for doc in self._documents.values() if doc.content_id == content_id]

    def consumers_of(self, content_id: str) -> List[Document]:
        """Documents consuming content_id through their expectation.

        Documents whose own content is content_id are left out; they already
        share the value and are never notified of their own changes.
        """
        return [
            doc for doc in self._documents.values()
            if doc.expected_content_id == content_id and doc.content_id != content_id
        ]

    # ========== LIFECYCLE ==========

    def create(
        self,
        rect: Rect,
        widget_name: str,
        shared_content_id: Optional[str] = None,
        value: Any = "",
    ) -> Document:
        """Create a selected document.

        Args:
            rect: Initial geometry
            widget_name: Widget the document renders
            shared_content_id: Existing content to share; a new content holding
                ``value`` is allocated when omitted
            value: Initial value of a newly allocated content

        Returns:
            The new Document, now the only selected one
        """
        if shared_content_id is None:
            content_id = self.contents.create(value).id
        elif shared_content_id in self.contents:
            content_id = shared_content_id
        else:
            raise UnknownContentError(shared_content_id)

        doc = Document(
            id=str(uuid.uuid4()),
            rect=rect,
            widget_name=widget_name,
            content_id=content_id,
        )
        self._documents[doc.id] = doc
        self.select(doc.id)
        logger.debug(f"Created document {doc.id}: widget={widget_name!r} content={content_id}")
        return doc

    def create_at(self, x: float, y: float, widget_name: str, shared_content_id: Optional[str] = None) -> Document:
        """Create a document of default size at (x, y)."""
        rect = Rect(x, y, self.config.default_width, self.config.default_height)
        return self.create(rect, widget_name, shared_content_id)

    def clone(self, doc_id: str, offset: Optional[Tuple[float, float]] = None) -> Document:
        """Paste a copy of a document sharing its content.

        The copy keeps the source's widget and size and is shifted by the
        paste offset.
        """
        source = self.get(doc_id)
        dx, dy = offset if offset is not None else self.config.paste_offset
        return self.create(source.rect.moved_by(dx, dy), source.widget_name, source.content_id)

    def delete(self, doc_id: str) -> Document:
        """Delete a document, collecting its content if no longer used.

        A content is kept while any remaining document uses it as primary
        content. When it is collected, documents that consumed it lose their
        expectation instead of pointing at a missing content.
        """
        doc = self._documents.pop(doc_id, None)
        if doc is None:
            raise UnknownDocumentError(doc_id)
        logger.debug(f"Deleted document {doc_id}")

        if not self.documents_with_content(doc.content_id):
            self.contents.remove(doc.content_id)
            severed = self.consumers_of(doc.content_id)
            for consumer in severed:
                consumer.expected_content_id = None
            logger.info(
                f"Collected content {doc.content_id} "
                f"(severed {len(severed)} consumer(s))"
            )

        self._fire(self._delete_callbacks, doc)
        return doc

    # ========== SELECTION ==========

    def select(self, doc_id: str) -> Document:
        """Select one document, deselecting all others."""
        target = self.get(doc_id)
        for doc in self._documents.values():
            doc.selected = doc is target
        return target

    def deselect_all(self) -> None:
        for doc in self._documents.values():
            doc.selected = False

    # ========== GEOMETRY ==========

    def move(self, doc_id: str, dx: float, dy: float) -> Document:
        doc = self.get(doc_id)
        doc.rect = doc.rect.moved_by(dx, dy)
        return doc

    def move_to(self, doc_id: str, x: float, y: float) -> Document:
        doc = self.get(doc_id)
        doc.rect = doc.rect.moved_to(x, y)
        return doc

    def resize(self, doc_id: str, w: float, h: float) -> Document:
        """Resize, clamped to the configured minimum size."""
        doc = self.get(doc_id)
        doc.rect = doc.rect.resized(max(self.config.min_width, w), max(self.config.min_height, h))
        return doc

    # ========== DATAFLOW EDGES ==========

    def set_expected(self, doc_id: str, content_id: str) -> Document:
        """Make a document consume content_id.

        Type tags are not checked here; a mismatch only affects highlighting.
        """
        doc = self.get(doc_id)
        if content_id not in self.contents:
            raise UnknownContentError(content_id)
        doc.expected_content_id = content_id
        logger.debug(f"Document {doc_id} now expects content {content_id}")
        self._fire(self._expected_callbacks, doc, content_id)
        return doc

    def clear_expected(self, doc_id: str) -> Document:
        doc = self.get(doc_id)
        doc.expected_content_id = None
        return doc
