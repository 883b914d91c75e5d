"""
Canvas: composition root of the live widget runtime.

Canvas wires the content and document stores, the widget registry and the
dataflow propagator together, keeps one live widget instance per document
behind an ErrorBoundary, and exposes the command handlers the surrounding
chrome drives (pointer, keyboard, widget chooser, source editor).

Every handler runs synchronously and applies its full set of mutations before
returning, so the host event loop only has to call handlers one at a time.
Failures of widget code never escape: compile errors render as the widget's
output, render and update errors are held by the document's boundary.

Hot reload: each live instance remembers the identity token of the compiled
widget it was created from. When the registry holds a different token the
instance is discarded and recreated with a fresh boundary.
"""
from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional, Tuple

from markupsafe import Markup

from livecanvas.boundary import ErrorBoundary
from livecanvas.compiler import CompiledWidget, supports_expected_change
from livecanvas.config import CanvasConfig, get_current_config
from livecanvas.content import ContentStore
from livecanvas.dataflow import DataflowPropagator, compute_groups, group_color
from livecanvas.documents import Document, DocumentStore, Rect
from livecanvas.registry import WidgetRegistry

logger = logging.getLogger(__name__)

# Raw chords from the keyboard collaborator -> command names
KEY_BINDINGS: Dict[str, str] = {
    "ctrl+e": "toggle-edit",
    "ctrl+c": "copy",
    "ctrl+v": "paste",
    "ctrl+d": "delete",
    "ctrl+delete": "delete",
    "ctrl+backspace": "delete",
}


@dataclass
class LiveDocument:
    """Live widget instance of one document and its boundary."""
    doc_id: str
    identity_token: str
    boundary: ErrorBoundary
    instance: Any = None


@dataclass(frozen=True)
class RenderedDocument:
    """Everything the chrome needs to draw one document."""
    id: str
    rect: Rect
    selected: bool
    widget_name: str
    expects: Optional[str]
    exposes: Optional[str]
    connector_label: Optional[str]
    html: Markup
    has_error: bool
    group: int
    color: Optional[str]
    # Output from before the current error, if any
    last_good: Optional[Markup] = None


class Canvas:
    """A canvas of documents backed by live widgets.

    Args:
        registry: Widget registry; a registry with the bundled widgets is
            created when omitted.
        scheduler: Timer source for the created registry's debounce. Ignored,
            with a warning, when a registry is given.
        config: Canvas tunables. Defaults to the current config.
    """

    def __init__(
        self,
        registry: Optional[WidgetRegistry] = None,
        scheduler: Optional[Any] = None,
        config: Optional[CanvasConfig] = None,
    ):
        self.config = config or get_current_config()
        if registry is None:
            registry = WidgetRegistry.with_builtins(
                scheduler=scheduler,
                debounce_seconds=self.config.debounce_seconds,
            )
        elif scheduler is not None and scheduler is not registry.scheduler:
            logger.warning("Canvas scheduler ignored: the given registry keeps its own scheduler")
        self.registry = registry
        self.contents = ContentStore()
        self.documents = DocumentStore(self.contents, self.config)
        self.propagator = DataflowPropagator(self.contents, self.documents, self._deliver)
        self.documents.add_delete_callback(self._on_document_deleted)

        self._live: Dict[str, LiveDocument] = {}

        # Ephemeral interaction state
        self.copied_doc_id: Optional[str] = None
        self.drag_adjust: Tuple[float, float] = (0, 0)
        self.chooser_position: Tuple[float, float] = (0, 0)
        self.is_chooser_visible = False
        self.is_name_input_visible = False
        self.editing_widget_name: Optional[str] = None
        self.dragged_pill_doc_id: Optional[str] = None

    @property
    def scheduler(self) -> Any:
        return self.registry.scheduler

    # ========== LIVE INSTANCES ==========

    def _compiled_for(self, doc: Document) -> CompiledWidget:
        return self.registry.ensure(doc.widget_name)

    def _change_for(self, doc_id: str):
        def change(updater: Any) -> Any:
            doc = self.documents.get(doc_id)
            return self.contents.update(doc.content_id, updater)
        return change

    def live_document(self, doc: Document) -> LiveDocument:
        """Live state of a document, recreated if its widget was recompiled."""
        compiled = self._compiled_for(doc)
        live = self._live.get(doc.id)
        if live is not None and live.identity_token == compiled.identity_token:
            return live

        if live is not None:
            logger.debug(f"Reloading document {doc.id}: widget {doc.widget_name!r} recompiled")
            boundary = live.boundary
            boundary.reset(compiled.identity_token)
        else:
            boundary = ErrorBoundary(compiled.identity_token, label=doc.widget_name)

        live = LiveDocument(doc_id=doc.id, identity_token=compiled.identity_token, boundary=boundary)

        def instantiate():
            live.instance = compiled.definition.instantiate(self._change_for(doc.id))

        boundary.guard(instantiate)
        self._live[doc.id] = live
        return live

    def _deliver(self, doc: Document, value: Any, expected: Any) -> None:
        live = self.live_document(doc)
        instance = live.instance
        if instance is None or not supports_expected_change(instance):
            return
        live.boundary.guard(lambda: instance.handle_expected_doc_change(value, expected))

    def _on_document_deleted(self, doc: Document) -> None:
        self._live.pop(doc.id, None)
        if self.copied_doc_id == doc.id:
            self.copied_doc_id = None
        if self.dragged_pill_doc_id == doc.id:
            self.dragged_pill_doc_id = None

    # ========== CONTENT ==========

    def value_of(self, doc_id: str) -> Any:
        return self.contents.value_of(self.documents.get(doc_id).content_id)

    def expected_value_of(self, doc_id: str) -> Any:
        return self.contents.value_of(self.documents.get(doc_id).expected_content_id)

    def set_content(self, doc_id: str, updater: Any) -> Any:
        """Change a document's content from outside its widget."""
        return self._change_for(doc_id)(updater)

    # ========== RENDERING ==========

    def contract_of(self, doc_id: str) -> Tuple[Optional[str], Optional[str]]:
        """(expects, exposes) of the document's current widget."""
        compiled = self._compiled_for(self.documents.get(doc_id))
        return compiled.expects, compiled.exposes

    def _render_one(self, doc: Document, group: int, color: Optional[str]) -> RenderedDocument:
        compiled = self._compiled_for(doc)
        live = self.live_document(doc)
        value = self.contents.value_of(doc.content_id)
        expected = self.contents.value_of(doc.expected_content_id)
        instance = live.instance
        html = live.boundary.render(lambda: instance.show(value, expected))

        connector_label = None
        if compiled.expects:
            connector_label = "Uses" if doc.expected_content_id in self.contents else "Expects"

        return RenderedDocument(
            id=doc.id,
            rect=doc.rect,
            selected=doc.selected,
            widget_name=doc.widget_name,
            expects=compiled.expects,
            exposes=compiled.exposes,
            connector_label=connector_label,
            html=html,
            has_error=live.boundary.has_error,
            group=group,
            color=color,
            last_good=live.boundary.last_good,
        )

    def render(self) -> List[RenderedDocument]:
        """Render every document. Groups are recomputed on each call."""
        docs = self.documents.all()
        placement: Dict[str, Tuple[int, Optional[str]]] = {}
        for index, group in enumerate(compute_groups(docs)):
            # Unconnected documents are not highlighted
            color = group_color(group, self.config.group_palette) if len(group) > 1 else None
            for doc in group:
                placement[doc.id] = (index, color)
        return [self._render_one(doc, *placement[doc.id]) for doc in docs]

    def render_document(self, doc_id: str) -> RenderedDocument:
        for rendered in self.render():
            if rendered.id == doc_id:
                return rendered
        return self._render_one(self.documents.get(doc_id), -1, None)

    # ========== WIDGET CHOOSER ==========

    def widget_names(self) -> List[str]:
        return self.registry.names()

    def double_click(self, x: float, y: float) -> None:
        """Open the widget chooser at the pointer position."""
        self.chooser_position = (x, y)
        self.is_chooser_visible = True

    def dismiss_chooser(self) -> None:
        self.is_chooser_visible = False
        self.is_name_input_visible = False

    def choose_widget(self, name: Optional[str] = None) -> Optional[Document]:
        """Place a document of the chosen widget at the chooser position.

        Without a name the chooser switches to the new-name input. A name with
        no source yet creates that widget with the placeholder body.
        """
        if not name:
            self.is_name_input_visible = True
            self.is_chooser_visible = False
            return None

        x, y = self.chooser_position
        doc = self.create_document(name, x, y)
        self.dismiss_chooser()
        return doc

    def create_document(self, widget_name: str, x: float, y: float) -> Document:
        """Create a document with a new content at (x, y)."""
        self.registry.ensure(widget_name)
        return self.documents.create_at(x, y, widget_name)

    # ========== POINTER ==========

    def click_background(self) -> None:
        self.documents.deselect_all()

    def click_document(self, doc_id: str) -> None:
        self.documents.select(doc_id)

    def drag_start(self, doc_id: str, x: float, y: float) -> None:
        doc = self.documents.select(doc_id)
        self.drag_adjust = (x - doc.rect.x, y - doc.rect.y)

    def drag(self, doc_id: str, x: float, y: float) -> bool:
        """Follow the pointer. A (0, 0) step marks the end of a drag and is ignored."""
        if x == 0 and y == 0:
            return False
        ax, ay = self.drag_adjust
        self.documents.move_to(doc_id, x - ax, y - ay)
        return True

    def drag_end(self, doc_id: str) -> None:
        self.drag_adjust = (0, 0)

    def resize_start(self, doc_id: str, x: float, y: float) -> None:
        doc = self.documents.select(doc_id)
        self.drag_adjust = (x - doc.rect.w, y - doc.rect.h)

    def resize(self, doc_id: str, x: float, y: float) -> bool:
        if x == 0 and y == 0:
            return False
        ax, ay = self.drag_adjust
        self.documents.resize(doc_id, x - ax, y - ay)
        return True

    def resize_end(self, doc_id: str) -> None:
        self.drag_adjust = (0, 0)

    # ========== CONNECTIONS ==========

    def pill_drag_start(self, doc_id: str) -> None:
        """Start dragging the exposes pill of a producing document."""
        self.documents.get(doc_id)
        self.dragged_pill_doc_id = doc_id

    def can_drop_pill(self, target_id: str) -> bool:
        """Whether the dragged pill matches the target's expects tag.

        A document never accepts a pill of a document sharing its content.

        Used for highlighting drop targets only.
        """
        source_id = self.dragged_pill_doc_id
        if source_id is None or source_id == target_id or source_id not in self.documents:
            return False
        if self.documents.get(source_id).content_id == self.documents.get(target_id).content_id:
            return False
        _, exposes = self.contract_of(source_id)
        expects, _ = self.contract_of(target_id)
        return expects is not None and expects == exposes

    def drop_pill(self, target_id: str) -> bool:
        """Connect the dragged producer to target if the tags match."""
        source_id = self.dragged_pill_doc_id
        accepted = self.can_drop_pill(target_id)
        if accepted:
            self.connect(target_id, source_id)
        self.dragged_pill_doc_id = None
        return accepted

    def connect(self, consumer_id: str, producer_id: str) -> Document:
        """Make consumer consume producer's content, regardless of type tags."""
        producer = self.documents.get(producer_id)
        return self.documents.set_expected(consumer_id, producer.content_id)

    # ========== KEYBOARD ==========

    def handle_key(self, chord: str) -> bool:
        """Dispatch a named command or a raw chord from KEY_BINDINGS.

        Returns:
            True if the chord was recognized.
        """
        command = KEY_BINDINGS.get(chord, chord)
        handler = self._commands().get(command)
        if handler is None:
            return False
        handler()
        return True

    def _commands(self):
        return {
            "toggle-edit": self.toggle_edit,
            "copy": self.copy_selected,
            "paste": self.paste,
            "delete": self.delete_selected,
        }

    def toggle_edit(self) -> Optional[str]:
        """Edit the selected document's widget source, or close the editor."""
        selected = self.documents.selected()
        self.editing_widget_name = selected.widget_name if selected else None
        return self.editing_widget_name

    def copy_selected(self) -> Optional[str]:
        selected = self.documents.selected()
        if selected is not None:
            self.copied_doc_id = selected.id
        return self.copied_doc_id

    def paste(self) -> Optional[Document]:
        """Clone the copied document, sharing its content."""
        if self.copied_doc_id is None or self.copied_doc_id not in self.documents:
            return None
        return self.documents.clone(self.copied_doc_id)

    def delete_selected(self) -> Optional[Document]:
        selected = self.documents.selected()
        if selected is None:
            return None
        return self.documents.delete(selected.id)

    # ========== SOURCE EDITOR ==========

    def editing_source(self) -> str:
        if self.editing_widget_name is None:
            return ""
        return self.registry.source(self.editing_widget_name)

    def edit_source(self, text: str) -> None:
        """Full editor text for the widget being edited."""
        if self.editing_widget_name is None:
            logger.debug("Ignoring source edit with no widget open")
            return
        self.registry.set_source(self.editing_widget_name, text)

    def flush(self) -> int:
        """Compile every pending source edit now."""
        return self.registry.flush()
