"""
Live widget canvas runtime.

Compose small live widgets onto a canvas as documents, wire one document's
output into another's input, and edit widget source with changes taking
effect live.

Key Features:
- Widget compiler turning source text into a widget definition, with every
  failure rendered in place instead of raised
- Debounced per-widget recompilation on source edits
- Document store with shared (cloned) contents and content collection
- Dataflow propagation of upstream changes to consuming documents
- Connectivity groups for highlighting connected documents
- Per-document error isolation with reset on hot reload

Quick Start:
    >>> from livecanvas import Canvas, TimerQueue
    >>>
    >>> canvas = Canvas(scheduler=TimerQueue())
    >>> note = canvas.create_document("Editable Note", 0, 0)
    >>> to_list = canvas.create_document("Text To List", 400, 0)
    >>> canvas.connect(to_list.id, note.id)
    >>> canvas.set_content(note.id, "- milk\\n- eggs")
    >>> canvas.value_of(to_list.id)
    ['milk', 'eggs']

Modules:
    - content: Content store of shared payload values
    - compiler: Source text to CompiledWidget
    - registry: Widget sources, compiled state and debounced recompilation
    - documents: Document store and geometry
    - dataflow: Change propagation and connectivity groups
    - boundary: Error isolation for live widget instances
    - canvas: Composition root and command handlers
    - markup: Templating primitives available to widget code
    - config: Canvas tunables and current-config storage
"""

# Errors
from livecanvas.errors import (
    LiveCanvasError,
    UnknownContentError,
    UnknownDocumentError,
    UnknownWidgetError,
    CompileError,
)

# Configuration
from livecanvas.config import (
    CanvasConfig,
    set_current_config,
    get_current_config,
    reset_current_config,
)

# Templating
from livecanvas.markup import Element, h, render_html

# Compiler
from livecanvas.compiler import (
    Widget,
    WidgetTypes,
    WidgetDefinition,
    CompiledWidget,
    compile_widget,
    supports_expected_change,
)

# Stores
from livecanvas.content import Content, ContentStore
from livecanvas.documents import Document, DocumentStore, Rect

# Registry
from livecanvas.timers import TimerQueue
from livecanvas.registry import WidgetRegistry
from livecanvas.builtin_widgets import BUILTIN_WIDGETS, EMPTY_WIDGET_SOURCE

# Dataflow
from livecanvas.dataflow import DataflowPropagator, compute_groups, group_index, group_color

# Runtime
from livecanvas.boundary import ErrorBoundary
from livecanvas.canvas import Canvas, KEY_BINDINGS, LiveDocument, RenderedDocument

__all__ = [
    # Errors
    'LiveCanvasError',
    'UnknownContentError',
    'UnknownDocumentError',
    'UnknownWidgetError',
    'CompileError',
    # Configuration
    'CanvasConfig',
    'set_current_config',
    'get_current_config',
    'reset_current_config',
    # Templating
    'Element',
    'h',
    'render_html',
    # Compiler
    'Widget',
    'WidgetTypes',
    'WidgetDefinition',
    'CompiledWidget',
    'compile_widget',
    'supports_expected_change',
    # Stores
    'Content',
    'ContentStore',
    'Document',
    'DocumentStore',
    'Rect',
    # Registry
    'TimerQueue',
    'WidgetRegistry',
    'BUILTIN_WIDGETS',
    'EMPTY_WIDGET_SOURCE',
    # Dataflow
    'DataflowPropagator',
    'compute_groups',
    'group_index',
    'group_color',
    # Runtime
    'ErrorBoundary',
    'Canvas',
    'KEY_BINDINGS',
    'LiveDocument',
    'RenderedDocument',
]

__version__ = '1.0.0'
__description__ = 'Live widget canvas with dataflow between documents'
