"""
Widget compiler: source text to CompiledWidget.

Widget source is the body of a function that returns a widget definition,
usually a class deriving from Widget:

    MyTypes = WidgetTypes(expects=None, exposes="Text")

    class MyWidget(Widget):
        types = MyTypes

        def show(self, value, expected):
            return h("h1", None, value)

    return MyWidget

Compilation runs three isolated stages and never raises:

1. Transform: parse the body and wrap it in a factory function. A parse
   failure yields an error-display widget showing the SyntaxError.
2. Evaluate: run the factory in a namespace holding Widget, WidgetTypes and
   the templating primitives. An exception yields the same fallback.
3. Contract check: the returned value must expose ``show``. Without it the
   widget degrades to a "not implemented" placeholder; that is not an error.

The result is determined by the source text alone. Recompiling identical text
builds new objects with the same identity token and the same behavior.
"""
import ast
import builtins
import copy
from collections.abc import Mapping
from dataclasses import dataclass
import hashlib
import inspect
import logging
from typing import Any, Callable, Optional

from markupsafe import Markup, escape

from livecanvas.errors import CompileError
from livecanvas.markup import error_markup, h, render_html

logger = logging.getLogger(__name__)

FACTORY_NAME = "__widget_factory__"

# Hooks a mapping record may provide
RECORD_HOOKS = ("show", "handle_expected_doc_change")


@dataclass(frozen=True)
class WidgetTypes:
    """Contract tags of a widget: what it consumes and what it produces."""
    expects: Optional[str] = None
    exposes: Optional[str] = None


NO_TYPES = WidgetTypes()


class Widget:
    """Base class for widget definitions.

    Subclasses implement ``show(value, expected)`` and may implement
    ``handle_expected_doc_change(value, expected)``, which runs whenever the
    consumed upstream content changes. ``change(updater)`` replaces the
    document's own content with ``updater(current_value)``.
    """
    types = NO_TYPES

    _change: Optional[Callable[[Any], Any]] = None

    def attach(self, change: Callable[[Any], Any]) -> None:
        """Bind the instance to its document's content."""
        self._change = change

    def change(self, updater: Any) -> Any:
        if self._change is None:
            raise RuntimeError(f"{type(self).__name__} is not attached to a document")
        return self._change(updater)


class ErrorWidget(Widget):
    """Inert widget rendering a compile error."""

    def __init__(self, error: CompileError):
        self.error = error

    def show(self, value, expected):
        return error_markup(str(self.error))


class NotImplementedWidget(Widget):
    """Placeholder for definitions without ``show``."""

    def show(self, value, expected):
        return h("div", None, h("code", None, "show"), " not implemented")


def supports_expected_change(instance: Any) -> bool:
    """True when the instance reacts to upstream changes."""
    return callable(getattr(instance, "handle_expected_doc_change", None))


@dataclass(frozen=True)
class WidgetDefinition:
    """Recipe for live widget instances.

    Each document gets its own instance so per-instance attributes never leak
    between documents showing the same widget.
    """
    name: str
    factory: Callable[[], Any]

    def instantiate(self, change: Callable[[Any], Any]) -> Any:
        instance = self.factory()
        attach = getattr(instance, "attach", None)
        if callable(attach):
            attach(change)
        return instance


@dataclass(frozen=True)
class CompiledWidget:
    """Result of compiling one widget source.

    Never mutated: a recompilation produces a new CompiledWidget which replaces
    the previous one wholesale.
    """
    name: str
    definition: WidgetDefinition
    contract: WidgetTypes
    identity_token: str
    error: Optional[CompileError] = None
    implemented: bool = True

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def expects(self) -> Optional[str]:
        return self.contract.expects

    @property
    def exposes(self) -> Optional[str]:
        return self.contract.exposes


def identity_token_for(source: str) -> str:
    """Fingerprint of a widget source."""
    return hashlib.md5(source.encode("utf-8")).hexdigest()


def widget_namespace(name: str) -> dict:
    """Fresh globals for evaluating one widget source."""
    return {
        "__builtins__": builtins,
        "__name__": f"livecanvas.widgets.{name}",
        "Widget": Widget,
        "WidgetTypes": WidgetTypes,
        "h": h,
        "Markup": Markup,
        "escape": escape,
        "render_html": render_html,
    }


def _is_code_line(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def dedent_source(source: str) -> str:
    """Remove the indentation shared by the code lines of source.

    Blank and comment-only lines do not count towards the shared margin, as
    Python ignores them when checking indentation. Comment lines indented
    less than the margin are moved to column 0.
    """
    lines = source.splitlines()
    indents = [len(line) - len(line.lstrip()) for line in lines if _is_code_line(line)]
    if not indents:
        return source
    margin = min(indents)
    dedented = []
    for line in lines:
        if line[:margin].strip() == "":
            dedented.append(line[margin:])
        elif not _is_code_line(line):
            dedented.append(line.lstrip())
        else:
            dedented.append(line)
    return "\n".join(dedented) + "\n"


def _transform(source: str, filename: str):
    """Parse the snippet and wrap its statements in a factory function."""
    body = ast.parse(dedent_source(source), filename=filename, mode="exec")
    module = ast.parse(f"def {FACTORY_NAME}():\n    pass\n", filename=filename, mode="exec")
    module.body[0].body = body.body or [ast.Pass()]
    ast.fix_missing_locations(module)
    return compile(module, filename, "exec")


def _evaluate(code, name: str) -> Any:
    namespace = widget_namespace(name)
    exec(code, namespace)
    return namespace[FACTORY_NAME]()


def _read_label(types: Any, key: str) -> Optional[str]:
    if types is None:
        return None
    label = types.get(key) if isinstance(types, Mapping) else getattr(types, key, None)
    if label is None or isinstance(label, str):
        return label
    return str(label)


def contract_of(value: Any) -> WidgetTypes:
    """Read the expects/exposes pair declared by a definition."""
    types = value.get("types") if isinstance(value, Mapping) else getattr(value, "types", None)
    if isinstance(types, WidgetTypes):
        return types
    return WidgetTypes(expects=_read_label(types, "expects"), exposes=_read_label(types, "exposes"))


def _accepts_change(fn: Callable) -> bool:
    try:
        parameters = inspect.signature(fn).parameters
    except (TypeError, ValueError):
        return False
    return "change" in parameters or any(
        p.kind is inspect.Parameter.VAR_KEYWORD for p in parameters.values()
    )


def _record_hook(fn: Callable) -> Callable:
    """Adapt a record function ``fn(value, expected)`` to a widget method.

    A function declaring a ``change`` parameter receives the instance's
    ``change`` as that keyword argument.
    """
    if _accepts_change(fn):
        def hook(self, value, expected):
            return fn(value, expected, change=self.change)
    else:
        def hook(self, value, expected):
            return fn(value, expected)
    hook.__name__ = getattr(fn, "__name__", "hook")
    return hook


def record_widget_class(record: Mapping, name: str = "") -> type:
    """Widget class calling the functions of a mapping record.

    Only the hooks present in the record are defined on the class, so
    ``supports_expected_change`` still matches the record's shape.
    """
    namespace = {"types": contract_of(record)}
    for hook_name in RECORD_HOOKS:
        fn = record.get(hook_name)
        if callable(fn):
            namespace[hook_name] = _record_hook(fn)
    return type(name or "RecordWidget", (Widget,), namespace)


def _factory_for(value: Any, name: str) -> Optional[Callable[[], Any]]:
    """Instance factory for a definition exposing ``show``, else None."""
    if isinstance(value, type):
        if not callable(getattr(value, "show", None)):
            return None
        return value
    if isinstance(value, Mapping):
        if not callable(value.get("show")):
            return None
        return record_widget_class(value, name)
    if callable(getattr(value, "show", None)):
        return lambda: copy.copy(value)
    return None


def compile_widget(source: str, name: str = "") -> CompiledWidget:
    """Compile widget source text.

    Args:
        source: Widget body text
        name: Widget name, used for filenames and log messages

    Returns:
        CompiledWidget; failures are captured in ``error`` and rendered by an
        ErrorWidget definition.
    """
    token = identity_token_for(source)
    filename = f"<widget {name}>" if name else "<widget>"

    try:
        code = _transform(source, filename)
    except (SyntaxError, ValueError, MemoryError, RecursionError) as e:
        return _failed(name, token, CompileError.transform(e))

    try:
        value = _evaluate(code, name)
    except (Exception, SystemExit) as e:
        return _failed(name, token, CompileError.evaluation(e))

    factory = _factory_for(value, name)
    if factory is None:
        logger.debug(f"Widget {name!r} has no show(), using placeholder")
        return CompiledWidget(
            name=name,
            definition=WidgetDefinition(name=name, factory=NotImplementedWidget),
            contract=contract_of(value) if value is not None else NO_TYPES,
            identity_token=token,
            implemented=False,
        )

    contract = contract_of(value)
    logger.debug(f"Compiled widget {name!r}: expects={contract.expects!r} exposes={contract.exposes!r}")
    return CompiledWidget(
        name=name,
        definition=WidgetDefinition(name=name, factory=factory),
        contract=contract,
        identity_token=token,
    )


def _failed(name: str, token: str, error: CompileError) -> CompiledWidget:
    logger.warning(f"Widget {name!r} failed at {error.stage} stage: {error}")
    return CompiledWidget(
        name=name,
        definition=WidgetDefinition(name=name, factory=lambda: ErrorWidget(error)),
        contract=NO_TYPES,
        identity_token=token,
        error=error,
    )
