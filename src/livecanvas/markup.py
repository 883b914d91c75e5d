"""
Templating primitives available to widget code.

Widgets build output with ``h(tag, attrs, *children)``, which returns an
Element tree. render_html turns any renderable into escaped markupsafe
Markup:

    >>> render_html(h("ul", None, [h("li", None, item) for item in ["a", "<b>"]]))
    Markup('<ul><li>a</li><li>&lt;b&gt;</li></ul>')

Renderables are Element, Markup, str, numbers, None/bool (render nothing) and
arbitrarily nested lists or tuples of those. Attribute values that are
callables (event handlers) stay on the Element for the surrounding chrome but
are never serialized.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from markupsafe import Markup, escape

VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
})


@dataclass(frozen=True)
class Element:
    """One node of a widget's output tree."""
    tag: str
    attrs: Dict[str, Any] = field(default_factory=dict)
    children: Tuple[Any, ...] = ()

    def handlers(self) -> Dict[str, Any]:
        """Callable attributes, e.g. ``on_change``."""
        return {key: value for key, value in self.attrs.items() if callable(value)}

    def __html__(self) -> Markup:
        return render_html(self)


def h(tag: str, attrs: Optional[Dict[str, Any]] = None, *children: Any) -> Element:
    """Create an Element.

    ``class_`` and ``for_`` are accepted in attrs as spellings of the
    reserved words ``class`` and ``for``.
    """
    normalized = {}
    for key, value in (attrs or {}).items():
        if key.endswith("_") and len(key) > 1:
            key = key[:-1]
        normalized[key] = value
    return Element(tag=tag, attrs=normalized, children=tuple(children))


def _render_attrs(attrs: Dict[str, Any]) -> str:
    parts = []
    for key, value in attrs.items():
        if callable(value) or value is None or value is False:
            continue
        if value is True:
            parts.append(f" {escape(key)}")
        else:
            parts.append(f' {escape(key)}="{escape(value)}"')
    return "".join(parts)


def render_html(node: Any) -> Markup:
    """Serialize a renderable to Markup, escaping all text."""
    if node is None or isinstance(node, bool):
        return Markup("")
    if isinstance(node, Element):
        opening = f"<{escape(node.tag)}{_render_attrs(node.attrs)}>"
        if node.tag in VOID_TAGS:
            return Markup(opening)
        inner = "".join(render_html(child) for child in node.children)
        return Markup(f"{opening}{inner}</{escape(node.tag)}>")
    if isinstance(node, (list, tuple)):
        return Markup("".join(render_html(child) for child in node))
    return escape(node)


def error_markup(message: str) -> Markup:
    """Inline error display used for compile and render failures."""
    return render_html(h("pre", {"class": "red"}, message))
