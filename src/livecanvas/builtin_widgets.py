"""
Widget sources shipped with the canvas.

EMPTY_WIDGET_SOURCE seeds a widget created under a new name. BUILTIN_WIDGETS
form a small pipeline: an editable note exposing Text, a converter turning
the "- " bullet lines of a Text into a List, and a list viewer.
"""

EMPTY_WIDGET_SOURCE = '''
MyWidgetTypes = WidgetTypes(expects=None, exposes=None)


class MyWidget(Widget):
    types = MyWidgetTypes

    def show(self, value, expected):
        return h("h1", None, "Edit Me!")


return MyWidget
'''

EDITABLE_NOTE_SOURCE = '''
EditableNoteTypes = WidgetTypes(expects=None, exposes="Text")


class EditableNote(Widget):
    types = EditableNoteTypes

    def show(self, value, expected):
        return h(
            "textarea",
            {
                "class": "m0 bw1 w-100 h-100 b--light-gray",
                "on_change": lambda text: self.change(lambda _: text),
            },
            value,
        )


return EditableNote
'''

TEXT_TO_LIST_SOURCE = '''
TextToListTypes = WidgetTypes(expects="Text", exposes="List")


class TextToList(Widget):
    types = TextToListTypes

    def handle_expected_doc_change(self, value, expected):
        lines = (expected or "").split("\\n")
        items = [
            line.strip().replace("- ", "", 1)
            for line in lines
            if line.strip().startswith("-")
        ]
        self.change(lambda _: items)

    def show(self, value, expected):
        if value:
            return h("div", None, f"transformed lines: {len(value)}")
        return h("div", None, "transforms text to list")


return TextToList
'''

PRETTY_LIST_SOURCE = '''
PrettyListTypes = WidgetTypes(expects="List", exposes=None)


class PrettyList(Widget):
    types = PrettyListTypes

    def show(self, value, expected):
        items = expected or []
        return h(
            "div",
            None,
            h("ul", None, [h("li", {"key": item}, item) for item in items]),
            h("div", None, f"Number of items on your list: {len(items)}"),
        )


return PrettyList
'''

BUILTIN_WIDGETS = {
    "Editable Note": EDITABLE_NOTE_SOURCE,
    "Text To List": TEXT_TO_LIST_SOURCE,
    "Pretty List": PRETTY_LIST_SOURCE,
}
