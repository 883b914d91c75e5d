"""Integration tests for the canvas runtime.

Covers the flows the chrome drives: creating documents from the chooser,
connecting them, editing widget source live and keyboard commands.
"""
import logging

import pytest

from livecanvas import BUILTIN_WIDGETS, EMPTY_WIDGET_SOURCE, Canvas, Rect, TimerQueue
from widget_sources import BROKEN_SOURCE, COUNTER_SOURCE

ECHO_SOURCE = '''
    class Echo(Widget):
        types = WidgetTypes(expects="Text", exposes="Text")

        def show(self, value, expected):
            return value

    return Echo
'''

FLAKY_SOURCE = '''
    class Flaky(Widget):
        def show(self, value, expected):
            if value == "boom":
                raise ValueError(value)
            return h("b", None, value)

    return Flaky
'''


def rendered(canvas, doc_id):
    return next(item for item in canvas.render() if item.id == doc_id)


@pytest.fixture
def pipeline(canvas):
    """Editable Note -> Text To List -> Pretty List."""
    note = canvas.create_document("Editable Note", 0, 0)
    to_list = canvas.create_document("Text To List", 400, 0)
    viewer = canvas.create_document("Pretty List", 800, 0)
    canvas.connect(to_list.id, note.id)
    canvas.connect(viewer.id, to_list.id)
    return note, to_list, viewer


class TestPropagation:
    """Upstream edits flow through connected widgets."""

    def test_recorder_sees_each_upstream_value_once(self, canvas):
        d1 = canvas.create_document("Editable Note", 0, 0)
        d2 = canvas.create_document("Recorder", 400, 0)
        canvas.set_content(d1.id, "hello")

        canvas.connect(d2.id, d1.id)
        assert canvas.value_of(d2.id) == ["hello"]

        canvas.set_content(d1.id, "world")
        assert canvas.value_of(d2.id) == ["hello", "world"]

    def test_clone_connected_to_its_source_ignores_own_edits(self, canvas):
        recorder = canvas.create_document("Recorder", 0, 0)
        clone = canvas.documents.clone(recorder.id)

        canvas.connect(clone.id, recorder.id)
        canvas.set_content(recorder.id, ["x"])

        assert canvas.value_of(clone.id) == ["x"]

    def test_pipeline_cascades(self, canvas, pipeline):
        note, to_list, viewer = pipeline

        canvas.set_content(note.id, "- milk\n- eggs\nnot an item")

        assert canvas.value_of(to_list.id) == ["milk", "eggs"]
        assert canvas.expected_value_of(viewer.id) == ["milk", "eggs"]
        html = rendered(canvas, viewer.id).html
        assert '<li key="milk">milk</li>' in html
        assert "Number of items on your list: 2" in html
        assert "transformed lines: 2" in rendered(canvas, to_list.id).html

    def test_widget_change_callback_edits_content(self, canvas):
        note = canvas.create_document("Editable Note", 0, 0)
        instance = canvas.live_document(note).instance
        textarea = instance.show(canvas.value_of(note.id), None)

        textarea.handlers()["on_change"]("typed")

        assert canvas.value_of(note.id) == "typed"


class TestRender:
    """Rendered documents carry output, contract and grouping."""

    def test_connector_labels(self, canvas):
        note = canvas.create_document("Editable Note", 0, 0)
        to_list = canvas.create_document("Text To List", 400, 0)

        assert rendered(canvas, note.id).connector_label is None
        assert rendered(canvas, to_list.id).connector_label == "Expects"

        canvas.connect(to_list.id, note.id)
        item = rendered(canvas, to_list.id)
        assert item.connector_label == "Uses"
        assert (item.expects, item.exposes) == ("Text", "List")

    def test_groups_and_colors(self, canvas, pipeline):
        note, to_list, viewer = pipeline
        loner = canvas.create_document("Editable Note", 0, 500)

        items = {item.id: item for item in canvas.render()}

        assert items[note.id].group == items[to_list.id].group == items[viewer.id].group
        assert items[loner.id].group != items[note.id].group
        assert items[note.id].color in canvas.config.group_palette
        assert items[loner.id].color is None

    def test_render_reflects_geometry_and_selection(self, canvas):
        doc = canvas.create_document("Editable Note", 10, 20)

        item = rendered(canvas, doc.id)

        assert item.rect == Rect(10, 20, 300, 200)
        assert item.selected
        assert item.widget_name == "Editable Note"


class TestFaultIsolation:
    """A broken widget stays local to its document."""

    def test_show_failure_is_local(self, canvas):
        note = canvas.create_document("Editable Note", 0, 0)
        canvas.set_content(note.id, "fine")
        broken = canvas.create_document("Broken", 400, 0)

        items = {item.id: item for item in canvas.render()}

        assert items[broken.id].has_error
        assert "ZeroDivisionError" in items[broken.id].html
        assert not items[note.id].has_error
        assert ">fine</textarea>" in items[note.id].html
        assert canvas.registry.source("Broken") == BROKEN_SOURCE

    def test_last_good_output_is_kept_under_error(self, canvas):
        canvas.registry.add("Flaky", FLAKY_SOURCE)
        doc = canvas.create_document("Flaky", 0, 0)
        canvas.set_content(doc.id, "ok")
        assert rendered(canvas, doc.id).html == "<b>ok</b>"

        canvas.set_content(doc.id, "boom")
        item = rendered(canvas, doc.id)

        assert item.has_error
        assert "ValueError: boom" in item.html
        assert item.last_good == "<b>ok</b>"

    def test_hook_failure_is_local(self, canvas):
        canvas.registry.add("Bad Hook", '''
            class BadHook(Widget):
                types = WidgetTypes(expects="Text", exposes=None)

                def handle_expected_doc_change(self, value, expected):
                    raise KeyError("nope")

                def show(self, value, expected):
                    return "never shown"

            return BadHook
        ''')
        note = canvas.create_document("Editable Note", 0, 0)
        bad = canvas.create_document("Bad Hook", 400, 0)
        recorder = canvas.create_document("Recorder", 800, 0)

        canvas.connect(bad.id, note.id)
        canvas.connect(recorder.id, note.id)
        canvas.set_content(note.id, "x")

        assert rendered(canvas, bad.id).has_error
        assert canvas.value_of(recorder.id) == ["", "x"]

    def test_constructor_failure_is_local(self, canvas):
        canvas.registry.add("Needs Args", '''
            class NeedsArgs(Widget):
                def __init__(self, required):
                    self.required = required

                def show(self, value, expected):
                    return "unreachable"

            return NeedsArgs
        ''')
        doc = canvas.create_document("Needs Args", 0, 0)

        item = rendered(canvas, doc.id)

        assert item.has_error
        assert "TypeError" in item.html

    def test_malformed_source_renders_syntax_error(self, canvas, timers):
        doc = canvas.create_document("Editable Note", 0, 0)
        canvas.handle_key("toggle-edit")

        canvas.edit_source("return class {")
        timers.advance(1.0)

        item = rendered(canvas, doc.id)
        assert "SyntaxError" in item.html
        assert canvas.editing_source() == "return class {"


class TestHotReload:
    """Source edits take effect after the debounce window."""

    def test_fixing_source_clears_error(self, canvas, timers):
        doc = canvas.create_document("Broken", 0, 0)
        assert rendered(canvas, doc.id).has_error

        canvas.handle_key("ctrl+e")
        assert canvas.editing_widget_name == "Broken"
        canvas.edit_source(BROKEN_SOURCE.replace("1 / 0", "'repaired'"))

        assert rendered(canvas, doc.id).has_error
        timers.advance(1.0)

        item = rendered(canvas, doc.id)
        assert not item.has_error
        assert item.html == "repaired"

    def test_reload_discards_instance_state(self, canvas, timers):
        doc = canvas.create_document("Counter", 0, 0)
        canvas.render()
        assert rendered(canvas, doc.id).html == "<span>2</span>"

        canvas.registry.set_source("Counter", COUNTER_SOURCE + "\n# tweak\n")
        timers.advance(1.0)

        assert rendered(canvas, doc.id).html == "<span>1</span>"

    def test_contract_follows_recompilation(self, canvas):
        doc = canvas.create_document("Editable Note", 0, 0)
        canvas.registry.set_source("Editable Note", BUILTIN_WIDGETS["Pretty List"])
        canvas.flush()

        assert canvas.contract_of(doc.id) == ("List", None)

    def test_edit_without_open_editor_is_ignored(self, canvas):
        canvas.edit_source("return None")

        assert not canvas.registry.is_pending("Editable Note")
        assert canvas.editing_source() == ""


class TestChooser:
    """Creating documents through the widget chooser."""

    def test_double_click_then_choose(self, canvas):
        canvas.double_click(30, 40)
        assert canvas.is_chooser_visible

        doc = canvas.choose_widget("Pretty List")

        assert doc.rect == Rect(30, 40, 300, 200)
        assert doc.widget_name == "Pretty List"
        assert not canvas.is_chooser_visible

    def test_new_name_seeds_placeholder(self, canvas):
        canvas.double_click(0, 0)

        assert canvas.choose_widget(None) is None
        assert canvas.is_name_input_visible
        assert not canvas.is_chooser_visible

        doc = canvas.choose_widget("Brand New")

        assert canvas.registry.source("Brand New") == EMPTY_WIDGET_SOURCE
        assert "Brand New" in canvas.widget_names()
        assert "Edit Me!" in rendered(canvas, doc.id).html
        assert not canvas.is_name_input_visible

    def test_each_document_gets_new_content(self, canvas):
        first = canvas.create_document("Editable Note", 0, 0)
        second = canvas.create_document("Editable Note", 0, 0)

        assert first.content_id != second.content_id


class TestKeyboard:
    """Copy, paste, delete and edit commands."""

    def test_copy_paste_clones_with_offset(self, canvas):
        doc = canvas.create_document("Editable Note", 10, 10)

        assert canvas.handle_key("ctrl+c")
        assert canvas.handle_key("ctrl+v")

        clone = canvas.documents.selected()
        assert clone.id != doc.id
        assert clone.rect == Rect(110, 110, 300, 200)
        assert clone.content_id == doc.content_id

    def test_paste_without_copy(self, canvas):
        assert canvas.paste() is None

    def test_paste_after_source_deleted(self, canvas):
        canvas.create_document("Editable Note", 0, 0)
        canvas.handle_key("copy")
        canvas.handle_key("delete")

        assert canvas.paste() is None
        assert canvas.copied_doc_id is None

    def test_delete_selected(self, canvas):
        keep = canvas.create_document("Editable Note", 0, 0)
        drop = canvas.create_document("Editable Note", 0, 0)

        canvas.handle_key("ctrl+backspace")

        assert drop.id not in canvas.documents
        assert keep.id in canvas.documents
        assert drop.content_id not in canvas.contents

    def test_delete_with_nothing_selected(self, canvas):
        canvas.create_document("Editable Note", 0, 0)
        canvas.click_background()

        assert canvas.delete_selected() is None
        assert len(canvas.documents) == 1

    def test_toggle_edit_without_selection_closes_editor(self, canvas):
        canvas.create_document("Editable Note", 0, 0)
        canvas.handle_key("toggle-edit")
        assert canvas.editing_widget_name == "Editable Note"

        canvas.click_background()
        canvas.handle_key("toggle-edit")
        assert canvas.editing_widget_name is None

    def test_unknown_chord(self, canvas):
        assert not canvas.handle_key("ctrl+z")

    def test_deleting_producer_severs_consumer(self, canvas, pipeline):
        note, to_list, viewer = pipeline
        canvas.click_document(note.id)

        canvas.handle_key("delete")

        assert to_list.expected_content_id is None
        assert rendered(canvas, to_list.id).connector_label == "Expects"


class TestPointer:
    """Dragging, resizing and connecting with the pointer."""

    def test_drag_follows_pointer_with_grab_offset(self, canvas):
        doc = canvas.create_document("Editable Note", 100, 100)

        canvas.drag_start(doc.id, 110, 120)
        assert canvas.drag(doc.id, 210, 320)
        assert (doc.rect.x, doc.rect.y) == (200, 300)

        assert not canvas.drag(doc.id, 0, 0)
        assert (doc.rect.x, doc.rect.y) == (200, 300)

        canvas.drag_end(doc.id)
        assert canvas.drag_adjust == (0, 0)

    def test_drag_selects(self, canvas):
        first = canvas.create_document("Editable Note", 0, 0)
        canvas.create_document("Editable Note", 0, 0)

        canvas.drag_start(first.id, 0, 0)

        assert canvas.documents.selected() is first

    def test_resize_clamps(self, canvas):
        doc = canvas.create_document("Editable Note", 0, 0)

        canvas.resize_start(doc.id, 310, 210)
        canvas.resize(doc.id, 50, 50)
        assert (doc.rect.w, doc.rect.h) == (200, 100)

        canvas.resize(doc.id, 410, 310)
        assert (doc.rect.w, doc.rect.h) == (400, 300)

        assert not canvas.resize(doc.id, 0, 0)
        canvas.resize_end(doc.id)
        assert (doc.rect.w, doc.rect.h) == (400, 300)

    def test_pill_drop_matches_types(self, canvas):
        note = canvas.create_document("Editable Note", 0, 0)
        to_list = canvas.create_document("Text To List", 400, 0)
        viewer = canvas.create_document("Pretty List", 800, 0)

        canvas.pill_drag_start(note.id)

        assert canvas.can_drop_pill(to_list.id)
        assert not canvas.can_drop_pill(viewer.id)
        assert not canvas.can_drop_pill(note.id)

        assert not canvas.drop_pill(viewer.id)
        assert viewer.expected_content_id is None
        assert canvas.dragged_pill_doc_id is None

        canvas.pill_drag_start(note.id)
        assert canvas.drop_pill(to_list.id)
        assert to_list.expected_content_id == note.content_id

    def test_pill_is_not_accepted_by_a_clone(self, canvas):
        canvas.registry.add("Echo", ECHO_SOURCE)
        echo = canvas.create_document("Echo", 0, 0)
        clone = canvas.documents.clone(echo.id)
        other = canvas.create_document("Echo", 800, 0)

        canvas.pill_drag_start(echo.id)

        assert canvas.can_drop_pill(other.id)
        assert not canvas.can_drop_pill(clone.id)
        assert not canvas.drop_pill(clone.id)
        assert clone.expected_content_id is None

    def test_connect_ignores_type_mismatch(self, canvas):
        note = canvas.create_document("Editable Note", 0, 0)
        viewer = canvas.create_document("Pretty List", 400, 0)

        canvas.connect(viewer.id, note.id)

        assert viewer.expected_content_id == note.content_id
        assert not rendered(canvas, viewer.id).has_error


def test_default_canvas_has_builtins():
    canvas = Canvas()

    assert canvas.widget_names() == list(BUILTIN_WIDGETS)
    assert canvas.scheduler is canvas.registry.scheduler


def test_scheduler_is_ignored_when_registry_is_given(registry, caplog):
    with caplog.at_level(logging.WARNING, logger="livecanvas.canvas"):
        canvas = Canvas(registry=registry, scheduler=TimerQueue())

    assert canvas.scheduler is registry.scheduler
    assert "scheduler ignored" in caplog.text
