"""Tests for the content engine."""

import pytest

from marginalia.editor.content import ContentEngine, engine_from_text
from marginalia.editor.positions import Anchor
from marginalia.editor.tree import comment_mark, text_node


@pytest.fixture
def engine() -> ContentEngine:
    return engine_from_text("Hello world", "Second")


def test_size_and_text(engine):
    assert engine.size == 21
    assert engine.get_text() == "Hello world\n\nSecond"
    assert engine.text_between(7, 16, " | ") == "world | Se"


def test_hard_break_counts_as_newline():
    engine = ContentEngine(
        {
            "type": "doc",
            "content": [
                {
                    "type": "paragraph",
                    "content": [text_node("one"), {"type": "hardBreak"}, text_node("two")],
                }
            ],
        }
    )

    assert engine.size == 9
    assert engine.get_text() == "one\ntwo"


def test_select_clamps_and_orders(engine):
    engine.select(50, 6)

    assert engine.selection == (6, 21)


def test_selected_text_empty_for_cursor(engine):
    engine.select(3)

    assert engine.selected_text() == ""


def test_apply_mark_to_selection(engine):
    engine.select(1, 6)

    assert engine.apply_mark("t1") is True
    assert engine.get_text_for("t1") == "Hello"
    assert engine.get_all_positions() == {"t1": Anchor(text="Hello", position=1)}


def test_apply_mark_rejects_empty_range(engine):
    assert engine.apply_mark("t1", 4, 4) is False
    assert engine.get_all_positions() == {}


def test_apply_mark_replaces_existing_comment(engine):
    engine.apply_mark("t1", 1, 12)
    engine.apply_mark("t2", 7, 12)

    assert engine.get_text_for("t1") == "Hello "
    assert engine.get_text_for("t2") == "world"


def test_typing_inside_marked_text_extends_anchor(engine):
    engine.apply_mark("t1", 1, 6)

    engine.insert_text(3, "XX")

    assert engine.get_text_for("t1") == "HeXXllo"


def test_typing_after_marked_text_does_not_inherit_comment(engine):
    engine.apply_mark("t1", 1, 6)

    engine.insert_text(6, "!")

    assert engine.get_text_for("t1") == "Hello"
    assert engine.get_text().startswith("Hello! world")


def test_typing_after_bold_text_keeps_bold():
    engine = ContentEngine(
        {
            "type": "doc",
            "content": [
                {
                    "type": "paragraph",
                    "content": [text_node("bold", [{"type": "bold"}, comment_mark("t1")]), text_node(" rest")],
                }
            ],
        }
    )

    engine.insert_text(5, "er")

    first = engine.doc["content"][0]["content"]
    assert first[0]["text"] == "bold"
    assert first[1] == {"type": "text", "text": "er", "marks": [{"type": "bold"}]}


def test_insert_shifts_selection(engine):
    engine.select(7, 12)

    engine.insert_text(1, ">> ")

    assert engine.selection == (10, 15)
    assert engine.selected_text() == "world"


def test_delete_range_keeps_blocks(engine):
    engine.delete_range(10, 15)

    assert engine.get_text() == "Hello wor\n\necond"
    assert len(engine.doc["content"]) == 2


def test_delete_across_blocks_keeps_selection_on_same_text():
    engine = engine_from_text("abc", "def")
    engine.select(8, 9)

    engine.delete_range(2, 8)

    assert engine.get_text() == "a\n\nf"
    assert engine.selection == (4, 5)
    assert engine.selected_text() == "f"


def test_delete_across_blocks_maps_positions_inside_range():
    engine = engine_from_text("abc", "def")
    engine.select(7, 9)

    engine.delete_range(2, 8)

    assert engine.selection == (4, 5)


def test_delete_marked_text_removes_anchor(engine):
    engine.apply_mark("t1", 7, 12)

    engine.delete_range(7, 12)

    assert engine.get_all_positions() == {}


def test_remove_mark_counts_and_notifies_only_on_change(engine):
    events = []
    engine.apply_mark("t1", 1, 6)
    engine.subscribe(events.append)

    assert engine.remove_mark("t1") == 1
    assert len(events) == 1
    assert engine.remove_mark("t1") == 0
    assert engine.remove_mark() == 0
    assert len(events) == 1


def test_set_content_can_skip_notification(engine):
    events = []
    engine.subscribe(events.append)

    engine.set_content({"type": "doc", "content": [{"type": "paragraph"}]}, emit_update=False)
    assert events == []

    engine.set_content(None)
    assert events == [engine]


def test_unsubscribe_stops_notifications(engine):
    events = []
    unsubscribe = engine.subscribe(events.append)
    unsubscribe()
    unsubscribe()

    engine.insert_text(1, "x")

    assert events == []


def test_failing_listener_does_not_block_others(engine):
    events = []

    def broken(_engine):
        raise RuntimeError("boom")

    engine.subscribe(broken)
    engine.subscribe(events.append)

    engine.insert_text(1, "x")

    assert events == [engine]


def test_to_json_is_a_copy(engine):
    snapshot = engine.to_json()
    snapshot["content"].clear()

    assert engine.size == 21
