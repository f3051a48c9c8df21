"""Tests for Context Pack extraction."""

import pytest

from marginalia.editor.content import ContentEngine
from marginalia.editor.context import ContextPackBuilder, outline_from_json
from marginalia.editor.tree import text_node
from marginalia.schemas.ai import Source


def _heading(level, text):
    return {"type": "heading", "attrs": {"level": level}, "content": [text_node(text)]}


def _paragraph(text):
    return {"type": "paragraph", "content": [text_node(text)]}


@pytest.fixture
def engine() -> ContentEngine:
    return ContentEngine(
        {
            "type": "doc",
            "content": [
                _heading(1, "Title"),
                _paragraph("A"),
                _paragraph("B"),
                _paragraph("C"),
                _paragraph("D"),
                _heading(2, "Section"),
                _heading(4, "Too deep"),
                _paragraph("E"),
            ],
        }
    )


def test_outline_keeps_h1_to_h3():
    doc = {
        "type": "doc",
        "content": [_heading(1, "One"), _paragraph("x"), _heading(3, "Three"), _heading(5, "Five")],
    }

    assert outline_from_json(doc) == "# One\n### Three"


def test_local_context_is_two_before_and_one_after(engine):
    engine.select(14, 15)

    assert ContextPackBuilder(engine).local_context() == "A\n\nB\n\nC\n\nD"


def test_local_context_at_document_start(engine):
    engine.select(2, 4)

    assert ContextPackBuilder(engine).local_context() == "Title\n\nA"


def test_build_omits_full_document_unless_requested(engine):
    engine.select(14, 15)
    builder = ContextPackBuilder(engine)

    pack = builder.build()

    assert pack.selected_text == "C"
    assert pack.outline == "# Title\n## Section"
    assert pack.full_doc_text is None
    assert pack.sources is None

    full = builder.build(include_full_doc=True)
    assert full.full_doc_text.startswith("Title\n\nA\n\nB")


def test_build_passes_sources(engine):
    engine.select(14, 15)
    sources = [Source(id="s1", title="Kant", excerpt="Act only...")]

    pack = ContextPackBuilder(engine).build(sources=sources)

    assert pack.sources == sources


def test_empty_document_uses_fallback_selection():
    pack = ContextPackBuilder(ContentEngine()).build(fallback_selection="  snapshot  ")

    assert pack.selected_text == "snapshot"
    assert pack.local_context is None
    assert pack.outline is None


def test_extractor_failure_degrades_to_empty(engine, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("tree corrupted")

    monkeypatch.setattr(engine, "get_text", broken)
    monkeypatch.setattr(engine, "selected_text", broken)
    builder = ContextPackBuilder(engine)

    pack = builder.build(include_full_doc=True, fallback_selection="kept")

    assert pack.full_doc_text is None
    assert pack.selected_text == "kept"
    assert pack.outline == "# Title\n## Section"
