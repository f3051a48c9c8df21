"""
Content engine over a TipTap/ProseMirror JSON document.

The engine owns the content tree and the current selection. Comment marks
live only here; thread records never store coordinates. Every edit emits a
change notification to subscribers, which is what drives autosave and mark
reconciliation.
"""

import copy
import logging
from collections.abc import Callable
from typing import Any, Protocol

from marginalia.editor.positions import Anchor, PositionResolver
from marginalia.editor.tree import (
    Node,
    comment_id,
    comment_mark,
    content_size,
    is_leaf,
    is_text,
    is_textblock,
    iter_nodes,
    merge_text_nodes,
    node_size,
    text_node,
    without_comment,
)
from marginalia.schemas.documents import empty_doc

logger = logging.getLogger(__name__)

ChangeListener = Callable[["ContentEngine"], None]


class MarkCapabilities(Protocol):
    """What the comment layer needs from the editor. Held by explicit reference."""

    def apply_mark(self, thread_id: str, from_: int | None = None, to: int | None = None) -> bool: ...

    def remove_mark(self, *thread_ids: str) -> int: ...

    def get_text_for(self, thread_id: str) -> str | None: ...

    def get_all_positions(self) -> dict[str, Anchor]: ...


class ContentEngine:
    """Rich-text content tree with selection, edits, comment marks and change events."""

    def __init__(self, content: Node | None = None, resolver: PositionResolver | None = None) -> None:
        self._doc: Node = copy.deepcopy(content) if content else empty_doc()
        self._selection: tuple[int, int] = (0, 0)
        self._listeners: list[ChangeListener] = []
        self._resolver = resolver or PositionResolver()

    # =========================================================================
    # CONTENT & EVENTS
    # =========================================================================

    @property
    def doc(self) -> Node:
        """The live tree. Treat as read-only; edit through engine methods."""
        return self._doc

    @property
    def size(self) -> int:
        return content_size(self._doc)

    def to_json(self) -> Node:
        return copy.deepcopy(self._doc)

    def set_content(self, content: Node | None, *, emit_update: bool = True) -> None:
        """Replace the whole document. Loading stored content passes emit_update=False."""
        self._doc = copy.deepcopy(content) if content else empty_doc()
        self._selection = (0, 0)
        if emit_update:
            self._emit()

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Call `listener(engine)` after every edit. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Content change listener failed")

    # =========================================================================
    # SELECTION & TEXT
    # =========================================================================

    @property
    def selection(self) -> tuple[int, int]:
        return self._selection

    def select(self, from_: int, to: int | None = None) -> None:
        to = from_ if to is None else to
        start, end = sorted((from_, to))
        limit = self.size
        self._selection = (max(0, min(start, limit)), max(0, min(end, limit)))

    def text_between(self, from_: int, to: int, block_separator: str = "\n") -> str:
        """Text in [from_, to), with `block_separator` between blocks."""
        parts: list[str] = []
        separated = True
        for node, pos in iter_nodes(self._doc):
            end = pos + node_size(node)
            if pos >= to:
                break
            if end <= from_:
                continue
            if is_text(node):
                text = node.get("text", "")
                parts.append(text[max(from_, pos) - pos : min(to, end) - pos])
                separated = not block_separator
            elif is_leaf(node):
                if node.get("type") == "hardBreak":
                    parts.append("\n")
                separated = not block_separator
            elif not separated:
                parts.append(block_separator)
                separated = True
        return "".join(parts)

    def get_text(self, block_separator: str = "\n\n") -> str:
        return self.text_between(0, self.size, block_separator)

    def selected_text(self) -> str:
        from_, to = self._selection
        if from_ == to:
            return ""
        return self.text_between(from_, to, "\n")

    # =========================================================================
    # EDITS
    # =========================================================================

    def insert_text(self, pos: int, text: str) -> None:
        """
        Insert text at a position inside a textblock.

        Text typed strictly inside a text node inherits all of its marks.
        At a node boundary it inherits the preceding node's marks except the
        comment mark, which does not extend.
        """
        if not text:
            return
        block, block_pos = self._textblock_at(pos)
        offset = pos - (block_pos + 1)
        children = block.setdefault("content", [])

        child_start = 0
        insert_at = len(children)
        boundary_marks: list[Node] = []
        for index, child in enumerate(children):
            child_end = child_start + node_size(child)
            if is_text(child) and child_start < offset < child_end:
                k = offset - child_start
                child["text"] = child["text"][:k] + text + child["text"][k:]
                self._shift_selection(pos, len(text))
                self._emit()
                return
            if child_end == offset and is_text(child):
                boundary_marks = without_comment(child.get("marks", []))
            if child_start >= offset:
                insert_at = index
                break
            child_start = child_end

        children.insert(insert_at, text_node(text, boundary_marks))
        block["content"] = merge_text_nodes(children)
        self._shift_selection(pos, len(text))
        self._emit()

    def delete_range(self, from_: int, to: int) -> None:
        """
        Remove text and leaf nodes inside [from_, to).

        Block structure is kept; blocks are not joined.
        """
        if from_ >= to:
            return

        removed: list[tuple[int, int]] = []

        def visit(node: Node, start: int) -> None:
            pos = start
            kept: list[Node] = []
            for child in node.get("content", ()):
                size = node_size(child)
                end = pos + size
                if is_text(child) and pos < to and end > from_:
                    text = child.get("text", "")
                    cut_from = max(from_, pos) - pos
                    cut_to = min(to, end) - pos
                    removed.append((pos + cut_from, pos + cut_to))
                    kept.append({**child, "text": text[:cut_from] + text[cut_to:]})
                elif is_leaf(child) and from_ <= pos and end <= to:
                    removed.append((pos, end))
                else:
                    if not is_text(child) and not is_leaf(child):
                        visit(child, pos + 1)
                    kept.append(child)
                pos = end
            if "content" in node:
                node["content"] = merge_text_nodes(kept)

        visit(self._doc, 0)

        def map_pos(p: int) -> int:
            return p - sum(min(end, p) - start for start, end in removed if start < p)

        self._selection = (map_pos(self._selection[0]), map_pos(self._selection[1]))
        self._emit()

    # =========================================================================
    # COMMENT MARK CAPABILITIES
    # =========================================================================

    def apply_mark(self, thread_id: str, from_: int | None = None, to: int | None = None) -> bool:
        """
        Attach the comment mark for `thread_id` to a range (default: selection).

        An existing comment mark on the same text is replaced. Returns False
        when the range is empty.
        """
        if from_ is None or to is None:
            from_, to = self._selection
        if from_ >= to:
            return False

        def split(node: Node, pos: int) -> list[Node] | None:
            end = pos + node_size(node)
            if pos >= to or end <= from_:
                return None
            text = node.get("text", "")
            marks = node.get("marks", [])
            lo = max(from_, pos) - pos
            hi = min(to, end) - pos
            return [
                text_node(text[:lo], marks),
                text_node(text[lo:hi], without_comment(marks) + [comment_mark(thread_id)]),
                text_node(text[hi:], marks),
            ]

        changed = self._map_text_nodes(split)
        if changed:
            self._emit()
        return changed > 0

    def remove_mark(self, *thread_ids: str) -> int:
        """
        Strip comment marks for the given thread ids everywhere.

        Returns the number of text spans changed; nothing is emitted when
        no span carried any of the ids.
        """
        targets = set(thread_ids)
        if not targets:
            return 0

        def strip(node: Node, pos: int) -> list[Node] | None:
            if comment_id(node) not in targets:
                return None
            return [text_node(node.get("text", ""), without_comment(node.get("marks", [])))]

        changed = self._map_text_nodes(strip)
        if changed:
            self._emit()
        return changed

    def get_text_for(self, thread_id: str) -> str | None:
        return self._resolver.text_for(self._doc, thread_id)

    def get_all_positions(self) -> dict[str, Anchor]:
        return self._resolver.resolve(self._doc)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _map_text_nodes(self, fn: Callable[[Node, int], list[Node] | None]) -> int:
        """Replace text nodes by fn(node, pos) where it returns a list. Returns the count replaced."""
        changed = 0

        def visit(node: Node, start: int) -> None:
            nonlocal changed
            pos = start
            rebuilt: list[Node] = []
            touched = False
            for child in node.get("content", ()):
                size = node_size(child)
                if is_text(child):
                    replacement = fn(child, pos)
                    if replacement is not None:
                        changed += 1
                        touched = True
                        rebuilt.extend(replacement)
                        pos += size
                        continue
                elif not is_leaf(child):
                    visit(child, pos + 1)
                rebuilt.append(child)
                pos += size
            if touched:
                node["content"] = merge_text_nodes(rebuilt)

        visit(self._doc, 0)
        return changed

    def _textblock_at(self, pos: int) -> tuple[Node, int]:
        found: tuple[Node, int] | None = None
        for node, node_pos in iter_nodes(self._doc):
            if is_text(node) or is_leaf(node):
                continue
            if node_pos + 1 <= pos <= node_pos + node_size(node) - 1 and is_textblock(node):
                found = (node, node_pos)
        if found is None:
            raise ValueError(f"Position {pos} is not inside a textblock")
        return found

    def _shift_selection(self, at: int, delta: int) -> None:
        def shift(p: int) -> int:
            if delta >= 0:
                return p + delta if p >= at else p
            return max(at, p + delta) if p > at else p

        from_, to = self._selection
        self._selection = (shift(from_), shift(to))

    def __repr__(self) -> str:
        return f"ContentEngine(size={self.size}, selection={self._selection})"


def engine_from_text(*paragraphs: str) -> ContentEngine:
    """Build an engine holding one paragraph per argument."""
    content: list[dict[str, Any]] = []
    for paragraph in paragraphs:
        block: dict[str, Any] = {"type": "paragraph"}
        if paragraph:
            block["content"] = [text_node(paragraph)]
        content.append(block)
    return ContentEngine({"type": "doc", "content": content or [{"type": "paragraph"}]})
