"""
Helpers over a TipTap/ProseMirror JSON content tree.

Position counting follows ProseMirror: the document's content starts at 0,
entering or leaving a container node counts 1, a text node counts its length
and a leaf node (hard break, rule, image) counts 1.
"""

from collections.abc import Iterator
from typing import Any

Node = dict[str, Any]

COMMENT_MARK = "comment"
LEAF_TYPES = frozenset({"hardBreak", "horizontalRule", "image"})
TEXTBLOCK_TYPES = frozenset({"paragraph", "heading", "codeBlock"})


def is_text(node: Node) -> bool:
    return node.get("type") == "text"


def is_leaf(node: Node) -> bool:
    return node.get("type") in LEAF_TYPES


def is_textblock(node: Node) -> bool:
    if node.get("type") in TEXTBLOCK_TYPES:
        return True
    return any(is_text(child) for child in node.get("content", ()))


def node_size(node: Node) -> int:
    if is_text(node):
        return len(node.get("text", ""))
    if is_leaf(node):
        return 1
    return 2 + content_size(node)


def content_size(node: Node) -> int:
    return sum(node_size(child) for child in node.get("content", ()))


def iter_nodes(root: Node, start: int = 0) -> Iterator[tuple[Node, int]]:
    """Yield (node, position before node) for every descendant, in document order."""
    pos = start
    for child in root.get("content", ()):
        yield child, pos
        if not is_text(child) and not is_leaf(child):
            yield from iter_nodes(child, pos + 1)
        pos += node_size(child)


def node_text(node: Node) -> str:
    """Concatenated text of a node and its descendants."""
    if is_text(node):
        return node.get("text", "")
    return "".join(node_text(child) for child in node.get("content", ()))


def comment_id(node: Node) -> str | None:
    """Thread id carried by a text node's comment mark, if any."""
    for mark in node.get("marks", ()):
        if mark.get("type") == COMMENT_MARK:
            thread_id = (mark.get("attrs") or {}).get("commentId")
            if thread_id:
                return thread_id
    return None


def comment_mark(thread_id: str) -> Node:
    return {"type": COMMENT_MARK, "attrs": {"commentId": thread_id}}


def without_comment(marks: list[Node]) -> list[Node]:
    return [mark for mark in marks if mark.get("type") != COMMENT_MARK]


def text_node(text: str, marks: list[Node] | None = None) -> Node:
    node: Node = {"type": "text", "text": text}
    if marks:
        node["marks"] = sorted(marks, key=lambda m: m.get("type", ""))
    return node


def merge_text_nodes(children: list[Node]) -> list[Node]:
    """Drop empty text nodes and join neighbours that carry identical marks."""
    merged: list[Node] = []
    for child in children:
        if is_text(child):
            if not child.get("text"):
                continue
            if merged and is_text(merged[-1]) and merged[-1].get("marks", []) == child.get("marks", []):
                merged[-1] = {**merged[-1], "text": merged[-1]["text"] + child["text"]}
                continue
        merged.append(child)
    return merged
