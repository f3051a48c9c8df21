"""Live anchor resolution for comment threads."""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TypeVar

from marginalia.editor.tree import Node, comment_id, is_text, iter_nodes

T = TypeVar("T")


@dataclass(frozen=True)
class Anchor:
    """Where a thread currently lives in the document."""

    text: str  # all spans carrying the thread id, in document order
    position: int  # position of the first span


class PositionResolver:
    """
    Derives each thread's anchored text and position from comment marks.

    Nothing here is persisted: positions are recomputed from the content
    tree on every call.
    """

    def resolve(self, doc: Node) -> dict[str, Anchor]:
        """
        Scan the tree once and collect every thread id found in comment marks.

        Disjoint ranges sharing one id are merged into a single text; the
        recorded position is that of the earliest range. Threads without
        marks produce no entry.
        """
        texts: dict[str, list[str]] = {}
        positions: dict[str, int] = {}
        for node, pos in iter_nodes(doc):
            if not is_text(node):
                continue
            thread_id = comment_id(node)
            if thread_id is None:
                continue
            if thread_id not in texts:
                texts[thread_id] = []
                positions[thread_id] = pos
            texts[thread_id].append(node.get("text", ""))
        return {
            thread_id: Anchor(text="".join(parts), position=positions[thread_id])
            for thread_id, parts in texts.items()
        }

    def text_for(self, doc: Node, thread_id: str) -> str | None:
        anchor = self.resolve(doc).get(thread_id)
        return anchor.text if anchor and anchor.text else None

    @staticmethod
    def order(items: Iterable[T], anchors: Mapping[str, Anchor], key=lambda item: item.id) -> list[T]:
        """
        Sort by first-occurrence position, ascending.

        Items without an anchor sort after all positioned ones; the sort is
        stable otherwise.
        """

        def position(item: T) -> float:
            anchor = anchors.get(key(item))
            return anchor.position if anchor is not None else math.inf

        return sorted(items, key=position)
