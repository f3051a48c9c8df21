"""Context Pack extraction for AI requests."""

import logging

from marginalia.editor.content import ContentEngine
from marginalia.editor.tree import Node, node_size, node_text
from marginalia.schemas.ai import ContextPack, Source

logger = logging.getLogger(__name__)

BLOCKS_BEFORE = 2
BLOCKS_AFTER = 1
MAX_OUTLINE_LEVEL = 3


def outline_from_json(doc: Node) -> str:
    """H1-H3 headings in document order, prefixed with '#' per level."""
    headings: list[str] = []

    def traverse(node: Node) -> None:
        if node.get("type") == "heading":
            level = (node.get("attrs") or {}).get("level")
            if isinstance(level, int) and 1 <= level <= MAX_OUTLINE_LEVEL:
                text = node_text(node)
                if text:
                    headings.append(f"{'#' * level} {text}")
        for child in node.get("content", ()):
            traverse(child)

    traverse(doc)
    return "\n".join(headings)


class ContextPackBuilder:
    """
    Builds the text context sent with an AI request.

    Every extractor degrades to an empty result instead of raising, so a
    malformed tree can never break the editing session.
    """

    def __init__(self, engine: ContentEngine) -> None:
        self._engine = engine

    def selected_text(self) -> str:
        """Trimmed text of the range selection; empty for a bare cursor."""
        try:
            return self._engine.selected_text().strip()
        except Exception:
            logger.warning("Failed to extract selection", exc_info=True)
            return ""

    def local_context(self) -> str:
        """The block holding the selection, two blocks before it and one after."""
        try:
            cursor = self._engine.selection[0]
            blocks: list[tuple[int, int, str]] = []
            pos = 0
            for node in self._engine.doc.get("content", ()):
                size = node_size(node)
                text = node_text(node).strip()
                if text:
                    blocks.append((pos, pos + size, text))
                pos += size

            if not blocks:
                return ""

            current = next(
                (index for index, (start, end, _) in enumerate(blocks) if start <= cursor <= end),
                0,
            )
            start = max(0, current - BLOCKS_BEFORE)
            end = min(len(blocks), current + BLOCKS_AFTER + 1)
            return "\n\n".join(text for _, _, text in blocks[start:end])
        except Exception:
            logger.warning("Failed to extract local context", exc_info=True)
            return ""

    def outline(self) -> str:
        try:
            return outline_from_json(self._engine.doc)
        except Exception:
            logger.warning("Failed to extract outline", exc_info=True)
            return ""

    def full_doc_text(self) -> str:
        try:
            return self._engine.get_text()
        except Exception:
            logger.warning("Failed to extract full document", exc_info=True)
            return ""

    def build(
        self,
        *,
        include_full_doc: bool = False,
        sources: list[Source] | None = None,
        fallback_selection: str = "",
    ) -> ContextPack:
        """
        Assemble a fresh Context Pack. Empty optional parts are omitted.

        `fallback_selection` stands in when there is no range selection,
        e.g. the snapshot text of an existing AI thread.
        """
        try:
            full_doc_text = self.full_doc_text() if include_full_doc else ""
            return ContextPack(
                selected_text=self.selected_text() or fallback_selection.strip(),
                local_context=self.local_context() or None,
                outline=self.outline() or None,
                full_doc_text=full_doc_text or None,
                sources=sources or None,
            )
        except Exception:
            logger.error("Failed to build context pack", exc_info=True)
            return ContextPack(selected_text="")
