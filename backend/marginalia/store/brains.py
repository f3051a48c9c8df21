"""
Project Brain persistence.

Layout: collection "brains" maps project id -> brain record. One brain per
project; for now the project id is the document id.
"""

import logging

from marginalia.schemas.brain import BrainUpdate, Decision, GlossaryEntry, ProjectBrain
from marginalia.store.base import KeyValueStore

logger = logging.getLogger(__name__)

BRAINS_COLLECTION = "brains"


def _remove_at(items: list, index: int) -> None:
    if not 0 <= index < len(items):
        raise IndexError(f"No entry at index {index}")
    del items[index]


class BrainStore:
    """Read and edit Project Brains."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def _read_all(self) -> dict[str, dict]:
        return self._store.read(BRAINS_COLLECTION, default={}) or {}

    def get(self, project_id: str) -> ProjectBrain:
        """Brain for a project, or an empty one if none was saved."""
        record = self._read_all().get(project_id)
        if record is None:
            return ProjectBrain()
        try:
            return ProjectBrain.model_validate(record)
        except Exception:
            logger.exception("Unreadable brain for project %s, using empty brain", project_id)
            return ProjectBrain()

    def exists(self, project_id: str) -> bool:
        return project_id in self._read_all()

    def save(self, project_id: str, brain: ProjectBrain) -> ProjectBrain:
        brains = self._read_all()
        brains[project_id] = brain.dump()
        self._store.write(BRAINS_COLLECTION, brains)
        return brain

    def update(self, project_id: str, updates: BrainUpdate) -> ProjectBrain:
        """Merge the provided fields into the current brain."""
        data = self.get(project_id).model_dump()
        data.update(updates.model_dump(exclude_unset=True, exclude_none=True))
        return self.save(project_id, ProjectBrain.model_validate(data))

    def delete(self, project_id: str) -> None:
        brains = self._read_all()
        if brains.pop(project_id, None) is not None:
            self._store.write(BRAINS_COLLECTION, brains)

    def add_constraint(self, project_id: str, constraint: str) -> ProjectBrain:
        brain = self.get(project_id)
        brain.constraints.append(constraint)
        return self.save(project_id, brain)

    def remove_constraint(self, project_id: str, index: int) -> ProjectBrain:
        brain = self.get(project_id)
        _remove_at(brain.constraints, index)
        return self.save(project_id, brain)

    def add_glossary_term(self, project_id: str, term: str, definition: str) -> ProjectBrain:
        brain = self.get(project_id)
        brain.glossary.append(GlossaryEntry(term=term, definition=definition))
        return self.save(project_id, brain)

    def remove_glossary_term(self, project_id: str, index: int) -> ProjectBrain:
        brain = self.get(project_id)
        _remove_at(brain.glossary, index)
        return self.save(project_id, brain)

    def add_decision(self, project_id: str, text: str) -> ProjectBrain:
        brain = self.get(project_id)
        brain.decisions.append(Decision(text=text))
        return self.save(project_id, brain)

    def remove_decision(self, project_id: str, index: int) -> ProjectBrain:
        brain = self.get(project_id)
        _remove_at(brain.decisions, index)
        return self.save(project_id, brain)
