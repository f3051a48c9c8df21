"""Tests for Project Brain and document persistence."""

import pytest

from marginalia.schemas.brain import BrainUpdate, ProjectBrain
from marginalia.store.brains import BRAINS_COLLECTION

PROJECT_ID = "doc-1"


def test_missing_brain_is_empty(brains):
    brain = brains.get(PROJECT_ID)

    assert brain == ProjectBrain()
    assert brain.is_empty()
    assert not brains.exists(PROJECT_ID)


def test_save_and_get(brains):
    brains.save(PROJECT_ID, ProjectBrain(goal="Explain Kant", constraints=["short"]))

    assert brains.exists(PROJECT_ID)
    assert brains.get(PROJECT_ID).goal == "Explain Kant"


def test_update_merges_only_provided_fields(brains):
    brains.save(PROJECT_ID, ProjectBrain(goal="Old goal", constraints=["short"]))

    updated = brains.update(PROJECT_ID, BrainUpdate(goal="New goal"))

    assert updated.goal == "New goal"
    assert updated.constraints == ["short"]


def test_list_entries_add_and_remove(brains):
    brains.add_constraint(PROJECT_ID, "formal")
    brains.add_constraint(PROJECT_ID, "short")
    brains.add_glossary_term(PROJECT_ID, "CI", "Categorical imperative")
    brains.add_decision(PROJECT_ID, "Use first person")

    brain = brains.remove_constraint(PROJECT_ID, 0)

    assert brain.constraints == ["short"]
    assert brain.glossary[0].term == "CI"
    assert brain.decisions[0].text == "Use first person"
    assert brain.decisions[0].created_at > 0

    brain = brains.remove_glossary_term(PROJECT_ID, 0)
    brain = brains.remove_decision(PROJECT_ID, 0)
    assert brain.glossary == [] and brain.decisions == []


def test_remove_out_of_range_raises(brains):
    brains.add_constraint(PROJECT_ID, "only")

    with pytest.raises(IndexError):
        brains.remove_constraint(PROJECT_ID, 1)
    with pytest.raises(IndexError):
        brains.remove_constraint(PROJECT_ID, -1)
    assert brains.get(PROJECT_ID).constraints == ["only"]


def test_delete(brains):
    brains.add_constraint(PROJECT_ID, "x")

    brains.delete(PROJECT_ID)

    assert not brains.exists(PROJECT_ID)


def test_unreadable_brain_falls_back_to_empty(store, brains):
    store.write(BRAINS_COLLECTION, {PROJECT_ID: {"constraints": "not a list"}})

    assert brains.get(PROJECT_ID).is_empty()


def test_brains_are_stored_camel_case(store, brains):
    brains.add_decision(PROJECT_ID, "Keep it short")

    record = store.read(BRAINS_COLLECTION)[PROJECT_ID]

    assert set(record["decisions"][0]) == {"text", "createdAt"}


# =============================================================================
# DOCUMENTS
# =============================================================================


def test_get_or_create_document(documents):
    created = documents.get_or_create("doc-9")

    assert created.id == "doc-9"
    assert created.title == "Untitled"
    assert documents.get_or_create("doc-9") == created


def test_colliding_id_gets_a_fresh_one(documents):
    documents.create("doc-1")

    second = documents.create("doc-1")

    assert second.id != "doc-1"


def test_update_document(documents):
    documents.create("doc-1")

    updated = documents.update("doc-1", title="Essay")

    assert updated.title == "Essay"
    assert documents.update("missing", title="x") is None
