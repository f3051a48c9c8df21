"""Project Brain routes."""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, status

from marginalia.api.deps import BrainStoreDep
from marginalia.schemas.brain import (
    BrainUpdate,
    ConstraintCreate,
    DecisionCreate,
    GlossaryTermCreate,
    ProjectBrain,
)

router = APIRouter(prefix="/brains", tags=["brains"])

EntryIndex = Annotated[int, Path(ge=0)]


def _entry_not_found(e: IndexError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{project_id}", response_model=ProjectBrain)
def get_brain(project_id: str, brains: BrainStoreDep) -> ProjectBrain:
    """Get a project's brain. Projects without one get an empty brain."""
    return brains.get(project_id)


@router.put("/{project_id}", response_model=ProjectBrain)
def save_brain(project_id: str, data: ProjectBrain, brains: BrainStoreDep) -> ProjectBrain:
    return brains.save(project_id, data)


@router.patch("/{project_id}", response_model=ProjectBrain)
def update_brain(project_id: str, data: BrainUpdate, brains: BrainStoreDep) -> ProjectBrain:
    """Replace only the provided fields."""
    return brains.update(project_id, data)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_brain(project_id: str, brains: BrainStoreDep) -> None:
    brains.delete(project_id)


# =============================================================================
# LIST ENTRIES
# =============================================================================


@router.post("/{project_id}/constraints", response_model=ProjectBrain, status_code=status.HTTP_201_CREATED)
def add_constraint(project_id: str, data: ConstraintCreate, brains: BrainStoreDep) -> ProjectBrain:
    return brains.add_constraint(project_id, data.text)


@router.delete("/{project_id}/constraints/{index}", response_model=ProjectBrain)
def remove_constraint(project_id: str, index: EntryIndex, brains: BrainStoreDep) -> ProjectBrain:
    try:
        return brains.remove_constraint(project_id, index)
    except IndexError as e:
        raise _entry_not_found(e)


@router.post("/{project_id}/glossary", response_model=ProjectBrain, status_code=status.HTTP_201_CREATED)
def add_glossary_term(
    project_id: str,
    data: GlossaryTermCreate,
    brains: BrainStoreDep,
) -> ProjectBrain:
    return brains.add_glossary_term(project_id, data.term, data.definition)


@router.delete("/{project_id}/glossary/{index}", response_model=ProjectBrain)
def remove_glossary_term(project_id: str, index: EntryIndex, brains: BrainStoreDep) -> ProjectBrain:
    try:
        return brains.remove_glossary_term(project_id, index)
    except IndexError as e:
        raise _entry_not_found(e)


@router.post("/{project_id}/decisions", response_model=ProjectBrain, status_code=status.HTTP_201_CREATED)
def add_decision(project_id: str, data: DecisionCreate, brains: BrainStoreDep) -> ProjectBrain:
    return brains.add_decision(project_id, data.text)


@router.delete("/{project_id}/decisions/{index}", response_model=ProjectBrain)
def remove_decision(project_id: str, index: EntryIndex, brains: BrainStoreDep) -> ProjectBrain:
    try:
        return brains.remove_decision(project_id, index)
    except IndexError as e:
        raise _entry_not_found(e)
