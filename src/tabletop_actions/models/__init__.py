"""Pydantic models for the action resolution pipeline.

Exports:
    Enums: ActionType, CheckType, DegreeOfSuccess, ElementType,
        CriticalPolicy, RangeModificationType, InjectionType, ErrorType.
    Modifiers: ModifierTerm, ModifierInput, DicePoolResult.
    Results: CriticalRange, RangeModification, ResolutionResult,
        ContestEntry, ContestedResult.
    Actors: ActorRecord, EquipmentItem, TargetData.
    State: DialogState, ActionState, TargetOutcome, RollRecord,
        WorkflowErrorEntry.
"""

from __future__ import annotations

from tabletop_actions.models.actors import ActorRecord, EquipmentItem, TargetData
from tabletop_actions.models.enums import (
    ActionType,
    CheckType,
    CriticalPolicy,
    DegreeOfSuccess,
    ElementType,
    ErrorType,
    InjectionType,
    RangeModificationType,
)
from tabletop_actions.models.modifiers import DicePoolResult, ModifierInput, ModifierTerm
from tabletop_actions.models.results import (
    ContestedResult,
    ContestEntry,
    CriticalRange,
    RangeModification,
    ResolutionResult,
)
from tabletop_actions.models.state import (
    COMPLETE_STEP,
    ActionState,
    DialogState,
    RollRecord,
    TargetOutcome,
    WorkflowErrorEntry,
)


__all__ = [
    # Enums
    "ActionType",
    "CheckType",
    "DegreeOfSuccess",
    "ElementType",
    "CriticalPolicy",
    "RangeModificationType",
    "InjectionType",
    "ErrorType",
    # Modifiers
    "ModifierTerm",
    "ModifierInput",
    "DicePoolResult",
    # Results
    "CriticalRange",
    "RangeModification",
    "ResolutionResult",
    "ContestEntry",
    "ContestedResult",
    # Actors
    "ActorRecord",
    "EquipmentItem",
    "TargetData",
    # State
    "COMPLETE_STEP",
    "DialogState",
    "ActionState",
    "TargetOutcome",
    "RollRecord",
    "WorkflowErrorEntry",
]
