"""Enumeration types for the action resolution pipeline.

These enums name the action kinds, check types and rule outcomes that
flow between the dice pool builder, the d20 engine and the workflow
steps.
"""

from __future__ import annotations

from enum import StrEnum


class ActionType(StrEnum):
    """Kinds of action a dice pool can be built for."""

    ATTACK = "attack"
    DAMAGE = "damage"
    SAVE = "save"
    SKILL = "skill"
    ABILITY = "ability"

    @property
    def uses_d20(self) -> bool:
        """Whether the action is resolved with a d20 roll.

        Returns:
            True for every action type except damage.
        """
        return self is not ActionType.DAMAGE


class CheckType(StrEnum):
    """Check types known to the d20 resolution engine."""

    ATTACK = "attack"
    SKILL = "skill"
    SAVE = "save"
    ABILITY = "ability"
    CONTESTED = "contested"


class DegreeOfSuccess(StrEnum):
    """Graded outcome of a resolved check.

    Attack and contested checks only ever report SUCCESS or FAILURE
    unless a natural critical applies.
    """

    CRITICAL_SUCCESS = "criticalSuccess"
    MAJOR_SUCCESS = "majorSuccess"
    SUCCESS = "success"
    MINOR_FAILURE = "minorFailure"
    MAJOR_FAILURE = "majorFailure"
    CRITICAL_FAILURE = "criticalFailure"
    FAILURE = "failure"

    @property
    def is_success(self) -> bool:
        """Whether this degree counts as a success."""
        return self in (
            DegreeOfSuccess.CRITICAL_SUCCESS,
            DegreeOfSuccess.MAJOR_SUCCESS,
            DegreeOfSuccess.SUCCESS,
        )


class ElementType(StrEnum):
    """Kinds of modifier term element."""

    DICE = "dice"
    NUMBER = "number"


class CriticalPolicy(StrEnum):
    """What a natural critical does for a check type."""

    AUTO_HIT = "autoHit"
    AUTO_MISS = "autoMiss"
    AUTO_SUCCESS = "autoSuccess"
    AUTO_FAILURE = "autoFailure"


class RangeModificationType(StrEnum):
    """How a feature changes a critical range."""

    EXPAND = "expand"
    SET = "set"


class InjectionType(StrEnum):
    """How a feature presents itself in a dialog of a given type."""

    SIMPLE = "simple"
    HTML = "html"


class ErrorType(StrEnum):
    """Categories of entry recorded in an action's error list."""

    VALIDATION = "validation"
    FEATURE_VETO = "feature_veto"
    TARGET_MISSING = "target_missing"
    TARGET_ERROR = "target_error"
    STEP_RUNTIME = "step_runtime"
    STEP_WARNING = "step_warning"


__all__ = [
    "ActionType",
    "CheckType",
    "DegreeOfSuccess",
    "ElementType",
    "CriticalPolicy",
    "RangeModificationType",
    "InjectionType",
    "ErrorType",
]
