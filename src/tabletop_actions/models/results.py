"""Pydantic V2 schemas for d20 resolution results.

This module defines critical ranges, the range modifications features
declare, and the immutable results the d20 engine produces.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tabletop_actions.core.exceptions import ValidationError
from tabletop_actions.models.enums import CheckType, DegreeOfSuccess, RangeModificationType


class CriticalRange(BaseModel):
    """Inclusive range of natural d20 faces that trigger a critical.

    Attributes:
        min: Lowest natural face in the range.
        max: Highest natural face in the range.
    """

    model_config = ConfigDict(frozen=True)

    min: int = Field(description="Lowest natural face")
    max: int = Field(description="Highest natural face")

    @model_validator(mode="after")
    def validate_bounds(self) -> "CriticalRange":
        """Ensure ``1 <= min <= max <= 20``.

        Returns:
            Self if validation passes.

        Raises:
            ValidationError: If the bounds are out of order or outside a d20.
        """
        if not 1 <= self.min <= self.max <= 20:
            raise ValidationError(
                f"Critical range must satisfy 1 <= min <= max <= 20, got {self.min}-{self.max}",
                field_name="critical_range",
                invalid_value=(self.min, self.max),
            )
        return self

    def contains(self, natural: int) -> bool:
        """Check whether a natural face falls in the range.

        Args:
            natural: The natural d20 face.

        Returns:
            True if ``min <= natural <= max``.
        """
        return self.min <= natural <= self.max

    def union(self, other: CriticalRange) -> CriticalRange:
        """Return the smallest range covering both ranges."""
        return CriticalRange(min=min(self.min, other.min), max=max(self.max, other.max))


class RangeModification(BaseModel):
    """A feature-declared change to a critical range.

    Attributes:
        type: ``expand`` unions the range, ``set`` replaces it.
        range: The range to union with or replace by.
        applies_to: Which range the modification changes.
        source: Name of the feature declaring the modification.
    """

    model_config = ConfigDict(frozen=True)

    type: RangeModificationType
    range: CriticalRange
    applies_to: Literal["critical_success", "critical_failure"] = "critical_success"
    source: str | None = None


class ResolutionResult(BaseModel):
    """Outcome of classifying one d20 roll against a target number.

    Attributes:
        check_type: The check type that was resolved.
        roll_total: Total of the evaluated formula.
        roll_value: Natural d20 face.
        target_number: AC, DC or opposing total.
        success: Whether the check succeeded.
        degree: Graded outcome.
        margin: ``roll_total - target_number``.
        is_critical_success: Natural face fell in the success range.
        is_critical_failure: Natural face fell in the failure range.
        critical_range: Effective critical success range used.
        critical_failure_range: Effective critical failure range used.
    """

    model_config = ConfigDict(frozen=True)

    check_type: CheckType
    roll_total: int
    roll_value: int
    target_number: int
    success: bool
    degree: DegreeOfSuccess
    margin: int
    is_critical_success: bool = False
    is_critical_failure: bool = False
    critical_range: CriticalRange
    critical_failure_range: CriticalRange


class ContestEntry(BaseModel):
    """One participant's roll in a contested check."""

    model_config = ConfigDict(frozen=True)

    participant_id: str
    name: str = ""
    formula: str = ""
    roll_total: int
    roll_value: int = 0


class ContestedResult(BaseModel):
    """Ranking of a contested check.

    Attributes:
        rankings: Entries sorted by total, highest first.
        winners: Every entry tied at the highest total.
        is_tie: More than one participant shares the highest total.
        highest_roll: The highest total.
        participant_count: Number of participants.
    """

    model_config = ConfigDict(frozen=True)

    rankings: list[ContestEntry]
    winners: list[ContestEntry]
    is_tie: bool
    highest_roll: int
    participant_count: int


__all__ = [
    "CriticalRange",
    "RangeModification",
    "ResolutionResult",
    "ContestEntry",
    "ContestedResult",
]
