"""Pydantic V2 schemas for modifiers and dice pools.

A modifier input is the raw, caller-declared contribution to a roll
("+1d6 fire from Flame Tongue"). The dice pool builder tokenizes inputs
into modifier terms, the smallest unit of a formula: either a signed
integer or a ``<quantity>d<faces>`` dice group.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from tabletop_actions.models.enums import ActionType, ElementType


DICE_PATTERN = re.compile(r"^(?P<sign>[+-]?)(?P<quantity>\d*)d(?P<faces>\d+)$", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"^[+-]?\d+$")


class ModifierTerm(BaseModel):
    """A single element of a dice pool.

    Attributes:
        element: Integer string ("5", "-2") or dice group ("2d6", "-1d4").
            The advantage rewrite ``max(1d20,1d20)`` / ``min(1d20,1d20)``
            is the only other form and only appears in a built pool.
        element_type: Whether the element is dice or a flat number.
        modifier_type: Damage type for damage terms, free-form otherwise.
        modifier_name: Display name of the source modifier.
        feature_name: Name of the feature that contributed the term, if any.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    element: str = Field(min_length=1, description="Formula fragment")
    element_type: ElementType = Field(description="dice or number")
    modifier_type: str = Field(default="", description="Damage or bonus type")
    modifier_name: str = Field(default="Unknown", description="Source modifier name")
    feature_name: str | None = Field(default=None, description="Contributing feature")

    @property
    def is_simple_dice(self) -> bool:
        """Whether the element is a plain ``[-]<q>d<f>`` group."""
        return self.element_type == ElementType.DICE and DICE_PATTERN.match(self.element) is not None

    @property
    def quantity(self) -> int:
        """Signed dice quantity for simple dice elements.

        Returns:
            The signed number of dice, or 0 for non-dice elements.
        """
        match = DICE_PATTERN.match(self.element)
        if match is None or self.element_type != ElementType.DICE:
            return 0
        quantity = int(match.group("quantity") or 1)
        return -quantity if match.group("sign") == "-" else quantity

    @property
    def faces(self) -> int:
        """Die size for simple dice elements, 0 otherwise."""
        match = DICE_PATTERN.match(self.element)
        if match is None or self.element_type != ElementType.DICE:
            return 0
        return int(match.group("faces"))

    @property
    def value(self) -> int:
        """Integer value of a number element, 0 for dice."""
        if self.element_type != ElementType.NUMBER:
            return 0
        return int(self.element)


class ModifierInput(BaseModel):
    """A caller- or feature-declared modifier before tokenization.

    Attributes:
        modifier_name: Display name ("Strength", "Flame Tongue").
        modifier: Raw formula fragment, e.g. "1d6+2" or "-1".
        modifier_type: Damage or bonus type applied to every resulting term.
        is_enabled: Disabled inputs are skipped by the builder.
        is_dice: Hint from the dialog layer that the fragment holds dice.
        feature_name: Name of the contributing feature, if any.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )

    modifier_name: str = Field(default="Unknown", description="Display name")
    modifier: str = Field(default="", description="Raw formula fragment")
    modifier_type: str = Field(default="", description="Damage or bonus type")
    is_enabled: bool = Field(default=True, description="Include in the pool")
    is_dice: bool = Field(default=False, description="Fragment contains dice")
    feature_name: str | None = Field(default=None, description="Contributing feature")

    @field_validator("modifier", mode="before")
    @classmethod
    def coerce_modifier(cls, value: Any) -> str:
        """Accept integers and None as raw fragments.

        Args:
            value: Raw modifier value.

        Returns:
            The fragment as a string.
        """
        if value is None:
            return ""
        return str(value)


class DicePoolResult(BaseModel):
    """Output of the dice pool builder.

    Attributes:
        action_type: Action the pool was built for.
        base_pool: Ordered modifier terms after feature mutation and the
            advantage rewrite.
        formula: Final formula string for the dice evaluator.
        advantage: Advantage was requested.
        disadvantage: Disadvantage was requested.
        critical: Dice quantities were doubled for a critical hit.
        feature_names: Features that contributed terms, in application order.
    """

    model_config = ConfigDict(frozen=True)

    action_type: ActionType
    base_pool: list[ModifierTerm] = Field(default_factory=list)
    formula: str
    advantage: bool = False
    disadvantage: bool = False
    critical: bool = False
    feature_names: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def damage_types(self) -> list[str]:
        """Distinct damage types present in the pool, in first-seen order."""
        seen: list[str] = []
        for term in self.base_pool:
            if term.modifier_type and term.modifier_type not in seen:
                seen.append(term.modifier_type)
        return seen


__all__ = [
    "DICE_PATTERN",
    "NUMBER_PATTERN",
    "ModifierTerm",
    "ModifierInput",
    "DicePoolResult",
]
