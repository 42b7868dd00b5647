"""Passive features that widen the critical hit range of attacks."""

from __future__ import annotations

from tabletop_actions.features.base import BaseFeature, FeatureContext
from tabletop_actions.models.enums import RangeModificationType
from tabletop_actions.models.results import CriticalRange, RangeModification


ATTACK_RESOLVE_STEP = "attack-resolve"


class CriticalRangeFeature(BaseFeature):
    """Declares one critical range modification for attack resolution."""

    modification_type: RangeModificationType = RangeModificationType.EXPAND
    critical_range: CriticalRange = CriticalRange(min=20, max=20)

    def __init__(self, *, id: str, name: str, description: str) -> None:
        super().__init__(
            id=id,
            name=name,
            description=description,
            affects=("attack",),
            workflow_steps=(ATTACK_RESOLVE_STEP,),
        )

    def critical_range_modifications(self, context: FeatureContext) -> list[RangeModification]:
        return [
            RangeModification(
                type=self.modification_type,
                range=self.critical_range,
                source=self.name,
            )
        ]


class ImprovedCritical(CriticalRangeFeature):
    """Weapon attacks score a critical hit on a roll of 19 or 20."""

    critical_range = CriticalRange(min=19, max=20)

    def __init__(self) -> None:
        super().__init__(
            id="improved-critical",
            name="Improved Critical",
            description="Your weapon attacks score a critical hit on a roll of 19 or 20.",
        )


class SuperiorCritical(CriticalRangeFeature):
    """Weapon attacks score a critical hit on a roll of 18 to 20.

    Replaces the critical range outright, so it wins over any expansion.
    """

    modification_type = RangeModificationType.SET
    critical_range = CriticalRange(min=18, max=20)

    def __init__(self) -> None:
        super().__init__(
            id="superior-critical",
            name="Superior Critical",
            description="Your weapon attacks score a critical hit on a roll of 18-20.",
        )
