"""Force-Empowered Self: spend a Force Point to add kinetic damage."""

from __future__ import annotations

from tabletop_actions.core.logging import get_logger
from tabletop_actions.features.base import BaseFeature, FeatureContext, FeatureData
from tabletop_actions.models.actors import ActorRecord
from tabletop_actions.models.enums import InjectionType
from tabletop_actions.models.modifiers import ModifierInput


logger = get_logger(__name__)

# Class level -> kinetic die
KINETIC_DIE_SCALE: dict[int, str] = {
    1: "1d4",
    5: "1d6",
    11: "1d8",
    17: "1d10",
}


class ForceEmpoweredSelf(BaseFeature):
    """Adds a kinetic damage die to a damage roll for one Force Point.

    The die grows with the level of ``scaling_class`` (or total level
    when no class is named). Dialog data may override the die and the
    damage type through ``modifier`` and ``modifier_type``.
    """

    resource_name = "Force Points"
    resource_cost = 1
    modifier_type = "kinetic"
    modifier = "1d4"

    def __init__(self, *, scaling_class: str | None = None) -> None:
        super().__init__(
            id="force-empowered-self",
            name="Force-Empowered Self",
            description="Channel the Force to enhance your physical strikes with kinetic energy",
            affects=("damage",),
            workflow_steps=("base-dice-pool-features-damage",),
            injection_type={"damage": InjectionType.HTML},
        )
        self.scaling_class = scaling_class

    def kinetic_die(self, actor: ActorRecord) -> str:
        """Kinetic die for the actor's level.

        Args:
            actor: The acting actor.

        Returns:
            Dice fragment such as "1d6".
        """
        if self.scaling_class is not None:
            level = actor.class_levels.get(self.scaling_class, 0)
        else:
            level = actor.total_level

        die = self.modifier
        for threshold in sorted(KINETIC_DIE_SCALE):
            if level >= threshold:
                die = KINETIC_DIE_SCALE[threshold]
        return die

    def validation_logic(self, context: FeatureContext) -> bool | str:
        if not context.feature_data.enabled:
            return True

        available = context.actor.resource(self.resource_name)
        if available < self.resource_cost:
            return (
                f"Not enough {self.resource_name} for {self.name} "
                f"(need {self.resource_cost}, have {available})"
            )
        return True

    def roll_modifiers(self, context: FeatureContext) -> list[ModifierInput]:
        if context.dialog_type != "damage" or not context.feature_data.enabled:
            return []

        modifier = context.feature_data.get("modifier") or self.kinetic_die(context.actor)
        modifier_type = context.feature_data.get("modifier_type") or self.modifier_type
        logger.debug(
            "Kinetic damage added",
            actor=context.actor.name,
            modifier=modifier,
            modifier_type=modifier_type,
        )
        return [self.create_modifier(self.name, modifier_type, modifier, True, True)]

    def modifier_display(self, feature_data: FeatureData) -> str:
        modifier = feature_data.get("modifier") or self.modifier
        return f"+{modifier} {feature_data.get('modifier_type') or self.modifier_type}"
