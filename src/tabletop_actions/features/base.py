"""Feature plugin interface.

A feature is a class feat, talent or item property that changes how an
action resolves. Features are plain objects exposing four methods:

- ``affects_dialog_type`` / ``affects_workflow_step`` say where the
  feature applies,
- ``validation_logic`` may veto the feature for this action,
- ``roll_modifiers`` contributes modifier inputs to a dice pool.

Every call receives a fresh ``FeatureContext`` carrying the acting
actor and the per-actor ``FeatureData`` (the ``enabled`` flag plus any
instance-specific fields), so a feature never holds run state itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from tabletop_actions.models.actors import ActorRecord
from tabletop_actions.models.enums import InjectionType
from tabletop_actions.models.modifiers import ModifierInput
from tabletop_actions.models.results import RangeModification
from tabletop_actions.models.state import DialogState


class FeatureData(BaseModel):
    """Per-actor, per-action data for one feature.

    Attributes:
        enabled: Whether the feature was switched on for this action.
    """

    model_config = ConfigDict(extra="allow")

    enabled: bool = Field(default=False)

    def get(self, key: str, default: Any = None) -> Any:
        """Read an instance-specific field.

        Args:
            key: Field name.
            default: Value returned when the field is absent.

        Returns:
            The field value or the default.
        """
        if key in type(self).model_fields:
            return getattr(self, key)
        return (self.model_extra or {}).get(key, default)


@dataclass(frozen=True)
class FeatureContext:
    """Arguments passed to every feature hook.

    Attributes:
        actor: The acting actor.
        dialog_type: Action type of the dialog or pool being built.
        feature_data: Per-actor data for the feature.
        dialog_state: Dialog input, when the hook runs inside a workflow.
        workflow_step: Step id the hook runs for, if any.
    """

    actor: ActorRecord
    dialog_type: str
    feature_data: FeatureData
    dialog_state: DialogState | None = None
    workflow_step: str | None = None


@runtime_checkable
class Feature(Protocol):
    """Interface every registered feature satisfies."""

    id: str
    name: str
    description: str
    affects: tuple[str, ...]
    workflow_steps: tuple[str, ...]
    is_reactive: bool

    def affects_dialog_type(self, dialog_type: str) -> bool: ...

    def affects_workflow_step(self, step_id: str) -> bool: ...

    def roll_modifiers(self, context: FeatureContext) -> list[ModifierInput]: ...

    def validation_logic(self, context: FeatureContext) -> bool | str: ...


class BaseFeature:
    """Default implementation of the feature interface.

    Subclasses pass their identity to ``__init__`` and override the
    hooks they need; every hook has a neutral default.

    Attributes:
        id: Stable feature identifier, also the item property key that
            grants the feature through equipment.
        name: Display name; actors gain the feature through a feat of
            exactly this name.
        description: Player-facing description.
        affects: Dialog types the feature applies to.
        workflow_steps: Workflow step ids the feature hooks into.
        is_reactive: The feature affects rolls made against its owner.
        injection_type: Presentation per dialog type.
    """

    def __init__(
        self,
        *,
        id: str,
        name: str,
        description: str = "",
        affects: tuple[str, ...] | list[str] = (),
        workflow_steps: tuple[str, ...] | list[str] = (),
        is_reactive: bool = False,
        injection_type: dict[str, InjectionType] | None = None,
    ) -> None:
        self.id = id
        self.name = name
        self.description = description
        self.affects = tuple(affects)
        self.workflow_steps = tuple(workflow_steps)
        self.is_reactive = is_reactive
        self.injection_type = injection_type or {
            "attack": InjectionType.SIMPLE,
            "damage": InjectionType.HTML,
            "save": InjectionType.SIMPLE,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id!r})"

    def affects_dialog_type(self, dialog_type: str) -> bool:
        """Check whether the feature applies to a dialog type."""
        return dialog_type in self.affects

    def affects_workflow_step(self, step_id: str) -> bool:
        """Check whether the feature hooks into a workflow step."""
        return step_id in self.workflow_steps

    def get_injection_type(self, dialog_type: str) -> InjectionType:
        """Presentation for a dialog type, "simple" when unspecified."""
        return self.injection_type.get(dialog_type, InjectionType.SIMPLE)

    def validation_logic(self, context: FeatureContext) -> bool | str:
        """Decide whether the feature may be used for this action.

        Args:
            context: Hook context.

        Returns:
            True to allow, or a reason string (or False) to veto.
        """
        return True

    def roll_modifiers(self, context: FeatureContext) -> list[ModifierInput]:
        """Modifier inputs to add to the pool being built.

        Args:
            context: Hook context.

        Returns:
            Modifier inputs; empty by default.
        """
        return []

    def critical_range_modifications(self, context: FeatureContext) -> list[RangeModification]:
        """Critical range changes applied when a roll is resolved.

        Args:
            context: Hook context.

        Returns:
            Range modifications; empty by default.
        """
        return []

    def modifier_display(self, feature_data: FeatureData) -> str:
        """Short text shown beside the feature toggle."""
        return "-"

    def create_modifier(
        self,
        name: str,
        modifier_type: str,
        modifier: str | int,
        is_enabled: bool = True,
        is_dice: bool = False,
    ) -> ModifierInput:
        """Build a modifier input tagged with this feature's name.

        Args:
            name: Modifier display name.
            modifier_type: Damage or bonus type.
            modifier: Raw formula fragment.
            is_enabled: Include the modifier in the pool.
            is_dice: The fragment contains dice.

        Returns:
            The modifier input.
        """
        return ModifierInput(
            modifier_name=name,
            modifier_type=modifier_type,
            modifier=str(modifier),
            is_enabled=is_enabled,
            is_dice=is_dice,
            feature_name=self.name,
        )

    def describe(self) -> dict[str, Any]:
        """Registry metadata for the feature."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "affects": list(self.affects),
            "workflow_steps": list(self.workflow_steps),
            "is_reactive": self.is_reactive,
        }


def build_feature_context(
    feature: Feature,
    actor: ActorRecord,
    dialog_type: str,
    *,
    dialog_state: DialogState | None = None,
    workflow_step: str | None = None,
) -> FeatureContext:
    """Build a fresh hook context for one feature call.

    Dialog-supplied feature data overrides what the actor record stores
    for the same feature.

    Args:
        feature: The feature being called.
        actor: The acting actor.
        dialog_type: Action type of the dialog or pool.
        dialog_state: Dialog input, if any.
        workflow_step: Step id the hook runs for, if any.

    Returns:
        The hook context.
    """
    data: dict[str, Any] = dict(actor.feature_data.get(feature.id, {}))
    if dialog_state is not None:
        data.update(dialog_state.feature_state.get(feature.id, {}))
    return FeatureContext(
        actor=actor,
        dialog_type=str(dialog_type),
        feature_data=FeatureData.model_validate(data),
        dialog_state=dialog_state,
        workflow_step=workflow_step,
    )


__all__ = [
    "FeatureData",
    "FeatureContext",
    "Feature",
    "BaseFeature",
    "build_feature_context",
]
