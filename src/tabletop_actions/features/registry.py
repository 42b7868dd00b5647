"""Feature registry.

The registry is an explicit, ordered table of feature instances built at
startup and passed to the builder and orchestrator. Registration order
is the order in which features mutate a dice pool. The registry is read
only while workflows run.

Example:
    >>> registry = build_default_registry()
    >>> [f.id for f in registry.get_features_for_workflow_step("attack-resolve")]
    ['improved-critical', 'superior-critical']
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

from tabletop_actions.core.exceptions import FeatureRegistrationError
from tabletop_actions.core.logging import get_logger
from tabletop_actions.features.base import Feature, build_feature_context
from tabletop_actions.models.actors import ActorRecord
from tabletop_actions.models.modifiers import ModifierInput
from tabletop_actions.models.results import RangeModification
from tabletop_actions.models.state import DialogState


logger = get_logger(__name__)


class FeatureRegistry:
    """Ordered collection of features keyed by id."""

    def __init__(self, features: Iterable[Feature] = ()) -> None:
        """Initialize the registry.

        Args:
            features: Features to register, in order.
        """
        self._features: dict[str, Feature] = {}
        for feature in features:
            self.register(feature)

    def __len__(self) -> int:
        return len(self._features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self._features.values())

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self._features

    def register(self, feature: Feature) -> Feature:
        """Add a feature to the end of the registry.

        Args:
            feature: Feature to register.

        Returns:
            The registered feature.

        Raises:
            FeatureRegistrationError: If the id is empty or already taken.
        """
        if not getattr(feature, "id", None):
            raise FeatureRegistrationError("Feature has no id", details={"feature": repr(feature)})
        if feature.id in self._features:
            raise FeatureRegistrationError(
                f"Feature '{feature.id}' is already registered",
                feature_id=feature.id,
            )

        self._features[feature.id] = feature
        logger.debug("Feature registered", feature_id=feature.id, name=feature.name)
        return feature

    def get(self, feature_id: str) -> Feature | None:
        """Look up a feature by id."""
        return self._features.get(feature_id)

    def all(self) -> list[Feature]:
        """All features in registration order."""
        return list(self._features.values())

    def get_features_for_workflow_step(self, step_id: str) -> list[Feature]:
        """Features hooking into a workflow step, in registration order."""
        return [feature for feature in self._features.values() if feature.affects_workflow_step(step_id)]

    def get_workflow_steps_for_feature(self, feature_id: str) -> list[str]:
        """Workflow step ids a feature hooks into; empty when unknown."""
        feature = self._features.get(feature_id)
        return list(feature.workflow_steps) if feature else []

    def get_reactive_features(self) -> list[Feature]:
        """Features that affect rolls made against their owner."""
        return [feature for feature in self._features.values() if feature.is_reactive]

    def is_feature_available(self, actor: ActorRecord, feature_id: str) -> bool:
        """Check whether an actor has access to a feature.

        A feature is available through a feat whose name exactly matches
        the feature name, or through an equipped item whose
        ``properties[feature_id]`` is truthy.

        Args:
            actor: The actor.
            feature_id: Registered feature id.

        Returns:
            True if the feature is available to the actor.
        """
        feature = self._features.get(feature_id)
        if feature is None:
            logger.debug("Feature not registered", feature_id=feature_id)
            return False

        if actor.has_feat(feature.name):
            return True

        return any(item.properties.get(feature_id) for item in actor.equipped_items)

    def get_features_by_actor_and_dialog(
        self,
        actor: ActorRecord,
        dialog_type: str,
    ) -> list[Feature]:
        """Features affecting a dialog type that the actor has access to.

        Args:
            actor: The actor.
            dialog_type: Dialog (action) type.

        Returns:
            Available features in registration order.
        """
        available = [
            feature
            for feature in self._features.values()
            if feature.affects_dialog_type(dialog_type) and self.is_feature_available(actor, feature.id)
        ]
        logger.debug(
            "Features resolved for dialog",
            actor=actor.name,
            dialog_type=dialog_type,
            count=len(available),
        )
        return available

    def validate_feature(
        self,
        feature: Feature,
        actor: ActorRecord,
        dialog_type: str,
        *,
        dialog_state: DialogState | None = None,
        workflow_step: str | None = None,
    ) -> str | None:
        """Run a feature's validation hook.

        Args:
            feature: The feature.
            actor: The acting actor.
            dialog_type: Dialog (action) type.
            dialog_state: Dialog input, if any.
            workflow_step: Step id, if any.

        Returns:
            None when the feature may be used, otherwise the veto reason.
        """
        context = build_feature_context(
            feature,
            actor,
            dialog_type,
            dialog_state=dialog_state,
            workflow_step=workflow_step,
        )
        try:
            verdict = feature.validation_logic(context)
        except Exception as exc:
            logger.exception("Feature validation failed", feature_id=feature.id)
            return f"Validation error: {exc}"

        if verdict is True:
            return None
        if isinstance(verdict, str) and verdict:
            return verdict
        return f"{feature.name} cannot be used"

    def collect_roll_modifiers(
        self,
        actor: ActorRecord,
        dialog_type: str,
        dialog_state: DialogState | None = None,
        *,
        exclude: Iterable[str] = (),
    ) -> list[ModifierInput]:
        """Gather the modifiers every available feature offers a dialog.

        Args:
            actor: The acting actor.
            dialog_type: Dialog (action) type.
            dialog_state: Dialog input carrying per-feature data.
            exclude: Feature ids to skip, e.g. vetoed features.

        Returns:
            Modifier inputs in registration order.
        """
        excluded = set(exclude)
        modifiers: list[ModifierInput] = []
        for feature in self.get_features_by_actor_and_dialog(actor, dialog_type):
            if feature.id in excluded:
                continue
            context = build_feature_context(feature, actor, dialog_type, dialog_state=dialog_state)
            modifiers.extend(feature.roll_modifiers(context))
        return modifiers

    def collect_range_modifications(
        self,
        actor: ActorRecord,
        step_id: str,
        dialog_type: str,
        dialog_state: DialogState | None = None,
        *,
        exclude: Iterable[str] = (),
    ) -> list[RangeModification]:
        """Gather critical range changes declared for a workflow step.

        Args:
            actor: The acting actor.
            step_id: Workflow step id, e.g. "attack-resolve".
            dialog_type: Dialog (action) type.
            dialog_state: Dialog input carrying per-feature data.
            exclude: Feature ids to skip.

        Returns:
            Range modifications in registration order.
        """
        excluded = set(exclude)
        modifications: list[RangeModification] = []
        for feature in self.get_features_for_workflow_step(step_id):
            if feature.id in excluded or not self.is_feature_available(actor, feature.id):
                continue
            declare = getattr(feature, "critical_range_modifications", None)
            if declare is None:
                continue
            context = build_feature_context(
                feature,
                actor,
                dialog_type,
                dialog_state=dialog_state,
                workflow_step=step_id,
            )
            modifications.extend(declare(context))
        return modifications

    def describe(self) -> list[dict[str, Any]]:
        """Metadata for every registered feature."""
        return [
            {
                "id": feature.id,
                "name": feature.name,
                "affects": list(feature.affects),
                "workflow_steps": list(feature.workflow_steps),
                "is_reactive": feature.is_reactive,
            }
            for feature in self._features.values()
        ]


def build_default_registry() -> FeatureRegistry:
    """Create a registry holding every shipped feature pack."""
    from tabletop_actions.features.packs import DEFAULT_FEATURES

    registry = FeatureRegistry(factory() for factory in DEFAULT_FEATURES)
    logger.info("Feature registry initialized", features=len(registry))
    return registry


__all__ = [
    "FeatureRegistry",
    "build_default_registry",
]
