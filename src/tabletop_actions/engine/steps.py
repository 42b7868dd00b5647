"""Workflow step handlers.

Each handler is a callable taking the action state and returning it.
Handlers share their collaborators through ``StepServices`` and record
everything they resolve on the state, so later steps in a chain read
earlier results instead of re-deriving them.

Steps:
    start: Resolve the actor and targets, run feature vetoes
    attack: Roll the attack and resolve it against each target's AC
    damage: Roll damage for targets that were hit
    save: Roll each target's save against the DC
    applyDamage: Apply resistances, saves and hit point loss
    check: Resolve a skill or ability check against a DC
    complete: Build the serialized summary
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from tabletop_actions.core.config import Settings
from tabletop_actions.core.exceptions import ActorNotFoundError, WorkflowStepError
from tabletop_actions.core.logging import get_logger
from tabletop_actions.engine.d20_engine import D20Engine
from tabletop_actions.engine.dice import DiceEvaluator, RollOutcome
from tabletop_actions.engine.pool_builder import DicePoolBuilder
from tabletop_actions.engine.targets import ActorDataSource, TargetProcessor
from tabletop_actions.features.registry import FeatureRegistry
from tabletop_actions.models.actors import ActorRecord, TargetData
from tabletop_actions.models.enums import ActionType, CheckType, ErrorType
from tabletop_actions.models.modifiers import DicePoolResult, ModifierInput
from tabletop_actions.models.state import ActionState, RollRecord


logger = get_logger(__name__)

StepHandler = Callable[[ActionState], ActionState]

ATTACK_RESOLVE_STEP = "attack-resolve"


@dataclass(frozen=True)
class StepServices:
    """Collaborators shared by every step handler."""

    registry: FeatureRegistry
    builder: DicePoolBuilder
    engine: D20Engine
    evaluator: DiceEvaluator
    actor_source: ActorDataSource
    settings: Settings


class WorkflowStep:
    """Base class for step handlers."""

    step_id: str = ""

    def __init__(self, services: StepServices) -> None:
        self.services = services

    def __call__(self, state: ActionState) -> ActionState:
        raise NotImplementedError

    def _require_actor(self, state: ActionState) -> ActorRecord:
        if state.actor is None:
            raise WorkflowStepError(
                "Actor has not been resolved; the start step must run first",
                step=self.step_id,
            )
        return state.actor

    def _roll(
        self,
        state: ActionState,
        formula: str,
        *,
        target_id: str | None = None,
    ) -> RollOutcome:
        outcome = self.services.evaluator.evaluate(formula)
        state.record_roll(
            RollRecord(
                step=self.step_id,
                formula=formula,
                total=outcome.total,
                natural=outcome.natural_d20,
                target_id=target_id,
                totals_by_type=dict(outcome.totals_by_type),
            )
        )
        return outcome

    @staticmethod
    def _store_pool(state: ActionState, key: str, pool: DicePoolResult) -> None:
        state.dice_pools = {**state.dice_pools, key: pool}

    @staticmethod
    def _attack_resolved(state: ActionState) -> bool:
        return any(outcome.attack is not None for outcome in state.target_outcomes.values())

    def _affected_targets(self, state: ActionState) -> list[TargetData]:
        """Live targets, narrowed to those hit when an attack was resolved."""
        targets = state.live_targets
        if not self._attack_resolved(state):
            return targets
        return [
            target
            for target in targets
            if (outcome := state.target_outcomes.get(target.id)) is not None and outcome.hit
        ]


# =============================================================================
# Start
# =============================================================================


STEP_DIALOG_TYPES: dict[str, str] = {
    "attack": "attack",
    "damage": "damage",
    "save": "save",
}


class StartStep(WorkflowStep):
    """Validate input, resolve the actor and targets, run feature vetoes."""

    step_id = "start"

    def __call__(self, state: ActionState) -> ActionState:
        dialog = state.dialog_state

        if "save" in state.workflow_steps and dialog.save_dc is None:
            raise WorkflowStepError("Save workflows require a save DC", step=self.step_id)
        if "check" in state.workflow_steps and dialog.check_dc is None:
            raise WorkflowStepError("Check workflows require a check DC", step=self.step_id)

        actor = self.services.actor_source.get_actor(dialog.actor_id)
        if actor is None:
            raise ActorNotFoundError(f"Actor {dialog.actor_id} not found", actor_id=dialog.actor_id)
        state.actor = actor

        processed = TargetProcessor(self.services.actor_source).process_targets(
            dialog.target_ids,
            step=self.step_id,
        )
        state.targets = processed.targets
        state.errors = [*state.errors, *processed.errors]

        self._run_vetoes(state, actor)

        logger.info(
            "Action started",
            actor=actor.name,
            targets=len(state.targets),
            vetoed=state.vetoed_features,
        )
        return state

    def _run_vetoes(self, state: ActionState, actor: ActorRecord) -> None:
        dialog = state.dialog_state
        dialog_types = [STEP_DIALOG_TYPES[step] for step in state.workflow_steps if step in STEP_DIALOG_TYPES]
        if "check" in state.workflow_steps:
            dialog_types.append(dialog.check_type)

        vetoed: list[str] = []
        registry = self.services.registry
        for dialog_type in dialog_types:
            for feature in registry.get_features_by_actor_and_dialog(actor, dialog_type):
                if feature.id in vetoed:
                    continue
                reason = registry.validate_feature(
                    feature,
                    actor,
                    dialog_type,
                    dialog_state=dialog,
                    workflow_step=self.step_id,
                )
                if reason is not None:
                    vetoed.append(feature.id)
                    state.add_error(ErrorType.FEATURE_VETO, reason, step=self.step_id)
                    logger.info("Feature vetoed", feature_id=feature.id, reason=reason)

        state.vetoed_features = vetoed


# =============================================================================
# Attack
# =============================================================================


class AttackStep(WorkflowStep):
    """Roll the attack and classify it against each target's AC."""

    step_id = "attack"

    def __call__(self, state: ActionState) -> ActionState:
        actor = self._require_actor(state)
        dialog = state.dialog_state
        services = self.services

        pool = services.builder.build_pool(
            dialog.attack_modifiers,
            ActionType.ATTACK,
            advantage=dialog.advantage,
            disadvantage=dialog.disadvantage,
            actor=actor,
            dialog_state=dialog,
            vetoed_features=state.vetoed_features,
        )
        self._store_pool(state, self.step_id, pool)

        modifications = services.registry.collect_range_modifications(
            actor,
            ATTACK_RESOLVE_STEP,
            "attack",
            dialog,
            exclude=state.vetoed_features,
        )

        targets = state.live_targets
        if not targets:
            outcome = self._roll(state, pool.formula)
            logger.info("Attack rolled without targets", formula=pool.formula, total=outcome.total)
            return state

        roll_separate = dialog.roll_separate
        if roll_separate is None:
            roll_separate = services.settings.workflow.roll_separate_attacks

        shared = None if roll_separate else self._roll(state, pool.formula)
        for target in targets:
            outcome = shared if shared is not None else self._roll(state, pool.formula, target_id=target.id)
            result = services.engine.classify_outcome(
                outcome,
                target.armor_class,
                CheckType.ATTACK,
                critical_range=dialog.critical_range,
                modifications=modifications,
            )
            record = state.outcome_for(target)
            record.attack = result
            record.hit = result.success
            record.critical = result.success and result.is_critical_success
            logger.info(
                "Attack resolved",
                target=target.name,
                total=result.roll_total,
                armor_class=target.armor_class,
                hit=result.success,
                critical=record.critical,
            )
        return state


# =============================================================================
# Damage
# =============================================================================


class DamageStep(WorkflowStep):
    """Roll damage for every target the attack hit (or every target)."""

    step_id = "damage"

    def __call__(self, state: ActionState) -> ActionState:
        actor = self._require_actor(state)
        dialog = state.dialog_state
        services = self.services
        critical_rule = services.settings.rules.critical_hit_rule

        if not state.live_targets:
            pool = self._build(state, actor, critical=False)
            outcome = self._roll(state, pool.formula)
            logger.info("Damage rolled without targets", formula=pool.formula, total=outcome.total)
            return state

        targets = self._affected_targets(state)
        critical_targets = [t for t in targets if state.outcome_for(t).critical]
        normal_targets = [t for t in targets if not state.outcome_for(t).critical]

        if normal_targets:
            pool = self._build(state, actor, critical=False)
            totals = self._totals(self._roll(state, pool.formula))
            for target in normal_targets:
                state.outcome_for(target).damage_by_type = dict(totals)

        if critical_targets:
            doubled_dice = critical_rule == "double_dice"
            pool = self._build(state, actor, critical=doubled_dice, key="damage-critical")
            totals = self._totals(self._roll(state, pool.formula))
            if not doubled_dice:
                totals = {damage_type: amount * 2 for damage_type, amount in totals.items()}
            for target in critical_targets:
                state.outcome_for(target).damage_by_type = dict(totals)

        logger.info(
            "Damage resolved",
            targets=len(targets),
            critical_targets=len(critical_targets),
            critical_rule=critical_rule,
            skipped=len(state.live_targets) - len(targets),
        )
        return state

    def _build(
        self,
        state: ActionState,
        actor: ActorRecord,
        *,
        critical: bool,
        key: str = "damage",
    ) -> DicePoolResult:
        dialog = state.dialog_state
        pool = self.services.builder.build_pool(
            dialog.damage_modifiers,
            ActionType.DAMAGE,
            advantage=dialog.damage_advantage,
            disadvantage=dialog.damage_disadvantage,
            actor=actor,
            dialog_state=dialog,
            vetoed_features=state.vetoed_features,
            critical=critical,
        )
        self._store_pool(state, key, pool)
        return pool

    def _totals(self, outcome: RollOutcome) -> dict[str, int]:
        if outcome.totals_by_type:
            return {damage_type: max(0, amount) for damage_type, amount in outcome.totals_by_type.items()}
        if outcome.total <= 0:
            return {}
        return {self.services.builder.base_damage_type: outcome.total}


# =============================================================================
# Save
# =============================================================================


class SaveStep(WorkflowStep):
    """Roll each affected target's saving throw against the DC."""

    step_id = "save"

    def __call__(self, state: ActionState) -> ActionState:
        dialog = state.dialog_state
        if dialog.save_dc is None:
            raise WorkflowStepError("Save step requires a save DC", step=self.step_id)

        ability = dialog.save_ability
        for target in self._affected_targets(state):
            inputs = [
                ModifierInput(
                    modifier_name=f"{ability.title()} Save",
                    modifier=str(target.save_bonus(ability)),
                ),
                *dialog.save_modifiers,
            ]
            pool = self.services.builder.build_pool(inputs, ActionType.SAVE)
            self._store_pool(state, f"save:{target.id}", pool)

            outcome = self._roll(state, pool.formula, target_id=target.id)
            result = self.services.engine.classify_outcome(outcome, dialog.save_dc, CheckType.SAVE)

            record = state.outcome_for(target)
            record.save = result
            record.saved = result.success
            logger.info(
                "Save resolved",
                target=target.name,
                ability=ability,
                total=result.roll_total,
                dc=dialog.save_dc,
                saved=result.success,
            )
        return state


# =============================================================================
# Apply Damage
# =============================================================================


class ApplyDamageStep(WorkflowStep):
    """Apply defenses and save results, then push damage to the host."""

    step_id = "applyDamage"

    def __call__(self, state: ActionState) -> ActionState:
        dialog = state.dialog_state
        for target in state.live_targets:
            record = state.target_outcomes.get(target.id)
            if record is None or not record.damage_by_type:
                continue

            amount = sum(
                target.modify_damage(value, damage_type) for damage_type, value in record.damage_by_type.items()
            )
            if record.saved:
                amount = amount // 2 if dialog.save_effect == "half" else 0

            record.damage_applied = amount
            if amount > 0:
                self.services.actor_source.apply_damage(target.id, amount)
            logger.info("Damage applied to target", target=target.name, amount=amount, saved=record.saved)
        return state


# =============================================================================
# Check
# =============================================================================


class CheckStep(WorkflowStep):
    """Resolve a skill or ability check against a DC."""

    step_id = "check"

    def __call__(self, state: ActionState) -> ActionState:
        actor = self._require_actor(state)
        dialog = state.dialog_state
        if dialog.check_dc is None:
            raise WorkflowStepError("Check step requires a check DC", step=self.step_id)

        action = ActionType(dialog.check_type)
        pool = self.services.builder.build_pool(
            dialog.check_modifiers,
            action,
            advantage=dialog.advantage,
            disadvantage=dialog.disadvantage,
            actor=actor,
            dialog_state=dialog,
            vetoed_features=state.vetoed_features,
        )
        self._store_pool(state, self.step_id, pool)

        outcome = self._roll(state, pool.formula)
        state.check_result = self.services.engine.classify_outcome(outcome, dialog.check_dc, CheckType(action))
        logger.info(
            "Check resolved",
            check_type=str(action),
            total=outcome.total,
            dc=dialog.check_dc,
            degree=str(state.check_result.degree),
        )
        return state


# =============================================================================
# Complete
# =============================================================================


def build_summary(state: ActionState) -> dict[str, Any]:
    """Serialize the outcome of a run.

    Args:
        state: The action state.

    Returns:
        JSON-compatible summary of the run.
    """
    targets: list[dict[str, Any]] = []
    for target in state.targets:
        record = state.target_outcomes.get(target.id)
        targets.append(
            {
                "id": target.id,
                "name": target.name,
                "error": target.error,
                "hit": record.hit if record else None,
                "critical": record.critical if record else False,
                "damage_by_type": dict(record.damage_by_type) if record else {},
                "damage_total": record.damage_total if record else 0,
                "saved": record.saved if record else None,
                "damage_applied": record.damage_applied if record else None,
            }
        )

    return {
        "workflow_id": state.workflow_id,
        "workflow_type": state.workflow_type,
        "actor": state.actor.name if state.actor else None,
        "item": state.dialog_state.item_name,
        "targets": targets,
        "rolls": [roll.model_dump(mode="json") for roll in state.rolls],
        "check": state.check_result.model_dump(mode="json") if state.check_result else None,
        "vetoed_features": list(state.vetoed_features),
        "errors": [entry.model_dump(mode="json") for entry in state.errors],
    }


class CompleteStep(WorkflowStep):
    """Stamp completion and build the summary."""

    step_id = "complete"

    def __call__(self, state: ActionState) -> ActionState:
        state.completed_at = datetime.now(UTC)
        state.summary = build_summary(state)
        logger.info(
            "Action completed",
            rolls=len(state.rolls),
            errors=len(state.errors),
        )
        return state


DEFAULT_STEPS: tuple[type[WorkflowStep], ...] = (
    StartStep,
    AttackStep,
    DamageStep,
    SaveStep,
    ApplyDamageStep,
    CheckStep,
    CompleteStep,
)


def build_step_handlers(services: StepServices) -> dict[str, StepHandler]:
    """Instantiate every shipped step handler keyed by step id."""
    return {step_class.step_id: step_class(services) for step_class in DEFAULT_STEPS}


__all__ = [
    "StepHandler",
    "StepServices",
    "WorkflowStep",
    "StartStep",
    "AttackStep",
    "DamageStep",
    "SaveStep",
    "ApplyDamageStep",
    "CheckStep",
    "CompleteStep",
    "DEFAULT_STEPS",
    "build_step_handlers",
    "build_summary",
]
