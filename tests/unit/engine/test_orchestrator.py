"""Tests for the workflow orchestrator.

Rolls come from the scripted evaluator: each queued entry is
``(total, natural_d20)`` or ``(total, natural_d20, totals_by_type)``.
"""

from __future__ import annotations

from typing import Any

import pytest
import structlog

from tabletop_actions.core.config import RulesSettings, Settings, WorkflowSettings
from tabletop_actions.core.exceptions import (
    ActorNotFoundError,
    WorkflowConfigurationError,
    WorkflowStepError,
)
from tabletop_actions.engine.orchestrator import WorkflowOrchestrator
from tabletop_actions.engine.workflows import WorkflowDefinition
from tabletop_actions.models.actors import ActorRecord
from tabletop_actions.models.enums import DegreeOfSuccess, ErrorType
from tabletop_actions.models.modifiers import ModifierInput
from tabletop_actions.models.state import ActionState, DialogState


def attack_dialog(*target_ids: str, **kwargs: Any) -> DialogState:
    """Dialog for a +5 attack dealing 1d8+3."""
    return DialogState(
        actor_id="hero",
        target_ids=list(target_ids),
        attack_modifiers=[ModifierInput(modifier_name="Strength", modifier="5")],
        damage_modifiers=[ModifierInput(modifier_name="Vibroblade", modifier="1d8+3")],
        **kwargs,
    )


class TestAttackDamageWorkflow:
    """Tests for the attack-damage chain."""

    def test_hit(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test a hit rolls damage against the target."""
        scripted_evaluator.queue((17, 12), (8, None, {"kinetic": 8}))

        state = orchestrator.run("attack-damage", attack_dialog("goblin"))

        assert state.completed_steps == ["start", "attack", "damage", "complete"]
        assert scripted_evaluator.formulas == ["1d20+5", "(1d8+3)[kinetic]"]
        outcome = state.target_outcomes["goblin"]
        assert outcome.hit is True
        assert outcome.critical is False
        assert outcome.damage_by_type == {"kinetic": 8}
        assert state.errors == []
        assert state.completed_at is not None
        assert state.is_complete is True

    def test_miss_skips_damage(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test a miss rolls no damage."""
        scripted_evaluator.queue((10, 5))

        state = orchestrator.run("attack-damage", attack_dialog("goblin"))

        assert scripted_evaluator.formulas == ["1d20+5"]
        assert state.target_outcomes["goblin"].hit is False
        assert state.target_outcomes["goblin"].damage_total == 0
        assert state.completed_steps[-1] == "complete"

    def test_natural_one_misses(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test a natural 1 misses even when the total beats AC."""
        scripted_evaluator.queue((25, 1))

        state = orchestrator.run("attack-damage", attack_dialog("goblin"))

        assert state.target_outcomes["goblin"].hit is False
        assert state.target_outcomes["goblin"].attack.degree == DegreeOfSuccess.CRITICAL_FAILURE

    def test_critical_doubles_dice(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test a critical hit rolls doubled damage dice."""
        scripted_evaluator.queue((25, 20), (14, None, {"kinetic": 14}))

        state = orchestrator.run("attack-damage", attack_dialog("goblin"))

        assert scripted_evaluator.formulas[1] == "(2d8+3)[kinetic]"
        assert state.target_outcomes["goblin"].critical is True
        assert state.dice_pools["damage-critical"].critical is True
        assert state.target_outcomes["goblin"].damage_total == 14

    def test_critical_doubles_damage(
        self,
        registry: Any,
        scripted_evaluator: Any,
        actor_source: Any,
    ) -> None:
        """Test the double_damage rule doubles rolled totals instead."""
        settings = Settings(rules=RulesSettings(critical_hit_rule="double_damage"))
        orchestrator = WorkflowOrchestrator(registry, scripted_evaluator, actor_source, settings=settings)
        scripted_evaluator.queue((25, 20), (8, None, {"kinetic": 8}))

        state = orchestrator.run("attack-damage", attack_dialog("goblin"))

        assert scripted_evaluator.formulas[1] == "(1d8+3)[kinetic]"
        assert state.target_outcomes["goblin"].damage_by_type == {"kinetic": 16}

    def test_improved_critical(
        self,
        orchestrator: WorkflowOrchestrator,
        scripted_evaluator: Any,
        hero: ActorRecord,
    ) -> None:
        """Test Improved Critical makes a natural 19 critical."""
        hero.feats = [*hero.feats, "Improved Critical"]
        scripted_evaluator.queue((24, 19), (14, None, {"kinetic": 14}))

        state = orchestrator.run("attack-damage", attack_dialog("goblin"))

        attack = state.target_outcomes["goblin"].attack
        assert attack.critical_range.min == 19
        assert state.target_outcomes["goblin"].critical is True

    def test_explicit_critical_range(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test a dialog critical range override."""
        scripted_evaluator.queue((23, 18), (14, None, {"kinetic": 14}))

        state = orchestrator.run(
            "attack-damage",
            attack_dialog("goblin", critical_range={"min": 18, "max": 20}),
        )

        assert state.target_outcomes["goblin"].critical is True

    def test_untyped_totals_fall_back_to_base_type(
        self,
        orchestrator: WorkflowOrchestrator,
        scripted_evaluator: Any,
    ) -> None:
        """Test an evaluator without per-type totals credits the base type."""
        scripted_evaluator.queue((9, None))

        state = orchestrator.run("damage", attack_dialog("goblin"))

        assert state.target_outcomes["goblin"].damage_by_type == {"kinetic": 9}


class TestTargets:
    """Tests for target handling inside workflows."""

    def test_missing_target_recorded(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test a missing target becomes a placeholder and an error."""
        scripted_evaluator.queue((17, 12))

        state = orchestrator.run("attack", attack_dialog("goblin", "ghost"))

        assert [target.name for target in state.targets] == ["Goblin", "Missing Target"]
        assert [entry.type for entry in state.errors] == [ErrorType.TARGET_MISSING]
        assert "ghost" not in state.target_outcomes
        assert state.summary["targets"][1]["error"] is not None
        assert state.completed_steps[-1] == "complete"

    def test_shared_attack_roll(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test one attack roll is shared by every target by default."""
        scripted_evaluator.queue((12, 7))

        state = orchestrator.run("attack", attack_dialog("goblin", "ogre"))

        assert len(state.rolls) == 1
        assert state.target_outcomes["goblin"].hit is False
        assert state.target_outcomes["ogre"].hit is True

    def test_separate_attack_rolls(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test one attack roll per target when requested."""
        scripted_evaluator.queue((14, 9), (10, 5))

        state = orchestrator.run("attack", attack_dialog("goblin", "ogre", roll_separate=True))

        assert [roll.target_id for roll in state.rolls] == ["goblin", "ogre"]
        assert state.target_outcomes["goblin"].hit is True
        assert state.target_outcomes["ogre"].hit is False

    def test_separate_rolls_from_settings(
        self,
        registry: Any,
        scripted_evaluator: Any,
        actor_source: Any,
    ) -> None:
        """Test the settings default applies when the dialog is silent."""
        settings = Settings(workflow=WorkflowSettings(roll_separate_attacks=True))
        orchestrator = WorkflowOrchestrator(registry, scripted_evaluator, actor_source, settings=settings)
        scripted_evaluator.queue((14, 9), (10, 5))

        state = orchestrator.run("attack", attack_dialog("goblin", "ogre"))

        assert len(state.rolls) == 2

    def test_no_targets(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test an untargeted attack still rolls."""
        scripted_evaluator.queue((17, 12))

        state = orchestrator.run("attack", attack_dialog())

        assert len(state.rolls) == 1
        assert state.target_outcomes == {}


class TestFeatures:
    """Tests for feature vetoes and pool mutation inside workflows."""

    def test_enabled_feature_adds_damage(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test Force-Empowered Self adds its die when enabled."""
        scripted_evaluator.queue((17, 12), (12, None, {"kinetic": 12}))

        state = orchestrator.run(
            "attack-damage",
            attack_dialog("goblin", feature_state={"force-empowered-self": {"enabled": True}}),
        )

        assert scripted_evaluator.formulas[1] == "(1d8+1d6+3)[kinetic]"
        assert state.dice_pools["damage"].feature_names == ["Force-Empowered Self"]
        assert state.vetoed_features == []

    def test_veto_without_force_points(
        self,
        orchestrator: WorkflowOrchestrator,
        scripted_evaluator: Any,
        hero: ActorRecord,
    ) -> None:
        """Test the feature is vetoed and skipped without Force Points."""
        hero.resources = {"Force Points": 0}
        scripted_evaluator.queue((17, 12), (8, None, {"kinetic": 8}))

        state = orchestrator.run(
            "attack-damage",
            attack_dialog("goblin", feature_state={"force-empowered-self": {"enabled": True}}),
        )

        assert state.vetoed_features == ["force-empowered-self"]
        assert [entry.type for entry in state.errors] == [ErrorType.FEATURE_VETO]
        assert "Not enough Force Points" in state.errors[0].message
        assert scripted_evaluator.formulas[1] == "(1d8+3)[kinetic]"
        assert state.completed_steps[-1] == "complete"


class TestSaveAndApplyDamage:
    """Tests for save and apply-damage steps."""

    def full_dialog(self, **kwargs: Any) -> DialogState:
        return DialogState(
            actor_id="hero",
            target_ids=["ogre"],
            attack_modifiers=[ModifierInput(modifier="5")],
            damage_modifiers=[
                ModifierInput(modifier="1d8+3"),
                ModifierInput(modifier="1d6", modifier_type="fire"),
            ],
            save_dc=13,
            **kwargs,
        )

    def test_failed_save_full_damage(
        self,
        orchestrator: WorkflowOrchestrator,
        scripted_evaluator: Any,
        ogre: ActorRecord,
    ) -> None:
        """Test resistance and vulnerability apply on a failed save."""
        scripted_evaluator.queue((18, 13), (12, None, {"kinetic": 8, "fire": 4}), (11, 12))

        state = orchestrator.run("attack-damage-save-applyDamage", self.full_dialog())

        assert scripted_evaluator.formulas == ["1d20+5", "(1d8+3)[kinetic]+(1d6)[fire]", "1d20-1"]
        outcome = state.target_outcomes["ogre"]
        assert outcome.saved is False
        assert outcome.damage_applied == 12
        assert ogre.hit_points == 47

    def test_successful_save_half_damage(
        self,
        orchestrator: WorkflowOrchestrator,
        scripted_evaluator: Any,
        ogre: ActorRecord,
    ) -> None:
        """Test a successful save halves damage."""
        scripted_evaluator.queue((18, 13), (12, None, {"kinetic": 8, "fire": 4}), (14, 15))

        state = orchestrator.run("attack-damage-save-applyDamage", self.full_dialog())

        assert state.target_outcomes["ogre"].saved is True
        assert state.target_outcomes["ogre"].damage_applied == 6
        assert ogre.hit_points == 53

    def test_successful_save_no_damage(
        self,
        orchestrator: WorkflowOrchestrator,
        scripted_evaluator: Any,
        ogre: ActorRecord,
    ) -> None:
        """Test save_effect none negates damage on a successful save."""
        scripted_evaluator.queue((18, 13), (12, None, {"kinetic": 8, "fire": 4}), (14, 15))

        state = orchestrator.run("attack-damage-save-applyDamage", self.full_dialog(save_effect="none"))

        assert state.target_outcomes["ogre"].damage_applied == 0
        assert ogre.hit_points == 59

    def test_miss_skips_save(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test targets the attack missed neither save nor take damage."""
        scripted_evaluator.queue((8, 3))

        state = orchestrator.run("attack-damage-save-applyDamage", self.full_dialog())

        assert scripted_evaluator.formulas == ["1d20+5"]
        assert state.target_outcomes["ogre"].save is None
        assert state.target_outcomes["ogre"].damage_applied is None

    def test_save_without_attack(
        self,
        orchestrator: WorkflowOrchestrator,
        scripted_evaluator: Any,
        goblin: ActorRecord,
    ) -> None:
        """Test damage and saves apply to every target without an attack."""
        scripted_evaluator.queue((7, None, {"kinetic": 7}), (5, 3))

        state = orchestrator.run(
            "damage-save-applyDamage",
            DialogState(
                actor_id="hero",
                target_ids=["goblin"],
                damage_modifiers=[ModifierInput(modifier="2d6")],
                save_dc=12,
            ),
        )

        assert scripted_evaluator.formulas == ["(2d6)[kinetic]", "1d20+2"]
        assert state.target_outcomes["goblin"].saved is False
        assert goblin.hit_points == 0

    def test_save_modifiers_added(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test dialog save modifiers join the target's bonus."""
        scripted_evaluator.queue((15, 10))

        orchestrator.run(
            "save",
            DialogState(
                actor_id="hero",
                target_ids=["goblin"],
                save_dc=14,
                save_modifiers=[ModifierInput(modifier_name="Bless", modifier="1d4")],
            ),
        )

        assert scripted_evaluator.formulas == ["1d20+1d4+2"]


class TestCheckWorkflow:
    """Tests for the check workflow."""

    def test_skill_check(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test a skill check is graded against the DC."""
        scripted_evaluator.queue((24, 20))

        state = orchestrator.run(
            "check",
            DialogState(actor_id="hero", check_dc=15, check_modifiers=[ModifierInput(modifier="4")]),
        )

        assert scripted_evaluator.formulas == ["1d20+4"]
        assert state.check_result.degree == DegreeOfSuccess.CRITICAL_SUCCESS
        assert state.summary["check"]["degree"] == "criticalSuccess"

    def test_ability_check_with_advantage(
        self,
        orchestrator: WorkflowOrchestrator,
        scripted_evaluator: Any,
    ) -> None:
        """Test ability checks honor advantage."""
        scripted_evaluator.queue((12, 10))

        state = orchestrator.run(
            "check",
            DialogState(
                actor_id="hero",
                check_type="ability",
                check_dc=15,
                advantage=True,
                check_modifiers=[ModifierInput(modifier="2")],
            ),
        )

        assert scripted_evaluator.formulas == ["max(1d20,1d20)+2"]
        assert state.check_result.degree == DegreeOfSuccess.MINOR_FAILURE

    def test_missing_dc(self, orchestrator: WorkflowOrchestrator) -> None:
        """Test check workflows require a DC."""
        with pytest.raises(WorkflowStepError):
            orchestrator.run("check", DialogState(actor_id="hero"))


class TestExecution:
    """Tests for sequencing, cancellation and failure handling."""

    def test_cancel_from_callback(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test cancelling after start stops before the attack."""

        def cancel_after_start(step_id: str, state: ActionState) -> None:
            if step_id == "start":
                state.cancel()

        orchestrator.add_step_callback(cancel_after_start)

        state = orchestrator.run("attack", attack_dialog("goblin"))

        assert state.completed_steps == ["start"]
        assert state.current_step == "attack"
        assert state.summary is None
        assert scripted_evaluator.formulas == []
        assert state.errors_for_step("attack") == []

    def test_cancelled_before_run(self, orchestrator: WorkflowOrchestrator) -> None:
        """Test a cancelled state runs nothing."""
        state = orchestrator.create_state("attack", attack_dialog("goblin"))
        state.cancel()

        assert orchestrator.execute(state).completed_steps == []

    def test_callbacks_see_every_step(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test callbacks run after each step in order."""
        seen: list[str] = []
        orchestrator.add_step_callback(lambda step_id, state: seen.append(step_id))
        scripted_evaluator.queue((10, 5))

        orchestrator.run("attack", attack_dialog("goblin"))

        assert seen == ["start", "attack", "complete"]

    def test_failing_callback_does_not_stop_run(
        self,
        orchestrator: WorkflowOrchestrator,
        scripted_evaluator: Any,
    ) -> None:
        """Test callback exceptions are logged and swallowed."""

        def explode(step_id: str, state: ActionState) -> None:
            raise RuntimeError("listener broke")

        orchestrator.add_step_callback(explode)
        scripted_evaluator.queue((10, 5))

        state = orchestrator.run("attack", attack_dialog("goblin"))

        assert state.completed_steps == ["start", "attack", "complete"]

    def test_step_error_recorded_and_raised(self, orchestrator: WorkflowOrchestrator) -> None:
        """Test a failing step records the error before re-raising."""
        state = orchestrator.create_state("save", DialogState(actor_id="hero", target_ids=["goblin"]))

        with pytest.raises(WorkflowStepError):
            orchestrator.execute(state)

        assert state.errors[-1].type == ErrorType.STEP_RUNTIME
        assert state.errors[-1].step == "start"
        assert state.errors[-1].message == "Save workflows require a save DC"
        assert state.completed_steps == []

    def test_unknown_actor(self, orchestrator: WorkflowOrchestrator) -> None:
        """Test an unknown acting actor aborts the run."""
        with pytest.raises(ActorNotFoundError):
            orchestrator.run("attack", DialogState(actor_id="nobody"))

    def test_unknown_workflow(self, orchestrator: WorkflowOrchestrator) -> None:
        """Test unknown workflows fail at construction."""
        with pytest.raises(WorkflowConfigurationError):
            orchestrator.run("fireball", attack_dialog("goblin"))

    def test_missing_handler(self, registry: Any, scripted_evaluator: Any, actor_source: Any) -> None:
        """Test a step without a handler is recorded as a configuration error."""
        table = (WorkflowDefinition("parley", ("start", "parley", "complete")),)
        orchestrator = WorkflowOrchestrator(registry, scripted_evaluator, actor_source, workflows=table)
        state = orchestrator.create_state("parley", attack_dialog())

        with pytest.raises(WorkflowConfigurationError):
            orchestrator.execute(state)

        assert state.completed_steps == ["start"]
        errors = state.errors_for_step("parley")
        assert [entry.type for entry in errors] == [ErrorType.STEP_RUNTIME]
        assert errors[0].message == "No handler registered for step 'parley'"

    def test_default_workflow(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test a run without a workflow name uses the configured default."""
        scripted_evaluator.queue((10, 5))

        state = orchestrator.run(None, attack_dialog("goblin"))

        assert state.workflow_type == "attack-damage"
        assert state.completed_steps == ["start", "attack", "damage", "complete"]
        assert scripted_evaluator.formulas == ["1d20+5"]

    def test_default_workflow_from_settings(
        self,
        registry: Any,
        scripted_evaluator: Any,
        actor_source: Any,
    ) -> None:
        """Test the default workflow setting is honored."""
        settings = Settings(workflow=WorkflowSettings(default_workflow="damage"))
        orchestrator = WorkflowOrchestrator(registry, scripted_evaluator, actor_source, settings=settings)
        scripted_evaluator.queue((9, None, {"kinetic": 9}))

        state = orchestrator.run(None, attack_dialog("goblin"))

        assert state.workflow_type == "damage"
        assert state.target_outcomes["goblin"].damage_by_type == {"kinetic": 9}

    def test_custom_handler(self, registry: Any, scripted_evaluator: Any, actor_source: Any) -> None:
        """Test custom handlers extend the shipped ones."""
        table = (WorkflowDefinition("parley", ("start", "parley", "complete")),)

        def parley(state: ActionState) -> ActionState:
            state.add_error(ErrorType.STEP_WARNING, "The goblin is not impressed", step="parley")
            return state

        orchestrator = WorkflowOrchestrator(
            registry,
            scripted_evaluator,
            actor_source,
            workflows=table,
            step_handlers={"parley": parley},
        )

        state = orchestrator.run("parley", attack_dialog("goblin"))

        assert state.completed_steps == ["start", "parley", "complete"]
        assert state.errors_for_step("parley")[0].message == "The goblin is not impressed"

    def test_handler_must_return_state(self, registry: Any, scripted_evaluator: Any, actor_source: Any) -> None:
        """Test a handler returning None fails the step."""
        table = (WorkflowDefinition("broken", ("start", "broken", "complete")),)
        orchestrator = WorkflowOrchestrator(
            registry,
            scripted_evaluator,
            actor_source,
            workflows=table,
            step_handlers={"broken": lambda state: None},
        )
        state = orchestrator.create_state("broken", attack_dialog())

        with pytest.raises(WorkflowStepError):
            orchestrator.execute(state)

        assert state.errors[-1].step == "broken"

    def test_logging_context_cleared(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test the workflow logging context does not leak after a run."""
        scripted_evaluator.queue((10, 5))

        orchestrator.run("attack", attack_dialog("goblin"))

        assert structlog.contextvars.get_contextvars() == {}

    def test_summary(self, orchestrator: WorkflowOrchestrator, scripted_evaluator: Any) -> None:
        """Test the summary is JSON-ready and complete."""
        scripted_evaluator.queue((17, 12), (8, None, {"kinetic": 8}))

        state = orchestrator.run("attack-damage", attack_dialog("goblin", item_name="Vibroblade"))

        summary = state.summary
        assert summary["workflow_id"] == state.workflow_id
        assert summary["actor"] == "Kira"
        assert summary["item"] == "Vibroblade"
        assert summary["targets"][0]["damage_total"] == 8
        assert [roll["formula"] for roll in summary["rolls"]] == ["1d20+5", "(1d8+3)[kinetic]"]
        assert summary["check"] is None
