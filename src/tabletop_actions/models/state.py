"""Pydantic V2 schemas for dialog input and action state.

The dialog state is what the caller (a dialog or chat command) collected
for one action. The action state is the mutable record of one workflow
run: it is created once, handed from step to step, and returned to the
caller with every roll, result and error attached.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from tabletop_actions.core.exceptions import WorkflowConfigurationError
from tabletop_actions.models.actors import ActorRecord, TargetData
from tabletop_actions.models.enums import ErrorType
from tabletop_actions.models.modifiers import DicePoolResult, ModifierInput
from tabletop_actions.models.results import CriticalRange, ResolutionResult


if TYPE_CHECKING:
    from tabletop_actions.engine.workflows import WorkflowDefinition


COMPLETE_STEP = "complete"
MIN_WORKFLOW_STEPS = 3


# =============================================================================
# Dialog Input
# =============================================================================


class DialogState(BaseModel):
    """Everything the dialog layer collected for one action.

    Attributes:
        actor_id: The acting actor.
        item_name: Weapon, power or item used, if any.
        target_ids: Targeted actor ids, in dialog order.
        advantage: Advantage on the d20 roll.
        disadvantage: Disadvantage on the d20 roll.
        damage_advantage: Roll damage twice and keep the higher.
        damage_disadvantage: Roll damage twice and keep the lower.
        attack_modifiers: Modifiers for the attack roll.
        damage_modifiers: Modifiers for the damage roll.
        save_modifiers: Modifiers added to every target's save.
        check_modifiers: Modifiers for a skill or ability check.
        save_dc: Difficulty class targets save against.
        save_ability: Ability targets save with.
        save_effect: Damage taken on a successful save.
        check_type: Whether a check step resolves a skill or ability check.
        check_dc: Difficulty class for a check step.
        critical_range: Explicit critical range override.
        roll_separate: Roll one attack per target; falls back to settings.
        feature_state: Per-feature dialog data keyed by feature id.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
    )

    actor_id: str = Field(min_length=1)
    item_name: str | None = None
    target_ids: list[str] = Field(default_factory=list)
    advantage: bool = False
    disadvantage: bool = False
    damage_advantage: bool = False
    damage_disadvantage: bool = False
    attack_modifiers: list[ModifierInput] = Field(default_factory=list)
    damage_modifiers: list[ModifierInput] = Field(default_factory=list)
    save_modifiers: list[ModifierInput] = Field(default_factory=list)
    check_modifiers: list[ModifierInput] = Field(default_factory=list)
    save_dc: int | None = Field(default=None, ge=0)
    save_ability: str = "dexterity"
    save_effect: Literal["half", "none"] = "half"
    check_type: Literal["skill", "ability"] = "skill"
    check_dc: int | None = Field(default=None, ge=0)
    critical_range: CriticalRange | None = None
    roll_separate: bool | None = None
    feature_state: dict[str, dict[str, Any]] = Field(default_factory=dict)


# =============================================================================
# Action State Records
# =============================================================================


class WorkflowErrorEntry(BaseModel):
    """An error or warning recorded during a workflow run."""

    model_config = ConfigDict(frozen=True)

    type: str
    message: str
    step: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RollRecord(BaseModel):
    """One evaluated formula."""

    model_config = ConfigDict(frozen=True)

    step: str
    formula: str
    total: int
    natural: int | None = None
    target_id: str | None = None
    totals_by_type: dict[str, int] = Field(default_factory=dict)


class TargetOutcome(BaseModel):
    """Everything resolved against one target during a run.

    Steps later in a chain read earlier outcomes rather than re-deriving
    them: damage skips targets whose attack missed, apply-damage halves
    damage for targets that saved.
    """

    model_config = ConfigDict(validate_assignment=True)

    target_id: str
    target_name: str = ""
    attack: ResolutionResult | None = None
    hit: bool | None = None
    critical: bool = False
    damage_by_type: dict[str, int] = Field(default_factory=dict)
    save: ResolutionResult | None = None
    saved: bool | None = None
    damage_applied: int | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def damage_total(self) -> int:
        """Sum of rolled damage across all types."""
        return sum(self.damage_by_type.values())


class ActionState(BaseModel):
    """Mutable record of one workflow run.

    The orchestrator owns the state for the duration of a run and hands
    it to each step in turn; a step returns the state it was given.

    Attributes:
        workflow_id: Unique run identifier.
        workflow_type: Name of the workflow being run.
        workflow_steps: Ordered step ids, always ending in "complete".
        chain_number: Index of the current step.
        dialog_state: Caller-supplied dialog input.
        actor: Acting actor, resolved by the start step.
        targets: Resolved targets, placeholders included.
        target_outcomes: Per-target results keyed by target id.
        dice_pools: Built pools keyed by step id.
        rolls: Every evaluated formula, in order.
        check_result: Result of a standalone check step.
        errors: Errors and warnings in the order they were recorded.
        vetoed_features: Ids of features whose validation vetoed them.
        completed_steps: Steps that finished, in order.
        cancelled: Cooperative cancellation flag checked between steps.
        summary: Serialized outcome built by the complete step.
        started_at: Creation time.
        completed_at: Time the complete step ran.
    """

    model_config = ConfigDict(validate_assignment=True)

    workflow_id: str = Field(default_factory=lambda: uuid4().hex)
    workflow_type: str = Field(min_length=1)
    workflow_steps: list[str]
    chain_number: int = Field(default=0, ge=0)
    dialog_state: DialogState
    actor: ActorRecord | None = None
    targets: list[TargetData] = Field(default_factory=list)
    target_outcomes: dict[str, TargetOutcome] = Field(default_factory=dict)
    dice_pools: dict[str, DicePoolResult] = Field(default_factory=dict)
    rolls: list[RollRecord] = Field(default_factory=list)
    check_result: ResolutionResult | None = None
    errors: list[WorkflowErrorEntry] = Field(default_factory=list)
    vetoed_features: list[str] = Field(default_factory=list)
    completed_steps: list[str] = Field(default_factory=list)
    cancelled: bool = False
    summary: dict[str, Any] | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @model_validator(mode="after")
    def validate_workflow_steps(self) -> "ActionState":
        """Ensure the step list is long enough and ends in "complete".

        Returns:
            Self if validation passes.

        Raises:
            WorkflowConfigurationError: If the step list is malformed.
        """
        if len(self.workflow_steps) < MIN_WORKFLOW_STEPS:
            raise WorkflowConfigurationError(
                f"Workflow must have at least {MIN_WORKFLOW_STEPS} steps",
                workflow=self.workflow_type,
                details={"steps": list(self.workflow_steps)},
            )
        if self.workflow_steps[-1] != COMPLETE_STEP:
            raise WorkflowConfigurationError(
                "Workflow must end with the complete step",
                workflow=self.workflow_type,
                details={"steps": list(self.workflow_steps)},
            )
        if self.chain_number >= len(self.workflow_steps):
            raise WorkflowConfigurationError(
                "Chain number is past the end of the workflow",
                workflow=self.workflow_type,
                details={"chain_number": self.chain_number},
            )
        return self

    @classmethod
    def create(
        cls,
        workflow_type: str,
        dialog_state: DialogState,
        *,
        workflows: tuple[WorkflowDefinition, ...] | None = None,
    ) -> ActionState:
        """Create the state for a named workflow.

        Args:
            workflow_type: Workflow name from the workflow table.
            dialog_state: Caller-supplied dialog input.
            workflows: Alternate workflow table; defaults to the shipped one.

        Returns:
            A fresh state positioned at the first step.

        Raises:
            WorkflowConfigurationError: If the workflow is unknown or malformed.
        """
        from tabletop_actions.engine.workflows import get_workflow

        definition = get_workflow(workflow_type, workflows=workflows)
        return cls(
            workflow_type=definition.workflow,
            workflow_steps=list(definition.workflow_steps),
            dialog_state=dialog_state,
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def chain_length(self) -> int:
        """Number of steps in the workflow."""
        return len(self.workflow_steps)

    @property
    def current_step(self) -> str:
        """Step id at the current chain position."""
        return self.workflow_steps[self.chain_number]

    @property
    def is_complete(self) -> bool:
        """True only once the chain has reached the "complete" step."""
        return self.current_step == COMPLETE_STEP

    @property
    def has_more_steps(self) -> bool:
        """Whether ``next_step`` would advance the chain."""
        return self.chain_number < self.chain_length - 1

    def next_step(self) -> str:
        """Advance to the next step; a no-op at the final step.

        Returns:
            The step id after advancing.
        """
        if self.has_more_steps:
            self.chain_number += 1
        return self.current_step

    def cancel(self) -> None:
        """Request that the run stop before its next step."""
        self.cancelled = True

    def add_error(
        self,
        error_type: ErrorType | str,
        message: str,
        *,
        step: str | None = None,
    ) -> WorkflowErrorEntry:
        """Record an error entry.

        Args:
            error_type: Error category.
            message: Human-readable description.
            step: Step during which the error happened.

        Returns:
            The recorded entry.
        """
        entry = WorkflowErrorEntry(type=str(error_type), message=message, step=step)
        self.errors = [*self.errors, entry]
        return entry

    def errors_for_step(self, step: str) -> list[WorkflowErrorEntry]:
        """Errors recorded during a given step."""
        return [entry for entry in self.errors if entry.step == step]

    def outcome_for(self, target: TargetData) -> TargetOutcome:
        """Get or create the outcome record for a target.

        Args:
            target: The target.

        Returns:
            The target's outcome record, stored on the state.
        """
        outcome = self.target_outcomes.get(target.id)
        if outcome is None:
            outcome = TargetOutcome(target_id=target.id, target_name=target.name)
            self.target_outcomes = {**self.target_outcomes, target.id: outcome}
        return outcome

    def record_roll(self, record: RollRecord) -> None:
        """Append an evaluated roll."""
        self.rolls = [*self.rolls, record]

    @property
    def live_targets(self) -> list[TargetData]:
        """Targets that resolved successfully."""
        return [target for target in self.targets if not target.is_placeholder]


__all__ = [
    "COMPLETE_STEP",
    "MIN_WORKFLOW_STEPS",
    "DialogState",
    "WorkflowErrorEntry",
    "RollRecord",
    "TargetOutcome",
    "ActionState",
]
