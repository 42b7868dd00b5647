"""Workflow orchestrator.

Runs an action state through its workflow steps strictly in order:

    start -> attack -> damage -> save -> applyDamage -> complete

The orchestrator owns the state for the duration of a run. Each step
handler receives the state and returns it; the orchestrator re-binds to
whatever the handler returned before moving on. Cancellation is checked
between steps only.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from tabletop_actions.core.config import Settings, get_settings
from tabletop_actions.core.exceptions import (
    TabletopActionsError,
    WorkflowConfigurationError,
    WorkflowStepError,
)
from tabletop_actions.core.logging import get_logger, workflow_context
from tabletop_actions.engine.d20_engine import D20Engine
from tabletop_actions.engine.dice import DiceEvaluator
from tabletop_actions.engine.pool_builder import DicePoolBuilder
from tabletop_actions.engine.steps import StepHandler, StepServices, build_step_handlers
from tabletop_actions.engine.targets import ActorDataSource
from tabletop_actions.engine.workflows import WorkflowDefinition
from tabletop_actions.features.registry import FeatureRegistry
from tabletop_actions.models.enums import ErrorType
from tabletop_actions.models.state import ActionState, DialogState


logger = get_logger(__name__)

StepCallback = Callable[[str, ActionState], None]


class WorkflowOrchestrator:
    """Drives action states through their workflow steps.

    Attributes:
        registry: Feature registry used by the builder and vetoes.
        builder: Dice pool builder.
        engine: D20 resolution engine.
        settings: Active settings.

    Example:
        >>> orchestrator = WorkflowOrchestrator(registry, DiceRoller(), source)
        >>> state = orchestrator.run("attack-damage", dialog_state)
        >>> state.summary["targets"][0]["hit"]
        True
    """

    def __init__(
        self,
        registry: FeatureRegistry,
        evaluator: DiceEvaluator,
        actor_source: ActorDataSource,
        *,
        settings: Settings | None = None,
        workflows: tuple[WorkflowDefinition, ...] | None = None,
        step_handlers: Mapping[str, StepHandler] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            registry: Feature registry.
            evaluator: Dice evaluator used by every step.
            actor_source: Host access to actors and targets.
            settings: Settings; defaults to ``get_settings()``.
            workflows: Alternate workflow table.
            step_handlers: Handlers replacing or adding to the shipped ones.
        """
        self.registry = registry
        self.settings = settings or get_settings()
        self.builder = DicePoolBuilder(
            registry,
            base_damage_type=self.settings.dice.default_damage_type,
        )
        self.engine = D20Engine(degree_of_success=self.settings.rules.degree_of_success)
        self._workflows = workflows
        self._services = StepServices(
            registry=registry,
            builder=self.builder,
            engine=self.engine,
            evaluator=evaluator,
            actor_source=actor_source,
            settings=self.settings,
        )
        self._handlers: dict[str, StepHandler] = build_step_handlers(self._services)
        self._handlers.update(step_handlers or {})
        self._step_callbacks: list[StepCallback] = []

        logger.debug(
            "WorkflowOrchestrator initialized",
            steps=sorted(self._handlers),
            features=len(registry),
        )

    @property
    def services(self) -> StepServices:
        """Collaborators handed to step handlers."""
        return self._services

    def add_step_callback(self, callback: StepCallback) -> None:
        """Add a callback to be invoked after each completed step.

        Callbacks receive the step id and the state. They may cancel the
        run with ``state.cancel()``; the next step will not start.

        Args:
            callback: Function to call with (step_id, state).
        """
        self._step_callbacks.append(callback)

    def _invoke_callbacks(self, step_id: str, state: ActionState) -> None:
        for callback in self._step_callbacks:
            try:
                callback(step_id, state)
            except Exception:
                logger.exception("Step callback failed", step=step_id)

    def create_state(self, workflow_type: str, dialog_state: DialogState) -> ActionState:
        """Create a fresh state for a named workflow.

        Raises:
            WorkflowConfigurationError: If the workflow is unknown.
        """
        return ActionState.create(workflow_type, dialog_state, workflows=self._workflows)

    def run(self, workflow_type: str | None, dialog_state: DialogState) -> ActionState:
        """Create a state for a workflow and execute it.

        Args:
            workflow_type: Workflow name; ``None`` runs the configured
                ``workflow.default_workflow``.
            dialog_state: Dialog input for the action.

        Returns:
            The final state.
        """
        workflow_type = workflow_type or self.settings.workflow.default_workflow
        return self.execute(self.create_state(workflow_type, dialog_state))

    def execute(self, state: ActionState) -> ActionState:
        """Run the remaining steps of a state in order.

        Args:
            state: State positioned at the step to run next.

        Returns:
            The final state; partial if the run was cancelled.

        Raises:
            WorkflowConfigurationError: If a step has no handler.
            TabletopActionsError: Re-raised from a failing step after the
                failure is recorded on the state.
        """
        with workflow_context(state.workflow_id, state.workflow_type):
            logger.info("Workflow started", steps=state.workflow_steps, chain_number=state.chain_number)
            while True:
                if state.cancelled:
                    logger.info(
                        "Workflow cancelled",
                        step=state.current_step,
                        completed_steps=state.completed_steps,
                    )
                    return state

                step_id = state.current_step
                state = self._run_step(step_id, state)
                state.completed_steps = [*state.completed_steps, step_id]
                self._invoke_callbacks(step_id, state)

                if state.is_complete:
                    break
                state.next_step()

            logger.info(
                "Workflow finished",
                completed_steps=state.completed_steps,
                errors=len(state.errors),
            )
            return state

    def _run_step(self, step_id: str, state: ActionState) -> ActionState:
        handler = self._handlers.get(step_id)
        if handler is None:
            message = f"No handler registered for step '{step_id}'"
            state.add_error(ErrorType.STEP_RUNTIME, message, step=step_id)
            logger.error("Step failed", step=step_id, error=message, error_type="WorkflowConfigurationError")
            raise WorkflowConfigurationError(
                message,
                workflow=state.workflow_type,
                details={"step": step_id},
            )

        errors_before = len(state.errors)
        logger.debug("Step started", step=step_id)
        try:
            result = handler(state)
            if result is None:
                raise WorkflowStepError(f"Step '{step_id}' did not return the action state", step=step_id)
        except Exception as exc:
            message = exc.message if isinstance(exc, TabletopActionsError) else str(exc)
            state.add_error(ErrorType.STEP_RUNTIME, message, step=step_id)
            logger.error("Step failed", step=step_id, error=message, error_type=type(exc).__name__)
            raise

        for entry in result.errors[errors_before:]:
            logger.warning("Step recorded error", step=step_id, error_type=entry.type, message=entry.message)
        logger.debug("Step completed", step=step_id)
        return result


__all__ = [
    "StepCallback",
    "WorkflowOrchestrator",
]
