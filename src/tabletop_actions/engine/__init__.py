"""Rules engine for the action resolution pipeline.

This module provides dice pool building, d20 resolution, dice
evaluation, target lookup and the workflow orchestrator that strings
them together.

Submodules:
    dice: Formula evaluation backed by the d20 library
    pool_builder: Dice pools and roll formulas from declared modifiers
    d20_engine: Success, criticals and degrees of success
    targets: Actor data source protocol and target processing
    workflows: Static workflow table
    steps: Step handlers (start, attack, damage, save, ...)
    orchestrator: Sequential workflow runner

Example:
    >>> from tabletop_actions.engine import WorkflowOrchestrator, DiceRoller
    >>>
    >>> orchestrator = WorkflowOrchestrator(registry, DiceRoller(), source)
    >>> state = orchestrator.run("attack-damage", dialog_state)
    >>> state.completed_steps
    ['start', 'attack', 'damage', 'complete']
"""

from __future__ import annotations

# =============================================================================
# Dice Evaluation
# =============================================================================
from tabletop_actions.engine.dice import (
    DiceEvaluator,
    DiceRoller,
    RollOutcome,
    create_dice_roller,
    translate_formula,
)

# =============================================================================
# Dice Pools
# =============================================================================
from tabletop_actions.engine.pool_builder import (
    DicePoolBuilder,
    combine_elements,
    tokenize_modifier,
)

# =============================================================================
# Resolution
# =============================================================================
from tabletop_actions.engine.d20_engine import (
    CHECK_TYPES,
    ContestParticipant,
    D20Engine,
    degree_for_margin,
)

# =============================================================================
# Targets & Workflows
# =============================================================================
from tabletop_actions.engine.targets import (
    ActorDataSource,
    InMemoryActorSource,
    TargetProcessor,
)
from tabletop_actions.engine.workflows import (
    WORKFLOW_CONFIGS,
    WorkflowDefinition,
    get_available_workflows,
    get_workflow,
)
from tabletop_actions.engine.steps import StepServices, build_step_handlers
from tabletop_actions.engine.orchestrator import WorkflowOrchestrator


__all__ = [
    # Dice
    "DiceEvaluator",
    "DiceRoller",
    "RollOutcome",
    "create_dice_roller",
    "translate_formula",
    # Pools
    "DicePoolBuilder",
    "combine_elements",
    "tokenize_modifier",
    # Resolution
    "CHECK_TYPES",
    "ContestParticipant",
    "D20Engine",
    "degree_for_margin",
    # Targets
    "ActorDataSource",
    "InMemoryActorSource",
    "TargetProcessor",
    # Workflows
    "WORKFLOW_CONFIGS",
    "WorkflowDefinition",
    "get_available_workflows",
    "get_workflow",
    # Orchestration
    "StepServices",
    "build_step_handlers",
    "WorkflowOrchestrator",
]
