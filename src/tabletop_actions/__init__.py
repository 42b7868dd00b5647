"""Tabletop Actions - d20 action resolution pipeline.

Resolves attacks, damage, saving throws and checks for d20 tabletop
games:

- The dice pool builder turns declared modifiers into a roll formula
- The d20 engine classifies rolls against AC or DC
- The workflow orchestrator chains steps over a shared action state
- The feature registry lets class features hook into every stage

Example:
    >>> from tabletop_actions import (
    ...     ActorRecord, DialogState, DiceRoller, InMemoryActorSource,
    ...     WorkflowOrchestrator, build_default_registry,
    ... )
    >>>
    >>> source = InMemoryActorSource([hero, goblin])
    >>> orchestrator = WorkflowOrchestrator(build_default_registry(), DiceRoller(), source)
    >>> state = orchestrator.run(
    ...     "attack-damage",
    ...     DialogState(actor_id=hero.id, target_ids=[goblin.id]),
    ... )
    >>> state.summary["targets"][0]["damage_total"]
    7

Modules:
    core: Configuration, logging, and base exceptions.
    models: Pydantic V2 schemas for modifiers, results and state.
    engine: Dice pools, d20 resolution and workflow orchestration.
    features: Feature registry and shipped feature packs.
"""

from __future__ import annotations

# Core
from tabletop_actions.core.config import Settings, get_settings
from tabletop_actions.core.exceptions import TabletopActionsError
from tabletop_actions.core.logging import configure_logging, get_logger

# Models
from tabletop_actions.models import (
    ActionState,
    ActionType,
    ActorRecord,
    CheckType,
    CriticalRange,
    DegreeOfSuccess,
    DialogState,
    EquipmentItem,
    ModifierInput,
    ResolutionResult,
    TargetData,
)

# Engine
from tabletop_actions.engine import (
    D20Engine,
    DicePoolBuilder,
    DiceRoller,
    InMemoryActorSource,
    WorkflowOrchestrator,
)

# Features
from tabletop_actions.features import BaseFeature, FeatureRegistry, build_default_registry


__version__ = "0.1.0"
__all__ = [
    # Version info
    "__version__",
    # Core
    "TabletopActionsError",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    # Models
    "ActionState",
    "ActionType",
    "ActorRecord",
    "CheckType",
    "CriticalRange",
    "DegreeOfSuccess",
    "DialogState",
    "EquipmentItem",
    "ModifierInput",
    "ResolutionResult",
    "TargetData",
    # Engine
    "D20Engine",
    "DicePoolBuilder",
    "DiceRoller",
    "InMemoryActorSource",
    "WorkflowOrchestrator",
    # Features
    "BaseFeature",
    "FeatureRegistry",
    "build_default_registry",
]
