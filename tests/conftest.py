"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the tabletop action resolver test suite.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import pytest

from tabletop_actions.engine.dice import RollOutcome


if TYPE_CHECKING:
    from collections.abc import Generator


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reset the settings cache before and after each test."""
    from tabletop_actions.core.config import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set up mock environment variables for testing.

    Returns:
        Dictionary of environment variables that were set.
    """
    env_vars = {
        "TABLETOP_ACTIONS_DEBUG": "true",
        "TABLETOP_ACTIONS_LOG_LEVEL": "DEBUG",
        "TABLETOP_ACTIONS_DICE_SEED": "7",
        "TABLETOP_ACTIONS_RULES_CRITICAL_HIT_RULE": "double_damage",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


# =============================================================================
# Dice Fixtures
# =============================================================================


class ScriptedEvaluator:
    """Dice evaluator returning queued outcomes in order.

    Each queued entry is either a ``RollOutcome`` or a tuple of
    ``(total, natural_d20)`` / ``(total, natural_d20, totals_by_type)``.
    Every evaluated formula is kept in ``formulas``.
    """

    def __init__(self, outcomes: Iterable[Any] = ()) -> None:
        self._queue: deque[Any] = deque(outcomes)
        self.formulas: list[str] = []

    def queue(self, *outcomes: Any) -> None:
        self._queue.extend(outcomes)

    def evaluate(self, formula: str) -> RollOutcome:
        self.formulas.append(formula)
        if not self._queue:
            raise AssertionError(f"No scripted outcome left for {formula!r}")

        entry = self._queue.popleft()
        if isinstance(entry, RollOutcome):
            return entry

        total, natural, *rest = entry
        totals_by_type = rest[0] if rest else {}
        return RollOutcome(
            formula=formula,
            total=total,
            dice=[natural] if natural else [],
            natural_d20=natural,
            totals_by_type=dict(totals_by_type),
        )


@pytest.fixture
def scripted_evaluator() -> ScriptedEvaluator:
    """Create an empty scripted evaluator."""
    return ScriptedEvaluator()


@pytest.fixture
def dice_roller() -> Any:
    """Create a DiceRoller with a fixed seed for reproducible tests.

    Returns:
        DiceRoller instance with fixed seed.
    """
    from tabletop_actions.engine.dice import DiceRoller

    return DiceRoller(seed=42)


# =============================================================================
# Actor Fixtures
# =============================================================================


@pytest.fixture
def hero() -> Any:
    """A level 5 guardian with Force-Empowered Self and Force Points."""
    from tabletop_actions.models.actors import ActorRecord

    return ActorRecord(
        id="hero",
        name="Kira",
        feats=["Force-Empowered Self"],
        resources={"Force Points": 3},
        class_levels={"Guardian": 5},
        armor_class=16,
        hit_points=40,
        saves={"dexterity": 3, "constitution": 4},
    )


@pytest.fixture
def goblin() -> Any:
    """A goblin target with AC 13 and 7 hit points."""
    from tabletop_actions.models.actors import ActorRecord

    return ActorRecord(
        id="goblin",
        name="Goblin",
        armor_class=13,
        hit_points=7,
        saves={"dexterity": 2},
    )


@pytest.fixture
def ogre() -> Any:
    """An ogre target with AC 11, kinetic resistance and fire vulnerability."""
    from tabletop_actions.models.actors import ActorRecord

    return ActorRecord(
        id="ogre",
        name="Ogre",
        armor_class=11,
        hit_points=59,
        saves={"dexterity": -1},
        resistances=["Kinetic"],
        vulnerabilities=["fire"],
    )


@pytest.fixture
def actor_source(hero: Any, goblin: Any, ogre: Any) -> Any:
    """In-memory actor source holding the hero, a goblin and an ogre."""
    from tabletop_actions.engine.targets import InMemoryActorSource

    return InMemoryActorSource([hero, goblin, ogre])


# =============================================================================
# Feature Fixtures
# =============================================================================


@pytest.fixture
def registry() -> Any:
    """Registry holding every shipped feature pack."""
    from tabletop_actions.features.registry import build_default_registry

    return build_default_registry()


@pytest.fixture
def settings() -> Any:
    """Default settings, independent of the environment."""
    from tabletop_actions.core.config import Settings

    return Settings()


@pytest.fixture
def orchestrator(
    registry: Any,
    scripted_evaluator: ScriptedEvaluator,
    actor_source: Any,
    settings: Any,
) -> Any:
    """Orchestrator wired to the scripted evaluator and in-memory actors."""
    from tabletop_actions.engine.orchestrator import WorkflowOrchestrator

    return WorkflowOrchestrator(registry, scripted_evaluator, actor_source, settings=settings)
