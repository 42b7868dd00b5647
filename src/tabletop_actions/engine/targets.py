"""Actor lookup and target processing.

The host application exposes its actors through ``ActorDataSource``.
``TargetProcessor`` turns the target ids a dialog collected into target
data, replacing lookups that fail with error-flagged placeholders so a
single missing token never aborts the whole action.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from tabletop_actions.core.exceptions import ActorNotFoundError
from tabletop_actions.core.logging import get_logger
from tabletop_actions.models.actors import ActorRecord, TargetData
from tabletop_actions.models.enums import ErrorType
from tabletop_actions.models.state import WorkflowErrorEntry


logger = get_logger(__name__)

MISSING_TARGET_NAME = "Missing Target"
ERROR_TARGET_NAME = "Error Target"


@runtime_checkable
class ActorDataSource(Protocol):
    """Read and update access to the host's actors."""

    def get_actor(self, actor_id: str) -> ActorRecord | None:
        """Look up an actor, returning None when it does not exist."""
        ...

    def get_target(self, target_id: str) -> TargetData | None:
        """Look up a target's defenses, returning None when it does not exist."""
        ...

    def apply_damage(self, actor_id: str, amount: int) -> int | None:
        """Reduce an actor's hit points, returning the new value if tracked."""
        ...


class InMemoryActorSource:
    """Actor data source backed by a dictionary.

    Example:
        >>> source = InMemoryActorSource([ActorRecord(id="a1", name="Kira")])
        >>> source.get_actor("a1").name
        'Kira'
    """

    def __init__(self, actors: Iterable[ActorRecord] = ()) -> None:
        self._actors: dict[str, ActorRecord] = {actor.id: actor for actor in actors}

    def add(self, actor: ActorRecord) -> None:
        """Add or replace an actor."""
        self._actors[actor.id] = actor

    def get_actor(self, actor_id: str) -> ActorRecord | None:
        return self._actors.get(actor_id)

    def get_target(self, target_id: str) -> TargetData | None:
        actor = self._actors.get(target_id)
        return TargetData.from_actor(actor) if actor is not None else None

    def apply_damage(self, actor_id: str, amount: int) -> int | None:
        """Subtract damage from an actor's hit points, never below zero.

        Args:
            actor_id: Damaged actor.
            amount: Damage to subtract.

        Returns:
            Remaining hit points, or None if the actor has none tracked.

        Raises:
            ActorNotFoundError: If the actor does not exist.
        """
        actor = self._actors.get(actor_id)
        if actor is None:
            raise ActorNotFoundError(f"Cannot damage unknown actor {actor_id}", actor_id=actor_id)
        if actor.hit_points is None:
            return None

        actor.hit_points = max(0, actor.hit_points - amount)
        logger.info("Damage applied", actor=actor.name, amount=amount, hit_points=actor.hit_points)
        return actor.hit_points


@dataclass
class TargetProcessingResult:
    """Targets resolved for an action, placeholders included."""

    targets: list[TargetData] = field(default_factory=list)
    errors: list[WorkflowErrorEntry] = field(default_factory=list)


class TargetProcessor:
    """Resolves dialog target ids through an actor data source."""

    def __init__(self, source: ActorDataSource) -> None:
        self._source = source

    def process_targets(
        self,
        target_ids: Iterable[str],
        *,
        step: str | None = None,
    ) -> TargetProcessingResult:
        """Resolve target ids in order.

        A target that does not exist becomes a "Missing Target"
        placeholder with a ``target_missing`` error; a lookup that raises
        becomes an "Error Target" placeholder with a ``target_error``
        error. The number and order of targets is preserved.

        Args:
            target_ids: Target ids from the dialog.
            step: Step id recorded on error entries.

        Returns:
            Resolved targets and the errors raised resolving them.
        """
        result = TargetProcessingResult()
        for target_id in target_ids:
            try:
                target = self._source.get_target(target_id)
            except Exception as exc:
                logger.warning("Error processing target", target_id=target_id, error=str(exc))
                result.targets.append(
                    TargetData(
                        id=target_id,
                        name=ERROR_TARGET_NAME,
                        error=f"Error processing target: {exc}",
                    )
                )
                result.errors.append(
                    WorkflowErrorEntry(
                        type=ErrorType.TARGET_ERROR,
                        message=f"Error processing target {target_id}: {exc}",
                        step=step,
                    )
                )
                continue

            if target is None or target.error:
                result.targets.append(
                    TargetData(
                        id=target_id,
                        name=MISSING_TARGET_NAME,
                        error=(target.error if target else None) or "Target not found or inaccessible",
                    )
                )
                result.errors.append(
                    WorkflowErrorEntry(
                        type=ErrorType.TARGET_MISSING,
                        message=f"Target {target_id} not found or inaccessible",
                        step=step,
                    )
                )
                continue

            result.targets.append(target)

        logger.debug(
            "Targets processed",
            targets=len(result.targets),
            errors=len(result.errors),
        )
        return result


__all__ = [
    "MISSING_TARGET_NAME",
    "ERROR_TARGET_NAME",
    "ActorDataSource",
    "InMemoryActorSource",
    "TargetProcessingResult",
    "TargetProcessor",
]
