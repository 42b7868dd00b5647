"""D20 resolution engine.

Classifies an evaluated d20 roll against a target number (AC, DC or an
opposing roll) for one of five check types, taking critical ranges and
degrees of success into account, and ranks contested rolls.

Example:
    >>> engine = D20Engine()
    >>> result = engine.classify(25, 20, 15, CheckType.SKILL)
    >>> result.degree, result.margin
    (<DegreeOfSuccess.CRITICAL_SUCCESS: 'criticalSuccess'>, 10)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from tabletop_actions.core.exceptions import ValidationError
from tabletop_actions.core.logging import get_logger
from tabletop_actions.engine.dice import DiceEvaluator, RollOutcome
from tabletop_actions.models.enums import (
    CheckType,
    CriticalPolicy,
    DegreeOfSuccess,
    RangeModificationType,
)
from tabletop_actions.models.results import (
    ContestedResult,
    ContestEntry,
    CriticalRange,
    RangeModification,
    ResolutionResult,
)


logger = get_logger(__name__)


@dataclass(frozen=True)
class CheckTypeConfig:
    """Rules for one check type.

    Attributes:
        success_threshold: What the target number represents.
        critical_success: Effect of a natural critical success.
        critical_failure: Effect of a natural critical failure.
        degree_of_success: Grade results by margin.
    """

    success_threshold: str
    critical_success: CriticalPolicy
    critical_failure: CriticalPolicy
    degree_of_success: bool


CHECK_TYPES: dict[CheckType, CheckTypeConfig] = {
    CheckType.ATTACK: CheckTypeConfig("targetAC", CriticalPolicy.AUTO_HIT, CriticalPolicy.AUTO_MISS, False),
    CheckType.SKILL: CheckTypeConfig("targetDC", CriticalPolicy.AUTO_SUCCESS, CriticalPolicy.AUTO_FAILURE, True),
    CheckType.SAVE: CheckTypeConfig("targetDC", CriticalPolicy.AUTO_SUCCESS, CriticalPolicy.AUTO_FAILURE, True),
    CheckType.ABILITY: CheckTypeConfig("targetDC", CriticalPolicy.AUTO_SUCCESS, CriticalPolicy.AUTO_FAILURE, True),
    CheckType.CONTESTED: CheckTypeConfig(
        "opponentRoll", CriticalPolicy.AUTO_SUCCESS, CriticalPolicy.AUTO_FAILURE, False
    ),
}

DEFAULT_CRITICAL_RANGE = CriticalRange(min=20, max=20)
DEFAULT_CRITICAL_FAILURE_RANGE = CriticalRange(min=1, max=1)

# Lower bound of margin -> degree, checked top down
DEGREE_TABLE: tuple[tuple[int, DegreeOfSuccess], ...] = (
    (10, DegreeOfSuccess.CRITICAL_SUCCESS),
    (5, DegreeOfSuccess.MAJOR_SUCCESS),
    (0, DegreeOfSuccess.SUCCESS),
    (-5, DegreeOfSuccess.MINOR_FAILURE),
    (-10, DegreeOfSuccess.MAJOR_FAILURE),
)


def degree_for_margin(margin: int) -> DegreeOfSuccess:
    """Grade a margin using the degree-of-success table.

    Args:
        margin: ``roll_total - target_number``.

    Returns:
        The degree of success.
    """
    for lower_bound, degree in DEGREE_TABLE:
        if margin >= lower_bound:
            return degree
    return DegreeOfSuccess.CRITICAL_FAILURE


@dataclass(frozen=True)
class ContestParticipant:
    """A participant in a contested check."""

    participant_id: str
    formula: str
    name: str = ""


class D20Engine:
    """Resolves d20 checks against target numbers.

    The engine is pure: classification depends only on its arguments and
    the engine's fixed check type table.
    """

    def __init__(
        self,
        *,
        degree_of_success: bool = True,
        critical_ranges: Mapping[CheckType, CriticalRange] | None = None,
        critical_failure_ranges: Mapping[CheckType, CriticalRange] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            degree_of_success: Grade results for check types that support it.
            critical_ranges: Default critical success range per check type.
            critical_failure_ranges: Default critical failure range per check type.
        """
        self.degree_of_success = degree_of_success
        self._critical_ranges = {check: DEFAULT_CRITICAL_RANGE for check in CheckType}
        self._critical_ranges.update(critical_ranges or {})
        self._critical_failure_ranges = {check: DEFAULT_CRITICAL_FAILURE_RANGE for check in CheckType}
        self._critical_failure_ranges.update(critical_failure_ranges or {})

    @staticmethod
    def _coerce_check_type(check_type: CheckType | str) -> CheckType:
        try:
            return CheckType(check_type)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown check type '{check_type}'",
                field_name="check_type",
                invalid_value=check_type,
            ) from exc

    def config_for(self, check_type: CheckType | str) -> CheckTypeConfig:
        """Rules for a check type.

        Raises:
            ValidationError: If the check type is unknown.
        """
        return CHECK_TYPES[self._coerce_check_type(check_type)]

    def effective_range(
        self,
        check_type: CheckType | str,
        *,
        override: CriticalRange | None = None,
        modifications: Iterable[RangeModification] = (),
        applies_to: str = "critical_success",
    ) -> CriticalRange:
        """Compute the critical range in force for a roll.

        The default range for the check type is replaced by an explicit
        override, then feature modifications are applied: every
        ``expand`` unions its range in order, and a ``set`` replaces the
        result outright. When several ``set`` modifications are present
        the last one wins.

        Args:
            check_type: The check type.
            override: Explicit range, e.g. from a weapon.
            modifications: Feature-declared modifications.
            applies_to: "critical_success" or "critical_failure".

        Returns:
            The effective range.
        """
        check = self._coerce_check_type(check_type)
        defaults = self._critical_ranges if applies_to == "critical_success" else self._critical_failure_ranges
        current = override or defaults[check]

        replacement: CriticalRange | None = None
        for modification in modifications:
            if modification.applies_to != applies_to:
                continue
            if modification.type == RangeModificationType.SET:
                replacement = modification.range
            else:
                current = current.union(modification.range)

        return replacement or current

    def classify(
        self,
        roll_total: int,
        roll_value: int,
        target_number: int,
        check_type: CheckType | str,
        *,
        critical_range: CriticalRange | None = None,
        critical_failure_range: CriticalRange | None = None,
        modifications: Iterable[RangeModification] = (),
    ) -> ResolutionResult:
        """Classify a roll against a target number.

        Args:
            roll_total: Total of the evaluated formula.
            roll_value: Natural d20 face.
            target_number: AC, DC or opposing total.
            check_type: attack, skill, save, ability or contested.
            critical_range: Explicit critical success range.
            critical_failure_range: Explicit critical failure range.
            modifications: Feature-declared range modifications.

        Returns:
            The resolution result.

        Raises:
            ValidationError: If the check type is unknown.
        """
        check = self._coerce_check_type(check_type)
        config = CHECK_TYPES[check]
        modifications = list(modifications)

        success_range = self.effective_range(check, override=critical_range, modifications=modifications)
        failure_range = self.effective_range(
            check,
            override=critical_failure_range,
            modifications=modifications,
            applies_to="critical_failure",
        )

        is_critical_success = success_range.contains(roll_value)
        is_critical_failure = failure_range.contains(roll_value)
        margin = roll_total - target_number

        if is_critical_success and config.critical_success in (
            CriticalPolicy.AUTO_HIT,
            CriticalPolicy.AUTO_SUCCESS,
        ):
            success = True
            degree = DegreeOfSuccess.CRITICAL_SUCCESS
        elif is_critical_failure and config.critical_failure in (
            CriticalPolicy.AUTO_MISS,
            CriticalPolicy.AUTO_FAILURE,
        ):
            success = False
            degree = DegreeOfSuccess.CRITICAL_FAILURE
        else:
            success = roll_total >= target_number
            if config.degree_of_success and self.degree_of_success:
                degree = degree_for_margin(margin)
            else:
                degree = DegreeOfSuccess.SUCCESS if success else DegreeOfSuccess.FAILURE

        result = ResolutionResult(
            check_type=check,
            roll_total=roll_total,
            roll_value=roll_value,
            target_number=target_number,
            success=success,
            degree=degree,
            margin=margin,
            is_critical_success=is_critical_success,
            is_critical_failure=is_critical_failure,
            critical_range=success_range,
            critical_failure_range=failure_range,
        )
        logger.debug(
            "Roll classified",
            check_type=str(check),
            roll_total=roll_total,
            roll_value=roll_value,
            target_number=target_number,
            degree=str(degree),
        )
        return result

    def classify_outcome(
        self,
        outcome: RollOutcome,
        target_number: int,
        check_type: CheckType | str,
        **kwargs: Any,
    ) -> ResolutionResult:
        """Classify an evaluated roll outcome.

        Args:
            outcome: Outcome from a dice evaluator.
            target_number: AC, DC or opposing total.
            check_type: The check type.
            **kwargs: Forwarded to ``classify``.

        Returns:
            The resolution result.
        """
        return self.classify(
            outcome.total,
            self.natural_roll(outcome),
            target_number,
            check_type,
            **kwargs,
        )

    @staticmethod
    def natural_roll(outcome: RollOutcome) -> int:
        """Natural d20 face of an outcome, or 0 when it has none.

        A d20 formula that yields no natural face is logged, since its
        criticals cannot be classified.
        """
        if outcome.natural_d20 is None:
            if "d20" in outcome.formula.lower():
                logger.warning("No natural d20 found in roll", formula=outcome.formula, total=outcome.total)
            return 0
        return outcome.natural_d20

    @staticmethod
    def rank_contest(entries: Sequence[ContestEntry]) -> ContestedResult:
        """Rank contested rolls, highest total first.

        Every entry tied at the highest total is a winner.

        Args:
            entries: Evaluated participant rolls.

        Returns:
            The contest ranking.

        Raises:
            ValidationError: If there are no entries.
        """
        if not entries:
            raise ValidationError("A contest needs at least one participant", field_name="participants")

        rankings = sorted(entries, key=lambda entry: entry.roll_total, reverse=True)
        highest = rankings[0].roll_total
        winners = [entry for entry in rankings if entry.roll_total == highest]
        return ContestedResult(
            rankings=rankings,
            winners=winners,
            is_tie=len(winners) > 1,
            highest_roll=highest,
            participant_count=len(entries),
        )

    def resolve_contest(
        self,
        participants: Sequence[ContestParticipant],
        evaluator: DiceEvaluator,
    ) -> ContestedResult:
        """Roll every participant's formula and rank the results.

        Args:
            participants: Contest participants, rolled in order.
            evaluator: Dice evaluator.

        Returns:
            The contest ranking.
        """
        entries: list[ContestEntry] = []
        for participant in participants:
            outcome = evaluator.evaluate(participant.formula)
            entries.append(
                ContestEntry(
                    participant_id=participant.participant_id,
                    name=participant.name or participant.participant_id,
                    formula=participant.formula,
                    roll_total=outcome.total,
                    roll_value=self.natural_roll(outcome),
                )
            )

        result = self.rank_contest(entries)
        logger.info(
            "Contest resolved",
            participants=result.participant_count,
            highest_roll=result.highest_roll,
            is_tie=result.is_tie,
        )
        return result

    def validate_roll_options(
        self,
        *,
        check_type: str | None = None,
        critical_range: Mapping[str, int] | None = None,
    ) -> list[str]:
        """Check roll options without raising.

        Args:
            check_type: Check type name to validate.
            critical_range: Raw ``{"min": ..., "max": ...}`` mapping.

        Returns:
            Problems found; empty when the options are valid.
        """
        problems: list[str] = []
        if check_type is not None and check_type not in {str(check) for check in CheckType}:
            problems.append(f"Invalid check type: {check_type}")

        if critical_range is not None:
            low = critical_range.get("min", 20)
            high = critical_range.get("max", 20)
            if low < 1 or high > 20:
                problems.append("Critical range must be between 1 and 20")
            if low > high:
                problems.append("Critical range min cannot be greater than max")
        return problems


__all__ = [
    "CHECK_TYPES",
    "DEFAULT_CRITICAL_RANGE",
    "DEFAULT_CRITICAL_FAILURE_RANGE",
    "CheckTypeConfig",
    "ContestParticipant",
    "D20Engine",
    "degree_for_margin",
]
