"""Dice formula evaluation backed by the d20 library.

The pool builder emits formulas in a small, host-neutral syntax:

- ``1d20+5`` plain sums of dice groups and integers,
- ``max(a,b)`` / ``min(a,b)`` for advantage and disadvantage,
- ``(2d6+3)[fire]`` damage groups annotated with their damage type.

``DiceRoller`` rewrites ``max``/``min`` into d20 set syntax
(``(a,b)kh1`` / ``(a,b)kl1``), rolls the result, and walks the d20
expression tree to recover the natural d20 face and per-type totals.
Anything that satisfies ``DiceEvaluator`` can stand in for it.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import d20

from tabletop_actions.core.exceptions import DiceRollError
from tabletop_actions.core.logging import get_logger


logger = get_logger(__name__)

_SELECTOR_PATTERN = re.compile(r"\b(max|min)\(")
_KEEP_SUFFIX = {"max": "kh1", "min": "kl1"}


@dataclass(frozen=True)
class RollOutcome:
    """The evaluated result of one formula.

    Attributes:
        formula: The formula as supplied by the caller.
        total: The formula total.
        dice: Faces of every kept die, in evaluation order.
        natural_d20: Face of the first kept d20, if the formula has one.
        totals_by_type: Totals of annotated groups keyed by damage type.
        detail: Human-readable breakdown of the roll.
    """

    formula: str
    total: int
    dice: list[int] = field(default_factory=list)
    natural_d20: int | None = None
    totals_by_type: dict[str, int] = field(default_factory=dict)
    detail: str = ""


@runtime_checkable
class DiceEvaluator(Protocol):
    """Evaluates a formula string into a total and individual dice."""

    def evaluate(self, formula: str) -> RollOutcome:
        """Evaluate a formula.

        Args:
            formula: Formula in builder syntax.

        Returns:
            The roll outcome.

        Raises:
            DiceRollError: If the formula cannot be evaluated.
        """
        ...


def translate_formula(formula: str) -> str:
    """Rewrite ``max(...)``/``min(...)`` calls into d20 keep syntax.

    Nested calls are rewritten inside out.

    Args:
        formula: Formula in builder syntax.

    Returns:
        The equivalent d20 expression.

    Raises:
        DiceRollError: If a selector call has unbalanced parentheses.

    Example:
        >>> translate_formula("max(1d20,1d20)+5")
        '(1d20,1d20)kh1+5'
    """
    parts: list[str] = []
    position = 0
    while True:
        match = _SELECTOR_PATTERN.search(formula, position)
        if match is None:
            parts.append(formula[position:])
            break

        parts.append(formula[position : match.start()])
        depth = 1
        index = match.end()
        while index < len(formula) and depth:
            if formula[index] == "(":
                depth += 1
            elif formula[index] == ")":
                depth -= 1
            index += 1
        if depth:
            raise DiceRollError("Unbalanced parentheses in formula", expression=formula)

        inner = translate_formula(formula[match.end() : index - 1])
        parts.append(f"({inner}){_KEEP_SUFFIX[match.group(1)]}")
        position = index

    return "".join(parts)


class DiceRoller:
    """Dice evaluation using the d20 library.

    Example:
        >>> roller = DiceRoller(seed=42)
        >>> outcome = roller.evaluate("max(1d20,1d20)+5")
        >>> 6 <= outcome.total <= 25
        True
    """

    def __init__(self, *, seed: int | None = None) -> None:
        """Initialize the dice roller.

        Args:
            seed: Optional random seed for reproducible rolls.
        """
        self._seed = seed
        if seed is not None:
            random.seed(seed)
        logger.debug("DiceRoller initialized", seed=seed)

    @property
    def seed(self) -> int | None:
        """The seed supplied at construction, if any."""
        return self._seed

    def evaluate(self, formula: str) -> RollOutcome:
        """Evaluate a formula.

        Args:
            formula: Formula in builder syntax.

        Returns:
            The roll outcome.

        Raises:
            DiceRollError: If the formula is empty or invalid.
        """
        if not formula or not formula.strip():
            raise DiceRollError("Empty dice expression", expression=formula)

        expression = translate_formula(formula.replace(" ", ""))

        try:
            result = d20.roll(expression)
        except d20.RollError as exc:
            raise DiceRollError(
                f"Invalid dice expression: {exc}",
                expression=formula,
            ) from exc

        dice: list[int] = []
        totals_by_type: dict[str, int] = {}
        natural = self._walk(result.expr, dice, totals_by_type)

        outcome = RollOutcome(
            formula=formula,
            total=int(result.total),
            dice=dice,
            natural_d20=natural,
            totals_by_type=totals_by_type,
            detail=str(result),
        )

        logger.debug(
            "Dice rolled",
            formula=formula,
            total=outcome.total,
            natural_d20=natural,
        )
        return outcome

    def _walk(
        self,
        node: Any,
        dice: list[int],
        totals_by_type: dict[str, int],
    ) -> int | None:
        """Collect kept dice and annotated totals from a d20 tree.

        Args:
            node: The current expression node.
            dice: Accumulator for kept die faces.
            totals_by_type: Accumulator for annotated group totals.

        Returns:
            Face of the first kept d20 in the subtree, if any.
        """
        if not getattr(node, "kept", True):
            return None

        annotation = getattr(node, "annotation", None)
        if annotation:
            damage_type = annotation.strip().strip("[]").strip().lower()
            if damage_type:
                totals_by_type[damage_type] = totals_by_type.get(damage_type, 0) + int(node.total)

        natural: int | None = None
        if isinstance(node, d20.Dice):
            for die in node.values:
                if not getattr(die, "kept", True):
                    continue
                dice.append(int(die.number))
                if natural is None and node.size == 20:
                    natural = int(die.number)
            return natural

        for child in getattr(node, "children", []):
            child_natural = self._walk(child, dice, totals_by_type)
            if natural is None:
                natural = child_natural
        return natural


def create_dice_roller() -> DiceRoller:
    """Create a roller seeded from the application settings."""
    from tabletop_actions.core.config import get_settings

    return DiceRoller(seed=get_settings().dice.seed)


__all__ = [
    "RollOutcome",
    "DiceEvaluator",
    "DiceRoller",
    "translate_formula",
    "create_dice_roller",
]
