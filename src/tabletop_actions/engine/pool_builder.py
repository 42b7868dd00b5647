"""Dice pool construction.

The builder turns declarative modifier inputs into a formula string in
four stages:

1. tokenize every enabled input into modifier terms,
2. let features registered for ``base-dice-pool-features-<action>``
   append their own terms,
3. apply advantage or disadvantage,
4. merge terms into the final formula.

Terms stay structured until the last stage; only ``combine_elements``
and ``DicePoolBuilder._format`` produce strings.

Example:
    >>> builder = DicePoolBuilder()
    >>> builder.build_pool([ModifierInput(modifier="5")], "attack", advantage=True).formula
    'max(1d20,1d20)+5'
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable
from typing import TYPE_CHECKING

from tabletop_actions.core.exceptions import ValidationError
from tabletop_actions.core.logging import get_logger
from tabletop_actions.features.base import build_feature_context
from tabletop_actions.models.enums import ActionType, ElementType
from tabletop_actions.models.modifiers import (
    DICE_PATTERN,
    NUMBER_PATTERN,
    DicePoolResult,
    ModifierInput,
    ModifierTerm,
)


if TYPE_CHECKING:
    from tabletop_actions.features.registry import FeatureRegistry
    from tabletop_actions.models.actors import ActorRecord
    from tabletop_actions.models.state import DialogState

logger = get_logger(__name__)

FEATURE_STEP_PREFIX = "base-dice-pool-features-"
DEFAULT_DAMAGE_TYPE = "kinetic"
EMPTY_DAMAGE_FORMULA = "0"
EMPTY_CHECK_FORMULA = "1d20"

BASE_DIE_NAMES: dict[ActionType, str] = {
    ActionType.ATTACK: "Attack Die",
    ActionType.SAVE: "Save Die",
    ActionType.SKILL: "Check Die",
    ActionType.ABILITY: "Check Die",
}


# =============================================================================
# Tokenization
# =============================================================================


def _split_on_minus(chunk: str) -> list[str]:
    """Split a chunk on every minus sign that is not its first character."""
    tokens: list[str] = []
    current = ""
    for char in chunk:
        if char == "-" and current:
            tokens.append(current)
            current = "-"
        else:
            current += char
    if current:
        tokens.append(current)
    return tokens


def _parse_token(token: str) -> tuple[str, ElementType] | None:
    """Normalize a token into an element, or None to drop it."""
    if NUMBER_PATTERN.match(token):
        value = int(token)
        return (str(value), ElementType.NUMBER) if value else None

    match = DICE_PATTERN.match(token)
    if match is None:
        return None
    quantity = int(match.group("quantity") or 1)
    faces = int(match.group("faces"))
    if quantity == 0 or faces == 0:
        return None
    sign = "-" if match.group("sign") == "-" else ""
    return f"{sign}{quantity}d{faces}", ElementType.DICE


def tokenize_modifier(
    raw: str | int,
    *,
    modifier_name: str = "Unknown",
    modifier_type: str = "",
    feature_name: str | None = None,
) -> list[ModifierTerm]:
    """Split a raw formula fragment into modifier terms.

    Whitespace is removed, the fragment is split on ``+`` and every chunk
    is split again on ``-`` when the minus is not its first character.
    Empty, zero and unparseable tokens are dropped.

    Args:
        raw: Raw fragment, e.g. "1d6-2".
        modifier_name: Name copied onto every term.
        modifier_type: Type copied onto every term.
        feature_name: Contributing feature copied onto every term.

    Returns:
        The terms, in fragment order.

    Example:
        >>> [t.element for t in tokenize_modifier("1d6-2")]
        ['1d6', '-2']
    """
    cleaned = re.sub(r"\s+", "", str(raw))
    terms: list[ModifierTerm] = []
    for chunk in cleaned.split("+"):
        for token in _split_on_minus(chunk):
            parsed = _parse_token(token)
            if parsed is None:
                if token not in ("", "-", "0", "-0"):
                    logger.debug("Dropped unparseable token", token=token, fragment=str(raw))
                continue
            element, element_type = parsed
            terms.append(
                ModifierTerm(
                    element=element,
                    element_type=element_type,
                    modifier_type=modifier_type,
                    modifier_name=modifier_name or "Unknown",
                    feature_name=feature_name,
                )
            )
    return terms


# =============================================================================
# Formula Assembly
# =============================================================================


def _format_dice(quantities: dict[int, int]) -> list[str]:
    """Render merged dice quantities, largest die first."""
    parts: list[str] = []
    for faces in sorted(quantities, reverse=True):
        quantity = quantities[faces]
        if quantity:
            parts.append(f"{quantity}d{faces}")
    return parts


def _join_signed(parts: list[str]) -> str:
    formula = ""
    for part in parts:
        if not formula:
            formula = part
        elif part.startswith("-"):
            formula += part
        else:
            formula += f"+{part}"
    return formula


def combine_elements(elements: Iterable[str]) -> str:
    """Merge formula elements into a single expression.

    Dice groups are merged by die size and ordered by descending face
    count; numbers are summed once and appended with an explicit sign.
    Elements that are neither simple dice nor integers (the advantage
    rewrite) are kept verbatim, ahead of the merged dice.

    Args:
        elements: Element strings.

    Returns:
        The combined expression, or "0" when nothing remains.

    Example:
        >>> combine_elements(["1d8", "2d6", "3", "1d4", "3d6", "1d4", "-1"])
        '1d8+5d6+2d4+2'
    """
    verbatim: list[str] = []
    quantities: dict[int, int] = {}
    number_sum = 0

    for element in elements:
        if NUMBER_PATTERN.match(element):
            number_sum += int(element)
            continue
        match = DICE_PATTERN.match(element)
        if match is None:
            verbatim.append(element)
            continue
        quantity = int(match.group("quantity") or 1)
        if match.group("sign") == "-":
            quantity = -quantity
        faces = int(match.group("faces"))
        quantities[faces] = quantities.get(faces, 0) + quantity

    parts = [*verbatim, *_format_dice(quantities)]
    if number_sum:
        parts.append(str(number_sum))

    return _join_signed(parts) or EMPTY_DAMAGE_FORMULA


# =============================================================================
# Builder
# =============================================================================


class DicePoolBuilder:
    """Builds dice pools and formulas for one action at a time.

    The builder is stateless between calls; the registry it holds is
    only read.

    Attributes:
        registry: Feature registry consulted during feature mutation.
        base_damage_type: Damage type for untyped damage terms.
    """

    def __init__(
        self,
        registry: FeatureRegistry | None = None,
        *,
        base_damage_type: str = DEFAULT_DAMAGE_TYPE,
    ) -> None:
        """Initialize the builder.

        Args:
            registry: Feature registry; without one no features apply.
            base_damage_type: Damage type for untyped damage terms.
        """
        self.registry = registry
        self.base_damage_type = base_damage_type.strip().lower() or DEFAULT_DAMAGE_TYPE

    def build_pool(
        self,
        modifier_inputs: Iterable[ModifierInput],
        action_type: ActionType | str,
        *,
        advantage: bool = False,
        disadvantage: bool = False,
        actor: ActorRecord | None = None,
        dialog_state: DialogState | None = None,
        vetoed_features: Collection[str] = (),
        critical: bool = False,
    ) -> DicePoolResult:
        """Build the dice pool and formula for an action.

        Args:
            modifier_inputs: Declared modifiers; disabled ones are skipped.
            action_type: attack, damage, save, skill or ability.
            advantage: Advantage was selected.
            disadvantage: Disadvantage was selected.
            actor: Acting actor; required for feature mutation.
            dialog_state: Dialog input carrying per-feature data.
            vetoed_features: Feature ids excluded for this action.
            critical: Double damage dice quantities for a critical hit.

        Returns:
            The built pool.

        Raises:
            ValidationError: If the action type is unknown.
        """
        action = self._coerce_action_type(action_type)

        pool: list[ModifierTerm] = []
        if action.uses_d20:
            pool.append(
                ModifierTerm(
                    element="1d20",
                    element_type=ElementType.DICE,
                    modifier_name=BASE_DIE_NAMES[action],
                )
            )

        for modifier_input in modifier_inputs:
            pool.extend(self._tokenize_input(modifier_input, action))

        feature_names = self._apply_features(pool, action, actor, dialog_state, vetoed_features)

        if critical and action is ActionType.DAMAGE:
            pool = [self._double_dice(term) for term in pool]

        use_advantage = advantage and not disadvantage
        use_disadvantage = disadvantage and not advantage
        if advantage and disadvantage:
            logger.debug("Advantage and disadvantage cancel out", action_type=str(action))

        if action.uses_d20 and (use_advantage or use_disadvantage):
            pool = self._rewrite_first_d20(pool, "max" if use_advantage else "min")

        formula = self._format(pool, action)
        if action is ActionType.DAMAGE and formula != EMPTY_DAMAGE_FORMULA:
            if use_advantage:
                formula = f"max({formula},{formula})"
            elif use_disadvantage:
                formula = f"min({formula},{formula})"

        result = DicePoolResult(
            action_type=action,
            base_pool=pool,
            formula=formula,
            advantage=advantage,
            disadvantage=disadvantage,
            critical=critical and action is ActionType.DAMAGE,
            feature_names=feature_names,
        )
        logger.debug(
            "Dice pool built",
            action_type=str(action),
            formula=formula,
            terms=len(pool),
            features=feature_names,
        )
        return result

    @staticmethod
    def _coerce_action_type(action_type: ActionType | str) -> ActionType:
        try:
            return ActionType(action_type)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown action type '{action_type}'",
                field_name="action_type",
                invalid_value=action_type,
            ) from exc

    def _tokenize_input(self, modifier_input: ModifierInput, action: ActionType) -> list[ModifierTerm]:
        if not modifier_input.is_enabled:
            return []
        modifier_type = modifier_input.modifier_type.strip()
        if action is ActionType.DAMAGE:
            modifier_type = modifier_type.lower() or self.base_damage_type
        return tokenize_modifier(
            modifier_input.modifier,
            modifier_name=modifier_input.modifier_name,
            modifier_type=modifier_type,
            feature_name=modifier_input.feature_name,
        )

    def _apply_features(
        self,
        pool: list[ModifierTerm],
        action: ActionType,
        actor: ActorRecord | None,
        dialog_state: DialogState | None,
        vetoed_features: Collection[str],
    ) -> list[str]:
        """Append terms from features hooked into this action's pool step."""
        if self.registry is None or actor is None:
            return []

        step_id = f"{FEATURE_STEP_PREFIX}{action}"
        applied: list[str] = []
        for feature in self.registry.get_features_for_workflow_step(step_id):
            if feature.id in vetoed_features or not self.registry.is_feature_available(actor, feature.id):
                continue

            context = build_feature_context(
                feature,
                actor,
                str(action),
                dialog_state=dialog_state,
                workflow_step=step_id,
            )
            if not context.feature_data.enabled:
                continue

            added = 0
            for modifier_input in feature.roll_modifiers(context):
                tagged = modifier_input.model_copy(update={"feature_name": feature.name})
                terms = self._tokenize_input(tagged, action)
                pool.extend(terms)
                added += len(terms)
            if added:
                applied.append(feature.name)
                logger.debug("Feature modified pool", feature_id=feature.id, step=step_id, terms=added)
        return applied

    @staticmethod
    def _double_dice(term: ModifierTerm) -> ModifierTerm:
        if not term.is_simple_dice:
            return term
        return term.model_copy(update={"element": f"{term.quantity * 2}d{term.faces}"})

    @staticmethod
    def _rewrite_first_d20(pool: list[ModifierTerm], selector: str) -> list[ModifierTerm]:
        rewritten = list(pool)
        for index, term in enumerate(rewritten):
            if term.is_simple_dice and term.faces == 20 and term.quantity > 0:
                element = term.element
                rewritten[index] = term.model_copy(update={"element": f"{selector}({element},{element})"})
                break
        return rewritten

    def _format(self, pool: list[ModifierTerm], action: ActionType) -> str:
        if action is not ActionType.DAMAGE:
            if not pool:
                return EMPTY_CHECK_FORMULA
            formula = combine_elements(term.element for term in pool)
            return EMPTY_CHECK_FORMULA if formula == EMPTY_DAMAGE_FORMULA else formula

        groups: dict[str, list[str]] = {}
        for term in pool:
            groups.setdefault(term.modifier_type or self.base_damage_type, []).append(term.element)

        ordered = sorted(groups, key=lambda damage_type: (damage_type != self.base_damage_type, damage_type))
        parts: list[str] = []
        for damage_type in ordered:
            combined = combine_elements(groups[damage_type])
            if combined != EMPTY_DAMAGE_FORMULA:
                parts.append(f"({combined})[{damage_type}]")
        return "+".join(parts) or EMPTY_DAMAGE_FORMULA


__all__ = [
    "FEATURE_STEP_PREFIX",
    "DEFAULT_DAMAGE_TYPE",
    "DicePoolBuilder",
    "tokenize_modifier",
    "combine_elements",
]
