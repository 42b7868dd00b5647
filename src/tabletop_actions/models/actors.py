"""Pydantic V2 schemas for actors and targets.

Actors are read through the actor data source protocol; these models are
the resolver's own view of them and carry only what rules resolution
needs: feats, equipment properties, resources, defenses and saves.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def _normalize_names(values: list[str]) -> list[str]:
    return [value.strip().lower() for value in values if value and value.strip()]


class EquipmentItem(BaseModel):
    """An item an actor carries.

    Attributes:
        name: Item name.
        item_type: Item category, e.g. "weapon" or "equipment".
        equipped: Whether the item is currently equipped.
        properties: Item property flags keyed by property or feature id.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="ignore",
    )

    name: str = Field(min_length=1)
    item_type: str = Field(default="equipment")
    equipped: bool = Field(default=True)
    properties: dict[str, Any] = Field(default_factory=dict)


class ActorRecord(BaseModel):
    """An acting or targeted creature.

    Attributes:
        id: Stable actor identifier.
        name: Display name.
        feats: Names of feats and class features the actor has.
        items: Carried equipment.
        resources: Spendable resources by name, e.g. {"Force Points": 4}.
        class_levels: Levels per class name.
        armor_class: Armor class.
        hit_points: Current hit points, if tracked.
        saves: Saving throw bonuses keyed by ability name.
        resistances: Damage types taking half damage.
        immunities: Damage types taking no damage.
        vulnerabilities: Damage types taking double damage.
        feature_data: Per-feature instance data keyed by feature id.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="ignore",
    )

    id: str = Field(min_length=1)
    name: str = Field(default="Unknown Actor")
    feats: list[str] = Field(default_factory=list)
    items: list[EquipmentItem] = Field(default_factory=list)
    resources: dict[str, int] = Field(default_factory=dict)
    class_levels: dict[str, int] = Field(default_factory=dict)
    armor_class: int = Field(default=10, ge=0)
    hit_points: int | None = Field(default=None)
    saves: dict[str, int] = Field(default_factory=dict)
    resistances: list[str] = Field(default_factory=list)
    immunities: list[str] = Field(default_factory=list)
    vulnerabilities: list[str] = Field(default_factory=list)
    feature_data: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator("resistances", "immunities", "vulnerabilities", mode="after")
    @classmethod
    def normalize_damage_types(cls, value: list[str]) -> list[str]:
        """Lower-case damage type names."""
        return _normalize_names(value)

    @field_validator("saves", mode="after")
    @classmethod
    def normalize_save_keys(cls, value: dict[str, int]) -> dict[str, int]:
        """Lower-case ability names used as save keys."""
        return {key.strip().lower(): bonus for key, bonus in value.items()}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_level(self) -> int:
        """Sum of all class levels."""
        return sum(self.class_levels.values())

    @property
    def equipped_items(self) -> list[EquipmentItem]:
        """Items currently equipped."""
        return [item for item in self.items if item.equipped]

    def has_feat(self, name: str) -> bool:
        """Exact, case-sensitive feat name match.

        Args:
            name: Feat name to look for.

        Returns:
            True if the actor has a feat with exactly that name.
        """
        return name in self.feats

    def resource(self, name: str) -> int:
        """Remaining amount of a named resource, 0 if absent."""
        return self.resources.get(name, 0)

    def save_bonus(self, ability: str) -> int:
        """Saving throw bonus for an ability, 0 if unknown."""
        return self.saves.get(ability.strip().lower(), 0)


class TargetData(BaseModel):
    """Resolved target information used by attack, save and damage steps.

    Targets that could not be looked up become placeholders: ``error`` is
    set and the name is "Missing Target" or "Error Target".

    Attributes:
        id: Target identifier as supplied by the dialog.
        name: Display name.
        armor_class: Armor class (10 when unknown).
        saves: Saving throw bonuses keyed by ability name.
        resistances: Damage types taking half damage.
        immunities: Damage types taking no damage.
        vulnerabilities: Damage types taking double damage.
        error: Lookup error message for placeholder targets.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )

    id: str
    name: str = "Unknown Target"
    armor_class: int = 10
    saves: dict[str, int] = Field(default_factory=dict)
    resistances: list[str] = Field(default_factory=list)
    immunities: list[str] = Field(default_factory=list)
    vulnerabilities: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def is_placeholder(self) -> bool:
        """Whether this target stands in for a failed lookup."""
        return self.error is not None

    def save_bonus(self, ability: str) -> int:
        """Saving throw bonus for an ability, 0 if unknown."""
        return self.saves.get(ability.strip().lower(), 0)

    def modify_damage(self, amount: int, damage_type: str) -> int:
        """Modify damage based on resistances/immunities/vulnerabilities."""
        damage_type = damage_type.lower()
        if damage_type in self.immunities:
            return 0
        if damage_type in self.resistances:
            return amount // 2
        if damage_type in self.vulnerabilities:
            return amount * 2
        return amount

    @classmethod
    def from_actor(cls, actor: ActorRecord) -> TargetData:
        """Build target data from an actor record.

        Args:
            actor: The targeted actor.

        Returns:
            Target data carrying the actor's defenses.
        """
        return cls(
            id=actor.id,
            name=actor.name,
            armor_class=actor.armor_class,
            saves=dict(actor.saves),
            resistances=actor.resistances,
            immunities=actor.immunities,
            vulnerabilities=actor.vulnerabilities,
        )


__all__ = [
    "EquipmentItem",
    "ActorRecord",
    "TargetData",
]
