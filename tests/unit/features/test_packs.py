"""Tests for the shipped feature packs."""

from __future__ import annotations

import pytest

from tabletop_actions.features.base import FeatureData, build_feature_context
from tabletop_actions.features.packs import ForceEmpoweredSelf, ImprovedCritical, SuperiorCritical
from tabletop_actions.models.actors import ActorRecord
from tabletop_actions.models.enums import InjectionType, RangeModificationType
from tabletop_actions.models.state import DialogState


def enabled_dialog(**data: object) -> DialogState:
    return DialogState(actor_id="hero", feature_state={"force-empowered-self": {"enabled": True, **data}})


class TestForceEmpoweredSelf:
    """Tests for Force-Empowered Self."""

    @pytest.fixture
    def feature(self) -> ForceEmpoweredSelf:
        return ForceEmpoweredSelf()

    @pytest.mark.parametrize(
        ("level", "die"),
        [(1, "1d4"), (4, "1d4"), (5, "1d6"), (11, "1d8"), (16, "1d8"), (17, "1d10"), (20, "1d10")],
    )
    def test_kinetic_die_scales(self, feature: ForceEmpoweredSelf, level: int, die: str) -> None:
        """Test the die grows with total level."""
        actor = ActorRecord(id="a", class_levels={"Guardian": level})

        assert feature.kinetic_die(actor) == die

    def test_scaling_class(self) -> None:
        """Test a scaling class reads only that class's levels."""
        feature = ForceEmpoweredSelf(scaling_class="Sentinel")
        actor = ActorRecord(id="a", class_levels={"Guardian": 10, "Sentinel": 5})

        assert feature.kinetic_die(actor) == "1d6"

    def test_disabled_adds_nothing(self, feature: ForceEmpoweredSelf, hero: ActorRecord) -> None:
        """Test nothing is added unless the dialog enables the feature."""
        context = build_feature_context(feature, hero, "damage", dialog_state=DialogState(actor_id="hero"))

        assert feature.roll_modifiers(context) == []
        assert feature.validation_logic(context) is True

    def test_enabled_adds_kinetic_die(self, feature: ForceEmpoweredSelf, hero: ActorRecord) -> None:
        """Test enabling adds the scaled kinetic die."""
        context = build_feature_context(feature, hero, "damage", dialog_state=enabled_dialog())

        modifiers = feature.roll_modifiers(context)

        assert len(modifiers) == 1
        assert modifiers[0].modifier == "1d6"
        assert modifiers[0].modifier_type == "kinetic"
        assert modifiers[0].feature_name == "Force-Empowered Self"

    def test_dialog_overrides(self, feature: ForceEmpoweredSelf, hero: ActorRecord) -> None:
        """Test dialog data overrides the die and type."""
        context = build_feature_context(
            feature,
            hero,
            "damage",
            dialog_state=enabled_dialog(modifier="2d8", modifier_type="force"),
        )

        modifier = feature.roll_modifiers(context)[0]

        assert (modifier.modifier, modifier.modifier_type) == ("2d8", "force")

    def test_only_damage(self, feature: ForceEmpoweredSelf, hero: ActorRecord) -> None:
        """Test attack pools are never modified."""
        context = build_feature_context(feature, hero, "attack", dialog_state=enabled_dialog())

        assert feature.roll_modifiers(context) == []

    def test_veto_without_force_points(self, feature: ForceEmpoweredSelf) -> None:
        """Test enabling without Force Points is vetoed."""
        actor = ActorRecord(id="a", resources={"Force Points": 0})
        context = build_feature_context(feature, actor, "damage", dialog_state=enabled_dialog())

        assert feature.validation_logic(context) == (
            "Not enough Force Points for Force-Empowered Self (need 1, have 0)"
        )

    def test_presentation(self, feature: ForceEmpoweredSelf) -> None:
        """Test the dialog toggle text and injection type."""
        assert feature.modifier_display(FeatureData()) == "+1d4 kinetic"
        assert feature.get_injection_type("damage") == InjectionType.HTML
        assert feature.get_injection_type("save") == InjectionType.SIMPLE


class TestCriticalFeatures:
    """Tests for the critical range packs."""

    def test_improved_critical_expands(self, hero: ActorRecord) -> None:
        """Test Improved Critical expands to 19-20."""
        feature = ImprovedCritical()
        context = build_feature_context(feature, hero, "attack", workflow_step="attack-resolve")

        (modification,) = feature.critical_range_modifications(context)

        assert modification.type == RangeModificationType.EXPAND
        assert (modification.range.min, modification.range.max) == (19, 20)

    def test_superior_critical_sets(self, hero: ActorRecord) -> None:
        """Test Superior Critical replaces the range with 18-20."""
        feature = SuperiorCritical()
        context = build_feature_context(feature, hero, "attack", workflow_step="attack-resolve")

        (modification,) = feature.critical_range_modifications(context)

        assert modification.type == RangeModificationType.SET
        assert (modification.range.min, modification.range.max) == (18, 20)

    def test_hooks(self) -> None:
        """Test both hook attack resolution only."""
        for feature in (ImprovedCritical(), SuperiorCritical()):
            assert feature.affects_workflow_step("attack-resolve") is True
            assert feature.affects_dialog_type("attack") is True
            assert feature.affects_dialog_type("damage") is False
