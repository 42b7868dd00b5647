"""Configuration management for the tabletop action resolver.

This module provides centralized configuration using pydantic-settings,
supporting environment variables, .env files, and runtime overrides.

Example:
    >>> from tabletop_actions.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.rules.critical_hit_rule
    'double_dice'

Environment Variables:
    TABLETOP_ACTIONS_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    TABLETOP_ACTIONS_DICE_SEED: Random seed for reproducible rolls
    TABLETOP_ACTIONS_DICE_DEFAULT_DAMAGE_TYPE: Damage type for untyped damage terms
    TABLETOP_ACTIONS_RULES_CRITICAL_HIT_RULE: double_dice or double_damage
    TABLETOP_ACTIONS_WORKFLOW_ROLL_SEPARATE_ATTACKS: One attack roll per target
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tabletop_actions.core.exceptions import ConfigurationError


class DiceSettings(BaseSettings):
    """Configuration for dice evaluation.

    Attributes:
        seed: Optional random seed for reproducible rolls.
        default_damage_type: Damage type assigned to untyped damage terms.
    """

    model_config = SettingsConfigDict(
        env_prefix="TABLETOP_ACTIONS_DICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    seed: int | None = Field(
        default=None,
        description="Random seed for reproducible rolls",
    )
    default_damage_type: str = Field(
        default="kinetic",
        min_length=1,
        description="Damage type for untyped damage terms",
    )

    @field_validator("default_damage_type", mode="after")
    @classmethod
    def normalize_damage_type(cls, value: str) -> str:
        """Lower-case and strip the damage type name.

        Args:
            value: Raw damage type.

        Returns:
            The normalized damage type.
        """
        return value.strip().lower()


class RulesSettings(BaseSettings):
    """Configuration for rules adjudication.

    Attributes:
        critical_hit_rule: How critical damage is computed.
        degree_of_success: Whether skill, save and ability checks report
            graded degrees instead of plain success/failure.
    """

    model_config = SettingsConfigDict(
        env_prefix="TABLETOP_ACTIONS_RULES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    critical_hit_rule: Literal["double_dice", "double_damage"] = Field(
        default="double_dice",
        description="Critical hit damage calculation",
    )
    degree_of_success: bool = Field(
        default=True,
        description="Report graded degrees of success for d20 checks",
    )


class WorkflowSettings(BaseSettings):
    """Configuration for workflow execution.

    Attributes:
        roll_separate_attacks: Roll one attack per target instead of one
            shared roll.
        default_workflow: Workflow used when a caller does not name one.
    """

    model_config = SettingsConfigDict(
        env_prefix="TABLETOP_ACTIONS_WORKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    roll_separate_attacks: bool = Field(
        default=False,
        description="Roll one attack per target",
    )
    default_workflow: str = Field(
        default="attack-damage",
        description="Workflow used when none is named",
    )

    @field_validator("default_workflow", mode="after")
    @classmethod
    def validate_default_workflow(cls, value: str) -> str:
        """Ensure the default workflow exists in the workflow table.

        Args:
            value: Workflow name.

        Returns:
            The validated workflow name.

        Raises:
            ConfigurationError: If the workflow is not defined.
        """
        from tabletop_actions.engine.workflows import WORKFLOW_CONFIGS

        known = {definition.workflow for definition in WORKFLOW_CONFIGS}
        if value not in known:
            raise ConfigurationError(
                f"Unknown default workflow '{value}'",
                config_key="default_workflow",
                details={"known_workflows": sorted(known)},
            )
        return value


class Settings(BaseSettings):
    """Main application settings aggregating all configuration domains.

    Attributes:
        app_name: Application name.
        app_version: Application version string.
        debug: Enable debug mode.
        log_level: Application logging level.
        json_logs: Emit JSON log lines instead of console output.
        dice: Dice evaluation settings.
        rules: Rules adjudication settings.
        workflow: Workflow execution settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="TABLETOP_ACTIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = Field(
        default="Tabletop Action Resolver",
        description="Application name",
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    json_logs: bool = Field(
        default=False,
        description="Emit JSON formatted logs",
    )

    dice: DiceSettings = Field(default_factory=DiceSettings)
    rules: RulesSettings = Field(default_factory=RulesSettings)
    workflow: WorkflowSettings = Field(default_factory=WorkflowSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The application Settings instance.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    try:
        return Settings()
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load application settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing a reload on next access.

    Primarily useful for testing or when environment variables have
    changed at runtime.
    """
    get_settings.cache_clear()


__all__ = [
    "DiceSettings",
    "RulesSettings",
    "WorkflowSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
]
