"""Core module providing configuration, logging, and base exceptions.

Exports:
    Exceptions:
        TabletopActionsError: Base exception for all application errors.
        ConfigurationError: Configuration-related errors.
        ValidationError: Data validation errors.

    Configuration:
        Settings: Main application settings class.
        get_settings: Get the settings singleton.
        clear_settings_cache: Force settings reload.

    Logging:
        configure_logging: Set up application logging.
        get_logger: Get a configured logger instance.
        bind_context: Add context to log entries.
        clear_context: Clear logging context.
"""

from __future__ import annotations

from tabletop_actions.core.config import (
    DiceSettings,
    RulesSettings,
    Settings,
    WorkflowSettings,
    clear_settings_cache,
    get_settings,
)
from tabletop_actions.core.exceptions import (
    ActorNotFoundError,
    ConfigurationError,
    DiceRollError,
    FeatureError,
    FeatureRegistrationError,
    GameEngineError,
    TabletopActionsError,
    ValidationError,
    WorkflowConfigurationError,
    WorkflowStepError,
)
from tabletop_actions.core.logging import (
    bind_context,
    clear_context,
    configure_from_settings,
    configure_logging,
    get_logger,
    workflow_context,
)


__all__ = [
    # Base exception
    "TabletopActionsError",
    # Configuration exceptions
    "ConfigurationError",
    "ValidationError",
    # Game engine exceptions
    "GameEngineError",
    "DiceRollError",
    "WorkflowConfigurationError",
    "WorkflowStepError",
    "ActorNotFoundError",
    # Feature exceptions
    "FeatureError",
    "FeatureRegistrationError",
    # Configuration
    "Settings",
    "DiceSettings",
    "RulesSettings",
    "WorkflowSettings",
    "get_settings",
    "clear_settings_cache",
    # Logging
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "clear_context",
    "workflow_context",
]
