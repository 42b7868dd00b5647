"""Custom exception hierarchy for the tabletop action resolver.

All exceptions inherit from TabletopActionsError, enabling unified error
handling at the application boundary while preserving domain-specific
context in the ``details`` mapping.

Example:
    >>> from tabletop_actions.core.exceptions import DiceRollError
    >>> raise DiceRollError("Unbalanced parentheses", expression="max(1d20")
"""

from __future__ import annotations

from typing import Any


class TabletopActionsError(Exception):
    """Base exception for all action resolver errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        """Initialize the base exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional details.

        Returns:
            Formatted error message including any provided details.
        """
        if self.details:
            detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def __repr__(self) -> str:
        """Return a detailed string representation of the exception."""
        return f"{self.__class__.__name__}(message={self.message!r}, details={self.details!r})"


# =============================================================================
# Configuration & Validation Exceptions
# =============================================================================


class ConfigurationError(TabletopActionsError):
    """Raised when application configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if config_key:
            combined_details["config_key"] = config_key
        super().__init__(message, details=combined_details)


class ValidationError(TabletopActionsError):
    """Raised when data validation fails.

    Covers malformed critical ranges, unknown check types and other
    constraint violations in caller-supplied data.
    """

    def __init__(
        self,
        message: str,
        *,
        field_name: str | None = None,
        invalid_value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if field_name:
            combined_details["field_name"] = field_name
        if invalid_value is not None:
            combined_details["invalid_value"] = invalid_value
        super().__init__(message, details=combined_details)


# =============================================================================
# Game Engine Domain Exceptions
# =============================================================================


class GameEngineError(TabletopActionsError):
    """Base exception for dice, resolution and workflow errors."""


class DiceRollError(GameEngineError):
    """Raised when a dice formula cannot be evaluated."""

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if expression:
            combined_details["expression"] = expression
        super().__init__(message, details=combined_details)


class WorkflowConfigurationError(GameEngineError):
    """Raised when a workflow name or step list is invalid.

    This is a construction-time error: it surfaces before any step runs.
    """

    def __init__(
        self,
        message: str,
        *,
        workflow: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if workflow:
            combined_details["workflow"] = workflow
        super().__init__(message, details=combined_details)


class WorkflowStepError(GameEngineError):
    """Raised when a workflow step cannot proceed."""

    def __init__(
        self,
        message: str,
        *,
        step: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if step:
            combined_details["step"] = step
        super().__init__(message, details=combined_details)


class ActorNotFoundError(GameEngineError):
    """Raised when the actor data source has no record for an id."""

    def __init__(
        self,
        message: str,
        *,
        actor_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        combined_details = details or {}
        if actor_id:
            combined_details["actor_id"] = actor_id
        super().__init__(message, details=combined_details)


# =============================================================================
# Feature Domain Exceptions
# =============================================================================


class FeatureError(TabletopActionsError):
    """Base exception for feature plugin errors."""

    def __init__(
        self,
        message: str,
        *,
        feature_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize feature error with feature context.

        Args:
            message: Human-readable error description.
            feature_id: Identifier of the feature involved.
            details: Optional dictionary containing additional error context.
        """
        combined_details = details or {}
        if feature_id:
            combined_details["feature_id"] = feature_id
        super().__init__(message, details=combined_details)


class FeatureRegistrationError(FeatureError):
    """Raised when a feature cannot be added to the registry."""


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
]
