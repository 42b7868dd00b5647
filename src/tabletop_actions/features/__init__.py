"""Feature plugin mechanism.

Exports:
    Feature: Interface every feature satisfies.
    BaseFeature: Default implementation to subclass.
    FeatureContext, FeatureData: Per-call hook arguments.
    FeatureRegistry: Ordered feature table.
    build_default_registry: Registry holding the shipped packs.
"""

from __future__ import annotations

from tabletop_actions.features.base import (
    BaseFeature,
    Feature,
    FeatureContext,
    FeatureData,
    build_feature_context,
)
from tabletop_actions.features.registry import FeatureRegistry, build_default_registry


__all__ = [
    "Feature",
    "BaseFeature",
    "FeatureContext",
    "FeatureData",
    "build_feature_context",
    "FeatureRegistry",
    "build_default_registry",
]
