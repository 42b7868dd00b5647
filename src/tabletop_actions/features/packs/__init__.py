"""Shipped feature packs.

New packs are added to ``DEFAULT_FEATURES``; the order of this table is
the registration order of the default registry.
"""

from __future__ import annotations

from collections.abc import Callable

from tabletop_actions.features.base import Feature
from tabletop_actions.features.packs.critical import (
    CriticalRangeFeature,
    ImprovedCritical,
    SuperiorCritical,
)
from tabletop_actions.features.packs.force_empowered_self import (
    KINETIC_DIE_SCALE,
    ForceEmpoweredSelf,
)


DEFAULT_FEATURES: tuple[Callable[[], Feature], ...] = (
    ForceEmpoweredSelf,
    ImprovedCritical,
    SuperiorCritical,
)


__all__ = [
    "DEFAULT_FEATURES",
    "KINETIC_DIE_SCALE",
    "CriticalRangeFeature",
    "ForceEmpoweredSelf",
    "ImprovedCritical",
    "SuperiorCritical",
]
