"""
Detection module - Multi-tier login form detection

Tiers (default order): URL-specific configuration, common attributes,
structural XPath, nested frames and shadow roots.
"""

from autosignin_core.detection.detector import FormDetector
from autosignin_core.detection.tiers import (
    CommonAttributeTier,
    DetectionTier,
    NestedContextTier,
    StructuralTier,
    UrlConfigTier,
    default_tiers,
)
from autosignin_core.detection.confidence import TIER_WEIGHTS, score

__all__ = [
    'FormDetector',
    'DetectionTier',
    'UrlConfigTier',
    'CommonAttributeTier',
    'StructuralTier',
    'NestedContextTier',
    'default_tiers',
    'TIER_WEIGHTS',
    'score',
]
