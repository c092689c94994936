"""Quality tier policy."""

from mediahost.modules.quality.policy import (
    QualityOption,
    QualityRequest,
    QualityTier,
    TargetSpec,
    default_tier,
    offerable_tiers,
    resolve_request,
)

__all__ = [
    "QualityOption",
    "QualityRequest",
    "QualityTier",
    "TargetSpec",
    "default_tier",
    "offerable_tiers",
    "resolve_request",
]
