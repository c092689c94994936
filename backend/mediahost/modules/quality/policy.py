"""Quality tiers and bitrate ceiling policy.

Named tiers map to a bitrate and resolution; an account may only convert to
a bitrate at or below its plan ceiling. Everything here is pure so the same
ceiling and request always resolve to the same target or the same error.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mediahost.core.exceptions import ExceedsCeiling, InvalidQuality


class QualityTier(str, Enum):
    """Conversion quality presets, lowest first."""
    BAIXA = "baixa"
    MEDIA = "media"
    ALTA = "alta"
    FULLHD = "fullhd"
    CUSTOM = "custom"


@dataclass(frozen=True)
class TierPreset:
    """Fixed bitrate and resolution of a named tier."""
    bitrate: int
    width: int
    height: int
    label: str


TIER_PRESETS: dict[QualityTier, TierPreset] = {
    QualityTier.BAIXA: TierPreset(800, 854, 480, "Baixa (480p)"),
    QualityTier.MEDIA: TierPreset(1500, 1280, 720, "Média (720p)"),
    QualityTier.ALTA: TierPreset(2500, 1920, 1080, "Alta (1080p)"),
    QualityTier.FULLHD: TierPreset(4000, 1920, 1080, "Full HD (1080p+)"),
}

# Full HD is capped at the ceiling and only offered to plans of at least 3 Mbps
FULLHD_MAX_BITRATE = 4000
FULLHD_MIN_CEILING = 3000

_RESOLUTION_PATTERN = re.compile(r"^(\d+)x(\d+)$")


@dataclass(frozen=True)
class QualityOption:
    """A tier as offered to an account."""
    tier: QualityTier
    bitrate: Optional[int]
    resolution: Optional[str]
    label: str
    offerable: bool


@dataclass(frozen=True)
class QualityRequest:
    """A caller's choice of quality: a named tier or custom parameters."""
    tier: Optional[str] = None
    custom_bitrate: Optional[int] = None
    custom_resolution: Optional[str] = None
    use_custom: bool = False


@dataclass(frozen=True)
class TargetSpec:
    """Resolved conversion target."""
    tier: QualityTier
    bitrate: int
    width: int
    height: int
    label: str

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


def custom_label(bitrate: int) -> str:
    return f"Personalizado ({bitrate} kbps)"


def tier_bitrate(tier: QualityTier, ceiling: int) -> int:
    """Target bitrate of a named tier for an account ceiling."""
    if tier == QualityTier.FULLHD:
        return min(FULLHD_MAX_BITRATE, ceiling)
    return TIER_PRESETS[tier].bitrate


def is_offerable(tier: QualityTier, ceiling: int) -> bool:
    """Whether a named tier may be requested under a ceiling."""
    if tier == QualityTier.CUSTOM:
        return True
    if tier == QualityTier.FULLHD and ceiling < FULLHD_MIN_CEILING:
        return False
    return tier_bitrate(tier, ceiling) <= ceiling


def offerable_tiers(ceiling: int) -> list[QualityOption]:
    """All tiers in fixed order, each flagged offerable or not."""
    options = []
    for tier, preset in TIER_PRESETS.items():
        options.append(QualityOption(
            tier=tier,
            bitrate=tier_bitrate(tier, ceiling),
            resolution=f"{preset.width}x{preset.height}",
            label=preset.label,
            offerable=is_offerable(tier, ceiling),
        ))
    options.append(QualityOption(
        tier=QualityTier.CUSTOM,
        bitrate=None,
        resolution=None,
        label="Personalizado",
        offerable=True,
    ))
    return options


def default_tier(ceiling: int) -> Optional[QualityTier]:
    """Highest named tier the ceiling allows, or None below the lowest tier."""
    best = None
    for tier in TIER_PRESETS:
        if is_offerable(tier, ceiling):
            best = tier
    return best


def parse_resolution(value: Optional[str]) -> tuple[int, int]:
    """Parse a ``<width>x<height>`` resolution.

    Raises:
        InvalidQuality: If the value is missing or malformed
    """
    match = _RESOLUTION_PATTERN.match((value or "").strip())
    if not match:
        raise InvalidQuality(
            "Resolution must have the form <width>x<height>",
            detail={"resolution": value},
        )
    width, height = int(match.group(1)), int(match.group(2))
    if width <= 0 or height <= 0:
        raise InvalidQuality(
            "Resolution dimensions must be positive",
            detail={"resolution": value},
        )
    return width, height


def _resolve_custom(ceiling: int, request: QualityRequest) -> TargetSpec:
    bitrate = request.custom_bitrate
    if bitrate is None or not request.custom_resolution:
        raise InvalidQuality(
            "Custom quality requires both bitrate and resolution",
            detail={
                "custom_bitrate": bitrate,
                "custom_resolution": request.custom_resolution,
            },
        )
    if isinstance(bitrate, bool) or not isinstance(bitrate, int) or bitrate <= 0:
        raise InvalidQuality(
            "Custom bitrate must be a positive integer",
            detail={"custom_bitrate": bitrate},
        )
    width, height = parse_resolution(request.custom_resolution)
    if bitrate > ceiling:
        raise ExceedsCeiling(
            f"Bitrate {bitrate} kbps exceeds the plan limit of {ceiling} kbps",
            detail={"bitrate": bitrate, "ceiling": ceiling},
        )
    return TargetSpec(
        tier=QualityTier.CUSTOM,
        bitrate=bitrate,
        width=width,
        height=height,
        label=custom_label(bitrate),
    )


def resolve_request(ceiling: int, request: QualityRequest) -> TargetSpec:
    """Resolve a quality request against an account ceiling.

    Raises:
        InvalidQuality: If the tier is unknown or custom parameters are invalid
        ExceedsCeiling: If the resulting bitrate is above the ceiling
    """
    if request.use_custom or request.tier == QualityTier.CUSTOM.value:
        return _resolve_custom(ceiling, request)

    try:
        tier = QualityTier(request.tier)
    except ValueError:
        raise InvalidQuality(
            f"Unknown quality tier: {request.tier}",
            detail={"tier": request.tier},
        )

    bitrate = tier_bitrate(tier, ceiling)
    if not is_offerable(tier, ceiling):
        raise ExceedsCeiling(
            f"Quality {tier.value} ({bitrate} kbps) is not available "
            f"for a plan limit of {ceiling} kbps",
            detail={"tier": tier.value, "bitrate": bitrate, "ceiling": ceiling},
        )

    preset = TIER_PRESETS[tier]
    return TargetSpec(
        tier=tier,
        bitrate=bitrate,
        width=preset.width,
        height=preset.height,
        label=preset.label,
    )
