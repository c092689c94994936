"""Pydantic schemas for quality selection."""

from typing import Optional

from pydantic import BaseModel, Field

from mediahost.modules.quality.policy import QualityOption, QualityRequest


class QualitySelection(BaseModel):
    """Quality fields of a conversion request."""
    quality: Optional[str] = Field(None, description="Tier: baixa, media, alta, fullhd or custom")
    custom_bitrate: Optional[int] = Field(None, description="Bitrate in kbps for custom quality")
    custom_resolution: Optional[str] = Field(None, description="Resolution as <width>x<height>")
    use_custom: bool = False

    def to_request(self) -> QualityRequest:
        return QualityRequest(
            tier=self.quality,
            custom_bitrate=self.custom_bitrate,
            custom_resolution=self.custom_resolution,
            use_custom=self.use_custom,
        )

    def is_empty(self) -> bool:
        return not self.quality and not self.use_custom


class QualityOptionResponse(BaseModel):
    """A quality tier as offered to the account."""
    tier: str
    bitrate: Optional[int]
    resolution: Optional[str]
    label: str
    offerable: bool

    @classmethod
    def from_option(cls, option: QualityOption) -> "QualityOptionResponse":
        return cls(
            tier=option.tier.value,
            bitrate=option.bitrate,
            resolution=option.resolution,
            label=option.label,
            offerable=option.offerable,
        )


class QualityListResponse(BaseModel):
    """Tiers offered to an account."""
    bitrate_ceiling: int
    qualities: list[QualityOptionResponse]
