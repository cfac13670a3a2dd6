from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from specscope.errors import FrequencyOutOfRangeError
from specscope.models import AnalysisProfile, ViewportState
from specscope.profiles import DEFAULT_MAX_HEIGHT_PX, get_audio_profile, hz_to_bins, list_profile_modes


class PayloadBase(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RenderSettingsPayload(PayloadBase):
    mode: str = "low-precision"
    max_frequency_hz: float | None = Field(default=None, gt=0.0)
    width: int = Field(default=2000, gt=0)
    height: int = Field(default=DEFAULT_MAX_HEIGHT_PX, gt=0)
    visible_seconds: float | None = Field(default=None, gt=0.0)
    pixel_offset: float = Field(default=0.0, ge=0.0)

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, value: str) -> str:
        if value not in list_profile_modes():
            raise ValueError(f"Unsupported mode: {value}")
        return value

    def resolve_profile(self) -> AnalysisProfile:
        """Profile for ``mode`` with the Hz cutoff converted to bins."""
        profile = get_audio_profile(self.mode)
        if self.max_frequency_hz is None:
            return profile
        bins = hz_to_bins(self.max_frequency_hz, profile)
        if bins > profile.frequency_bin_count:
            raise FrequencyOutOfRangeError(
                f"Max frequency ({self.max_frequency_hz:g} Hz = {bins} bins) must be <= "
                f"{profile.frequency_bin_count} bins for window_size {profile.window_size}"
            )
        return profile.with_cutoff(bins)


class ViewportPayload(PayloadBase):
    visible_seconds: float = Field(gt=0.0)
    pixel_offset: float = Field(default=0.0, ge=0.0)
    viewport_pixel_width: int = Field(gt=0)

    def to_state(self) -> ViewportState:
        return ViewportState(
            zoom_seconds=self.visible_seconds,
            pixel_offset=self.pixel_offset,
            viewport_pixel_width=self.viewport_pixel_width,
        )


class CursorPayload(PayloadBase):
    x: float = Field(ge=0.0)
    y: float = Field(ge=0.0)


def _format_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for item in exc.errors():
        loc = ".".join(str(piece) for piece in item.get("loc", [])) or "payload"
        msg = item.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}")
    details = "; ".join(parts) if parts else "invalid payload"
    return f"Invalid payload: {details}"


def parse_payload(model: type[PayloadBase], payload: Any) -> tuple[PayloadBase | None, str | None]:
    if not isinstance(payload, dict):
        return None, "Invalid payload: expected object."
    try:
        return model.model_validate(payload), None
    except ValidationError as exc:
        return None, _format_validation_error(exc)
