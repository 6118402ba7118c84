from typing import List
from pydantic import BaseModel, Field, field_validator

from ..core.composition import DeviceColorComposition
from ..core.config import SystemDefaults


# Base Models
class BaseResponse(BaseModel):
    """Base response model with status and message"""

    status: str
    message: str


# Device Models
class DeviceMetrics(BaseModel):
    """Update counters for one device"""

    submitted: int = 0
    applied: int = 0
    coalesced: int = 0
    discarded: int = 0
    cancelled: int = 0
    faults: int = 0
    last_update_ms: float = 0.0
    last_error: str = ""


class DeviceStatus(BaseModel):
    """Status of a registered device"""

    name: str
    type: str
    initialized: bool
    disabled: bool
    busy: bool
    details: str
    metrics: DeviceMetrics


class RetryStatus(BaseModel):
    """Background initialization retry state"""

    attempts: int
    interval_s: float
    remaining: int
    active: bool
    rounds: int


class DevicesResponse(BaseModel):
    """All devices with manager-level status"""

    any_initialized: bool
    remaining_retry_attempts: int
    retry: RetryStatus
    devices: List[DeviceStatus]
    status_report: str


class InitializeResponse(BaseResponse):
    """Result of an initialization pass"""

    failed: int
    initialized: List[str] = Field(default_factory=list)


# Frame Models
class FrameRequest(BaseModel):
    """One frame of RGB values, one triple per zone"""

    pixels: List[List[int]]
    forced: bool = False

    @field_validator("pixels")
    @classmethod
    def validate_pixels(cls, v):
        if len(v) > SystemDefaults.MAX_LED_COUNT:
            raise ValueError(f"Frame exceeds {SystemDefaults.MAX_LED_COUNT} zones")
        for index, rgb in enumerate(v):
            if len(rgb) != 3:
                raise ValueError(f"Zone {index} must have exactly 3 components")
            if not all(0 <= c <= 255 for c in rgb):
                raise ValueError(f"Zone {index} components must be between 0 and 255")
        return v

    def to_composition(self) -> DeviceColorComposition:
        return DeviceColorComposition.from_rgb(self.pixels)


class FrameResponse(BaseResponse):
    """Frame dispatch result"""

    dispatched: int
