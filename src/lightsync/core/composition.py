"""Frame payloads delivered to devices."""

import itertools
import time
from dataclasses import dataclass, field
from typing import Any, Sequence, Tuple

import numpy as np

from ..common.exceptions import ValidationError
from .config import SystemDefaults

_sequence = itertools.count(1)


@dataclass(frozen=True, eq=False)
class DeviceColorComposition:
    """One lighting snapshot: RGB values for every zone, shape (N, 3)"""

    pixels: np.ndarray
    sequence: int = field(default_factory=lambda: next(_sequence))
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        pixels = self.pixels
        if not isinstance(pixels, np.ndarray):
            raise ValidationError("Composition pixels must be a numpy array")
        if pixels.ndim != 2 or pixels.shape[1] != 3:
            raise ValidationError(f"Expected shape (N, 3), got {pixels.shape}")
        if pixels.shape[0] > SystemDefaults.MAX_LED_COUNT:
            raise ValidationError(
                f"Composition exceeds {SystemDefaults.MAX_LED_COUNT} zones"
            )
        if pixels.dtype != np.uint8:
            object.__setattr__(
                self, "pixels", np.clip(pixels, 0, 255).astype(np.uint8)
            )

    @classmethod
    def blank(cls, count: int) -> "DeviceColorComposition":
        """All zones off"""
        return cls(np.zeros((count, 3), dtype=np.uint8))

    @classmethod
    def solid(cls, count: int, rgb: Tuple[int, int, int]) -> "DeviceColorComposition":
        """All zones set to one color"""
        pixels = np.empty((count, 3), dtype=np.uint8)
        pixels[:] = np.clip(rgb, 0, 255)
        return cls(pixels)

    @classmethod
    def from_rgb(cls, values: Sequence[Sequence[Any]]) -> "DeviceColorComposition":
        """Build from nested RGB lists, clipping into 0-255"""
        try:
            pixels = np.asarray(values, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid pixel data: {e}") from e
        if pixels.size == 0:
            pixels = pixels.reshape((0, 3))
        return cls(np.clip(pixels, 0, 255).astype(np.uint8))

    @property
    def zone_count(self) -> int:
        return int(self.pixels.shape[0])

    def to_list(self) -> list:
        return self.pixels.tolist()
