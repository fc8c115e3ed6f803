# palette_colorize/config.py
from __future__ import annotations

"""
Run configuration for the colorize pipeline.

A ColorizeConfig is built once by the caller and read (never mutated) by every
worker of both passes.
"""

import math
from dataclasses import dataclass, field
from typing import Sequence, Tuple

import numpy as np

from .core_types import LabPalette
from .palette_data import build_palette
from .utils import default_workers

DEFAULT_DITHER_AMOUNT = 0.0
DEFAULT_SPATIAL_RADIUS = 2
DEFAULT_BLEND_FACTOR = 1.0


class ConfigError(ValueError):
    """Invalid colorize configuration (empty palette, negative radius, ...)."""


@dataclass(frozen=True, eq=False)
class ColorizeConfig:
    """Settings for one colorize run.

    Attributes:
        palette: Lab palette rows, float32 [P,3]. Order decides ties.
        dither_amount: Strength of the pass-1 chroma jitter, in Lab units.
        spatial_averaging_radius: Half-size of the pass-2 averaging window.
        blend_factor: 1.0 keeps the recolored result, 0.0 the original.
        workers: Threads per pass.
        progress: Print per-pass progress lines.
    """

    palette: LabPalette
    dither_amount: float = DEFAULT_DITHER_AMOUNT
    spatial_averaging_radius: int = DEFAULT_SPATIAL_RADIUS
    blend_factor: float = DEFAULT_BLEND_FACTOR
    workers: int = field(default_factory=default_workers)
    progress: bool = True

    def __post_init__(self) -> None:
        palette = np.array(self.palette, dtype=np.float32)
        if palette.size == 0:
            palette = palette.reshape(0, 3)
        elif palette.ndim == 1 and palette.size == 3:
            palette = palette.reshape(1, 3)
        palette = np.ascontiguousarray(palette)
        palette.setflags(write=False)
        object.__setattr__(self, "palette", palette)
        self.validate()

    def validate(self) -> None:
        """Raise ConfigError if any setting is unusable."""
        if self.palette.ndim != 2 or self.palette.shape[1] != 3:
            raise ConfigError(
                f"palette must be a (P,3) array of Lab colours, got shape {self.palette.shape}"
            )
        if self.palette.shape[0] == 0:
            raise ConfigError("palette is empty; supply at least one colour")
        if not np.all(np.isfinite(self.palette)):
            raise ConfigError("palette contains non-finite Lab values")
        if not math.isfinite(self.dither_amount) or self.dither_amount < 0:
            raise ConfigError(
                f"dither amount must be a finite value >= 0, got {self.dither_amount}"
            )
        if (
            isinstance(self.spatial_averaging_radius, bool)
            or int(self.spatial_averaging_radius) != self.spatial_averaging_radius
            or self.spatial_averaging_radius < 0
        ):
            raise ConfigError(
                f"spatial averaging radius must be an integer >= 0, got {self.spatial_averaging_radius}"
            )
        if not math.isfinite(self.blend_factor):
            raise ConfigError(f"blend factor must be finite, got {self.blend_factor}")
        if int(self.workers) < 1:
            raise ConfigError(f"workers must be >= 1, got {self.workers}")

    @classmethod
    def from_hex(
        cls, hex_name_pairs: Sequence[Tuple[str, str]], **kwargs
    ) -> "ColorizeConfig":
        """Build a config from [(hex, name), ...] palette pairs."""
        _items, pal_lab = build_palette(hex_name_pairs)
        return cls(palette=pal_lab, **kwargs)


__all__ = [
    "DEFAULT_DITHER_AMOUNT",
    "DEFAULT_SPATIAL_RADIUS",
    "DEFAULT_BLEND_FACTOR",
    "ConfigError",
    "ColorizeConfig",
]
