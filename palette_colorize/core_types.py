# palette_colorize/core_types.py
from __future__ import annotations

"""
Core type aliases and lightweight helpers shared by the pipeline.
"""

from typing import Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

# Basic aliases

RGBTuple = Tuple[int, int, int]
HexStr = str

U8Image = NDArray[np.uint8]  # (H, W, 3)
Lab = NDArray[np.float32]  # (..., 3) CIE Lab
LabPalette = NDArray[np.float32]  # (P, 3) CIE Lab rows

# Small helpers


def clamp_value(value: float, lo: float, hi: float) -> float:
    """Clamp value to [lo, hi]."""
    return lo if value < lo else hi if value > hi else value


def rgb_to_hex(rgb: RGBTuple) -> HexStr:
    """RGB tuple to lowercase hex string '#rrggbb'."""
    return f"#{rgb[0]:02x}{rgb[1]:02x}{rgb[2]:02x}"


def hex_to_rgb(hex_str: str) -> RGBTuple:
    """Parse '#rgb' or '#rrggbb' (case-insensitive) into an RGB tuple."""
    s = hex_str.strip().lower()
    if not s.startswith("#"):
        raise ValueError("hex must start with '#'")
    if len(s) == 4:
        r, g, b = s[1], s[2], s[3]
        s = f"#{r}{r}{g}{g}{b}{b}"
    if len(s) != 7:
        raise ValueError("hex must be '#rrggbb' or '#rgb'")
    try:
        return (int(s[1:3], 16), int(s[3:5], 16), int(s[5:7], 16))
    except ValueError:
        raise ValueError(f"invalid hex colour {hex_str!r}") from None


def hex_list_to_u8_rgb_array(hex_list: Sequence[str]) -> NDArray[np.uint8]:
    """
    Convert a sequence of hex strings ('#rrggbb' or 'rrggbb') to a (N,3) uint8 array.
    """
    out = np.empty((len(hex_list), 3), dtype=np.uint8)
    for i, hx in enumerate(hex_list):
        hx = hx.strip()
        r, g, b = hex_to_rgb(hx if hx.startswith("#") else f"#{hx}")
        out[i, 0] = r
        out[i, 1] = g
        out[i, 2] = b
    return out


def assert_u8_image_rgb(image: np.ndarray) -> U8Image:
    """
    Validate a uint8 (H,W,3 or 4) image and return its RGB channels typed as U8Image.
    A fourth (alpha) channel is dropped.
    """
    if (
        not isinstance(image, np.ndarray)
        or image.dtype != np.uint8
        or image.ndim != 3
        or image.shape[-1] not in (3, 4)
    ):
        raise TypeError("expected uint8 (H,W,3/4) image")
    return image[..., :3]  # type: ignore[return-value]


__all__ = [
    # aliases / types
    "RGBTuple",
    "HexStr",
    "U8Image",
    "Lab",
    "LabPalette",
    # helpers
    "clamp_value",
    "rgb_to_hex",
    "hex_to_rgb",
    "hex_list_to_u8_rgb_array",
    "assert_u8_image_rgb",
]
