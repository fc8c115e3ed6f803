# palette_colorize/integral.py
from __future__ import annotations

"""
Integral images (summed-area tables) and constant-time window averages.

compute_integral_image() converts an sRGB image to Lab once and stores the
zero-padded 2D prefix sums per channel. fast_spatial_color_average() then
returns the mean Lab over any clamped square window with four lookups,
whatever the radius.
"""

from dataclasses import dataclass
from typing import Union

import numpy as np
from numpy.typing import NDArray

from .colour_convert import rgb_to_lab_threaded
from .core_types import Lab, U8Image

IntOrArray = Union[int, NDArray[np.integer]]


@dataclass(frozen=True)
class IntegralImage:
    """Zero-padded prefix sums, float64 [H+1, W+1, C]. sums[y, x] covers rows < y, cols < x."""

    sums: NDArray[np.float64]

    @property
    def height(self) -> int:
        return int(self.sums.shape[0]) - 1

    @property
    def width(self) -> int:
        return int(self.sums.shape[1]) - 1

    def region_sum(
        self, x1: IntOrArray, y1: IntOrArray, x2: IntOrArray, y2: IntOrArray
    ) -> NDArray[np.float64]:
        """Sum over the inclusive rectangle [x1..x2] x [y1..y2]."""
        s = self.sums
        return s[y2 + 1, x2 + 1] - s[y1, x2 + 1] - s[y2 + 1, x1] + s[y1, x1]


def integral_from_array(values: np.ndarray) -> IntegralImage:
    """Prefix sums of an [H,W] or [H,W,C] array, padded with a zero border."""
    src = np.asarray(values, dtype=np.float64)
    if src.ndim == 2:
        src = src[..., None]
    height, width, channels = src.shape
    sums = np.zeros((height + 1, width + 1, channels), dtype=np.float64)
    sums[1:, 1:] = np.cumsum(np.cumsum(src, axis=0), axis=1)
    sums.setflags(write=False)
    return IntegralImage(sums=sums)


def compute_integral_image(image: U8Image, workers: int = 1) -> IntegralImage:
    """Integral image of the Lab values of an sRGB uint8 [H,W,3] image."""
    height, width = image.shape[0], image.shape[1]
    lab = rgb_to_lab_threaded(image, workers).reshape(height, width, 3)
    return integral_from_array(lab)


def fast_spatial_color_average(
    x: IntOrArray,
    y: IntOrArray,
    width: int,
    height: int,
    radius: int,
    integral: IntegralImage,
) -> Lab:
    """
    Mean Lab over the square window of the given radius centred at (x, y),
    clipped to the image. x and y may be scalars or broadcastable int arrays;
    the result has shape broadcast(x, y) + (3,).
    """
    xs = np.asarray(x, dtype=np.intp)
    ys = np.asarray(y, dtype=np.intp)
    x1 = np.clip(xs - radius, 0, width - 1)
    x2 = np.clip(xs + radius, 0, width - 1)
    y1 = np.clip(ys - radius, 0, height - 1)
    y2 = np.clip(ys + radius, 0, height - 1)
    area = ((x2 - x1 + 1) * (y2 - y1 + 1)).astype(np.float64)
    region = integral.region_sum(x1, y1, x2, y2)
    return (region / area[..., None]).astype(np.float32)


def box_blur_2d(arr: np.ndarray, radius: int) -> np.ndarray:
    """2D box blur using an integral image. Returns float32 array."""
    if radius <= 0:
        return arr.astype(np.float32, copy=False)
    height, width = arr.shape
    integ = integral_from_array(arr)
    ys = np.arange(height, dtype=np.intp)[:, None]
    xs = np.arange(width, dtype=np.intp)[None, :]
    out = fast_spatial_color_average(xs, ys, width, height, radius, integ)
    return out[..., 0]


__all__ = [
    "IntegralImage",
    "integral_from_array",
    "compute_integral_image",
    "fast_spatial_color_average",
    "box_blur_2d",
]
