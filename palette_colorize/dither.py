# palette_colorize/dither.py
from __future__ import annotations

"""
Chroma dithering for the palette-mapping pass.

apply_dithering() nudges a mapped Lab colour's a/b channels by the residual
between the colour being rendered and its target, plus a jitter term, both
scaled by the dither amount. Lightness is never touched.

The jitter comes from two blue-noise threshold tiles (one per chroma axis):
high-pass filtered white noise ranked to uniform values, so neighbouring
pixels get decorrelated offsets without visible tiling. Values depend only on
the pixel coordinate, which keeps threaded runs reproducible.
"""

from typing import Optional

import numpy as np
from numpy.typing import NDArray

from .core_types import Lab
from .integral import IntOrArray, box_blur_2d

# Blue-noise threshold tile (power-of-two sizes tile well; bigger = finer steps).
THRESH_TILE = 256
BLUE_SEED_A = 1337
BLUE_SEED_B = 7331


def _make_blue_noise_tile(n: int, seed: int) -> np.ndarray:
    """
    Fast blue-ish noise: high-pass filtered white noise, then rank-map to [0,1).
    Deterministic per seed.
    """
    rng = np.random.default_rng(seed)
    a = rng.random((n, n), dtype=np.float32)
    # Push energy to high frequencies
    a = a - box_blur_2d(a, 1)
    a = a - box_blur_2d(a, 1)
    # Rank to uniform thresholds
    flat = a.reshape(-1)
    order = np.argsort(flat, kind="mergesort")
    ranks = np.empty_like(order, dtype=np.float32)
    ranks[order] = (np.arange(order.size, dtype=np.float32) + np.float32(0.5)) / float(
        order.size
    )
    return ranks.reshape(n, n)


_BLUENOISE_A = _make_blue_noise_tile(THRESH_TILE, BLUE_SEED_A)
_BLUENOISE_B = _make_blue_noise_tile(THRESH_TILE, BLUE_SEED_B)


def blue_noise_at(x: IntOrArray, y: IntOrArray) -> NDArray[np.float32]:
    """
    Signed jitter in (-1, 1) for the a and b axes at (x, y).
    Broadcasts x and y; returns shape broadcast(x, y) + (2,).
    """
    xs = np.asarray(x, dtype=np.intp) % THRESH_TILE
    ys = np.asarray(y, dtype=np.intp) % THRESH_TILE
    out = np.stack([_BLUENOISE_A[ys, xs], _BLUENOISE_B[ys, xs]], axis=-1)
    return (out * 2.0 - 1.0).astype(np.float32, copy=False)


def apply_dithering(
    current: Lab,
    target: Lab,
    amount: float,
    noise: Optional[NDArray[np.floating]] = None,
) -> Lab:
    """
    Dithered version of target.

      L  = target.L
      ab = target.ab + amount * ((current.ab - target.ab) + noise)

    noise holds per-pixel a/b jitter in [-1, 1] (see blue_noise_at); None
    means no jitter. amount == 0 returns target unchanged. Works on a single
    Lab triple or any (...,3) array.
    """
    tgt = np.asarray(target, dtype=np.float32)
    out = tgt.copy()
    if amount == 0:
        return out
    cur = np.asarray(current, dtype=np.float32)
    push = cur[..., 1:] - tgt[..., 1:]
    if noise is not None:
        push = push + np.asarray(noise, dtype=np.float32)
    out[..., 1:] = tgt[..., 1:] + np.float32(amount) * push
    return out


__all__ = ["THRESH_TILE", "blue_noise_at", "apply_dithering"]
