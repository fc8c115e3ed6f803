# palette_colorize/colour_convert.py
from __future__ import annotations

"""
Colour conversions and metrics (D65).

Exports:
  rgb_to_linear(srgb)
  linear_to_rgb(linear)
  rgb_to_lab(rgb)
  fit_chroma_to_gamut(lab)
  lab_to_rgb(lab)
  lab_to_rgb_u8(lab)              # Lab -> output pixel(s)
  delta_e2000_pair(lab1, lab2)
  delta_e2000_vec(src_lab, cand_lab)
  improved_delta_e2000_vec(src_lab, cand_lab)
  rgb_to_lab_threaded(rgb, workers)

Compat aliases:
  perceptual_to_output_pixel   === lab_to_rgb_u8
"""

import math
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from .core_types import Lab, U8Image
from .utils import split_rows_into_parts

# Reference white (D65)
XN, YN, ZN = 0.95047, 1.00000, 1.08883

# CIE constants
EPSILON = 216.0 / 24389.0
KAPPA = 24389.0 / 27.0

# Improved CIEDE2000 power-law fit (Huang et al. 2015)
IMPROVED_DE_SCALE = 1.43
IMPROVED_DE_POWER = 0.7

# Lab -> sRGB gamut fit: linear-RGB slack and bisection steps on the chroma factor
GAMUT_TOLERANCE = 1e-5
GAMUT_FIT_STEPS = 16


# sRGB <-> linear


def rgb_to_linear(srgb: np.ndarray) -> np.ndarray:
    """
    Convert sRGB (non-linear 0..1) to linear RGB (0..1). Vectorised.
    Returns float32 with shape preserved.
    """
    srgb_f = srgb.astype(np.float32, copy=False)
    with np.errstate(invalid="ignore"):
        linear = np.where(
            srgb_f <= 0.04045, srgb_f / 12.92, ((srgb_f + 0.055) / 1.055) ** 2.4
        )
    return linear.astype(np.float32, copy=False)


def linear_to_rgb(linear: np.ndarray) -> np.ndarray:
    """
    Convert linear RGB to sRGB (non-linear), clipping to the 0..1 gamut first.
    Returns float32 with shape preserved.
    """
    lin = np.clip(linear.astype(np.float32, copy=False), 0.0, 1.0)
    srgb = np.where(
        lin <= 0.0031308, lin * 12.92, 1.055 * np.power(lin, 1.0 / 2.4) - 0.055
    )
    return srgb.astype(np.float32, copy=False)


# sRGB <-> Lab (D65)


def rgb_to_lab(rgb: np.ndarray) -> Lab:
    """
    sRGB to CIE Lab (D65).
    Integer input is read as 0..255, float input as 0..1. Preserves shape (...,3).
    Returns float32.
    """
    rgb_arr = np.asarray(rgb)
    rgb_f = rgb_arr.astype(np.float32, copy=False)
    if np.issubdtype(rgb_arr.dtype, np.integer):
        rgb_f = rgb_f / 255.0

    r_lin = rgb_to_linear(rgb_f[..., 0])
    g_lin = rgb_to_linear(rgb_f[..., 1])
    b_lin = rgb_to_linear(rgb_f[..., 2])

    # Linear RGB -> XYZ (D65)
    X = 0.4124564 * r_lin + 0.3575761 * g_lin + 0.1804375 * b_lin
    Y = 0.2126729 * r_lin + 0.7151522 * g_lin + 0.0721750 * b_lin
    Z = 0.0193339 * r_lin + 0.1191920 * g_lin + 0.9503041 * b_lin

    x, y, z = X / XN, Y / YN, Z / ZN

    def f(t: np.ndarray) -> np.ndarray:
        with np.errstate(invalid="ignore"):
            return np.where(t > EPSILON, np.cbrt(t), (KAPPA * t + 16.0) / 116.0).astype(
                np.float32, copy=False
            )

    fx, fy, fz = f(x), f(y), f(z)
    L = 116.0 * fy - 16.0
    a = 500.0 * (fx - fy)
    b = 200.0 * (fy - fz)

    out = np.empty(rgb_f.shape, dtype=np.float32)
    out[..., 0] = L
    out[..., 1] = a
    out[..., 2] = b
    return out


def _lab_to_linear_rgb(lab: Lab) -> NDArray[np.float64]:
    """CIE Lab (D65) to unclipped linear RGB, float64 (...,3)."""
    lab_f = np.asarray(lab, dtype=np.float64)
    L = lab_f[..., 0]
    a = lab_f[..., 1]
    b = lab_f[..., 2]

    fy = (L + 16.0) / 116.0
    fx = fy + a / 500.0
    fz = fy - b / 200.0

    def f_inv(t: np.ndarray) -> np.ndarray:
        t3 = t * t * t
        return np.where(t3 > EPSILON, t3, (116.0 * t - 16.0) / KAPPA)

    X = XN * f_inv(fx)
    Y = YN * np.where(L > KAPPA * EPSILON, fy * fy * fy, L / KAPPA)
    Z = ZN * f_inv(fz)

    # XYZ -> linear RGB (D65)
    out = np.empty(lab_f.shape, dtype=np.float64)
    out[..., 0] = 3.2404542 * X - 1.5371385 * Y - 0.4985314 * Z
    out[..., 1] = -0.9692660 * X + 1.8760108 * Y + 0.0415560 * Z
    out[..., 2] = 0.0556434 * X - 0.2040259 * Y + 1.0572252 * Z
    return out


def _in_gamut(lab: Lab) -> NDArray[np.bool_]:
    lin = _lab_to_linear_rgb(lab)
    return np.all((lin >= -GAMUT_TOLERANCE) & (lin <= 1.0 + GAMUT_TOLERANCE), axis=-1)


def fit_chroma_to_gamut(lab: Lab, steps: int = GAMUT_FIT_STEPS) -> Lab:
    """
    Bring Lab colour(s) inside the sRGB gamut without touching lightness.

    L is clamped to 0..100 and kept; (a, b) is scaled toward the neutral axis
    by the largest factor in [0, 1] that fits, found by bisection. Hue angle
    is unchanged. In-gamut colours pass through as-is.
    Returns float32 with shape preserved.
    """
    out = np.array(lab, dtype=np.float64)
    out[..., 0] = np.clip(out[..., 0], 0.0, 100.0)
    inside = _in_gamut(out)
    if np.all(inside):
        return out.astype(np.float32)

    # Neutral greys (scale 0) are always inside for L in 0..100.
    lo = np.zeros(inside.shape, dtype=np.float64)
    hi = np.ones(inside.shape, dtype=np.float64)
    trial = out.copy()
    for _ in range(int(steps)):
        mid = 0.5 * (lo + hi)
        trial[..., 1:] = out[..., 1:] * mid[..., None]
        ok = _in_gamut(trial)
        lo = np.where(ok, mid, lo)
        hi = np.where(ok, hi, mid)

    scale = np.where(inside, 1.0, lo)
    out[..., 1:] *= scale[..., None]
    return out.astype(np.float32)


def lab_to_rgb(lab: Lab) -> np.ndarray:
    """
    CIE Lab (D65) to sRGB float in 0..1, each channel clipped to the gamut.
    Use fit_chroma_to_gamut first where lightness must survive.
    Preserves shape (...,3). Returns float32.
    """
    return linear_to_rgb(_lab_to_linear_rgb(lab))


def lab_to_rgb_u8(lab: Lab) -> U8Image:
    """
    Lab to output pixel(s): chroma fitted to the sRGB gamut at fixed L, then
    uint8 sRGB rounded to nearest and clamped.
    Accepts a single Lab triple or any (...,3) array.
    """
    rgb = lab_to_rgb(fit_chroma_to_gamut(lab)) * 255.0
    return np.clip(np.rint(rgb), 0, 255).astype(np.uint8)


# CIEDE2000


def delta_e2000_pair(
    lab1: Sequence[float] | NDArray[np.floating],
    lab2: Sequence[float] | NDArray[np.floating],
) -> float:
    """
    CIEDE2000 distance between two Lab colours.
    Scalar reference implementation.
    """
    L1, a1, b1 = float(lab1[0]), float(lab1[1]), float(lab1[2])
    L2, a2, b2 = float(lab2[0]), float(lab2[1]), float(lab2[2])

    C1 = math.hypot(a1, b1)
    C2 = math.hypot(a2, b2)
    C_bar = 0.5 * (C1 + C2)
    G = 0.5 * (1.0 - math.sqrt((C_bar**7) / (C_bar**7 + 25.0**7)))

    a1p = (1.0 + G) * a1
    a2p = (1.0 + G) * a2
    C1p = math.hypot(a1p, b1)
    C2p = math.hypot(a2p, b2)

    def _hue(a_val: float, b_val: float) -> float:
        if a_val == 0.0 and b_val == 0.0:
            return 0.0
        ang = math.degrees(math.atan2(b_val, a_val))
        return ang + 360.0 if ang < 0.0 else ang

    h1p = _hue(a1p, b1)
    h2p = _hue(a2p, b2)

    dLp = L2 - L1
    dCp = C2p - C1p

    dhp = h2p - h1p
    if C1p * C2p == 0.0:
        dhp = 0.0
    elif dhp > 180.0:
        dhp -= 360.0
    elif dhp < -180.0:
        dhp += 360.0

    dHp = 2.0 * math.sqrt(C1p * C2p) * math.sin(math.radians(dhp / 2.0))

    L_bar = 0.5 * (L1 + L2)
    C_bar_p = 0.5 * (C1p + C2p)

    if C1p * C2p == 0.0:
        h_bar_p = h1p + h2p
    else:
        h_sum = h1p + h2p
        h_diff = abs(h1p - h2p)
        if h_diff <= 180.0:
            h_bar_p = 0.5 * h_sum
        elif h_sum < 360.0:
            h_bar_p = 0.5 * (h_sum + 360.0)
        else:
            h_bar_p = 0.5 * (h_sum - 360.0)

    T = (
        1.0
        - 0.17 * math.cos(math.radians(h_bar_p - 30.0))
        + 0.24 * math.cos(math.radians(2.0 * h_bar_p))
        + 0.32 * math.cos(math.radians(3.0 * h_bar_p + 6.0))
        - 0.20 * math.cos(math.radians(4.0 * h_bar_p - 63.0))
    )

    d_theta = 30.0 * math.exp(-(((h_bar_p - 275.0) / 25.0) ** 2.0))
    R_c = 2.0 * math.sqrt((C_bar_p**7) / (C_bar_p**7 + 25.0**7))

    S_l = 1.0 + (0.015 * ((L_bar - 50.0) ** 2.0)) / math.sqrt(
        20.0 + ((L_bar - 50.0) ** 2.0)
    )
    S_c = 1.0 + 0.045 * C_bar_p
    S_h = 1.0 + 0.015 * C_bar_p * T
    R_t = -math.sin(math.radians(2.0 * d_theta)) * R_c

    kL = kC = kH = 1.0
    dE = math.sqrt(
        (dLp / (kL * S_l)) ** 2
        + (dCp / (kC * S_c)) ** 2
        + (dHp / (kH * S_h)) ** 2
        + R_t * (dCp / (kC * S_c)) * (dHp / (kH * S_h))
    )
    return float(dE)


def delta_e2000_vec(src_lab: Lab, cand_lab: Lab) -> NDArray[np.float64]:
    """
    Row-wise CIEDE2000 for one source Lab vs many candidate Labs.
    Vectorised over candidates; matches delta_e2000_pair row by row.

    Args:
      src_lab: Lab [3] or [1,3]
      cand_lab: Lab [N,3]
    Returns:
      float64 array [N]
    """
    s = np.asarray(src_lab, dtype=np.float64).reshape(3)
    cands = np.asarray(cand_lab, dtype=np.float64).reshape(-1, 3)
    L1, a1, b1 = float(s[0]), float(s[1]), float(s[2])
    L2, a2, b2 = cands[:, 0], cands[:, 1], cands[:, 2]

    C1 = math.hypot(a1, b1)
    C2 = np.hypot(a2, b2)
    C_bar7 = (0.5 * (C1 + C2)) ** 7
    G = 0.5 * (1.0 - np.sqrt(C_bar7 / (C_bar7 + 25.0**7)))

    a1p = (1.0 + G) * a1
    a2p = (1.0 + G) * a2
    C1p = np.hypot(a1p, b1)
    C2p = np.hypot(a2p, b2)

    def _hue(a_val: np.ndarray, b_val: np.ndarray) -> np.ndarray:
        ang = np.degrees(np.arctan2(b_val, a_val))
        ang = np.where(ang < 0.0, ang + 360.0, ang)
        return np.where((a_val == 0.0) & (b_val == 0.0), 0.0, ang)

    h1p = _hue(a1p, np.full_like(a1p, b1))
    h2p = _hue(a2p, b2)

    dLp = L2 - L1
    dCp = C2p - C1p

    chroma_prod = C1p * C2p
    dhp = h2p - h1p
    dhp = np.where(dhp > 180.0, dhp - 360.0, np.where(dhp < -180.0, dhp + 360.0, dhp))
    dhp = np.where(chroma_prod == 0.0, 0.0, dhp)

    dHp = 2.0 * np.sqrt(chroma_prod) * np.sin(np.radians(dhp / 2.0))

    L_bar = 0.5 * (L1 + L2)
    C_bar_p = 0.5 * (C1p + C2p)

    h_sum = h1p + h2p
    h_diff = np.abs(h1p - h2p)
    h_bar_p = np.where(
        chroma_prod == 0.0,
        h_sum,
        np.where(
            h_diff <= 180.0,
            0.5 * h_sum,
            np.where(h_sum < 360.0, 0.5 * (h_sum + 360.0), 0.5 * (h_sum - 360.0)),
        ),
    )

    T = (
        1.0
        - 0.17 * np.cos(np.radians(h_bar_p - 30.0))
        + 0.24 * np.cos(np.radians(2.0 * h_bar_p))
        + 0.32 * np.cos(np.radians(3.0 * h_bar_p + 6.0))
        - 0.20 * np.cos(np.radians(4.0 * h_bar_p - 63.0))
    )

    d_theta = 30.0 * np.exp(-(((h_bar_p - 275.0) / 25.0) ** 2.0))
    C_bar_p7 = C_bar_p**7
    R_c = 2.0 * np.sqrt(C_bar_p7 / (C_bar_p7 + 25.0**7))

    S_l = 1.0 + (0.015 * ((L_bar - 50.0) ** 2.0)) / np.sqrt(
        20.0 + ((L_bar - 50.0) ** 2.0)
    )
    S_c = 1.0 + 0.045 * C_bar_p
    S_h = 1.0 + 0.015 * C_bar_p * T
    R_t = -np.sin(np.radians(2.0 * d_theta)) * R_c

    term_l = dLp / S_l
    term_c = dCp / S_c
    term_h = dHp / S_h
    radicand = term_l**2 + term_c**2 + term_h**2 + R_t * term_c * term_h
    return np.sqrt(np.maximum(radicand, 0.0))


def improved_delta_e2000_vec(src_lab: Lab, cand_lab: Lab) -> NDArray[np.float64]:
    """
    Improved CIEDE2000: 1.43 * dE2000 ** 0.7, which tracks perceived
    differences more evenly across small and large distances.
    Same argument layout as delta_e2000_vec.
    """
    de = delta_e2000_vec(src_lab, cand_lab)
    return IMPROVED_DE_SCALE * np.power(de, IMPROVED_DE_POWER)


# Threaded helpers


def rgb_to_lab_threaded(rgb: np.ndarray, workers: int) -> Lab:
    """
    Threaded RGB->Lab conversion by splitting rows.

    Args:
      rgb: uint8 or float array [H,W,3]
      workers: number of threads; if <=1 or H<256, runs single-threaded
    Returns:
      Lab float32 array [H,W,3]
    """
    height = int(rgb.shape[0])
    if workers <= 1 or height < 256:
        return rgb_to_lab(rgb).astype(np.float32, copy=False)

    chunks = split_rows_into_parts(height, workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(rgb_to_lab, rgb[s:e]) for s, e in chunks]
        parts = [f.result().astype(np.float32, copy=False) for f in futures]
    return np.vstack(parts).astype(np.float32, copy=False)


# Compat aliases

perceptual_to_output_pixel = lab_to_rgb_u8


__all__ = [
    "rgb_to_linear",
    "linear_to_rgb",
    "rgb_to_lab",
    "fit_chroma_to_gamut",
    "lab_to_rgb",
    "lab_to_rgb_u8",
    "delta_e2000_pair",
    "delta_e2000_vec",
    "improved_delta_e2000_vec",
    "rgb_to_lab_threaded",
    "perceptual_to_output_pixel",
]
