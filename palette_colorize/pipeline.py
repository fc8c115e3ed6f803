# palette_colorize/pipeline.py
from __future__ import annotations

"""
Two-pass palette colorize pipeline.

Pass 1 maps every pixel to its nearest palette colour in Lab (keeping the
pixel's own lightness) and dithers the chroma. Pass 2 averages the pass-1
chroma over a square window through an integral image, puts the original
lightness back, converts to sRGB and blends with the original pixel.

Both passes split the image into row spans processed by a thread pool. Each
span writes only its own rows of the output buffer; the colour cache is the
one structure shared for writing.
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional

import numpy as np

from .colour_convert import lab_to_rgb_u8, rgb_to_lab_threaded
from .config import ColorizeConfig, ConfigError
from .core_types import Lab, U8Image, assert_u8_image_rgb
from .dither import apply_dithering, blue_noise_at
from .integral import IntegralImage, compute_integral_image, fast_spatial_color_average
from .matching import ColourCache, memoized_match
from .progress import ProgressReporter
from .utils import debug_log, format_seconds_compact, split_rows_into_parts

PASS1_LABEL = "Applying Color Mapping and Dithering"
PASS1_DONE = "Color mapping and dithering complete"
PASS2_LABEL = "Applying Spatial Averaging and Luminance Transfer"
PASS2_DONE = "Spatial averaging and luminance transfer complete"

# Row spans per worker; more spans even out uneven rows.
SPANS_PER_WORKER = 4


# Small helpers


def blend_colours(
    colour1: np.ndarray, colour2: np.ndarray, blend_factor: float
) -> U8Image:
    """
    blend_factor * colour1 + (1 - blend_factor) * colour2 per channel,
    rounded to nearest and clamped to 0..255. Works on pixels or whole rows.
    """
    c1 = np.asarray(colour1, dtype=np.float32)
    c2 = np.asarray(colour2, dtype=np.float32)
    f = np.float32(blend_factor)
    mixed = c1 * f + c2 * (np.float32(1.0) - f)
    return np.clip(np.rint(mixed), 0, 255).astype(np.uint8)


def transfer_luminance(original_lab: Lab, averaged_lab: Lab) -> Lab:
    """Lightness from original_lab, chroma (a, b) from averaged_lab."""
    out = np.array(averaged_lab, dtype=np.float32)
    out[..., 0] = np.asarray(original_lab, dtype=np.float32)[..., 0]
    return out


def _run_row_spans(
    height: int, workers: int, work: Callable[[int, int], None]
) -> None:
    """
    Run work(start, end) over row spans covering [0, height).
    The first worker exception cancels pending spans and is re-raised.
    """
    spans = split_rows_into_parts(height, max(1, workers) * SPANS_PER_WORKER)
    if workers <= 1 or len(spans) <= 1:
        for start, end in spans:
            work(start, end)
        return

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(work, start, end) for start, end in spans]
        try:
            for fut in as_completed(futures):
                fut.result()
        except BaseException:
            for fut in futures:
                fut.cancel()
            raise


# Pass 1


def map_row(
    row_rgb: U8Image,
    y: int,
    cache: ColourCache,
    config: ColorizeConfig,
) -> U8Image:
    """Pass-1 output for one image row: nearest palette chroma, dithered."""
    width = row_rgb.shape[0]
    if width == 0:
        return np.zeros((0, 3), dtype=np.uint8)
    uniques, inverse = np.unique(row_rgb, axis=0, return_inverse=True)
    mapped_uniques = np.stack(
        [memoized_match(cache, colour, config.palette) for colour in uniques]
    )
    mapped = mapped_uniques[inverse.reshape(-1)]
    noise = None
    if config.dither_amount != 0:
        noise = blue_noise_at(np.arange(width), y)
    dithered = apply_dithering(mapped, mapped, config.dither_amount, noise)
    return lab_to_rgb_u8(dithered)


def apply_colour_mapping_and_dithering(
    image: U8Image,
    config: ColorizeConfig,
    *,
    cache: Optional[ColourCache] = None,
    progress: Optional[ProgressReporter] = None,
) -> U8Image:
    """
    Pass 1. Returns the intermediate uint8 [H,W,3] image (read-only).
    """
    rgb = assert_u8_image_rgb(image)
    height, width = rgb.shape[0], rgb.shape[1]
    cache = cache if cache is not None else ColourCache()
    reporter = progress or ProgressReporter(
        height * width, PASS1_LABEL, enabled=config.progress
    )
    output = np.zeros((height, width, 3), dtype=np.uint8)

    def work(start: int, end: int) -> None:
        for y in range(start, end):
            output[y] = map_row(rgb[y], y, cache, config)
            reporter.increment(width)

    _run_row_spans(height, int(config.workers), work)
    reporter.finish(PASS1_DONE)

    output.setflags(write=False)
    return output


# Pass 2


def luminance_transfer_row(
    original_lab_row: Lab,
    y: int,
    width: int,
    height: int,
    radius: int,
    integral: IntegralImage,
) -> Lab:
    """
    Pre-blend pass-2 Lab for one row: windowed mean chroma from the integral
    image with the original row's lightness.
    """
    averaged = fast_spatial_color_average(
        np.arange(width), y, width, height, radius, integral
    )
    return transfer_luminance(original_lab_row, averaged)


def apply_spatial_averaging_and_luminance_transfer(
    original: U8Image,
    first_pass_output: U8Image,
    config: ColorizeConfig,
    *,
    original_lab: Optional[Lab] = None,
    progress: Optional[ProgressReporter] = None,
) -> U8Image:
    """
    Pass 2. Returns the final uint8 [H,W,3] image.
    """
    rgb = assert_u8_image_rgb(original)
    height, width = rgb.shape[0], rgb.shape[1]
    if first_pass_output.shape[:2] != (height, width):
        raise ValueError(
            f"first pass output {first_pass_output.shape[:2]} does not match image {(height, width)}"
        )
    workers = int(config.workers)
    radius = int(config.spatial_averaging_radius)

    # The integral image must be complete before any window query.
    integral = compute_integral_image(first_pass_output, workers)
    if original_lab is None:
        original_lab = rgb_to_lab_threaded(rgb, workers).reshape(height, width, 3)

    reporter = progress or ProgressReporter(
        height * width, PASS2_LABEL, enabled=config.progress
    )
    output = np.zeros((height, width, 3), dtype=np.uint8)

    def work(start: int, end: int) -> None:
        for y in range(start, end):
            final_lab = luminance_transfer_row(
                original_lab[y], y, width, height, radius, integral
            )
            output[y] = blend_colours(
                lab_to_rgb_u8(final_lab), rgb[y], config.blend_factor
            )
            reporter.increment(width)

    _run_row_spans(height, workers, work)
    reporter.finish(PASS2_DONE)
    return output


# Entry point


def colorize(image: U8Image, config: ColorizeConfig, *, debug: bool = False) -> U8Image:
    """
    Recolour image to config.palette, keeping its lightness and local texture.

    Args:
      image  : uint8 [H,W,3] (a fourth alpha channel is ignored)
      config : ColorizeConfig
      debug  : print per-pass timing and colour cache counters
    Returns:
      uint8 [H,W,3], same height and width as image.
    Raises:
      ConfigError before any work if the configuration is unusable.
    """
    if not isinstance(config, ColorizeConfig):
        raise ConfigError(f"expected ColorizeConfig, got {type(config).__name__}")
    config.validate()
    rgb = assert_u8_image_rgb(image)
    height, width = rgb.shape[0], rgb.shape[1]
    if height == 0 or width == 0:
        return np.zeros((height, width, 3), dtype=np.uint8)

    t0 = time.perf_counter()
    cache = ColourCache()
    first_pass = apply_colour_mapping_and_dithering(rgb, config, cache=cache)
    t1 = time.perf_counter()
    final = apply_spatial_averaging_and_luminance_transfer(rgb, first_pass, config)
    t2 = time.perf_counter()

    if debug:
        debug_log(
            f"pass1={format_seconds_compact(t1 - t0)}  pass2={format_seconds_compact(t2 - t1)}  "
            f"cache entries={len(cache):,}  hits={cache.hits:,}  misses={cache.misses:,}"
        )
    return final


__all__ = [
    "PASS1_LABEL",
    "PASS1_DONE",
    "PASS2_LABEL",
    "PASS2_DONE",
    "blend_colours",
    "transfer_luminance",
    "map_row",
    "apply_colour_mapping_and_dithering",
    "luminance_transfer_row",
    "apply_spatial_averaging_and_luminance_transfer",
    "colorize",
]
