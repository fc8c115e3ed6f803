#!/usr/bin/env python3
"""
colorize.py
Recolour images to a fixed palette while keeping their lightness and texture.

Usage:
  python colorize.py SRC (--colors HEXLIST | --palette-file FILE)
                     [--outdir DIR] [--dither F] [--radius N] [--blend F]
                     [--workers N] [--no-progress] [--debug]

Pipeline:
  pass 1 : nearest palette colour per pixel in Lab (improved CIEDE2000),
           keeping the pixel's lightness, with blue-noise chroma dithering.
  pass 2 : windowed mean of the pass-1 chroma via an integral image,
           original lightness restored, then blended with the original.

Input:
  Any Pillow-readable image, or a folder of png/jpg/jpeg/webp files.
  Alpha is dropped.

Output:
  PNG. Writes <stem>_colorized.png next to the input, or into --outdir.
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

from palette_colorize.config import (
    DEFAULT_BLEND_FACTOR,
    DEFAULT_DITHER_AMOUNT,
    DEFAULT_SPATIAL_RADIUS,
    ColorizeConfig,
    ConfigError,
)
from palette_colorize.image_io import (
    IMAGE_SUFFIXES,
    is_image_file,
    load_image_rgb,
    save_image_rgb,
)
from palette_colorize.palette_data import (
    build_palette,
    load_palette_file,
    parse_hex_list,
)
from palette_colorize.pipeline import colorize
from palette_colorize.utils import (
    debug_log,
    default_workers,
    enable_line_buffered_stdout,
    error,
    format_seconds_compact,
    format_total_duration_compact,
    key_value_pairs_to_string,
    log,
    print_banner,
    print_config_line,
    warn,
)

OUTPUT_SUFFIX = "_colorized"

# CLI args & small helpers


def parse_cli_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse CLI arguments for palette colorizing.

    Returns:
      argparse.Namespace with:
        src: Path to image or folder
        outdir: optional Path for outputs
        colors: optional hex list string
        palette_file: optional Path to a palette file
        dither: float dither amount
        radius: int spatial averaging radius
        blend: float blend factor
        workers: threads per pass
        progress: bool
        debug: bool for verbose details
    """
    parser = argparse.ArgumentParser(
        prog="palette-colorize",
        description="Recolour image(s) to a palette, keeping lightness and texture.",
    )
    parser.add_argument("src", type=Path, help="Input image or folder")
    parser.add_argument(
        "--outdir", type=Path, default=None, help="Output directory (optional)"
    )
    palette_group = parser.add_mutually_exclusive_group(required=True)
    palette_group.add_argument(
        "--colors",
        type=str,
        default=None,
        help='Palette as hex colours, e.g. "#ff0000,#00ff00,#0000ff".',
    )
    palette_group.add_argument(
        "--palette-file",
        type=Path,
        default=None,
        help="Palette file: one hex colour per line, optional name after it.",
    )
    parser.add_argument(
        "--dither",
        type=float,
        default=DEFAULT_DITHER_AMOUNT,
        help="Chroma dither amount in Lab units (0 disables).",
    )
    parser.add_argument(
        "--radius",
        type=int,
        default=DEFAULT_SPATIAL_RADIUS,
        help="Spatial averaging radius in pixels (0 disables smoothing).",
    )
    parser.add_argument(
        "--blend",
        type=float,
        default=DEFAULT_BLEND_FACTOR,
        help="Blend factor: 1 = fully recoloured, 0 = original.",
    )
    parser.add_argument(
        "--workers", type=int, default=default_workers(), help="Threads per pass"
    )
    parser.add_argument(
        "--no-progress",
        dest="progress",
        action="store_false",
        help="Hide per-pass progress lines",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose details")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Tuple[ColorizeConfig, int]:
    """Build the run config from parsed args. Returns (config, palette size)."""
    if args.palette_file is not None:
        pairs = load_palette_file(args.palette_file)
    else:
        pairs = parse_hex_list(args.colors or "")
    items, pal_lab = build_palette(pairs)
    if args.debug:
        for item in items:
            debug_log(
                f"palette {item.name}: rgb={item.rgb}  "
                f"lab=({item.lab[0]:.1f}, {item.lab[1]:.1f}, {item.lab[2]:.1f})"
            )
    config = ColorizeConfig(
        palette=pal_lab,
        dither_amount=args.dither,
        spatial_averaging_radius=args.radius,
        blend_factor=args.blend,
        workers=args.workers,
        progress=args.progress,
    )
    return config, len(items)


def collect_inputs(src: Path) -> List[Path]:
    """Image files to process: src itself, or the images in folder src."""
    if not src.is_dir():
        return [src]
    files = [
        p
        for p in src.iterdir()
        if p.is_file()
        and p.suffix.lower() in IMAGE_SUFFIXES
        and not p.stem.endswith(OUTPUT_SUFFIX)
        and is_image_file(p)
    ]
    files.sort(key=lambda p: p.name.lower())
    return files


def output_path_for(src_path: Path, outdir: Optional[Path]) -> Path:
    name = f"{src_path.stem}{OUTPUT_SUFFIX}.png"
    return (outdir / name) if outdir else src_path.with_name(name)


# Per-file processing


def process_single_image(
    src_path: Path, out_path: Path, config: ColorizeConfig, debug: bool
) -> Path:
    """Load -> colorize -> save -> report for one image."""
    t_start = time.perf_counter()
    print_banner(src_path.name)

    rgb_in = load_image_rgb(src_path)
    height, width = rgb_in.shape[0], rgb_in.shape[1]
    t_loaded = time.perf_counter()
    if debug:
        debug_log(key_value_pairs_to_string([("Loaded", f"{width}x{height}")]))

    mapped = colorize(rgb_in, config, debug=debug)
    t_mapped = time.perf_counter()

    written = save_image_rgb(out_path, mapped)
    t_saved = time.perf_counter()

    log(f"Wrote {written.name} | size={width}x{height}")
    if debug:
        map_secs = t_mapped - t_loaded
        if map_secs > 0:
            mpx = (width * height) / 1e6
            debug_log(
                f"throughput {mpx / map_secs:.2f} MPx/s  ({mpx:.2f} MPx in {format_seconds_compact(map_secs)})"
            )
        debug_log(
            f"Total {format_total_duration_compact(t_saved - t_start)}  "
            f"(load={format_seconds_compact(t_loaded - t_start)}, "
            f"colorize={format_seconds_compact(t_mapped - t_loaded)}, "
            f"save={format_seconds_compact(t_saved - t_mapped)})"
        )
    else:
        log(f"Total time {format_total_duration_compact(t_saved - t_start)}")
    return written


# Entry point


def main(argv: Optional[List[str]] = None) -> None:
    """
    CLI entry point.

    Handles a single file or a folder. Exits with status 2 on a missing input
    or an unusable palette/configuration.
    """
    enable_line_buffered_stdout()
    args = parse_cli_args(argv)

    src = args.src
    if not src.exists():
        error(f"not found: {src}")
        sys.exit(2)

    try:
        config, palette_size = build_config(args)
    except (ConfigError, ValueError, OSError) as e:
        error(str(e))
        sys.exit(2)

    print_config_line(
        "colorize",
        [
            ("Palette", palette_size),
            ("Dither", float(config.dither_amount)),
            ("Radius", int(config.spatial_averaging_radius)),
            ("Blend", float(config.blend_factor)),
            ("Workers", int(config.workers)),
            ("Progress", bool(config.progress)),
        ],
        debug=False,
    )

    files = collect_inputs(src)
    if not files:
        warn(f"no images found in {src}")
        return
    if args.debug and src.is_dir():
        debug_log(key_value_pairs_to_string([("Images", len(files))]))
    if args.outdir is not None:
        args.outdir.mkdir(parents=True, exist_ok=True)

    for path in files:
        process_single_image(path, output_path_for(path, args.outdir), config, args.debug)


if __name__ == "__main__":
    main()
