# palette_colorize/__init__.py
"""
palette_colorize package.

Purpose:
  Recolour images to a caller-supplied palette while keeping their lightness
  and local texture. See colorize.py for the CLI.

Public API:
  colorize          : two-pass pipeline entry point.
  ColorizeConfig    : run configuration (palette, dither, radius, blend).
  ConfigError       : raised for unusable configurations.
  colour_convert    : sRGB <-> Lab transforms and CIEDE2000 metrics.
  matching          : nearest palette colour with a shared RGB cache.
  dither            : blue-noise chroma dithering.
  integral          : integral images and window averages.
  palette_data      : hex list / palette file parsing.
  progress          : thread-safe per-pass progress reporter.
  image_io          : Pillow load/save helpers.
  utils             : shared helpers (formatting, logging, row spans).

Quick start:
  from palette_colorize import ColorizeConfig, colorize
  from palette_colorize.palette_data import parse_hex_list
  config = ColorizeConfig.from_hex(parse_hex_list("#ff0000,#0000ff"))
  out = colorize(rgb_u8_image, config)
"""

__version__ = "0.1.0"

# Re-export namespaces for convenience.
from . import colour_convert
from . import core_types
from . import palette_data
from . import matching
from . import dither
from . import integral
from . import progress
from . import image_io
from . import utils

from .config import ColorizeConfig, ConfigError  # noqa: E402,F401
from .pipeline import colorize  # noqa: E402,F401

__all__ = [
    "__version__",
    "colour_convert",
    "core_types",
    "palette_data",
    "matching",
    "dither",
    "integral",
    "progress",
    "image_io",
    "utils",
    "ColorizeConfig",
    "ConfigError",
    "colorize",
]
