# palette_colorize/image_io.py
from __future__ import annotations

from pathlib import Path

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .core_types import U8Image, assert_u8_image_rgb

"""
Image I/O helpers (RGB in sRGB). Alpha is dropped on load.
"""

IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp"}


def load_image_rgb(path: Path) -> U8Image:
    with Image.open(path) as im0:
        im = ImageOps.exif_transpose(im0)
        if im is None:
            im = im0
        arr = np.array(im.convert("RGB"), dtype=np.uint8)
    return arr


def save_image_rgb(path: Path, rgb: U8Image) -> Path:
    if path.suffix.lower() != ".png":
        path = path.with_suffix(".png")
    rgb = np.ascontiguousarray(assert_u8_image_rgb(rgb))
    Image.fromarray(rgb).save(path)
    return path


def is_image_file(path: Path) -> bool:
    """Header check only; pixel data is decoded later by load_image_rgb."""
    if path.suffix.lower() not in IMAGE_SUFFIXES:
        return False
    try:
        with Image.open(path) as im:
            im.verify()
        return True
    except (UnidentifiedImageError, OSError, SyntaxError):
        return False


__all__ = ["IMAGE_SUFFIXES", "load_image_rgb", "save_image_rgb", "is_image_file"]
