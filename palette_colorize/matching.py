# palette_colorize/matching.py
from __future__ import annotations

"""
Palette nearest-match engine.

match() picks the palette row with the smallest improved CIEDE2000 difference.
memoized_match() wraps it with a cache keyed by the exact source RGB, shared by
every worker thread of a pass. The lock is held for the point lookup and the
point insert only; two threads missing on the same key both compute and both
store the same value.
"""

import threading
from typing import Dict, Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from .colour_convert import improved_delta_e2000_vec, rgb_to_lab
from .config import ConfigError
from .core_types import Lab, LabPalette, RGBTuple


class ColourCache:
    """Thread-safe RGB -> mapped Lab table. Lives for one colorize call."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._table: Dict[RGBTuple, Lab] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: RGBTuple) -> Optional[Lab]:
        with self._lock:
            value = self._table.get(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
            return value

    def put(self, key: RGBTuple, value: Lab) -> None:
        with self._lock:
            self._table[key] = value

    def __len__(self) -> int:
        with self._lock:
            return len(self._table)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._table


def find_closest_index(colour: Lab, palette: LabPalette) -> int:
    """Index of the nearest palette row; ties resolve to the lowest index."""
    if palette.shape[0] == 0:
        raise ConfigError("cannot match against an empty palette")
    distances = improved_delta_e2000_vec(colour, palette)
    return int(np.argmin(distances))


def match(colour: Lab, palette: LabPalette) -> Lab:
    """Palette row perceptually closest to colour (float32 [3])."""
    return np.asarray(palette[find_closest_index(colour, palette)], dtype=np.float32)


def memoized_match(
    cache: ColourCache,
    output_colour: Union[Sequence[int], NDArray[np.uint8]],
    palette: LabPalette,
) -> Lab:
    """
    Mapped Lab for an sRGB pixel: the pixel's own lightness with the chroma of
    its nearest palette colour. Cached per exact RGB value.
    """
    key: RGBTuple = (
        int(output_colour[0]),
        int(output_colour[1]),
        int(output_colour[2]),
    )
    cached = cache.get(key)
    if cached is not None:
        return cached

    original_lab = rgb_to_lab(np.array(key, dtype=np.uint8))
    closest = match(original_lab, palette)
    mapped = np.array(
        [original_lab[0], closest[1], closest[2]], dtype=np.float32
    )
    mapped.setflags(write=False)

    cache.put(key, mapped)
    return mapped


__all__ = ["ColourCache", "find_closest_index", "match", "memoized_match"]
