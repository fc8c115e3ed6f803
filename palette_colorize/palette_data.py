# palette_colorize/palette_data.py
from __future__ import annotations

"""
Palette parsing and builders.

Palettes are supplied by the caller, either as a comma/space separated list of
hex colours or as a text file with one colour per line:

    # comment
    #ff0000  Red
    0000ff   Blue

Exports:
  parse_hex_list(text) -> list[tuple[str, str]]
  load_palette_file(path) -> list[tuple[str, str]]
  build_palette(hex_name_pairs)
    -> (items: list[PaletteItem], pal_lab: LabPalette)
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import numpy as np

from .core_types import (
    Lab,
    LabPalette,
    RGBTuple,
    hex_list_to_u8_rgb_array,
    hex_to_rgb,
    rgb_to_hex,
)
from .colour_convert import rgb_to_lab

_HEX_TOKEN = re.compile(r"^#?(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


@dataclass(frozen=True)
class PaletteItem:
    """Palette entry with its precomputed Lab row."""

    rgb: RGBTuple
    name: str
    lab: Lab  # shape (3,)


def _normalise_hex(token: str) -> str:
    token = token.strip()
    if not _HEX_TOKEN.match(token):
        raise ValueError(f"invalid hex colour {token!r}")
    return token if token.startswith("#") else f"#{token}"


def parse_hex_list(text: str) -> List[Tuple[str, str]]:
    """
    Parse '#ff0000,#00f 00ff00' into [(hex, name), ...].
    Names default to the normalised hex string.
    """
    pairs: List[Tuple[str, str]] = []
    for token in re.split(r"[,\s]+", text.strip()):
        if not token:
            continue
        hx = rgb_to_hex(hex_to_rgb(_normalise_hex(token)))
        pairs.append((hx, hx))
    return pairs


def load_palette_file(path: Union[str, Path]) -> List[Tuple[str, str]]:
    """
    Read a palette file: one colour per line, an optional name after the colour.
    Blank lines and lines starting with '# ' or '//' are ignored.
    """
    pairs: List[Tuple[str, str]] = []
    text = Path(path).read_text(encoding="utf-8")
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("# ") or line == "#" or line.startswith("//"):
            continue
        token, *rest = line.split(None, 1)
        try:
            hx = rgb_to_hex(hex_to_rgb(_normalise_hex(token)))
        except ValueError as e:
            raise ValueError(f"{path}:{lineno}: {e}") from None
        name = rest[0].strip() if rest else hx
        pairs.append((hx, name))
    return pairs


def build_palette(
    hex_name_pairs: Sequence[Tuple[str, str]],
) -> Tuple[List[PaletteItem], LabPalette]:
    """
    Convert a list of (hex, name) into:
      items: list[PaletteItem] with rgb, name, lab
      pal_lab: float32 array [P,3], in input order
    """
    if len(hex_name_pairs) == 0:
        return [], np.zeros((0, 3), dtype=np.float32)

    rgbs_u8 = hex_list_to_u8_rgb_array([hx for hx, _ in hex_name_pairs])
    pal_lab: LabPalette = rgb_to_lab(rgbs_u8).reshape(-1, 3).astype(
        np.float32, copy=False
    )

    items: List[PaletteItem] = []
    for i, (_hx, name) in enumerate(hex_name_pairs):
        rgb_tuple: RGBTuple = (
            int(rgbs_u8[i, 0]),
            int(rgbs_u8[i, 1]),
            int(rgbs_u8[i, 2]),
        )
        items.append(PaletteItem(rgb=rgb_tuple, name=name, lab=pal_lab[i].copy()))

    return items, pal_lab


__all__ = ["PaletteItem", "parse_hex_list", "load_palette_file", "build_palette"]
