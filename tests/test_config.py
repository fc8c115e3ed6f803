import tempfile
import unittest
from pathlib import Path

import numpy as np

from palette_colorize.config import ColorizeConfig, ConfigError
from palette_colorize.palette_data import build_palette, load_palette_file, parse_hex_list


class ColorizeConfigTest(unittest.TestCase):
    def test_empty_palette_is_rejected(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            ColorizeConfig(palette=np.zeros((0, 3), dtype=np.float32))
        self.assertIn("empty", str(ctx.exception))
        with self.assertRaises(ConfigError):
            ColorizeConfig(palette=[])
        with self.assertRaises(ConfigError):
            ColorizeConfig.from_hex([])

    def test_invalid_settings_are_rejected(self) -> None:
        palette = [[50.0, 10.0, 10.0]]
        bad = [
            {"spatial_averaging_radius": -1},
            {"spatial_averaging_radius": 1.5},
            {"dither_amount": -0.1},
            {"dither_amount": float("nan")},
            {"blend_factor": float("inf")},
            {"workers": 0},
        ]
        for kwargs in bad:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ConfigError):
                    ColorizeConfig(palette=palette, **kwargs)
        with self.assertRaises(ConfigError):
            ColorizeConfig(palette=[[1.0, 2.0]])

    def test_config_error_is_a_value_error(self) -> None:
        self.assertTrue(issubclass(ConfigError, ValueError))

    def test_palette_is_copied_and_frozen(self) -> None:
        source = np.array([[50.0, 10.0, 10.0]], dtype=np.float32)
        config = ColorizeConfig(palette=source, workers=1)
        source[0, 0] = 0.0
        self.assertEqual(float(config.palette[0, 0]), 50.0)
        with self.assertRaises(ValueError):
            config.palette[0, 0] = 1.0

    def test_single_triple_becomes_one_row(self) -> None:
        config = ColorizeConfig(palette=[50.0, 0.0, 0.0], workers=1)
        self.assertEqual(config.palette.shape, (1, 3))

    def test_from_hex(self) -> None:
        config = ColorizeConfig.from_hex(
            parse_hex_list("#ff0000 #00f"), blend_factor=0.5, workers=2
        )
        self.assertEqual(config.palette.shape, (2, 3))
        self.assertEqual(config.blend_factor, 0.5)
        self.assertEqual(config.workers, 2)


class PaletteDataTest(unittest.TestCase):
    def test_parse_hex_list(self) -> None:
        pairs = parse_hex_list(" #FF0000, 00ff00  #00f ")
        self.assertEqual(
            [hx for hx, _ in pairs], ["#ff0000", "#00ff00", "#0000ff"]
        )
        with self.assertRaises(ValueError):
            parse_hex_list("#12345")

    def test_load_palette_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "palette.txt"
            path.write_text(
                "# warm colours\n\n#e76f51 Burnt Sienna\nf4a261\n// note\n",
                encoding="utf-8",
            )
            pairs = load_palette_file(path)
        self.assertEqual(pairs, [("#e76f51", "Burnt Sienna"), ("#f4a261", "#f4a261")])

    def test_load_palette_file_accepts_tab_separated_names(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "palette.txt"
            path.write_text("#ff0000\tRed\n00ff00\t\tBright Green\n", encoding="utf-8")
            pairs = load_palette_file(path)
        self.assertEqual(pairs, [("#ff0000", "Red"), ("#00ff00", "Bright Green")])

    def test_load_palette_file_reports_line(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "palette.txt"
            path.write_text("#ffffff\nnot-a-colour\n", encoding="utf-8")
            with self.assertRaises(ValueError) as ctx:
                load_palette_file(path)
        self.assertIn(":2:", str(ctx.exception))

    def test_build_palette_keeps_order(self) -> None:
        items, pal_lab = build_palette([("#0000ff", "Blue"), ("#ff0000", "Red")])
        self.assertEqual([i.name for i in items], ["Blue", "Red"])
        self.assertEqual(items[1].rgb, (255, 0, 0))
        self.assertEqual(pal_lab.dtype, np.float32)
        self.assertGreater(float(pal_lab[1, 2]), 0.0)
        self.assertLess(float(pal_lab[0, 2]), 0.0)


if __name__ == "__main__":
    unittest.main()
