import threading
import unittest

import numpy as np

from palette_colorize.colour_convert import rgb_to_lab
from palette_colorize.config import ConfigError
from palette_colorize.matching import (
    ColourCache,
    find_closest_index,
    match,
    memoized_match,
)


def _palette(*rgbs):
    return rgb_to_lab(np.array(rgbs, dtype=np.uint8)).reshape(-1, 3)


class MatchTest(unittest.TestCase):
    def test_picks_perceptually_nearest(self) -> None:
        palette = _palette((255, 0, 0), (0, 0, 255), (0, 255, 0))
        orange = rgb_to_lab(np.array([230, 90, 40], dtype=np.uint8))
        navy = rgb_to_lab(np.array([20, 20, 120], dtype=np.uint8))
        self.assertEqual(find_closest_index(orange, palette), 0)
        self.assertEqual(find_closest_index(navy, palette), 1)
        np.testing.assert_array_equal(match(navy, palette), palette[1])

    def test_ties_go_to_first_entry(self) -> None:
        palette = _palette((10, 200, 10), (200, 10, 10), (200, 10, 10))
        red = rgb_to_lab(np.array([200, 10, 10], dtype=np.uint8))
        self.assertEqual(find_closest_index(red, palette), 1)

    def test_empty_palette_raises(self) -> None:
        with self.assertRaises(ConfigError):
            find_closest_index(
                np.zeros(3, dtype=np.float32), np.zeros((0, 3), dtype=np.float32)
            )


class MemoizedMatchTest(unittest.TestCase):
    def test_keeps_source_lightness_and_palette_chroma(self) -> None:
        palette = _palette((255, 0, 0), (0, 0, 255))
        cache = ColourCache()
        mapped = memoized_match(cache, (180, 60, 50), palette)
        src = rgb_to_lab(np.array([180, 60, 50], dtype=np.uint8))
        self.assertEqual(float(mapped[0]), float(src[0]))
        np.testing.assert_array_equal(mapped[1:], palette[0][1:])

    def test_second_call_hits_cache_with_same_value(self) -> None:
        palette = _palette((255, 0, 0), (0, 0, 255), (128, 128, 128))
        cache = ColourCache()
        first = memoized_match(cache, np.array([90, 100, 140], dtype=np.uint8), palette)
        second = memoized_match(cache, (90, 100, 140), palette)
        np.testing.assert_array_equal(first, second)
        self.assertEqual(len(cache), 1)
        self.assertEqual(cache.misses, 1)
        self.assertEqual(cache.hits, 1)
        self.assertIn((90, 100, 140), cache)

    def test_cached_values_are_read_only(self) -> None:
        cache = ColourCache()
        mapped = memoized_match(cache, (1, 2, 3), _palette((0, 0, 0)))
        with self.assertRaises(ValueError):
            mapped[0] = 5.0

    def test_single_entry_palette_maps_everything_to_its_chroma(self) -> None:
        palette = _palette((40, 160, 90))
        cache = ColourCache()
        for rgb in [(0, 0, 0), (255, 255, 255), (255, 0, 0), (3, 70, 240)]:
            mapped = memoized_match(cache, rgb, palette)
            np.testing.assert_array_equal(mapped[1:], palette[0][1:])

    def test_concurrent_misses_agree(self) -> None:
        palette = _palette((255, 0, 0), (0, 255, 0), (0, 0, 255), (255, 255, 0))
        cache = ColourCache()
        colours = [(r, 64, 255 - r) for r in range(0, 256, 5)]
        results = {}
        lock = threading.Lock()

        def worker() -> None:
            for rgb in colours:
                value = memoized_match(cache, rgb, palette)
                with lock:
                    results.setdefault(rgb, []).append(value)

        threads = [threading.Thread(target=worker) for _ in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(cache), len(colours))
        for values in results.values():
            self.assertEqual(len(values), 6)
            for v in values[1:]:
                np.testing.assert_array_equal(v, values[0])


if __name__ == "__main__":
    unittest.main()
