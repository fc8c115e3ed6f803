import unittest

import numpy as np

from palette_colorize.colour_convert import rgb_to_lab
from palette_colorize.integral import (
    box_blur_2d,
    compute_integral_image,
    fast_spatial_color_average,
    integral_from_array,
)


def _brute_window_mean(values, x, y, radius):
    height, width = values.shape[:2]
    y1, y2 = max(0, y - radius), min(height - 1, y + radius)
    x1, x2 = max(0, x - radius), min(width - 1, x + radius)
    return values[y1 : y2 + 1, x1 : x2 + 1].reshape(-1, values.shape[-1]).mean(axis=0)


class IntegralImageTest(unittest.TestCase):
    def setUp(self) -> None:
        rng = np.random.default_rng(11)
        self.image = rng.integers(0, 256, size=(9, 13, 3), dtype=np.uint8)
        self.lab = rgb_to_lab(self.image).astype(np.float64)
        self.integral = compute_integral_image(self.image)

    def test_shape_has_zero_border(self) -> None:
        self.assertEqual(self.integral.sums.shape, (10, 14, 3))
        self.assertEqual(self.integral.height, 9)
        self.assertEqual(self.integral.width, 13)
        self.assertTrue(np.all(self.integral.sums[0] == 0.0))
        self.assertTrue(np.all(self.integral.sums[:, 0] == 0.0))

    def test_region_sum_matches_brute_force(self) -> None:
        got = self.integral.region_sum(2, 1, 6, 4)
        want = self.lab[1:5, 2:7].reshape(-1, 3).sum(axis=0)
        np.testing.assert_allclose(got, want, rtol=1e-6, atol=1e-3)

    def test_window_average_matches_brute_force(self) -> None:
        for radius in (0, 1, 3, 20):
            for x, y in [(0, 0), (12, 8), (6, 4), (1, 7)]:
                got = fast_spatial_color_average(x, y, 13, 9, radius, self.integral)
                want = _brute_window_mean(self.lab, x, y, radius)
                np.testing.assert_allclose(got, want, rtol=1e-5, atol=1e-3)

    def test_radius_zero_returns_own_pixel(self) -> None:
        xs = np.arange(13)
        got = fast_spatial_color_average(xs, 5, 13, 9, 0, self.integral)
        np.testing.assert_allclose(got, self.lab[5], atol=1e-3)

    def test_array_coordinates_broadcast(self) -> None:
        xs = np.arange(13)[None, :]
        ys = np.arange(9)[:, None]
        got = fast_spatial_color_average(xs, ys, 13, 9, 2, self.integral)
        self.assertEqual(got.shape, (9, 13, 3))
        np.testing.assert_allclose(
            got[4, 6], _brute_window_mean(self.lab, 6, 4, 2), atol=1e-3
        )

    def test_integral_is_immutable(self) -> None:
        with self.assertRaises(ValueError):
            self.integral.sums[1, 1, 0] = 1.0


class BoxBlurTest(unittest.TestCase):
    def test_constant_field_is_unchanged(self) -> None:
        arr = np.full((6, 5), 3.5, dtype=np.float32)
        np.testing.assert_allclose(box_blur_2d(arr, 2), arr, atol=1e-6)

    def test_matches_window_mean(self) -> None:
        rng = np.random.default_rng(5)
        arr = rng.random((7, 8), dtype=np.float32)
        blurred = box_blur_2d(arr, 1)
        want = _brute_window_mean(arr[..., None].astype(np.float64), 3, 3, 1)[0]
        self.assertAlmostEqual(float(blurred[3, 3]), float(want), places=5)

    def test_2d_integral_from_array(self) -> None:
        integ = integral_from_array(np.ones((3, 4)))
        self.assertEqual(float(integ.sums[3, 4, 0]), 12.0)


if __name__ == "__main__":
    unittest.main()
