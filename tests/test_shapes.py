import unittest
import sys
import os

import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import shapes
from params import Params
from shapes import ShapeType, sample

N = 10000


class TestBufferLength(unittest.TestCase):
    def test_every_family_returns_count_points(self):
        rng = np.random.default_rng(1)
        for shape in ShapeType:
            for count in (0, 1, 7, 1000):
                out = sample(shape, count, custom_points=[0.0, 1.0, 2.0], rng=rng)
                self.assertEqual(out.shape, (count, 3), f"{shape} x {count}")
                self.assertEqual(out.reshape(-1).size, 3 * count)

    def test_unknown_shape_does_not_raise(self):
        out = sample("Teapot", 50, rng=np.random.default_rng(2))
        self.assertEqual(out.shape, (50, 3))
        self.assertTrue(shapes.in_fireworks(out).all())


class TestShapeType(unittest.TestCase):
    def test_parse_value_and_name(self):
        self.assertIs(ShapeType.parse("Saturn"), ShapeType.SATURN)
        self.assertIs(ShapeType.parse("buddha"), ShapeType.BUDDHA)
        self.assertIs(ShapeType.parse("AI Generated"), ShapeType.CUSTOM)
        self.assertIs(ShapeType.parse("custom"), ShapeType.CUSTOM)
        self.assertIs(ShapeType.parse(ShapeType.HEART), ShapeType.HEART)

    def test_parse_unknown(self):
        with self.assertRaises(ValueError):
            ShapeType.parse("Cube")


class TestCustom(unittest.TestCase):
    def setUp(self):
        rng = np.random.default_rng(3)
        self.k = 37
        self.custom = rng.uniform(-4, 4, self.k * 3).tolist()

    def test_cyclic_tiling_is_exact(self):
        out = sample(ShapeType.CUSTOM, 2 * self.k, custom_points=self.custom).reshape(-1)
        self.assertEqual(out.size, 6 * self.k)
        np.testing.assert_array_equal(out[: 3 * self.k], self.custom)
        np.testing.assert_array_equal(out[3 * self.k:], self.custom)

    def test_partial_cycle(self):
        pts = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
        out = sample(ShapeType.CUSTOM, 5, custom_points=pts)
        np.testing.assert_array_equal(out[:, 0], [1.0, 4.0, 1.0, 4.0, 1.0])

    def test_trailing_partial_triple_ignored(self):
        out = sample(ShapeType.CUSTOM, 4, custom_points=[1.0, 2.0, 3.0, 9.0])
        np.testing.assert_array_equal(out, np.tile([1.0, 2.0, 3.0], (4, 1)))

    def test_nested_and_array_sources(self):
        rows = [[1.0, 2.0, 3.0], [4, 5, 6]]
        for pts in (rows, np.array(rows), np.array(rows, dtype=np.float32).ravel()):
            out = sample(ShapeType.CUSTOM, 2, custom_points=pts)
            np.testing.assert_array_equal(out, [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])

    def test_numeric_strings_are_not_coordinates(self):
        with self.assertLogs("shapes", level="WARNING"):
            out = sample(ShapeType.CUSTOM, 50, custom_points=np.array(["1", "2", "3"]), rng=np.random.default_rng(1))
        self.assertTrue(shapes.in_fireworks(out).all())

    def test_degenerate_input_falls_back_to_fireworks(self):
        rng = np.random.default_rng(4)
        for bad in (None, [], [1.0, 2.0], ["a", "b", "c"], ["1", "2", "3"],
                    [1.0, 2.0, "3"], [True, False, True], [float("nan"), 0.0, 0.0], {"x": 1}, "1 2 3"):
            with self.assertLogs("shapes", level="WARNING"):
                out = sample(ShapeType.CUSTOM, 500, custom_points=bad, rng=rng)
            self.assertEqual(out.shape, (500, 3))
            self.assertTrue(shapes.in_fireworks(out).all())
            # a real fallback, not a tiled copy of garbage
            self.assertGreater(np.unique(out[:, 0]).size, 400)


class TestFamilyContainment(unittest.TestCase):
    def setUp(self):
        self.rng = np.random.default_rng(5)

    def test_saturn(self):
        pts = sample(ShapeType.SATURN, N, rng=self.rng)
        ring = shapes.in_saturn_ring(pts)
        planet = shapes.in_saturn_planet(pts)
        self.assertTrue((ring | planet).all())
        self.assertAlmostEqual(ring.mean(), 0.6, delta=0.03)
        # ring points are thin and inside the annulus
        r = np.hypot(pts[ring, 0], pts[ring, 2])
        self.assertGreaterEqual(r.min(), 2.5)
        self.assertLessEqual(r.max(), 4.0)
        self.assertLessEqual(np.abs(pts[ring, 1]).max(), 0.05)

    def test_buddha(self):
        pts = sample(ShapeType.BUDDHA, N, rng=self.rng)
        legs = shapes.in_buddha_legs(pts)
        torso = shapes.in_buddha_torso(pts)
        head = shapes.in_buddha_head(pts)
        self.assertTrue((legs | torso | head).all())
        # stacked: legs below torso below head
        self.assertLess(pts[legs, 1].mean(), pts[torso & ~legs, 1].mean())
        self.assertLess(pts[torso & ~head, 1].mean(), pts[head, 1].mean())
        self.assertAlmostEqual(head.mean(), 0.3, delta=0.05)

    def test_buddha_with_capped_retries_stays_inside(self):
        p = Params()
        p.max_rejection_rounds = 1
        pts = sample(ShapeType.BUDDHA, 2000, rng=self.rng, params=p)
        inside = shapes.in_buddha_legs(pts) | shapes.in_buddha_torso(pts) | shapes.in_buddha_head(pts)
        self.assertTrue(inside.all())

    def test_fireworks(self):
        pts = sample(ShapeType.FIREWORKS, N, rng=self.rng)
        self.assertTrue(shapes.in_fireworks(pts).all())
        # cube-root radius fills the ball: half the volume lies beyond r = 3 / 2**(1/3)
        outer = np.linalg.norm(pts, axis=1) > 3.0 / 2 ** (1 / 3)
        self.assertAlmostEqual(outer.mean(), 0.5, delta=0.03)

    def test_heart(self):
        pts = sample(ShapeType.HEART, N, rng=self.rng)
        self.assertLessEqual(np.hypot(pts[:, 0], pts[:, 2]).max(), 16 * 0.15 + 1e-9)
        self.assertGreaterEqual(pts[:, 1].min(), -17 * 0.15 - 1e-9)

    def test_flower(self):
        pts = sample(ShapeType.FLOWER, N, rng=self.rng)
        self.assertLessEqual(np.hypot(pts[:, 0], pts[:, 2]).max(), 2.0 + 1e-9)
        self.assertLessEqual(np.abs(pts[:, 1]).max(), 1.0 + 1e-9)

    def test_sampling_is_random(self):
        a = sample(ShapeType.HEART, 100, rng=self.rng)
        b = sample(ShapeType.HEART, 100, rng=self.rng)
        self.assertFalse(np.array_equal(a, b))


if __name__ == '__main__':
    unittest.main()
