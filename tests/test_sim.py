import unittest
import sys
import os
import math

import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from control import ControlSignal, Gesture
from shapes import ShapeType, sample
from sim import ParticleSim, rotate_y

DT = 1.0 / 60.0


class TestParticleSim(unittest.TestCase):
    def setUp(self):
        self.rng = np.random.default_rng(11)
        self.target = sample(ShapeType.SATURN, 2000, rng=self.rng)
        self.sim = ParticleSim(self.target, rng=self.rng)

    def test_buffers(self):
        self.assertEqual(self.sim.current.shape, (2000, 3))
        self.assertEqual(self.sim.target.shape, (2000, 3))
        self.assertEqual(self.sim.flat_positions().size, 6000)
        self.assertTrue(np.all(np.abs(self.sim.current) <= 5.0))
        # spawned as noise, not already in place
        self.assertGreater(np.abs(self.sim.current - self.target).mean(), 1.0)

    def test_flat_positions_is_a_view(self):
        flat = self.sim.flat_positions()
        self.sim.tick(DT, 0.0)
        np.testing.assert_array_equal(flat, self.sim.current.reshape(-1))

    def test_idle_convergence(self):
        absent = ControlSignal.absent()
        dist = np.linalg.norm(self.sim.current - self.target, axis=1)
        start = dist.max()
        ticks = math.ceil(5.0 / (3.0 * DT))
        for _ in range(ticks):
            self.sim.tick(DT, 0.0, absent)
            nxt = np.linalg.norm(self.sim.current - self.target, axis=1)
            self.assertTrue(np.all(nxt < dist))
            dist = nxt
        self.assertLess(dist.max(), 0.01 * start)

    def test_absent_tick_only_spins_target(self):
        elapsed = 2.5
        before = self.sim.current.copy()
        self.sim.tick(DT, elapsed, ControlSignal.absent())
        spun = rotate_y(self.target, elapsed * 0.1)
        np.testing.assert_allclose(self.sim.current, before + (spun - before) * 3.0 * DT)
        np.testing.assert_allclose(self.sim.spun_target(elapsed), spun)
        # the stored target itself is never rewritten by the tick
        np.testing.assert_array_equal(self.sim.target, self.target)

    def test_active_gesture_is_softer(self):
        self.sim.current[:] = -3.0
        self.sim.target[:] = -2.0
        ctl = ControlSignal(present=True, gesture=Gesture.OPEN, x=1.0, y=1.0, openness=1.0)
        self.sim.tick(DT, 0.0, ctl)
        # cursor is (5, 5, 0), every particle is > 5 away: no repulsion, rate 1.5
        np.testing.assert_allclose(self.sim.current, -3.0 + 1.0 * 1.5 * DT)

    def test_neutral_hand_uses_idle_rate(self):
        ctl = ControlSignal(present=True, gesture=Gesture.NEUTRAL)
        self.assertEqual(self.sim.rate_for(ctl), 3.0)
        self.assertEqual(self.sim.rate_for(ControlSignal.absent()), 3.0)
        self.assertEqual(self.sim.rate_for(ControlSignal(present=True, gesture=Gesture.CLOSED)), 1.5)

    def test_closed_pulls_toward_cursor(self):
        self.sim.current[:] = 0.0
        self.sim.target[:] = (2.0, 0.0, 0.0)
        ctl = ControlSignal(present=True, gesture=Gesture.CLOSED)
        self.sim.tick(0.1, 0.0, ctl)
        np.testing.assert_allclose(self.sim.current[:, 0], 2.0 * 0.9 * 1.5 * 0.1)

    def test_idle_convergence_on_slow_frames(self):
        dt = 0.25
        start = np.linalg.norm(self.sim.current - self.target, axis=1)
        for _ in range(7):
            self.sim.tick(dt, 0.0, ControlSignal.absent())
        dist = np.linalg.norm(self.sim.current - self.target, axis=1)
        np.testing.assert_allclose(dist, start * (1.0 - 3.0 * dt) ** 7, rtol=1e-6, atol=1e-12)
        self.assertLess(dist.max(), 0.01 * start.max())

    def test_long_frame_lands_on_target(self):
        self.sim.tick(10.0, 0.0, ControlSignal.absent())
        np.testing.assert_allclose(self.sim.current, self.target, atol=1e-12)

    def test_tick_is_total(self):
        before = self.sim.current.copy()
        self.sim.tick(float("nan"), 1.0)
        self.sim.tick(-1.0, 1.0)
        np.testing.assert_array_equal(self.sim.current, before)
        self.sim.tick(DT, float("inf"), ControlSignal(present=True, gesture=Gesture.OPEN, openness=1.0))
        self.assertTrue(np.all(np.isfinite(self.sim.current)))

    def test_empty_sim(self):
        sim = ParticleSim(np.empty((0, 3)))
        sim.tick(DT, 1.0)
        self.assertEqual(sim.flat_positions().size, 0)

    def test_retarget_keeps_current(self):
        before = self.sim.current.copy()
        new = sample(ShapeType.HEART, 2000, rng=self.rng)
        self.sim.retarget(new)
        np.testing.assert_array_equal(self.sim.current, before)
        np.testing.assert_array_equal(self.sim.target, new)

    def test_retarget_wrong_length(self):
        with self.assertRaises(ValueError):
            self.sim.retarget(np.zeros((10, 3)))

    def test_presentation_spin_is_separate(self):
        before = self.sim.current.copy()
        shown = self.sim.presented(4.0)
        np.testing.assert_array_equal(self.sim.current, before)
        np.testing.assert_allclose(shown, rotate_y(before, 4.0 * 0.05))
        self.assertAlmostEqual(self.sim.presentation_angle(4.0), 0.2)


class TestRotateY(unittest.TestCase):
    def test_quarter_turn(self):
        out = rotate_y(np.array([[1.0, 2.0, 0.0]]), math.pi / 2)
        np.testing.assert_allclose(out, [[0.0, 2.0, 1.0]], atol=1e-12)

    def test_in_place(self):
        pts = np.array([[1.0, 2.0, 0.0], [0.0, 0.0, 1.0]])
        rotate_y(pts, math.pi / 2, out=pts)
        np.testing.assert_allclose(pts, [[0.0, 2.0, 1.0], [-1.0, 0.0, 0.0]], atol=1e-12)


if __name__ == '__main__':
    unittest.main()
