from unittest import TestCase
from unittest.mock import patch

from numpy import random
from rtcadapt.abr import (
    GradeBitrateController,
    LinearBitrateController,
    create_bitrate_controller,
    list_bitrate_controllers,
)
from rtcadapt.abr.base import round_half_up
from rtcadapt.configuration import BitrateParameters
from rtcadapt.mediastreams import ScalableVideoStreamTrack

from .utils import DummyVideoTrack, loss_report


class BitrateControllerTest(TestCase):
    def test_defaults(self):
        controller = LinearBitrateController()
        self.assertEqual(controller.startup, 2000000)
        self.assertEqual(controller.minimum, 200000)
        self.assertEqual(controller.maximum, 3000000)
        self.assertEqual(controller.recovery_steps, 2)
        self.assertEqual(controller.appreciation_duration, 4000)
        self.assertIsNone(controller.constraint)
        self.assertIsNone(controller.value)
        self.assertIsNone(controller.source)

    def test_startup(self):
        controller = LinearBitrateController(BitrateParameters(startup=1500000))
        with self.assertLogs("rtcadapt.abr.base", level="INFO") as cm:
            self.assertEqual(
                controller.compute(None, 1000000, loss_report(50)), 1500000
            )
        self.assertIn("Set startup bitrate to 1500000", cm.output[0])

    def test_maximum_below_minimum(self):
        controller = LinearBitrateController()
        controller.maximum = 100000
        self.assertEqual(controller.maximum, 100000)
        self.assertEqual(controller.minimum, 100000)
        self.assertEqual(controller.startup, 100000)

    def test_maximum_below_startup(self):
        controller = LinearBitrateController()
        controller.maximum = 1000000
        self.assertEqual(controller.minimum, 200000)
        self.assertEqual(controller.startup, 1000000)

    def test_minimum_above_maximum(self):
        controller = LinearBitrateController()
        controller.minimum = 5000000
        self.assertEqual(controller.minimum, 5000000)
        self.assertEqual(controller.maximum, 5000000)
        self.assertEqual(controller.startup, 5000000)

    def test_minimum_above_startup(self):
        controller = LinearBitrateController()
        controller.minimum = 2500000
        self.assertEqual(controller.maximum, 3000000)
        self.assertEqual(controller.startup, 2500000)

    def test_startup_clamped(self):
        controller = LinearBitrateController()
        controller.startup = 10000000
        self.assertEqual(controller.startup, 3000000)
        controller.startup = 10
        self.assertEqual(controller.startup, 200000)

    def test_inverted_parameters(self):
        controller = LinearBitrateController(
            BitrateParameters(startup=2000000, minimum=4000000, maximum=3000000)
        )
        self.assertEqual(controller.minimum, 4000000)
        self.assertEqual(controller.maximum, 4000000)
        self.assertEqual(controller.startup, 4000000)

    def test_round_half_up(self):
        self.assertEqual(round_half_up(500000.5), 500001)
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(2.49), 2)
        controller = LinearBitrateController()
        controller.maximum = 2500000.5
        self.assertEqual(controller.maximum, 2500001)

    def test_recovery_steps_at_least_one(self):
        controller = LinearBitrateController(BitrateParameters(recovery_steps=0))
        self.assertEqual(controller.recovery_steps, 1)
        controller.recovery_steps = 3
        self.assertEqual(controller.recovery_steps, 3)

    @patch("rtcadapt.clock.current_ms")
    def test_clamped_to_bounds(self, mock_now):
        mock_now.return_value = 0
        controller = LinearBitrateController()
        self.assertEqual(controller.compute(10000000), 3000000)
        self.assertEqual(controller.compute(500000, 100), 200000)
        self.assertEqual(controller.value, 500000)
        self.assertEqual(controller.constraint, 100)

    @patch("rtcadapt.clock.current_ms")
    def test_bitrate_event(self, mock_now):
        mock_now.return_value = 0
        controller = LinearBitrateController()
        events = []
        controller.on("bitrate", lambda new, old: events.append((new, old)))

        controller.compute()
        controller.compute(2000000)
        controller.compute(2000000, 1000000)
        self.assertEqual(events, [(2000000, None), (1000000, 2000000)])

    @patch("rtcadapt.clock.current_ms")
    def test_random_reports_stay_in_bounds(self, mock_now):
        rng = random.RandomState(42)
        for name in list_bitrate_controllers():
            controller = create_bitrate_controller(name)
            bitrate = None
            for i in range(500):
                mock_now.return_value = i * 1000
                constraint = int(rng.randint(0, 4000000)) if rng.randint(2) else None
                loss = float(rng.choice([0, 0, 0, 0.1, 1, 5, 30]))
                bitrate = controller.compute(bitrate, constraint, loss_report(loss))
                self.assertGreaterEqual(bitrate, controller.minimum)
                self.assertLessEqual(bitrate, controller.maximum)

    def test_time_source(self):
        now = [0]
        for name in list_bitrate_controllers():
            controller = create_bitrate_controller(name, time_source=lambda: now[0])
            now[0] = 0
            self.assertEqual(controller.compute(2000000), 2000000)
            now[0] = 4000
            self.assertEqual(controller._now(), 4000)

        controller = LinearBitrateController(time_source=lambda: now[0])
        now[0] = 100000
        controller.compute(2000000)
        now[0] = 104000
        self.assertEqual(controller.compute(2000000), 2500000)

    def test_create_unknown(self):
        with self.assertRaises(ValueError) as cm:
            create_bitrate_controller("bbr")
        self.assertEqual(
            str(cm.exception),
            "Unknown adaptive bitrate algorithm 'bbr'. Available: grade, linear",
        )

    def test_create(self):
        controller = create_bitrate_controller(
            "grade", params=BitrateParameters(maximum=1000000), loss_window=3
        )
        self.assertIsInstance(controller, GradeBitrateController)
        self.assertEqual(controller.maximum, 1000000)


class LinearBitrateControllerTest(TestCase):
    def setUp(self):
        patcher = patch("rtcadapt.clock.current_ms")
        self.mock_now = patcher.start()
        self.mock_now.return_value = 0
        self.addCleanup(patcher.stop)
        self.controller = LinearBitrateController()

    def test_constraint_first(self):
        self.assertEqual(
            self.controller.compute(2000000, 1500000, loss_report(10)), 1500000
        )
        self.assertIsNone(self.controller._vars.stable_time)

    def test_constraint_not_reached(self):
        self.assertEqual(self.controller.compute(1000000, 1500000), 1000000)

    def test_loss_increasing(self):
        # first loss only remembers the percentage
        self.assertEqual(
            self.controller.compute(1000000, None, loss_report(5)), 1000000
        )
        self.assertEqual(
            self.controller.compute(1000000, None, loss_report(10)), 900000
        )
        self.assertEqual(self.controller.compute(900000, None, loss_report(10)), 810000)

    def test_loss_rounds_half_up(self):
        self.controller.compute(1000001, None, loss_report(50))
        self.assertEqual(
            self.controller.compute(1000001, None, loss_report(50)), 500001
        )

    def test_loss_improving(self):
        self.controller.compute(1000000, None, loss_report(10))
        self.assertEqual(
            self.controller.compute(1000000, None, loss_report(8)), 1000000
        )
        self.assertEqual(self.controller._vars.last_loss, 8)

    def test_no_loss_breaks_streak(self):
        self.controller.compute(1000000, None, loss_report(10))
        self.controller.compute(1000000, None, loss_report(0))
        self.assertEqual(self.controller._vars.last_loss, float("inf"))
        self.assertEqual(
            self.controller.compute(1000000, None, loss_report(5)), 1000000
        )

    def test_recovery_after_appreciation(self):
        self.assertEqual(self.controller.compute(), 2000000)

        self.assertEqual(
            self.controller.compute(2000000, None, loss_report(0)), 2000000
        )
        self.assertEqual(self.controller._vars.stable_bitrate, 2000000)
        self.assertEqual(self.controller._vars.recovery_factor, 2)

        self.mock_now.return_value = 2000
        self.assertEqual(self.controller.compute(2000000), 2000000)

        self.mock_now.return_value = 4000
        self.assertEqual(self.controller.compute(2000000), 2500000)
        self.assertEqual(self.controller._vars.recovery_factor, 2)

        self.mock_now.return_value = 5000
        self.assertEqual(self.controller.compute(2500000), 2500000)

        self.mock_now.return_value = 8000
        self.assertEqual(self.controller.compute(2500000), 3000000)

    def test_congestion_slows_recovery(self):
        self.controller.compute(2000000)

        # congestion, then stable again with a bigger recovery factor
        self.mock_now.return_value = 1000
        self.controller.compute(2000000, None, loss_report(5))
        self.mock_now.return_value = 2000
        self.controller.compute(2000000)
        self.assertEqual(self.controller._vars.recovery_factor, 3)

        self.mock_now.return_value = 6000
        self.assertEqual(self.controller.compute(2000000), 2333334)
        self.assertEqual(self.controller._vars.recovery_factor, 2)

    def test_reset(self):
        self.controller.compute(2000000, None, loss_report(0))
        self.controller.compute(2000000, 1000000)
        self.controller.reset()
        self.assertIsNone(self.controller.value)
        self.assertIsNone(self.controller.constraint)

        fresh = LinearBitrateController()
        for controller in [self.controller, fresh]:
            self.mock_now.return_value = 10000
            self.assertEqual(controller.compute(), 2000000)
            self.assertEqual(controller.compute(2000000), 2000000)
            self.mock_now.return_value = 14000
            self.assertEqual(controller.compute(2000000), 2500000)

    def test_resolution_increase(self):
        source = ScalableVideoStreamTrack(DummyVideoTrack(), width=640, height=360)
        self.controller.source = source
        self.controller.compute(2000000)
        self.mock_now.return_value = 4000
        with self.assertLogs("rtcadapt.abr.base", level="INFO") as cm:
            self.controller.compute(2000000)
        self.assertIn("Resolution change 640x360 => 1280x720", cm.output[0])
        self.assertEqual(source.settings, {"width": 1280, "height": 720})

    def test_resolution_decrease(self):
        source = ScalableVideoStreamTrack(DummyVideoTrack(), width=1280, height=720)
        controller = LinearBitrateController(source=source)
        controller.compute(800000)
        self.mock_now.return_value = 4000
        controller.compute(800000)
        self.assertEqual(source.settings, {"width": 640, "height": 360})

    def test_resolution_unknown(self):
        source = ScalableVideoStreamTrack(DummyVideoTrack())
        self.controller.source = source
        self.controller.compute(2000000)
        self.mock_now.return_value = 4000
        self.assertEqual(self.controller.compute(2000000), 2500000)
        self.assertEqual(source.settings, {"width": None, "height": None})

    def test_resolution_failure_is_logged(self):
        source = ScalableVideoStreamTrack(DummyVideoTrack(), width=640, height=360)
        source.stop()
        self.controller.source = source
        self.controller.compute(2000000)
        self.mock_now.return_value = 4000
        with self.assertLogs("rtcadapt.abr.base", level="WARNING") as cm:
            self.assertEqual(self.controller.compute(2000000), 2500000)
        self.assertIn("Resolution change failed", cm.output[0])


class GradeBitrateControllerTest(TestCase):
    def setUp(self):
        patcher = patch("rtcadapt.clock.current_ms")
        self.mock_now = patcher.start()
        self.mock_now.return_value = 0
        self.addCleanup(patcher.stop)
        self.controller = GradeBitrateController()

    def test_constraint_recovery(self):
        controller = self.controller
        self.assertEqual(controller.compute(2000000, 2000000, loss_report(0)), 2000000)
        self.assertEqual(list(controller._vars.stable_bitrates), [2000000])
        self.assertEqual(controller._vars.bitrate_recovery_next_time, 10000)

        # first constraint decrease halves the bitrate
        self.mock_now.return_value = 1000
        self.assertEqual(controller.compute(2000000, 1500000, loss_report(0)), 1000000)
        self.assertEqual(controller._vars.bitrate_constraint_time, 1000)

        # recovery timer elapsed with no loss, small step above stable bitrate
        self.mock_now.return_value = 10000
        self.assertEqual(controller.compute(1000000, 1500000, loss_report(0)), 1507500)
        self.assertEqual(list(controller._vars.stable_bitrates), [2000000, 1000000])
        self.assertEqual(controller.recovery_timeout, 7500)
        self.assertEqual(controller._vars.bitrate_recovery_time, 10000)
        self.assertIsNone(controller._vars.bitrate_recovery_next_time)

        # timer rearmed
        self.mock_now.return_value = 11000
        self.assertEqual(controller.compute(1507500, 1500000, loss_report(0)), 1507500)
        self.assertEqual(controller._vars.bitrate_recovery_next_time, 18500)

        # constraint decreased again shortly after recovery, back-off grows
        self.mock_now.return_value = 12000
        self.assertEqual(controller.compute(1507500, 1200000, loss_report(0)), 1507500)
        self.assertEqual(controller.recovery_timeout, 15000)
        self.assertIsNone(controller._vars.bitrate_recovery_time)

    def test_halving_rounds_half_up(self):
        controller = self.controller
        controller.compute(1000001, 2000000, loss_report(0))
        self.mock_now.return_value = 1000
        self.assertEqual(controller.compute(1000001, 1500000, loss_report(0)), 500001)

    def test_moderate_loss(self):
        controller = self.controller
        self.assertEqual(controller.compute(2000000, 1000000, loss_report(1)), 2000000)
        self.assertEqual(list(controller._vars.stable_bitrates), [])

        self.mock_now.return_value = 10000
        self.assertEqual(controller.compute(2000000, 1000000, loss_report(1)), 990000)
        self.assertEqual(controller.recovery_timeout, 20000)

    def test_heavy_loss(self):
        controller = self.controller
        controller.compute(2000000, 1000000, loss_report(10))
        self.mock_now.return_value = 10000
        self.assertEqual(controller.compute(2000000, 1000000, loss_report(10)), 2000000)
        self.assertEqual(controller.recovery_timeout, 10000)
        self.assertEqual(controller._vars.bitrate_recovery_next_time, 20000)

    def test_increase_without_overshoot_check(self):
        controller = self.controller
        controller.compute(1000000, 1000000, loss_report(0))
        self.mock_now.return_value = 10000
        self.assertEqual(controller.compute(1000000, 1000000, loss_report(0)), 1050000)

    def test_constraint_below_minimum(self):
        self.assertEqual(self.controller.compute(1000000, 100000), 200000)

    def test_no_constraint(self):
        controller = self.controller
        self.assertEqual(controller.compute(2500000), 2500000)
        self.assertEqual(list(controller._vars.stable_bitrates), [2500000])
        self.assertIsNone(controller._vars.bitrate_recovery_next_time)

    def test_recovery_timeout_bounds(self):
        controller = self.controller
        for i in range(10):
            controller._increase_recovery_timeout()
        self.assertEqual(controller.recovery_timeout, 60000)
        for i in range(20):
            controller._decrease_recovery_timeout()
        self.assertEqual(controller.recovery_timeout, 2500)

    def test_loss_window(self):
        controller = GradeBitrateController(loss_window=2)
        for loss in [10, 0, 0]:
            controller.compute(1000000, None, loss_report(loss))
        self.assertEqual(list(controller._vars.loss_percents), [0, 0])

    def test_steady_bitrate_changes_resolution(self):
        source = ScalableVideoStreamTrack(DummyVideoTrack(), width=640, height=360)
        controller = GradeBitrateController(source=source)
        controller.compute(2000000, 2000000, loss_report(0))
        self.assertEqual(source.settings, {"width": 1280, "height": 720})

    def test_reset(self):
        controller = self.controller
        controller.compute(2000000, 2000000, loss_report(0))
        self.mock_now.return_value = 1000
        controller.compute(2000000, 1500000, loss_report(0))
        controller.reset()
        self.assertIsNone(controller.constraint)
        self.assertEqual(controller.recovery_timeout, 10000)
        self.assertEqual(len(controller._vars.stable_bitrates), 0)
        self.assertIsNone(controller._vars.bitrate_constraint_time)

        self.assertEqual(controller.compute(), 2000000)
        self.assertEqual(controller.compute(2000000, 2000000, loss_report(0)), 2000000)
        self.mock_now.return_value = 2000
        self.assertEqual(controller.compute(2000000, 1500000, loss_report(0)), 1000000)
