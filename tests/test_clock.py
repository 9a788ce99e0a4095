import threading
import unittest

from jobsim.clock import VirtualClock, WallClock, build_clock


class ClockTest(unittest.TestCase):
    def test_virtual_clock_tracks_each_thread(self) -> None:
        clock = VirtualClock()
        reached: dict[str, float] = {}

        def advance(name: str, total: float) -> None:
            for _ in range(int(total)):
                clock.sleep(1.0)
            reached[name] = clock.local_now()

        threads = [
            threading.Thread(target=advance, args=("a", 3)),
            threading.Thread(target=advance, args=("b", 7)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(reached, {"a": 3.0, "b": 7.0})
        self.assertEqual(clock.now(), 7.0)
        self.assertEqual(clock.local_now(), 0.0)

    def test_negative_sleep_rejected(self) -> None:
        with self.assertRaises(ValueError):
            VirtualClock().sleep(-0.1)

    def test_wall_clock_with_zero_scale_does_not_block(self) -> None:
        clock = WallClock(time_scale=0.0)
        for _ in range(100):
            clock.sleep(0.1)
        self.assertAlmostEqual(clock.now(), 10.0, places=6)

    def test_build_clock(self) -> None:
        self.assertIsInstance(build_clock("wall", 0.5), WallClock)
        self.assertNotIsInstance(build_clock("virtual"), WallClock)
        with self.assertRaises(ValueError):
            build_clock("simgrid")


if __name__ == "__main__":
    unittest.main()
