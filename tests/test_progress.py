import threading
import unittest
from unittest import mock

from palette_colorize.progress import ProgressReporter


class _FakeSink:
    def __init__(self) -> None:
        self.lines = []

    def __call__(self, line: str, final: bool) -> None:
        self.lines.append((line, final))


class ProgressReporterTest(unittest.TestCase):
    def test_concurrent_increments_are_exact(self) -> None:
        sink = _FakeSink()
        with mock.patch("palette_colorize.progress.log"):
            reporter = ProgressReporter(8 * 2500, "counting", sink=sink)

        def worker() -> None:
            for _ in range(2500):
                reporter.increment()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(reporter.count, 20000)
        # One visible line per whole percent at most.
        self.assertLessEqual(len(sink.lines), 101)
        self.assertTrue(all(not final for _line, final in sink.lines))

    def test_row_sized_increments(self) -> None:
        reporter = ProgressReporter(30, "rows", enabled=False)
        for _ in range(3):
            reporter.increment(10)
        self.assertEqual(reporter.count, 30)

    def test_finish_prints_final_line_once(self) -> None:
        sink = _FakeSink()
        with mock.patch("palette_colorize.progress.log") as log:
            reporter = ProgressReporter(4, "pass", sink=sink)
            reporter.increment(4)
            reporter.finish("pass complete")
            reporter.finish("pass complete")

        finals = [line for line, final in sink.lines if final]
        self.assertEqual(len(finals), 1)
        self.assertIn("100%", finals[0])
        self.assertTrue(reporter.finished)
        log.assert_any_call("pass")
        log.assert_any_call("pass complete")
        self.assertEqual(log.call_count, 2)

    def test_disabled_reporter_is_silent(self) -> None:
        sink = _FakeSink()
        with mock.patch("palette_colorize.progress.log") as log:
            reporter = ProgressReporter(10, "quiet", enabled=False, sink=sink)
            reporter.increment(10)
            reporter.finish("done")
        self.assertEqual(sink.lines, [])
        log.assert_not_called()
        self.assertEqual(reporter.count, 10)


if __name__ == "__main__":
    unittest.main()
