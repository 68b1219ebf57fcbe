"""
Tests for the streaming command runner.
"""

import subprocess
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from course_setup.core.types import OperationCancelled
from course_setup.utils.command_runner import CommandRunner, pip_filter


class TestPipFilter(unittest.TestCase):

    def test_keeps_status_lines(self):
        self.assertEqual(pip_filter("Collecting numpy"), "  > Collecting numpy")
        self.assertEqual(pip_filter("Successfully installed numpy-2.1.0"),
                         "  > Successfully installed numpy-2.1.0")

    def test_flags_problems(self):
        self.assertEqual(pip_filter("ERROR: No matching distribution"), "  ! ERROR: No matching distribution")

    def test_drops_noise(self):
        self.assertIsNone(pip_filter("  Downloading numpy-2.1.0.whl (16.3 MB)"))


class TestCommandRunner(unittest.TestCase):

    def setUp(self):
        self.lines = []
        self.runner = CommandRunner(self.lines.append)

    def test_streams_output(self):
        self.runner.run([sys.executable, "-c", "print('one'); print(); print('two')"])
        self.assertEqual(self.lines, ["one", "two"])

    def test_filter_applies(self):
        self.runner.run([sys.executable, "-c", "print('Collecting x'); print('noise')"],
                        output_filter=pip_filter)
        self.assertEqual(self.lines, ["  > Collecting x"])

    def test_env_is_passed(self):
        self.runner.run([sys.executable, "-c", "import os; print(os.environ['COURSE_TEST'])"],
                        env={"COURSE_TEST": "hello", "PATH": "/usr/bin:/bin"})
        self.assertEqual(self.lines, ["hello"])

    def test_failure_raises(self):
        with self.assertRaises(subprocess.CalledProcessError) as cm:
            self.runner.run([sys.executable, "-c", "raise SystemExit(4)"])
        self.assertEqual(cm.exception.returncode, 4)

    def test_missing_executable_raises(self):
        with self.assertRaises(FileNotFoundError):
            self.runner.run(["/nonexistent/course-setup-tool"])

    def test_cancelled_runner_refuses_new_commands(self):
        self.runner.cancel()
        with self.assertRaises(OperationCancelled):
            self.runner.run([sys.executable, "-c", "print('never')"])
        self.assertNotIn("never", self.lines)

    def test_capture(self):
        result = self.runner.capture([sys.executable, "-c", "print('captured')"])
        self.assertEqual(result.stdout.strip(), "captured")
        self.assertEqual(self.lines, [])


if __name__ == '__main__':
    unittest.main()
