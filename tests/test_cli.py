"""
Tests for the setup command-line entry points.
"""

import io
import subprocess
import sys
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).parent.parent))

from course_setup.core.types import InstallerDownloadError, UserAborted
from course_setup.utils.cli_client import run_setup


class TestRunSetup(unittest.TestCase):

    def setUp(self):
        self.installer = patch('course_setup.utils.cli_client.SetupInstaller')
        self.mock_installer = self.installer.start()
        self.logger = patch('course_setup.utils.cli_client.get_project_logger')
        self.logger.start()

    def tearDown(self):
        self.logger.stop()
        self.installer.stop()

    def run_cli(self, argv, track="cutile"):
        out = io.StringIO()
        with redirect_stdout(out):
            code = run_setup(track, argv)
        return code, out.getvalue()

    def test_unknown_option(self):
        code, out = self.run_cli(["--force"])

        self.assertEqual(code, 1)
        self.assertIn("Unknown option: --force", out)
        self.mock_installer.assert_not_called()

    def test_abbreviated_option_is_unknown(self):
        for arg in ("--ye", "--y"):
            code, out = self.run_cli([arg])

            self.assertEqual(code, 1)
            self.assertIn(f"Unknown option: {arg}", out)
        self.mock_installer.assert_not_called()

    def test_help_exits_zero(self):
        with redirect_stdout(io.StringIO()) as out:
            with self.assertRaises(SystemExit) as cm:
                run_setup("triton", ["--help"])
        self.assertEqual(cm.exception.code, 0)
        self.assertIn("--yes", out.getvalue())

    def test_yes_flag_reaches_config(self):
        code, _ = self.run_cli(["-y"])

        self.assertEqual(code, 0)
        config = self.mock_installer.call_args.args[1]
        self.assertTrue(config.auto_yes)

    def test_user_abort(self):
        self.mock_installer.return_value.run.side_effect = UserAborted("Aborted by user.")

        code, out = self.run_cli([])

        self.assertEqual(code, 1)
        self.assertIn(">>> Aborted by user.", out)

    def test_failing_command_exit_status(self):
        self.mock_installer.return_value.run.side_effect = subprocess.CalledProcessError(
            3, ["pip", "install", "cuda-tile"])

        code, out = self.run_cli(["--yes"])

        self.assertEqual(code, 3)
        self.assertIn("pip install cuda-tile", out)

    def test_download_failure(self):
        self.mock_installer.return_value.run.side_effect = InstallerDownloadError("offline")

        code, out = self.run_cli(["--yes"])

        self.assertEqual(code, 1)
        self.assertIn(">>> ERROR: offline", out)

    def test_os_error_is_reported(self):
        self.mock_installer.return_value.run.side_effect = PermissionError(13, "Permission denied", "/envs/mls/etc")

        code, out = self.run_cli(["--yes"])

        self.assertEqual(code, 1)
        self.assertIn(">>> ERROR: ", out)
        self.assertIn("Permission denied", out)


if __name__ == '__main__':
    unittest.main()
