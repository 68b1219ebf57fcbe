"""
Tests for conda activation hook rendering and writing.

The shell tests source the generated fragments with bash and check the
resulting environment, so they exercise exactly what conda will run.
"""

import os
import shutil
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from course_setup.core.hooks import HookWriter, build_fragments, hook_paths
from course_setup.core.search_path import SearchPath

SHIM = "/course/utils/hack-hopper"
UNSET = "<unset>"


class TestFragmentText(unittest.TestCase):

    def test_cuda_path_only(self):
        activate, deactivate = build_fragments()
        text = activate.render()

        self.assertTrue(text.startswith("#!/bin/bash\n"))
        self.assertIn('export CUDA_PATH="${CONDA_PREFIX}/targets/x86_64-linux"', text)
        self.assertNotIn("CUTILE_HACK_HOPPER_DIR", text)
        self.assertIn("unset CUDA_PATH", deactivate.render())

    def test_hopper_hack_blocks(self):
        activate, deactivate = build_fragments(Path(SHIM))

        self.assertIn(f"export CUTILE_HACK_HOPPER_DIR={SHIM}", activate.render())
        self.assertIn("PYTHONPATH", activate.render())
        self.assertIn("unset CUTILE_HACK_HOPPER_DIR", deactivate.render())

    def test_paths_with_spaces_are_quoted(self):
        activate, _ = build_fragments(Path("/my course/utils/hack-hopper"))
        self.assertIn("export CUTILE_HACK_HOPPER_DIR='/my course/utils/hack-hopper'", activate.render())


class TestHookWriter(unittest.TestCase):

    def setUp(self):
        self.prefix = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.prefix, ignore_errors=True)

    def test_writes_both_hook_dirs(self):
        activate_path, deactivate_path = HookWriter(self.prefix).write(*build_fragments())

        self.assertEqual(activate_path, self.prefix / "etc" / "conda" / "activate.d" / "cutile_env.sh")
        self.assertEqual(deactivate_path, self.prefix / "etc" / "conda" / "deactivate.d" / "cutile_env.sh")
        self.assertTrue(activate_path.is_file())
        self.assertTrue(deactivate_path.is_file())

    def test_rerun_does_not_duplicate(self):
        writer = HookWriter(self.prefix)
        writer.write(*build_fragments(Path(SHIM)))
        first = writer.activate_path.read_text()
        writer.write(*build_fragments(Path(SHIM)))

        text = writer.activate_path.read_text()
        self.assertEqual(text, first)
        self.assertEqual(text.count("export CUTILE_HACK_HOPPER_DIR"), 1)

    def test_rerun_without_hack_drops_block(self):
        writer = HookWriter(self.prefix)
        writer.write(*build_fragments(Path(SHIM)))
        writer.write(*build_fragments())

        self.assertNotIn("CUTILE_HACK_HOPPER_DIR", writer.activate_path.read_text())
        self.assertNotIn("CUTILE_HACK_HOPPER_DIR", writer.deactivate_path.read_text())

    def test_hook_paths(self):
        activate, deactivate = hook_paths(Path("/envs/mls"))
        self.assertEqual(str(activate), "/envs/mls/etc/conda/activate.d/cutile_env.sh")
        self.assertEqual(str(deactivate), "/envs/mls/etc/conda/deactivate.d/cutile_env.sh")


@unittest.skipIf(shutil.which("bash") is None, "bash not available")
class TestFragmentsInShell(unittest.TestCase):

    def setUp(self):
        self.prefix = Path(tempfile.mkdtemp())
        self.writer = HookWriter(self.prefix)
        self.writer.write(*build_fragments(Path(SHIM)))

    def tearDown(self):
        shutil.rmtree(self.prefix, ignore_errors=True)

    def source(self, scripts, env, show=("PYTHONPATH",)):
        """Source scripts in order with bash and return the final values of show"""
        body = "".join(f'. "{script}"\n' for script in scripts)
        body += "".join(f'printf "%s\\n" "${{{name}-{UNSET}}}"\n' for name in show)
        clean_env = {"PATH": os.environ.get("PATH", "/usr/bin:/bin")}
        clean_env.update(env)
        result = subprocess.run(["bash", "-c", body], capture_output=True, text=True,
                                env=clean_env, check=True)
        return result.stdout.splitlines()

    def deactivate(self, pythonpath):
        env = {"CUTILE_HACK_HOPPER_DIR": SHIM}
        if pythonpath is not None:
            env["PYTHONPATH"] = pythonpath
        return self.source([self.writer.deactivate_path], env,
                           show=("PYTHONPATH", "CUTILE_HACK_HOPPER_DIR"))

    def test_deactivate_removes_shim_in_every_position(self):
        cases = {
            f"{SHIM}:/x": "/x",
            f"/x:{SHIM}": "/x",
            f"/x:{SHIM}:/y": "/x:/y",
            f"{SHIM}:/x:{SHIM}": "/x",
            f"{SHIM}-old:/x": f"{SHIM}-old:/x",
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                pythonpath, hack_dir = self.deactivate(value)
                self.assertEqual(pythonpath, expected)
                self.assertEqual(pythonpath, SearchPath.parse(value).remove(SHIM).render())
                self.assertEqual(hack_dir, UNSET)

    def test_deactivate_sole_entry_unsets(self):
        pythonpath, _ = self.deactivate(SHIM)
        self.assertEqual(pythonpath, UNSET)

    def test_activate_adds_shim_once(self):
        env = {"CONDA_PREFIX": "/envs/mls", "PYTHONPATH": "/x"}
        values = self.source([self.writer.activate_path, self.writer.activate_path], env,
                             show=("PYTHONPATH", "CUDA_PATH"))
        self.assertEqual(values, [f"{SHIM}:/x", "/envs/mls/targets/x86_64-linux"])

    def test_activate_with_empty_pythonpath(self):
        values = self.source([self.writer.activate_path], {"CONDA_PREFIX": "/envs/mls"})
        self.assertEqual(values, [SHIM])

    def test_round_trip_restores_pythonpath(self):
        env = {"CONDA_PREFIX": "/envs/mls", "PYTHONPATH": "/x:/y"}
        values = self.source([self.writer.activate_path, self.writer.deactivate_path], env,
                             show=("PYTHONPATH", "CUDA_PATH", "CUTILE_HACK_HOPPER_DIR"))
        self.assertEqual(values, ["/x:/y", UNSET, UNSET])


if __name__ == '__main__':
    unittest.main()
