"""
Command-line entry points for the track setups.

    setup-cutile [-y] [-h]
    setup-triton [-y] [-h]
"""

import argparse
import subprocess
import sys
from typing import List, Optional

from course_setup.core.tracks import TRACKS
from course_setup.core.types import SetupError, UserAborted
from course_setup.utils.config_manager import load_config
from course_setup.utils.installer_core import SetupInstaller
from course_setup.utils.logger import get_project_logger


class StrictArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with status 1 instead of argparse's 2. No abbreviated options."""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("allow_abbrev", False)
        super().__init__(*args, **kwargs)

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_setup_parser(track_key: str) -> StrictArgumentParser:
    track = TRACKS[track_key]
    parser = StrictArgumentParser(
        prog=f"setup-{track.key}",
        description=f"Set up the conda environment for the {track.title} tutorials"
    )
    parser.add_argument("-y", "--yes", action="store_true",
                        help="Non-interactive mode, answer yes to all prompts")
    return parser


def run_setup(track_key: str, argv: Optional[List[str]] = None) -> int:
    parser = build_setup_parser(track_key)
    args, unknown = parser.parse_known_args(argv)
    if unknown:
        print(f"Unknown option: {unknown[0]}")
        return 1

    config = load_config(auto_yes=args.yes)
    logger = get_project_logger("course_setup", config.log_file)
    logger.info(f"Starting {track_key} setup (env={config.env_name}, auto_yes={config.auto_yes})")

    installer = SetupInstaller(TRACKS[track_key], config)
    try:
        installer.run()
    except UserAborted:
        print(">>> Aborted by user.")
        return 1
    except subprocess.CalledProcessError as e:
        cmd = " ".join(str(part) for part in e.cmd) if isinstance(e.cmd, (list, tuple)) else e.cmd
        print(f">>> ERROR: command failed with exit status {e.returncode}: {cmd}")
        logger.error(f"Command failed: {cmd} (exit {e.returncode})")
        return e.returncode or 1
    except SetupError as e:
        print(f">>> ERROR: {e}")
        logger.error(str(e))
        return e.exit_code
    except OSError as e:
        print(f">>> ERROR: {e}")
        logger.error(f"OS error: {e}")
        return 1
    except KeyboardInterrupt:
        installer.cancel()
        print("\n>>> Interrupted.")
        return 130
    return 0


def setup_cutile(argv: Optional[List[str]] = None) -> int:
    return run_setup("cutile", argv)


def setup_triton(argv: Optional[List[str]] = None) -> int:
    return run_setup("triton", argv)


def cutile_main():
    sys.exit(setup_cutile())


def triton_main():
    sys.exit(setup_triton())


def tunnel_main():
    from course_setup.utils.tunnel import main
    sys.exit(main())


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="GPU course environment setup")
    parser.add_argument("track", choices=sorted(TRACKS))
    known, rest = parser.parse_known_args()
    sys.exit(run_setup(known.track, rest))
