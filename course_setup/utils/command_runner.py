import logging
import subprocess
from typing import Callable, Mapping, Optional, Sequence

import psutil

from course_setup.core.constants import PIP_STATUS_PREFIXES
from course_setup.core.types import OperationCancelled

logger = logging.getLogger(__name__)


def pip_filter(line: str) -> Optional[str]:
    """Reduce pip output noise"""
    # Keep high-level status updates
    if line.startswith(PIP_STATUS_PREFIXES):
        return f"  > {line}"
    # Show errors/warnings
    if "error" in line.lower() or "warning" in line.lower():
        return f"  ! {line}"
    return None


class CommandRunner:
    """
    Runs external commands, streaming their output through a log callback.

    A non-zero exit raises subprocess.CalledProcessError; callers decide
    whether that is fatal.
    """

    def __init__(self, log: Optional[Callable[[str], None]] = None):
        self.log_func = log if log else print
        self.current_process = None
        self._cancelled = False

    def log(self, msg: str):
        self.log_func(msg)
        logger.debug(msg)

    def cancel(self):
        """Cancel the running command and everything it spawned."""
        self._cancelled = True
        self.log("Cancellation requested...")
        if self.current_process:
            try:
                parent = psutil.Process(self.current_process.pid)
                for child in parent.children(recursive=True):
                    child.kill()
                parent.kill()
            except psutil.NoSuchProcess:
                pass

    def _check_cancelled(self):
        if self._cancelled:
            raise OperationCancelled("Operation cancelled by user.")

    def run(self,
            cmd: Sequence[str],
            env: Optional[Mapping[str, str]] = None,
            cwd=None,
            output_filter: Optional[Callable[[str], Optional[str]]] = None) -> None:
        self._check_cancelled()
        cmd = [str(part) for part in cmd]
        logger.info(f"Running: {' '.join(cmd)}")
        try:
            self.current_process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                cwd=str(cwd) if cwd else None,
                env=dict(env) if env is not None else None,
                bufsize=1,
            )

            for line in self.current_process.stdout:
                if self._cancelled:
                    self.current_process.terminate()
                    break

                line = line.rstrip()
                if not line:
                    continue

                if output_filter:
                    filtered = output_filter(line)
                    if filtered:
                        self.log(filtered)
                    else:
                        logger.debug(line)
                else:
                    self.log(line)

            self.current_process.wait()
            self._check_cancelled()

            if self.current_process.returncode != 0:
                raise subprocess.CalledProcessError(self.current_process.returncode, cmd)
        except OperationCancelled:
            raise
        except (OSError, subprocess.CalledProcessError) as e:
            if not self._cancelled:
                self.log(f"Command failed: {e}")
            raise
        finally:
            self.current_process = None

    def capture(self,
                cmd: Sequence[str],
                env: Optional[Mapping[str, str]] = None,
                check: bool = True,
                timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        """Run a command quietly and return its output"""
        self._check_cancelled()
        cmd = [str(part) for part in cmd]
        logger.debug(f"Capturing: {' '.join(cmd)}")
        return subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            env=dict(env) if env is not None else None,
            check=check,
            timeout=timeout,
        )
