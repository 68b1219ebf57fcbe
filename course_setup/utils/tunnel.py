"""
Port-forward helper for reaching a Slurm compute node.

Usage:
    show-tunnel <PORT>

Finds the node of your first RUNNING job and prints the `ssh -L` command to
run on your own machine. Nothing is connected from here.

Exit codes:
    0 - Command printed
    1 - Missing/invalid port, or no running job
"""

import getpass
import logging
import os
import socket
import subprocess
import sys
from dataclasses import dataclass
from typing import List, Optional

from course_setup.core.constants import SQUEUE_CMD
from course_setup.core.types import NoRunningJobError, UsageError
from course_setup.utils.cli_client import StrictArgumentParser
from course_setup.utils.config_manager import load_config
from course_setup.utils.logger import get_project_logger

logger = logging.getLogger(__name__)

RULE = "-" * 66


class Colors:
    GREEN = '\033[0;32m'
    CYAN = '\033[0;36m'
    YELLOW = '\033[1;33m'
    RED = '\033[0;31m'
    RESET = '\033[0m'


def paint(text: str, color: str, enabled: bool) -> str:
    return f"{color}{text}{Colors.RESET}" if enabled else text


@dataclass(frozen=True)
class TunnelInfo:
    port: int
    node: str
    user: str
    login_host: str

    @property
    def ssh_command(self) -> str:
        return f"ssh -N -f -L {self.port}:{self.node}:{self.port} {self.user}@{self.login_host}"

    @property
    def local_url(self) -> str:
        return f"http://localhost:{self.port}"


def parse_port(value: Optional[str]) -> int:
    if not value:
        raise UsageError("Missing Port Number!")
    try:
        port = int(value)
    except ValueError:
        raise UsageError(f"Invalid port number: {value}")
    if not 1 <= port <= 65535:
        raise UsageError(f"Port out of range (1-65535): {value}")
    return port


def find_running_node() -> str:
    """Node name of the current user's first RUNNING job"""
    try:
        result = subprocess.run(SQUEUE_CMD, capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"squeue unavailable: {e}")
        raise NoRunningJobError("No RUNNING job found.")

    if result.returncode != 0:
        logger.warning(f"squeue exited with {result.returncode}: {result.stderr.strip()}")

    for line in result.stdout.splitlines():
        if line.strip():
            return line.strip()
    raise NoRunningJobError("No RUNNING job found.")


def resolve_login_host(override: str = "") -> str:
    """Configured public login host, else this machine's FQDN"""
    if override:
        return override
    try:
        result = subprocess.run(["hostname", "-f"], capture_output=True, text=True, timeout=10)
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"hostname -f failed: {e}")
    return socket.getfqdn()


def current_user() -> str:
    return os.environ.get("USER") or getpass.getuser()


def render(info: TunnelInfo, color: bool = False) -> List[str]:
    return [
        RULE,
        f"Job Status:   {paint('RUNNING', Colors.GREEN, color)}",
        f"Compute Node: {paint(info.node, Colors.CYAN, color)}",
        f"Target Port:  {paint(str(info.port), Colors.YELLOW, color)}",
        RULE,
        "Copy the command below and run it on your LOCAL PC terminal:",
        "",
        paint(info.ssh_command, Colors.CYAN, color),
        "",
        RULE,
        f"After connecting, visit: {info.local_url}",
    ]


def build_parser() -> StrictArgumentParser:
    parser = StrictArgumentParser(
        prog="show-tunnel",
        description="Print the SSH port-forward command for your running Slurm job"
    )
    parser.add_argument("port", nargs="?", help="Port your service listens on (e.g. 8888)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    color = sys.stdout.isatty()
    prog = parser.prog

    try:
        port = parse_port(args.port)
    except UsageError as e:
        print(paint(f"Error: {e}", Colors.RED, color))
        print(f"Usage:   {paint(f'{prog} <PORT>', Colors.CYAN, color)}")
        print(f"Example: {paint(f'{prog} 8888', Colors.CYAN, color)}")
        return e.exit_code

    config = load_config()
    get_project_logger("course_setup", config.log_file)

    try:
        node = find_running_node()
    except NoRunningJobError as e:
        print(paint(f"Error: {e}", Colors.RED, color))
        print("Please ensure you have started a job via 'sbatch' or 'srun'.")
        return e.exit_code

    info = TunnelInfo(
        port=port,
        node=node,
        user=current_user(),
        login_host=resolve_login_host(config.external_login_host),
    )
    logger.info(f"Tunnel command: {info.ssh_command}")
    for line in render(info, color):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
