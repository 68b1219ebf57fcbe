"""
GPU Course Setup - Conda Management

Locates (or bootstraps) a conda installation and creates or reuses the
course environment:
- Multi-strategy waterfall: search path, ~/miniconda3, /opt/conda
- Miniconda download + silent install with shell integration
- Best-effort channel Terms of Service acceptance
- Environment lookup by exact name from `conda env list`
- Running commands inside the environment without a parent-shell activate
"""

import logging
import os
import re
import shutil
import subprocess
import tempfile
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Sequence

from tqdm import tqdm

from course_setup.core.constants import (
    CONDA_INIT_SHELLS,
    CREATE_CHANNEL,
    MINICONDA_INSTALLER_NAME,
    TOS_CHANNELS,
)
from course_setup.core.search_path import SearchPath
from course_setup.core.types import (
    CommandSpec,
    CondaInstallation,
    CondaSource,
    EnvironmentNotFound,
    InstallerDownloadError,
    SetupConfig,
)
from course_setup.utils.command_runner import CommandRunner, pip_filter
from course_setup.utils.prompts import ConfirmationGate

logger = logging.getLogger(__name__)


# =========================
# Location strategies
# =========================

class LocationStrategy(ABC):
    """Base class for conda location strategies"""

    @abstractmethod
    def locate(self) -> Optional[CondaInstallation]:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass


class SearchPathStrategy(LocationStrategy):
    """conda already on PATH"""

    def get_name(self) -> str:
        return "Search Path"

    def locate(self) -> Optional[CondaInstallation]:
        found = shutil.which("conda")
        if not found:
            return None
        return CondaInstallation(Path(found), CondaSource.PATH)


class DirectoryStrategy(LocationStrategy):
    """conda in a known install directory"""

    def __init__(self, install_dir: Path, source: CondaSource):
        self.install_dir = Path(install_dir)
        self.source = source

    def get_name(self) -> str:
        return f"Install Directory ({self.install_dir})"

    def locate(self) -> Optional[CondaInstallation]:
        candidate = self.install_dir / "bin" / "conda"
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return CondaInstallation(candidate, self.source)
        return None


def default_strategies(config: SetupConfig) -> List[LocationStrategy]:
    return [
        SearchPathStrategy(),
        DirectoryStrategy(config.miniconda_install_dir, CondaSource.USER_HOME),
        DirectoryStrategy(config.system_conda_dir, CondaSource.SYSTEM),
    ]


def find_env_prefix(env_list_output: str, env_name: str) -> Optional[Path]:
    """
    Find the prefix of env_name in `conda env list` output.

    Only a line starting with the exact name followed by whitespace matches,
    so `mls` never matches `mls2`. The prefix is the rest of the line after
    the name and the `*` marker of an active environment, spaces included.
    """
    pattern = re.compile(rf"^{re.escape(env_name)}\s")
    for line in env_list_output.splitlines():
        if pattern.match(line):
            rest = line[len(env_name):].strip()
            if rest.startswith("*"):
                rest = rest[1:].strip()
            if rest:
                return Path(rest)
    return None


# =========================
# Environment activation
# =========================

class EnvironmentActivation(ABC):
    """How commands are run inside the course environment"""

    def __init__(self, env_name: str, prefix: Path):
        self.env_name = env_name
        self.prefix = Path(prefix)

    @abstractmethod
    def command(self, argv: Sequence[str]) -> CommandSpec:
        pass

    def python(self, *args: str) -> CommandSpec:
        return self.command(["python", *args])

    def pip(self, *args: str) -> CommandSpec:
        return self.python("-m", "pip", *args)


class PrefixActivation(EnvironmentActivation):
    """
    Non-interactive activation: run with <prefix>/bin first on PATH and
    CONDA_PREFIX set, without involving conda itself.
    """

    def __init__(self, env_name: str, prefix: Path, base_env: Optional[Mapping[str, str]] = None):
        super().__init__(env_name, prefix)
        base = dict(base_env if base_env is not None else os.environ)
        path = SearchPath.parse(base.get("PATH")).remove(str(self.prefix / "bin"))
        base["PATH"] = path.prepend(str(self.prefix / "bin")).render()
        base["CONDA_PREFIX"] = str(self.prefix)
        self.env = base

    def command(self, argv: Sequence[str]) -> CommandSpec:
        argv = list(argv)
        if argv and argv[0] == "python":
            argv[0] = str(self.prefix / "bin" / "python")
        return CommandSpec(tuple(argv), self.env)


class CondaRunActivation(EnvironmentActivation):
    """Interactive activation: conda's own machinery via `conda run`"""

    def __init__(self, conda: CondaInstallation, env_name: str, prefix: Path):
        super().__init__(env_name, prefix)
        self.conda = conda

    def command(self, argv: Sequence[str]) -> CommandSpec:
        return CommandSpec((str(self.conda.executable), "run", "--no-capture-output",
                            "-n", self.env_name, *argv))


# =========================
# Manager
# =========================

class CondaManager:
    """Bootstrap and environment operations against one conda installation."""

    def __init__(self,
                 config: SetupConfig,
                 runner: CommandRunner,
                 gate: ConfirmationGate,
                 log: Optional[Callable[[str], None]] = None,
                 strategies: Optional[List[LocationStrategy]] = None):
        self.config = config
        self.runner = runner
        self.gate = gate
        self.log = log or print
        self.strategies = strategies if strategies is not None else default_strategies(config)

    # ---- locate / bootstrap ----

    def locate(self) -> Optional[CondaInstallation]:
        """First hit of the strategy waterfall"""
        for strategy in self.strategies:
            found = strategy.locate()
            if found:
                logger.info(f"conda located via {strategy.get_name()}: {found.executable}")
                return found
        return None

    def version(self, conda: CondaInstallation) -> str:
        try:
            result = self.runner.capture([conda.executable, "--version"], check=False, timeout=30)
        except (OSError, subprocess.TimeoutExpired):
            return "unknown version"
        return result.stdout.strip() or result.stderr.strip() or "unknown version"

    def ensure(self) -> CondaInstallation:
        """Return an existing installation, or install Miniconda after confirmation"""
        conda = self.locate()
        if conda is not None:
            if conda.source is CondaSource.PATH:
                self.log(f">>> conda found: {self.version(conda)}")
            else:
                self.log(f">>> conda found at {conda.executable}")
            return conda

        self.log(">>> conda not found.")
        self.gate.ask(f"Install Miniconda to {self.config.miniconda_install_dir}?")
        return self.install_miniconda()

    def download_installer(self, url: str, destination: Path) -> Path:
        """Download the Miniconda installer, showing a progress bar"""
        bar = tqdm(unit="B", unit_scale=True, desc="Downloading Miniconda", leave=False)

        def report_hook(block_num, block_size, total_size):
            if total_size > 0:
                bar.total = total_size
            bar.update(block_num * block_size - bar.n)

        try:
            urllib.request.urlretrieve(url, str(destination), reporthook=report_hook)
        except (urllib.error.URLError, OSError) as e:
            raise InstallerDownloadError(f"Failed to download Miniconda from {url}: {e}") from e
        finally:
            bar.close()
        return destination

    def install_miniconda(self) -> CondaInstallation:
        install_dir = self.config.miniconda_install_dir
        installer = Path(tempfile.gettempdir()) / MINICONDA_INSTALLER_NAME

        try:
            self.download_installer(self.config.miniconda_url, installer)
            # -b: batch mode, -p: prefix. A failed run leaves install_dir as-is.
            self.runner.run(["bash", installer, "-b", "-p", install_dir])
        finally:
            installer.unlink(missing_ok=True)

        conda = CondaInstallation(install_dir / "bin" / "conda", CondaSource.INSTALLED)
        for shell in CONDA_INIT_SHELLS:
            self.runner.run([conda.executable, "init", shell])

        self.log(f">>> Miniconda installed at {install_dir}")
        self.log(">>> Please restart your shell or run: source ~/.bashrc (or ~/.zshrc)")
        return conda

    def accept_terms_of_service(self, conda: CondaInstallation) -> None:
        """Accept channel ToS. Older conda has no `tos` subcommand; failures are ignored."""
        self.log(">>> Accepting conda channel Terms of Service")
        for channel in TOS_CHANNELS:
            try:
                result = self.runner.capture(
                    [conda.executable, "tos", "accept", "--override-channels", "--channel", channel],
                    check=False,
                )
            except OSError as e:
                logger.debug(f"ToS acceptance for {channel} failed: {e}")
                continue
            if result.returncode != 0:
                logger.debug(f"ToS acceptance for {channel} exited {result.returncode}: {result.stderr.strip()}")

    # ---- environments ----

    def list_environments(self, conda: CondaInstallation) -> str:
        return self.runner.capture([conda.executable, "env", "list"]).stdout

    def find_environment(self, conda: CondaInstallation) -> Optional[Path]:
        return find_env_prefix(self.list_environments(conda), self.config.env_name)

    def create_or_reuse(self, conda: CondaInstallation) -> bool:
        """
        Reuse the configured environment if it exists, otherwise create it.
        Returns True if a new environment was created.
        """
        name = self.config.env_name
        if self.find_environment(conda) is not None:
            self.log(f">>> Found existing conda environment: {name}")
            self.gate.ask("Reuse existing environment?")
            return False

        self.log(f">>> Will create conda environment: {name} (Python {self.config.python_version})")
        self.gate.ask("Create new conda environment?")
        self.runner.run([
            conda.executable, "create", "-y", "-n", name,
            f"python={self.config.python_version}",
            "--override-channels", "-c", CREATE_CHANNEL,
        ])
        return True

    def activate(self, conda: CondaInstallation) -> EnvironmentActivation:
        """
        Resolve the environment prefix and pick how to run commands in it.
        Auto-confirm runs use the prefix directly; interactive runs go
        through `conda run`.
        """
        prefix = self.find_environment(conda)
        if prefix is None:
            raise EnvironmentNotFound(f"conda environment '{self.config.env_name}' not found")

        if self.config.auto_yes:
            activation = PrefixActivation(self.config.env_name, prefix)
            self.log(f">>> Activated environment: {self.config.env_name}")
        else:
            activation = CondaRunActivation(conda, self.config.env_name, prefix)
            self.log(f">>> Using environment: {self.config.env_name} ({prefix})")
        return activation

    # ---- installs ----

    def conda_install(self, conda: CondaInstallation, packages: Sequence[str]) -> None:
        self.runner.run([conda.executable, "install", "-y", "-n", self.config.env_name, *packages])

    def pip_install(self, activation: EnvironmentActivation, pip_args: Sequence[str]) -> None:
        spec = activation.pip(*pip_args)
        self.runner.run(spec.argv, env=spec.env, output_filter=pip_filter)
