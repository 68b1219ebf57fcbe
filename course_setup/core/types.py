from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from course_setup.core.constants import HOPPER_HACK_SUBDIR


class SetupError(Exception):
    """Base class for setup failures that end the run with a message."""
    exit_code = 1


class UserAborted(SetupError):
    pass


class UsageError(SetupError):
    pass


class InstallerDownloadError(SetupError):
    pass


class NoRunningJobError(SetupError):
    pass


class OperationCancelled(SetupError):
    pass


class EnvironmentNotFound(SetupError):
    pass


class GPUArchitecture(Enum):
    """Architecture families the setup distinguishes"""
    BLACKWELL = "blackwell"
    OTHER = "other"


class CondaSource(Enum):
    """Where the conda executable was found"""
    PATH = "search_path"
    USER_HOME = "user_home"
    SYSTEM = "system"
    INSTALLED = "installed"


@dataclass(frozen=True)
class SetupConfig:
    """Invocation configuration. Built once by ConfigManager, never mutated."""
    env_name: str
    python_version: str
    cuda_tag: str
    miniconda_url: str
    miniconda_install_dir: Path
    system_conda_dir: Path
    project_root: Path
    auto_yes: bool = False
    external_login_host: str = ""
    log_file: Optional[Path] = None

    @property
    def hopper_hack_dir(self) -> Path:
        return self.project_root / HOPPER_HACK_SUBDIR


@dataclass(frozen=True)
class GPUInfo:
    """Result of the GPU probe"""
    name: str
    architecture: GPUArchitecture
    detected: bool = True

    @property
    def is_blackwell(self) -> bool:
        return self.architecture is GPUArchitecture.BLACKWELL

    @property
    def display_name(self) -> str:
        return self.name or "unknown"


@dataclass(frozen=True)
class CondaInstallation:
    """A resolved conda installation"""
    executable: Path
    source: CondaSource

    @property
    def root(self) -> Path:
        # <root>/bin/conda
        return self.executable.parent.parent


@dataclass(frozen=True)
class PackageCheck:
    name: str
    ok: bool
    detail: str

    @property
    def status(self) -> str:
        return "OK" if self.ok else "FAIL"


@dataclass(frozen=True)
class CommandSpec:
    """A command plus the environment variables to run it with"""
    argv: Tuple[str, ...]
    env: Optional[Dict[str, str]] = None

    @property
    def display(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True)
class PipInstall:
    """One `pip install` invocation"""
    packages: Tuple[str, ...]
    index_url: Optional[str] = None
    pre: bool = False

    def args(self) -> List[str]:
        args = ["install"]
        if self.pre:
            args.append("--pre")
        args.extend(self.packages)
        if self.index_url:
            args.extend(["--index-url", self.index_url])
        return args


@dataclass(frozen=True)
class CondaPackageInstall:
    """One `conda install` invocation into the target environment"""
    packages: Tuple[str, ...]


@dataclass(frozen=True)
class InstallStep:
    """A gated group of installs"""
    prompt: str
    banner: str
    actions: Tuple[object, ...] = field(default_factory=tuple)
