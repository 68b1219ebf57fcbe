"""
GPU Course Setup - Tutorial Tracks

Each track is a declarative plan: banner text, the install steps for a
given GPU, which packages to validate, and whether the environment needs
CUDA hooks. The installer pipeline executes the plan.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from course_setup.core.constants import TORCH_NIGHTLY_INDEX, TORCH_STABLE_INDEX
from course_setup.core.types import (
    CondaPackageInstall,
    GPUInfo,
    InstallStep,
    PipInstall,
    SetupConfig,
)


@dataclass(frozen=True)
class Track:
    key: str
    title: str
    intro: Tuple[str, ...]
    non_blackwell_label: str
    build_steps: Callable[[SetupConfig, GPUInfo], List[InstallStep]]
    # Logical name -> candidate module names, first importable wins
    package_checks: Dict[str, Tuple[str, ...]]
    summary: Callable[[SetupConfig, GPUInfo], List[str]]
    configures_cuda_hooks: bool = False
    supports_hopper_hack: bool = False


def cutile_steps(config: SetupConfig, gpu: GPUInfo) -> List[InstallStep]:
    return [
        InstallStep(
            prompt="Install CUDA Toolkit via conda?",
            banner=">>> Installing CUDA Toolkit from nvidia channel",
            actions=(CondaPackageInstall(("nvidia::cuda",)),),
        ),
        InstallStep(
            prompt="Install Python packages (cupy, cuda-python, cuda-tile)?",
            banner=">>> Installing CUDA Python stack (CUDA 13)",
            actions=(
                PipInstall((f"cupy-{config.cuda_tag}",)),
                PipInstall(("cuda-python",)),
                PipInstall(("cuda-tile",)),
                PipInstall(("numpy",)),
            ),
        ),
    ]


def cutile_summary(config: SetupConfig, gpu: GPUInfo) -> List[str]:
    lines = [
        "Installed key packages:",
        "  - nvidia::cuda (via conda)",
        f"  - cupy-{config.cuda_tag}",
        "  - cuda-python",
        "  - cuda-tile",
        "  - numpy",
        "",
        f"GPU: {gpu.display_name}",
    ]
    if gpu.is_blackwell:
        lines.append("Architecture: Blackwell (native support)")
    else:
        lines.append("Architecture: Non-Blackwell (CuPy-based compatibility layer)")
        lines.append("  PYTHONPATH includes hack-hopper on activation")
    return lines


def triton_steps(config: SetupConfig, gpu: GPUInfo) -> List[InstallStep]:
    if gpu.is_blackwell:
        torch = PipInstall(("torch",), index_url=TORCH_NIGHTLY_INDEX, pre=True)
    else:
        torch = PipInstall(("torch",), index_url=TORCH_STABLE_INDEX)
    return [
        InstallStep(
            prompt="Install NumPy?",
            banner=">>> Installing NumPy",
            actions=(PipInstall(("numpy",)),),
        ),
        InstallStep(
            prompt="Install PyTorch?",
            banner=">>> Installing PyTorch (required by Triton)",
            actions=(torch,),
        ),
        InstallStep(
            prompt="Install Triton?",
            banner=">>> Installing Triton",
            actions=(PipInstall(("triton",)),),
        ),
    ]


def triton_summary(config: SetupConfig, gpu: GPUInfo) -> List[str]:
    lines = [
        "Installed key packages:",
        "  - triton",
        "  - numpy",
    ]
    if gpu.is_blackwell:
        lines.append("  - torch (nightly, cu128 for Blackwell)")
    else:
        lines.append("  - torch (stable, cu124)")
    return lines


CUTILE = Track(
    key="cutile",
    title="cuTile",
    intro=(
        "    - Installs CUDA Toolkit, CuPy, cuda-python, cuda-tile",
        "    - Adds CUDA_PATH for CuPy headers",
        "    - Optional Hopper hack for non-Blackwell GPUs",
    ),
    non_blackwell_label="Non-Blackwell (will use Hopper hack)",
    build_steps=cutile_steps,
    package_checks={
        "cutile": ("cuda_tile", "cutile"),
        "cupy": ("cupy",),
        "numpy": ("numpy",),
    },
    summary=cutile_summary,
    configures_cuda_hooks=True,
    supports_hopper_hack=True,
)

TRITON = Track(
    key="triton",
    title="Triton",
    intro=(
        "    - Installs NumPy, PyTorch, Triton",
        "    - Uses PyTorch nightly for Blackwell (sm_120)",
    ),
    non_blackwell_label="Non-Blackwell",
    build_steps=triton_steps,
    package_checks={
        "triton": ("triton",),
        "numpy": ("numpy",),
        "torch": ("torch",),
    },
    summary=triton_summary,
)

TRACKS = {track.key: track for track in (CUTILE, TRITON)}
