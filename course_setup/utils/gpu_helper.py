"""
GPU Course Setup - GPU Detection
Detects the NVIDIA GPU model and classifies its architecture family.
"""

import logging
import re
import shutil
import subprocess
from typing import Callable, Optional

from course_setup.core.constants import BLACKWELL_PATTERN, GPU_QUERY_CMD
from course_setup.core.types import GPUArchitecture, GPUInfo

logger = logging.getLogger(__name__)

BLACKWELL_RE = re.compile(BLACKWELL_PATTERN, re.IGNORECASE)


def classify_gpu_name(name: str) -> GPUArchitecture:
    """Blackwell if the device name matches a known Blackwell model"""
    if name and BLACKWELL_RE.search(name):
        return GPUArchitecture.BLACKWELL
    return GPUArchitecture.OTHER


def query_gpu_name() -> Optional[str]:
    """
    Ask nvidia-smi for the first device name.
    Returns None if nvidia-smi fails or hangs.
    """
    try:
        result = subprocess.run(
            GPU_QUERY_CMD,
            capture_output=True,
            text=True,
            timeout=10
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning(f"nvidia-smi query failed: {e}")
        return None

    if result.returncode != 0:
        logger.warning(f"nvidia-smi exited with {result.returncode}: {result.stderr.strip()}")
        return None

    # Example: "NVIDIA H100 80GB HBM3"
    lines = result.stdout.strip().splitlines()
    return lines[0].strip() if lines else ""


def detect_gpu(log: Optional[Callable[[str], None]] = None,
               other_label: str = "Non-Blackwell") -> GPUInfo:
    """
    Detect and classify the first NVIDIA GPU.

    Absence of nvidia-smi is not an error: the GPU is reported as unknown
    and treated as non-Blackwell.
    """
    log = log or print
    log(">>> Detecting GPU architecture...")

    if shutil.which(GPU_QUERY_CMD[0]) is None:
        log("    WARNING: nvidia-smi not found, cannot detect GPU")
        return GPUInfo(name="", architecture=GPUArchitecture.OTHER, detected=False)

    name = query_gpu_name()
    if name is None:
        log("    WARNING: nvidia-smi query failed, cannot detect GPU")
        return GPUInfo(name="", architecture=GPUArchitecture.OTHER, detected=False)

    log(f"    GPU detected: {name}")
    architecture = classify_gpu_name(name)
    if architecture is GPUArchitecture.BLACKWELL:
        log("    Architecture: Blackwell (CC 10.x)")
    else:
        log(f"    Architecture: {other_label}")

    return GPUInfo(name=name, architecture=architecture)
