# Constants for GPU Course Setup

# Environment defaults
DEFAULT_ENV_NAME = "mls"
DEFAULT_PYTHON_VERSION = "3.11"
DEFAULT_CUDA_TAG = "cuda13x"

# Miniconda bootstrap
MINICONDA_URL = "https://repo.anaconda.com/miniconda/Miniconda3-latest-Linux-x86_64.sh"
MINICONDA_DIR_NAME = "miniconda3"
SYSTEM_CONDA_DIR = "/opt/conda"
MINICONDA_INSTALLER_NAME = "miniconda_installer.sh"
CONDA_INIT_SHELLS = ("bash", "zsh")

# Channels whose Terms of Service are accepted after bootstrap
TOS_CHANNELS = (
    "https://repo.anaconda.com/pkgs/main",
    "https://repo.anaconda.com/pkgs/r",
)
CREATE_CHANNEL = "conda-forge"

# GPU probe
GPU_QUERY_CMD = ["nvidia-smi", "--query-gpu=name", "--format=csv,noheader"]
BLACKWELL_PATTERN = r"(B100|B200|GB200|RTX 50|Blackwell)"

# PyTorch wheel indexes for the Triton track
TORCH_NIGHTLY_INDEX = "https://download.pytorch.org/whl/nightly/cu128"
TORCH_STABLE_INDEX = "https://download.pytorch.org/whl/cu124"

# Activation hooks
HOOK_FILENAME = "cutile_env.sh"
CUDA_TARGET_SUBDIR = "targets/x86_64-linux"
HOPPER_HACK_SUBDIR = "utils/hack-hopper"

# Configuration
CONFIG_FILENAME = ".course_setup"
ENV_FILENAME = ".env"
LOG_DIR = "~/.course_setup/logs"
LOG_FILENAME = "course_setup.log"

# Slurm
SQUEUE_CMD = ["squeue", "--me", "--state=RUNNING", "-h", "-o", "%N"]

# Pip output lines worth echoing during installs
PIP_STATUS_PREFIXES = ("Collecting", "Installing", "Successfully", "Removing", "Saved")
