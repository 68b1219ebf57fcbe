"""
GPU Course Setup - Configuration Loading

Builds the immutable SetupConfig from layered sources:
- Built-in defaults
- .course_setup files (JSON or YAML) in the working directory or home
- .env file in the working directory (python-dotenv)
- Process environment variables
- CLI flags
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml
from dotenv import dotenv_values

from course_setup.core.constants import (
    CONFIG_FILENAME,
    DEFAULT_CUDA_TAG,
    DEFAULT_ENV_NAME,
    DEFAULT_PYTHON_VERSION,
    ENV_FILENAME,
    MINICONDA_DIR_NAME,
    MINICONDA_URL,
    SYSTEM_CONDA_DIR,
)
from course_setup.core.types import SetupConfig

logger = logging.getLogger(__name__)

# Environment variable -> SetupConfig field
ENV_OVERRIDES = {
    "COURSE_ENV_NAME": "env_name",
    "COURSE_PYTHON_VERSION": "python_version",
    "COURSE_CUDA_TAG": "cuda_tag",
    "COURSE_PROJECT_ROOT": "project_root",
    "MINICONDA_URL": "miniconda_url",
    "MINICONDA_INSTALL_DIR": "miniconda_install_dir",
    "EXTERNAL_LOGIN_HOST": "external_login_host",
    "COURSE_SETUP_LOG": "log_file",
}

PATH_FIELDS = ("miniconda_install_dir", "system_conda_dir", "project_root", "log_file")

# Path fields that cannot be left empty
REQUIRED_PATHS = ("miniconda_install_dir", "system_conda_dir", "project_root")


class ConfigManager:
    """Resolves configuration values from files, .env and the environment."""

    def __init__(self,
                 cwd: Optional[Path] = None,
                 home: Optional[Path] = None,
                 environ: Optional[Mapping[str, str]] = None):
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.home = Path(home) if home else Path.home()
        self.environ = environ if environ is not None else os.environ

    def defaults(self) -> Dict[str, object]:
        return {
            "env_name": DEFAULT_ENV_NAME,
            "python_version": DEFAULT_PYTHON_VERSION,
            "cuda_tag": DEFAULT_CUDA_TAG,
            "miniconda_url": MINICONDA_URL,
            "miniconda_install_dir": str(self.home / MINICONDA_DIR_NAME),
            "system_conda_dir": SYSTEM_CONDA_DIR,
            "project_root": str(self.cwd),
            "external_login_host": "",
            "log_file": None,
        }

    def find_config_files(self) -> List[Path]:
        """Config files in increasing precedence (home first, then cwd)"""
        locations = [self.home / CONFIG_FILENAME, self.cwd / CONFIG_FILENAME]
        seen = []
        for path in locations:
            if path.is_file() and path.resolve() not in [p.resolve() for p in seen]:
                seen.append(path)
        return seen

    def load_config_file(self, config_path: Path) -> Dict[str, object]:
        """Load a config file (supports JSON and YAML)"""
        try:
            content = config_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable config file {config_path}: {e}")
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError as e:
                logger.warning(f"Skipping malformed config file {config_path}: {e}")
                return {}

        if not isinstance(data, dict):
            logger.warning(f"Skipping config file {config_path}: expected a mapping")
            return {}
        return data

    def load_env_file(self) -> Dict[str, str]:
        env_file = self.cwd / ENV_FILENAME
        if not env_file.is_file():
            return {}
        return {k: v for k, v in dotenv_values(env_file).items() if v is not None}

    def resolve(self) -> Dict[str, object]:
        """Merge all sources into a flat dict of SetupConfig fields"""
        values = self.defaults()

        for config_path in self.find_config_files():
            data = self.load_config_file(config_path)
            for key, value in data.items():
                if key in values:
                    values[key] = value
                else:
                    logger.warning(f"Unknown key '{key}' in {config_path}")

        # .env first, real environment wins
        for source in (self.load_env_file(), self.environ):
            for var, field_name in ENV_OVERRIDES.items():
                value = source.get(var)
                if value:
                    values[field_name] = value

        return values

    def build(self, auto_yes: bool = False) -> SetupConfig:
        values = self.resolve()
        defaults = self.defaults()
        for name in REQUIRED_PATHS:
            if not values.get(name):
                logger.warning(f"Empty value for '{name}', using default {defaults[name]}")
                values[name] = defaults[name]
        for name in PATH_FIELDS:
            if values.get(name):
                values[name] = Path(str(values[name])).expanduser()
            else:
                values[name] = None
        return SetupConfig(
            env_name=str(values["env_name"]),
            python_version=str(values["python_version"]),
            cuda_tag=str(values["cuda_tag"]),
            miniconda_url=str(values["miniconda_url"]),
            miniconda_install_dir=values["miniconda_install_dir"],
            system_conda_dir=values["system_conda_dir"],
            project_root=values["project_root"].resolve(),
            auto_yes=auto_yes,
            external_login_host=str(values["external_login_host"] or ""),
            log_file=values["log_file"],
        )


def load_config(auto_yes: bool = False) -> SetupConfig:
    """Build the configuration for the current process"""
    return ConfigManager().build(auto_yes=auto_yes)
