"""
GPU Course Setup - Conda Activation Hooks

Conda sources every *.sh file in <prefix>/etc/conda/activate.d when an
environment is activated, and deactivate.d when it is left. The fragments
here are modelled as ordered statements and rendered to POSIX shell (bash,
zsh and dash all source them), then written whole. A rerun regenerates the
files instead of appending, so no block is ever duplicated.

The PYTHONPATH edits follow SearchPath semantics: add if absent on
activation, remove every occurrence on deactivation, and never leave an
empty or dangling entry behind.
"""

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from course_setup.core.constants import CUDA_TARGET_SUBDIR, HOOK_FILENAME

logger = logging.getLogger(__name__)

HEADER = "#!/bin/bash\n# Generated by course-setup. Rewritten on every setup run; do not edit.\n"


@dataclass(frozen=True)
class Export:
    name: str
    value: str
    # Expanded when the hook runs (e.g. ${CONDA_PREFIX}) rather than quoted literally
    expand: bool = False

    def render(self) -> str:
        value = f'"{self.value}"' if self.expand else shlex.quote(self.value)
        return f"export {self.name}={value}"


@dataclass(frozen=True)
class Unset:
    name: str

    def render(self) -> str:
        return f"unset {self.name}"


@dataclass(frozen=True)
class PathPrepend:
    """Put the directory held in entry_var at the front of var, if absent"""
    var: str
    entry_var: str

    def render(self) -> str:
        var, entry = self.var, self.entry_var
        return "\n".join([
            f'case ":${{{var}}}:" in',
            f'    *":${{{entry}}}:"*) ;;',
            f'    *) export {var}="${{{entry}}}${{{var}:+:${{{var}}}}}" ;;',
            "esac",
        ])


@dataclass(frozen=True)
class PathRemove:
    """Drop every entry of var equal to the directory held in entry_var"""
    var: str
    entry_var: str

    def render(self) -> str:
        var, entry = self.var, self.entry_var
        return "\n".join([
            f'if [ -n "${{{entry}}}" ]; then',
            f'    _cs_rest="${{{var}}}:"',
            '    _cs_kept=""',
            '    while [ -n "${_cs_rest}" ]; do',
            '        _cs_entry="${_cs_rest%%:*}"',
            '        _cs_rest="${_cs_rest#*:}"',
            f'        if [ -n "${{_cs_entry}}" ] && [ "${{_cs_entry}}" != "${{{entry}}}" ]; then',
            '            _cs_kept="${_cs_kept:+${_cs_kept}:}${_cs_entry}"',
            "        fi",
            "    done",
            '    if [ -n "${_cs_kept}" ]; then',
            f'        export {var}="${{_cs_kept}}"',
            "    else",
            f"        unset {var}",
            "    fi",
            "    unset _cs_rest _cs_kept _cs_entry",
            "fi",
        ])


@dataclass(frozen=True)
class Block:
    comment: str
    statements: Tuple[object, ...]

    def render(self) -> str:
        lines = [f"# {self.comment}"]
        lines.extend(s.render() for s in self.statements)
        return "\n".join(lines)


@dataclass
class HookFragment:
    """One hook script, as an ordered list of comment-headed blocks"""
    blocks: List[Block] = field(default_factory=list)

    def add(self, comment: str, *statements) -> "HookFragment":
        self.blocks.append(Block(comment, tuple(statements)))
        return self

    def render(self) -> str:
        body = "\n\n".join(block.render() for block in self.blocks)
        return f"{HEADER}\n{body}\n" if body else HEADER


def cuda_path_blocks(activate: HookFragment, deactivate: HookFragment):
    activate.add(
        "CUDA_PATH for CuPy to find CUDA headers",
        Export("CUDA_PATH", f"${{CONDA_PREFIX}}/{CUDA_TARGET_SUBDIR}", expand=True),
    )
    deactivate.add("CUDA_PATH for CuPy", Unset("CUDA_PATH"))


def hopper_hack_blocks(activate: HookFragment, deactivate: HookFragment, hack_dir: Path):
    activate.add(
        "Hopper hack: use CuPy-based compatibility layer for non-Blackwell GPUs",
        Export("CUTILE_HACK_HOPPER_DIR", str(hack_dir)),
        PathPrepend("PYTHONPATH", "CUTILE_HACK_HOPPER_DIR"),
    )
    deactivate.add(
        "Remove hack-hopper from PYTHONPATH",
        PathRemove("PYTHONPATH", "CUTILE_HACK_HOPPER_DIR"),
        Unset("CUTILE_HACK_HOPPER_DIR"),
    )


def build_fragments(hopper_hack_dir: Optional[Path] = None) -> Tuple[HookFragment, HookFragment]:
    """Activation and deactivation fragments for the cuTile environment"""
    activate, deactivate = HookFragment(), HookFragment()
    cuda_path_blocks(activate, deactivate)
    if hopper_hack_dir is not None:
        hopper_hack_blocks(activate, deactivate, hopper_hack_dir)
    return activate, deactivate


def hook_paths(env_prefix: Path, filename: str = HOOK_FILENAME) -> Tuple[Path, Path]:
    base = Path(env_prefix) / "etc" / "conda"
    return base / "activate.d" / filename, base / "deactivate.d" / filename


class HookWriter:
    """Writes rendered fragments into an environment's hook directories."""

    def __init__(self, env_prefix: Path, filename: str = HOOK_FILENAME):
        self.env_prefix = Path(env_prefix)
        self.activate_path, self.deactivate_path = hook_paths(self.env_prefix, filename)

    def write(self, activate: HookFragment, deactivate: HookFragment) -> Tuple[Path, Path]:
        for path, fragment in ((self.activate_path, activate), (self.deactivate_path, deactivate)):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(fragment.render(), encoding="utf-8")
            logger.info(f"Wrote hook {path}")
        return self.activate_path, self.deactivate_path
