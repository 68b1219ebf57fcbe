"""
Post-install package validation.

Runs an import check inside the target environment's interpreter and
reports OK/FAIL per logical package. Nothing here raises: validation is
diagnostic output only.
"""

import importlib
import json
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from course_setup.core.types import PackageCheck

logger = logging.getLogger(__name__)


def check_any(module_names: Sequence[str]) -> Tuple[bool, str]:
    """Import the first importable module of module_names"""
    last_exc = None
    for module_name in module_names:
        try:
            mod = importlib.import_module(module_name)
            version = getattr(mod, "__version__", "unknown")
            return True, f"{module_name} {version}"
        except Exception as exc:
            last_exc = exc
    return False, str(last_exc) if last_exc else "not found"


# Same logic as check_any, run by the environment's python from a temp file
VALIDATION_SCRIPT = '''
import importlib, json, sys

def check_any(module_names):
    last_exc = None
    for module_name in module_names:
        try:
            mod = importlib.import_module(module_name)
            version = getattr(mod, "__version__", "unknown")
            return [True, f"{module_name} {version}"]
        except Exception as exc:
            last_exc = exc
    return [False, str(last_exc) if last_exc else "not found"]

checks = json.loads(sys.argv[1])
print(json.dumps({name: check_any(modules) for name, modules in checks.items()}))
'''


def parse_results(stdout: str, checks: Dict[str, Sequence[str]]) -> List[PackageCheck]:
    # Imports may print to stdout; the report is the last line
    lines = [line for line in stdout.strip().splitlines() if line.strip()]
    report = json.loads(lines[-1]) if lines else {}
    if not isinstance(report, dict):
        raise ValueError(f"expected a JSON object, got {type(report).__name__}")
    results = []
    for name in checks:
        ok, detail = report.get(name, [False, "not checked"])
        results.append(PackageCheck(name, bool(ok), str(detail)))
    return results


class PackageValidator:
    """Imports each logical package inside the environment."""

    def __init__(self, log: Optional[Callable[[str], None]] = None):
        self.log = log or print

    def run_checks(self,
                   python_cmd: Sequence[str],
                   checks: Dict[str, Sequence[str]],
                   env: Optional[Dict[str, str]] = None) -> List[PackageCheck]:
        payload = json.dumps({name: list(modules) for name, modules in checks.items()})
        # A file rather than stdin: `conda run` does not reliably forward stdin
        with tempfile.NamedTemporaryFile("w", suffix=".py", delete=False) as script:
            script.write(VALIDATION_SCRIPT)
        try:
            result = subprocess.run(
                [*python_cmd, script.name, payload],
                capture_output=True,
                text=True,
                env=env,
            )
        except OSError as e:
            logger.warning(f"Could not start environment python: {e}")
            return [PackageCheck(name, False, str(e)) for name in checks]
        finally:
            Path(script.name).unlink(missing_ok=True)

        if result.returncode != 0:
            error = result.stderr.strip().splitlines()[-1:] or [f"exit status {result.returncode}"]
            logger.warning(f"Validation script failed: {result.stderr.strip()}")
            return [PackageCheck(name, False, error[0]) for name in checks]

        try:
            return parse_results(result.stdout, checks)
        except (ValueError, TypeError) as e:
            logger.warning(f"Unreadable validation output: {e}")
            return [PackageCheck(name, False, "unreadable validation output") for name in checks]

    def report(self, results: List[PackageCheck]) -> None:
        self.log("    Package status:")
        for check in results:
            self.log(f"    - {check.name}: {check.status} ({check.detail})")

    def validate(self,
                 python_cmd: Sequence[str],
                 checks: Dict[str, Sequence[str]],
                 env: Optional[Dict[str, str]] = None) -> List[PackageCheck]:
        results = self.run_checks(python_cmd, checks, env)
        self.report(results)
        return results
