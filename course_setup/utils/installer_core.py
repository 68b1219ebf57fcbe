import dataclasses
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from course_setup.core.hooks import HookWriter, build_fragments
from course_setup.core.tracks import Track
from course_setup.core.types import (
    CondaInstallation,
    CondaPackageInstall,
    GPUInfo,
    PackageCheck,
    PipInstall,
    SetupConfig,
)
from course_setup.core.validator import PackageValidator
from course_setup.utils.command_runner import CommandRunner
from course_setup.utils.conda_manager import CondaManager, EnvironmentActivation
from course_setup.utils.gpu_helper import detect_gpu
from course_setup.utils.prompts import ConfirmationGate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetupContext:
    """Everything the stages have established so far. Each stage returns a new one."""
    config: SetupConfig
    track: Track
    gpu: Optional[GPUInfo] = None
    conda: Optional[CondaInstallation] = None
    activation: Optional[EnvironmentActivation] = None
    created_env: bool = False
    hook_files: Tuple = ()
    hopper_hack: bool = False
    validation: Tuple[PackageCheck, ...] = ()


class Stage:
    """One step of the setup. Stages check current state before acting."""
    name = "stage"
    progress = 0

    def __init__(self, installer: "SetupInstaller"):
        self.installer = installer

    @property
    def log(self):
        return self.installer.log

    def run(self, ctx: SetupContext) -> SetupContext:
        raise NotImplementedError


class ProbeStage(Stage):
    name = "Detecting GPU"
    progress = 5

    def run(self, ctx):
        gpu = detect_gpu(self.log, other_label=ctx.track.non_blackwell_label)
        self.log("")
        self.installer.gate.ask(f"Proceed with {ctx.track.title} setup?")
        return dataclasses.replace(ctx, gpu=gpu)


class BootstrapStage(Stage):
    name = "Locating conda"
    progress = 15

    def run(self, ctx):
        conda = self.installer.conda_manager.ensure()
        self.installer.conda_manager.accept_terms_of_service(conda)
        return dataclasses.replace(ctx, conda=conda)


class EnvironmentStage(Stage):
    name = "Preparing environment"
    progress = 30

    def run(self, ctx):
        manager = self.installer.conda_manager
        created = manager.create_or_reuse(ctx.conda)
        activation = manager.activate(ctx.conda)
        return dataclasses.replace(ctx, created_env=created, activation=activation)


class InstallStage(Stage):
    name = "Installing packages"
    progress = 45

    def run(self, ctx):
        manager = self.installer.conda_manager
        for step in ctx.track.build_steps(ctx.config, ctx.gpu):
            self.log(step.banner)
            self.installer.gate.ask(step.prompt)
            for action in step.actions:
                if isinstance(action, CondaPackageInstall):
                    manager.conda_install(ctx.conda, action.packages)
                elif isinstance(action, PipInstall):
                    manager.pip_install(ctx.activation, action.args())
                else:
                    raise TypeError(f"Unknown install action: {action!r}")
        return ctx


class HookStage(Stage):
    name = "Configuring activation hooks"
    progress = 80

    def run(self, ctx):
        if not ctx.track.configures_cuda_hooks:
            return ctx

        self.log(">>> Configuring CUDA environment variables...")

        hack_dir = None
        if ctx.track.supports_hopper_hack and not ctx.gpu.is_blackwell:
            self.log("")
            self.log(">>> Non-Blackwell GPU detected. Applying Hopper compatibility hack...")
            self.log("    This uses a CuPy-based compatibility layer instead of tileiras compiler.")
            self.installer.gate.ask("Apply Hopper hack?")
            hack_dir = ctx.config.hopper_hack_dir

        activate, deactivate = build_fragments(hack_dir)
        files = HookWriter(ctx.activation.prefix).write(activate, deactivate)

        self.log("    CUDA_PATH configured for CuPy.")
        if hack_dir is not None:
            self.log("    Hopper hack installed to conda environment activation scripts.")
            self.log(f"    hack-hopper path: {hack_dir}")
            if not hack_dir.is_dir():
                logger.warning(f"hack-hopper directory does not exist yet: {hack_dir}")

        return dataclasses.replace(ctx, hook_files=files, hopper_hack=hack_dir is not None)


class ValidateStage(Stage):
    name = "Validating packages"
    progress = 95

    def run(self, ctx):
        self.log(f">>> Validating key packages ({ctx.track.title})")
        python = ctx.activation.python()
        results = self.installer.validator.validate(python.argv, ctx.track.package_checks, python.env)
        return dataclasses.replace(ctx, validation=tuple(results))


STAGES = (ProbeStage, BootstrapStage, EnvironmentStage, InstallStage, HookStage, ValidateStage)


class SetupInstaller:
    """
    Headless setup for one tutorial track.

    Runs probe -> bootstrap -> create-env -> install -> configure-hooks ->
    validate. A declined prompt raises UserAborted and a failing command
    raises CalledProcessError; nothing already done is rolled back, and a
    rerun picks up from the current state (existing environment reused,
    hook files regenerated).
    """

    def __init__(self,
                 track: Track,
                 config: SetupConfig,
                 log: Optional[Callable[[str], None]] = None,
                 input_func: Optional[Callable[[str], str]] = None,
                 runner: Optional[CommandRunner] = None,
                 conda_manager: Optional[CondaManager] = None,
                 validator: Optional[PackageValidator] = None):
        self.track = track
        self.config = config
        self.log_func = log if log else print
        self.gate = ConfirmationGate(config.auto_yes, input_func=input_func, output=self.log)
        self.runner = runner or CommandRunner(self.log)
        self.conda_manager = conda_manager or CondaManager(config, self.runner, self.gate, self.log)
        self.validator = validator or PackageValidator(self.log)
        self.stages: List[Stage] = [stage(self) for stage in STAGES]

    def log(self, msg: str):
        self.log_func(msg)
        if msg:
            logger.debug(msg)

    def cancel(self):
        self.runner.cancel()

    def intro(self):
        self.log(f">>> {self.track.title} setup:")
        for line in self.track.intro:
            self.log(line)
        self.log("")

    def summary(self, ctx: SetupContext):
        self.log("")
        self.log("=============================================")
        self.log(f" {self.track.title} environment is ready.")
        self.log("=============================================")
        self.log("")
        self.log("Activate with:")
        self.log(f"  conda activate {self.config.env_name}")
        self.log("")
        for line in self.track.summary(self.config, ctx.gpu):
            self.log(line)
        self.log("")

    def run(self) -> SetupContext:
        ctx = SetupContext(config=self.config, track=self.track)
        self.intro()
        for stage in self.stages:
            logger.info(f"[{stage.progress}%] {stage.name}")
            ctx = stage.run(ctx)
        logger.info("[100%] Setup complete.")
        self.summary(ctx)
        return ctx
