"""
Interactive yes/no checkpoints used before every side-effecting step.
"""

import logging
from typing import Callable, Optional

from course_setup.core.types import UserAborted

logger = logging.getLogger(__name__)

DECLINE_ANSWERS = ("n", "no")


class ConfirmationGate:
    """
    Asks the user to confirm a step. Declining aborts the whole run.

    There is no rollback: stages confirmed earlier keep their effects.
    """

    def __init__(self,
                 auto_yes: bool = False,
                 input_func: Optional[Callable[[str], str]] = None,
                 output: Optional[Callable[[str], None]] = None):
        self.auto_yes = auto_yes
        self.input_func = input_func or input
        self.output = output or print

    def ask(self, prompt: str = "Continue?") -> None:
        if self.auto_yes:
            self.output(f">>> {prompt} [Y/n] y (auto)")
            logger.debug(f"Auto-confirmed: {prompt}")
            return

        try:
            answer = self.input_func(f">>> {prompt} [Y/n] ")
        except EOFError:
            logger.debug(f"No input available for: {prompt}")
            raise UserAborted("Aborted by user.")

        if answer.strip().lower() in DECLINE_ANSWERS:
            logger.info(f"Declined: {prompt}")
            raise UserAborted("Aborted by user.")

        logger.debug(f"Confirmed: {prompt}")
