"""
Unit tests for the confirmation gate.
"""

import sys
import unittest
from pathlib import Path
from unittest.mock import MagicMock

sys.path.insert(0, str(Path(__file__).parent.parent))

from course_setup.core.types import UserAborted
from course_setup.utils.prompts import ConfirmationGate


class TestConfirmationGate(unittest.TestCase):

    def setUp(self):
        self.output = []

    def test_auto_yes_never_reads_input(self):
        input_func = MagicMock(side_effect=AssertionError("input read"))
        gate = ConfirmationGate(auto_yes=True, input_func=input_func, output=self.output.append)

        gate.ask("Create new conda environment?")

        input_func.assert_not_called()
        self.assertEqual(self.output, [">>> Create new conda environment? [Y/n] y (auto)"])

    def test_decline_answers_abort(self):
        for answer in ["n", "N", "no", "No", "NO", "  n  "]:
            with self.subTest(answer=answer):
                gate = ConfirmationGate(input_func=lambda prompt, a=answer: a)
                with self.assertRaises(UserAborted):
                    gate.ask()

    def test_other_answers_proceed(self):
        for answer in ["", "y", "Y", "yes", "nope", "sure"]:
            with self.subTest(answer=answer):
                gate = ConfirmationGate(input_func=lambda prompt, a=answer: a)
                gate.ask()

    def test_prompt_text(self):
        input_func = MagicMock(return_value="")
        ConfirmationGate(input_func=input_func).ask("Apply Hopper hack?")
        input_func.assert_called_once_with(">>> Apply Hopper hack? [Y/n] ")

    def test_end_of_input_aborts(self):
        gate = ConfirmationGate(input_func=MagicMock(side_effect=EOFError))
        with self.assertRaises(UserAborted):
            gate.ask()


if __name__ == '__main__':
    unittest.main()
