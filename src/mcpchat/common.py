"""Console output helpers shared by the chat loop and the entry point."""

import os
import sys
from enum import Enum
from typing import TextIO


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"


_RESET = "\033[0m"


def use_color(stream: TextIO) -> bool:
    """Color only real terminals, and never when ``NO_COLOR`` is set."""
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def colored_print(text: str, color: AnsiColors, file: TextIO | None = None) -> None:
    """
    Print one line, colored when *file* is a terminal.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        file: Target stream, standard output by default
    """
    stream = file if file is not None else sys.stdout
    if use_color(stream):
        text = f"{color.value}{text}{_RESET}"
    print(text, file=stream)


def print_error(message: str) -> None:
    """Report *message* on standard error, so answers on stdout stay clean."""
    colored_print(message, AnsiColors.RED, file=sys.stderr)
