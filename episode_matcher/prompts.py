"""Line-oriented operator prompts on the rich console."""

from typing import Callable, Optional

from rich.console import Console

console = Console()

# Signature shared by every prompt reader: show the prompt, return the raw line
LineReader = Callable[[str], str]


class PromptAborted(Exception):
    """Raised when the operator ends input or interrupts a prompt."""


def read_line(prompt: str, reader: Optional[LineReader] = None) -> str:
    """
    Read one line from the operator.

    Raises:
        PromptAborted: On end-of-input or Ctrl-C
    """
    try:
        if reader is None:
            return console.input(prompt, markup=False)
        return reader(prompt)
    except EOFError as e:
        raise PromptAborted("End of input") from e
    except KeyboardInterrupt as e:
        raise PromptAborted("Interrupted") from e


def confirm(question: str, reader: Optional[LineReader] = None) -> bool:
    """Ask a yes/no question; anything but y/yes is a no, including end of input."""
    try:
        answer = read_line(f"{question} [y/N] ", reader)
    except PromptAborted:
        return False
    return answer.strip().lower() in ('y', 'yes')
