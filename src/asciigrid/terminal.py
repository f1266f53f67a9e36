import os
import sys

ESC = "\033"
CLEAR_SCREEN = f"{ESC}[2J{ESC}[H"
RESET = f"{ESC}[0m"


def foreground(r: int, g: int, b: int) -> str:
    """24-bit ANSI foreground colour escape."""
    return f"{ESC}[38;2;{r};{g};{b}m"


def get_terminal_size() -> tuple[int, int]:
    """Return (columns, rows) of the terminal, or (80, 24) if not a tty."""
    if not sys.stdout.isatty():
        return (80, 24)
    size = os.get_terminal_size()
    return (size.columns, size.lines)
