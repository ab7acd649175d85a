# mindmap_engine/display_utils.py
import os
import sys


class Colors:
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKCYAN = '\033[96m'
    OKGREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'


# https://no-color.org/
USE_COLORS = "NO_COLOR" not in os.environ

_LEVEL_STYLES = {
    # level: (prefix, color)
    "INFO": ("[INFO] ", Colors.OKBLUE),
    "SUCCESS": ("[OK] ", Colors.OKGREEN),
    "WARNING": ("[WARN] ", Colors.WARNING),
    "ERROR": ("[ERROR] ", Colors.FAIL),
    "ACTION": ("> ", Colors.OKCYAN),
    "USAGE": ("", Colors.BOLD),
    "HEADER": ("", Colors.HEADER + Colors.BOLD),
    "COMMAND_NAME": ("", Colors.OKCYAN),
    "RESULT": ("", Colors.OKGREEN),
    "DETAIL": ("", Colors.DIM),
    "NONE": ("", ""),
}


def formatted_print(message: str, level: str = "INFO", use_prefix: bool = True, indent: int = 0) -> None:
    """Prints `message` with a level prefix and color. Errors go to stderr."""
    prefix, color = _LEVEL_STYLES.get(level, ("", ""))
    stream = sys.stderr if level == "ERROR" else sys.stdout
    text = ("  " * indent) + (prefix if use_prefix else "") + str(message)
    if USE_COLORS and color and stream.isatty():
        text = f"{color}{text}{Colors.ENDC}"
    print(text, file=stream)
