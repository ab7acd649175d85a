# mindmap_engine/__main__.py
import logging
import sys

from .cli import main_cli
from .interactive_cli import interactive_session


def main() -> None:
    """`mindmap` alone (or `mindmap shell [FILE]`) opens the interactive shell; anything else is a one-shot command."""
    args = sys.argv[1:]
    if not args or args[0] == "shell":
        logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
        interactive_session(args[1] if len(args) > 1 else None)
    else:
        main_cli(args)


if __name__ == "__main__":
    main()
