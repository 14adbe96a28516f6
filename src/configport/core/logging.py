"""Logging configuration for configport.

Console output goes through rich on stderr and shows warnings unless
``--debug`` is given. An optional log file receives everything at DEBUG
level in a plain format.

Example:
    ```python
    from configport.core.logging import setup_logging

    setup_logging(debug=True, log_file="~/.configport/configport.log")

    import logging
    logger = logging.getLogger(__name__)
    logger.info("Exported %d files", 12)
    ```
"""

import logging
import sys
from pathlib import Path
from types import TracebackType
from typing import Optional, Type, Union

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# stderr keeps package listings and summaries on stdout clean
console = Console(stderr=True)


def setup_logging(debug: bool = False, log_file: Optional[Union[str, Path]] = None) -> None:
    """Set up logging configuration.

    Args:
        debug: Whether to show debug messages on the console (default: False).
        log_file: Optional path to log file. ``~`` is expanded and parent
                 directories are created.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug or log_file else logging.INFO)
    root_logger.handlers.clear()

    console_handler = RichHandler(
        console=console,
        show_path=debug,
        enable_link_path=debug,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=debug,
    )
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        root_logger.addHandler(file_handler)

    logger = logging.getLogger(__name__)
    logger.debug("Logging initialized (debug=%s, log_file=%s)", debug, log_file)

    def handle_exception(
        exc_type: Type[BaseException],
        exc_value: BaseException,
        exc_traceback: Optional[TracebackType],
    ) -> None:
        """Log uncaught exceptions before the interpreter exits."""
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = handle_exception
