"""Logging configuration for savesaver.

Diagnostics go through the standard ``logging`` module and are kept apart from
the progress lines of a backup or restore, which travel through the log relay.
Console records are rendered by rich on stderr; ``savesaver --log-file PATH``
additionally keeps a full DEBUG trace of git invocations and worker errors.

Example:
    ```python
    from savesaver.core.logging import setup_logging

    setup_logging(debug=False, log_file="~/.savesaver/debug.log")
    ```
"""

import logging
import sys
from pathlib import Path
from types import TracebackType
from typing import Optional, Type, Union

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

FILE_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def _console_handler(debug: bool) -> logging.Handler:
    handler = RichHandler(
        console=console,
        show_path=debug,
        enable_link_path=debug,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=debug,
    )
    handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    return handler


def _file_handler(log_file: Union[str, Path], log_format: str) -> logging.Handler:
    log_path = Path(log_file).expanduser()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(log_format))
    return handler


def _log_uncaught(
    exc_type: Type[BaseException],
    exc_value: BaseException,
    exc_traceback: Optional[TracebackType],
) -> None:
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))


def setup_logging(
    debug: bool = False,
    log_file: Optional[Union[str, Path]] = None,
    log_format: str = FILE_FORMAT,
) -> None:
    """Set up logging configuration.

    Handlers installed by an earlier call are closed and replaced.

    Args:
        debug: Show DEBUG records on the console instead of warnings only.
        log_file: Optional diagnostics file; always receives DEBUG records.
        log_format: Format string for file records.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(logging.DEBUG if debug or log_file else logging.WARNING)
    root_logger.addHandler(_console_handler(debug))
    if log_file:
        root_logger.addHandler(_file_handler(log_file, log_format))
        logger.debug("Writing diagnostics to %s", log_file)

    sys.excepthook = _log_uncaught
