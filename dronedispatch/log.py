"""Console logging setup for the runner.

Library modules only create loggers; handlers are installed here, once, by
whoever owns the process.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: int | str = logging.INFO, console: Console | None = None) -> None:
    """Route ``dronedispatch`` log records through a rich console handler."""
    handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger = logging.getLogger("dronedispatch")
    logger.handlers[:] = [handler]
    logger.setLevel(level)
    logger.propagate = False
