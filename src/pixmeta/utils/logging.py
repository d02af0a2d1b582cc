"""Rich logging utilities for pixmeta."""

import logging

from rich.console import Console
from rich.logging import RichHandler


# Global console instance
_console: Console | None = None

LOGGER_NAME = "pixmeta"


def get_console() -> Console:
    """Get or create the global Rich console."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a ``pixmeta`` logger rendered through the Rich console.

    The package root logger gets a single RichHandler the first time it is
    requested; child loggers propagate to it.

    Args:
        name: Dotted module name. Names outside the package are nested
            under the ``pixmeta`` root.

    Returns:
        Configured logger.
    """
    root = logging.getLogger(LOGGER_NAME)
    if not root.handlers:
        from pixmeta.config.settings import get_settings

        handler = RichHandler(console=get_console(), show_path=False, markup=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
        root.setLevel(get_settings().log_level.upper())

    if not name or name == LOGGER_NAME:
        return root
    if not name.startswith(f"{LOGGER_NAME}."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def log_success(message: str) -> None:
    """Log a success message."""
    get_console().print(f"[bold green]✓[/] {message}")


def log_error(message: str) -> None:
    """Log an error message."""
    get_console().print(f"[bold red]✗[/] {message}")


def log_warning(message: str) -> None:
    """Log a warning message."""
    get_console().print(f"[bold yellow]⚠[/] {message}")


def log_info(message: str) -> None:
    """Log an info message."""
    get_console().print(f"[bold blue]ℹ[/] {message}")
