import logging
import logging.config

from rich.console import Console
from rich.logging import RichHandler


def rich_handler(show_path: bool = False) -> RichHandler:
    """Log handler writing to stderr, so stdout stays clean for --json."""
    return RichHandler(console=Console(stderr=True), show_path=show_path, rich_tracebacks=True)


def logging_config(verbose: bool = False) -> dict:
    level = logging.DEBUG if verbose else logging.INFO
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": "%(message)s", "datefmt": "[%X]"},
        },
        "handlers": {
            "default": {
                "()": "agentmail.log.rich_handler",
                "formatter": "standard",
                "show_path": verbose,
            },
        },
        "loggers": {
            "agentmail": {"handlers": ["default"], "level": level, "propagate": False},
        },
    }


def setup_logging(verbose: bool = False) -> None:
    """Configure the agentmail logger for CLI use."""
    logging.config.dictConfig(logging_config(verbose))
    logging.captureWarnings(True)
