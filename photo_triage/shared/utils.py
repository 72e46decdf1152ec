"""Logging setup and display helpers."""

import logging


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, set logging level to DEBUG
        quiet: If True, set logging level to WARNING
    """
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def format_percent(fraction: float) -> str:
    """
    Format a 0-1 fraction as a percentage string.

    Args:
        fraction: Value between 0 and 1 (clamped)

    Returns:
        String like "42%"
    """
    fraction = min(max(fraction, 0.0), 1.0)
    return f"{fraction * 100:.0f}%"
