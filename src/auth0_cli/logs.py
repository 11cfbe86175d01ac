import logging

from auth0_cli.config import settings


def resolve_level(value: str | int) -> int:
    # Accept both standard level names (e.g. "INFO") and numeric values.
    if isinstance(value, int):
        return value
    level = getattr(logging, str(value).upper(), None)
    if isinstance(level, int):
        return level
    try:
        return int(value)
    except ValueError:
        return logging.INFO


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else resolve_level(settings.log_level)

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quiet down httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
