"""Logging configuration helpers."""

import logging

# httpx logs every request at INFO.
_TRANSPORT_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure pipeline logging with a single stream handler.

    Repeated calls only adjust the level. Transport loggers stay at WARNING
    unless the pipeline runs at DEBUG.
    """
    resolved = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    logger = logging.getLogger("family_gazette")
    logger.setLevel(resolved)
    transport_level = resolved if resolved <= logging.DEBUG else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
