import logging

from goalradar.config import settings


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=settings.LOG_FORMAT,
        datefmt=settings.LOG_DATEFMT,
    )
