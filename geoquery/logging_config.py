"""Process-wide logging setup."""
from __future__ import annotations

import logging

from geoquery.config import settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.log_level).upper(), format=_FORMAT)
