from __future__ import annotations

import logging

from vibeshare.core.config import settings

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "httpx", "httpcore", "urllib3")


def configure_logging(level: str | None = None) -> None:
    resolved = str(level or settings.log_level or "INFO").strip().upper()
    logging.basicConfig(level=getattr(logging, resolved, logging.INFO), format=_LOG_FORMAT)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
