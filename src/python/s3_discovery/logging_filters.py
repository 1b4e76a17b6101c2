"""Keeps the AWS SDK from flooding the host's log.

botocore and urllib3 log every request, signature and retry decision.
While installed, :class:`NoiseReducingFilter` demotes those records to
``DEBUG`` and drops them unless the originating logger is explicitly
enabled for ``DEBUG``.
"""

from __future__ import annotations

import logging
import threading

NOISY_LOGGER_PREFIXES: tuple[str, ...] = (
    "botocore.auth",
    "botocore.endpoint",
    "botocore.hooks",
    "botocore.parsers",
    "botocore.retryhandler",
    "botocore.credentials",
    "urllib3.connectionpool",
)


class NoiseReducingFilter(logging.Filter):

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not _is_noisy(record.name) or record.levelno >= logging.WARNING:
            return True
        record.levelno = logging.DEBUG
        record.levelname = logging.getLevelName(logging.DEBUG)
        return logging.getLogger(record.name).level == logging.DEBUG


def _is_noisy(logger_name: str) -> bool:
    return any(
        logger_name == prefix or logger_name.startswith(prefix + ".")
        for prefix in NOISY_LOGGER_PREFIXES
    )


class SdkLogging:
    """Installs the noise filter on the root handlers and SDK loggers."""

    def __init__(self) -> None:
        self._filter = NoiseReducingFilter()
        self._lock = threading.Lock()
        self._installed: list[logging.Filterer] = []

    @property
    def installed(self) -> bool:
        return bool(self._installed)

    def start(self) -> None:
        with self._lock:
            if self._installed:
                return
            targets: list[logging.Filterer] = list(logging.getLogger().handlers)
            targets.extend(logging.getLogger(prefix) for prefix in NOISY_LOGGER_PREFIXES)
            for target in targets:
                target.addFilter(self._filter)
            self._installed = targets

    def stop(self) -> None:
        with self._lock:
            for target in self._installed:
                target.removeFilter(self._filter)
            self._installed = []
