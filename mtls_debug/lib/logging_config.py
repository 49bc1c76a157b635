"""Structured JSON logging for the mTLS debug server."""

import logging

from pythonjsonlogger import jsonlogger

LOGGER_NAME = "mtls_debug"

BASE_FIELDS = frozenset({"timestamp", "level", "message", "exc_info", "funcName", "lineno"})

# Request context accepted through ``extra=``
CONTEXT_FIELDS = frozenset(
    {"method", "path", "client", "deployment", "headers", "certificate", "verified"}
)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter emitting a fixed field set plus request context.

    Logging internals such as module, process and thread names are dropped.
    Context passed with ``extra`` is kept when its key is in CONTEXT_FIELDS,
    so a certificate descriptor logs as a nested object rather than a string.
    """

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record["level"] = log_record.pop("levelname", record.levelname)

        allowed_fields = BASE_FIELDS | CONTEXT_FIELDS
        for key in [key for key in log_record if key not in allowed_fields]:
            del log_record[key]


def _setup_logger(level: int = logging.INFO) -> logging.Logger:
    """Configure the service logger once.

    Returns:
        Logger writing CustomJsonFormatter output to stderr
    """
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(
        CustomJsonFormatter(
            fmt="%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s",
            timestamp=True,
        )
    )
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


def set_verbose(enabled: bool) -> None:
    """Switch between per-request summaries (INFO) and full request dumps (DEBUG)."""
    LOGGER.setLevel(logging.DEBUG if enabled else logging.INFO)


LOGGER = _setup_logger()
