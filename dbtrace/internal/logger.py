"""
Logging utilities for internal use.
Usage:
    from dbtrace.internal.logger import get_logger
    log = get_logger(__name__)

    log.debug("patched %s", module)

Every logger returned by ``get_logger`` shares a rate limiting filter: one
record per call site (pathname/lineno) every ``DBTRACE_LOGGING_RATE``
seconds (60 by default, 0 disables the limit). Records logged while a
logger is in DEBUG level are never limited. The number of records skipped
in the meantime is appended to the next record that gets through::

    WARNING dbtrace.contrib.dbapi: could not read rowcount [3 skipped]

"""

import collections
import logging
import os
import time
from typing import DefaultDict
from typing import Tuple


def get_logger(name: str) -> logging.Logger:
    """
    Retrieve or create a ``Logger`` instance with consistent behavior for internal use.

    Configure all loggers with a rate limiter filter to prevent excessive logging.
    """
    logger = logging.getLogger(name)
    # addFilter will only add the filter if it is not already present
    logger.addFilter(log_filter)
    logger.propagate = True
    return logger


# Class used for keeping track of a log lines current time bucket and the number of log lines skipped
class LoggingBucket:
    def __init__(self, bucket: float, skipped: int):
        self.bucket = bucket
        self.skipped = skipped

    def __repr__(self):
        return f"LoggingBucket({self.bucket}, {self.skipped})"

    def is_sampled(self, record: logging.LogRecord, rate: float) -> bool:
        """
        Determine if the log line should be sampled based on the rate limit.
        """
        current = time.monotonic()
        if current - self.bucket >= rate:
            self.bucket = current
            record.skipped = self.skipped
            self.skipped = 0
            return True
        self.skipped += 1
        return False


_MINF = float("-inf")

_buckets: DefaultDict[Tuple[str, int], LoggingBucket] = collections.defaultdict(lambda: LoggingBucket(_MINF, 0))

# DEV: `DBTRACE_LOGGING_RATE=0` means to disable all rate limiting
_rate_limit = int(os.getenv("DBTRACE_LOGGING_RATE", default=60))


def log_filter(record: logging.LogRecord) -> bool:
    """
    Function used to determine if a log record should be outputted or not (True = output, False = skip).
    """
    logger = logging.getLogger(record.name)
    if not _rate_limit or logger.getEffectiveLevel() == logging.DEBUG:
        return True
    key = (record.pathname, record.lineno)
    return _buckets[key].is_sampled(record, _rate_limit)


class DBTraceFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        skipped = getattr(record, "skipped", 0)
        skip_str = f" [{skipped} skipped]" if skipped else ""
        return f"{record.levelname} {super().format(record)}{skip_str}"


# setup the default formatter for all dbtrace loggers
root_logger = logging.getLogger("dbtrace")
if not root_logger.handlers:
    root_logger.addHandler(logging.StreamHandler())
    root_logger.handlers[0].setFormatter(DBTraceFormatter("%(name)s: %(message)s"))
root_logger.propagate = True
