import logging
import os
import re
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
MASK = '***MASKED***'

# key=value / "key": value pairs whose value must never reach a log line
SECRET_KEYS = (r'api[_-]?hash', r'api[_-]?id', r'phone(?:_number)?', r'password', r'token')


def _key_value_pattern(key: str) -> re.Pattern:
    return re.compile(rf'({key}["\']?\s*[:=]\s*["\']?)([^"\'}}\s,]+)', re.IGNORECASE)


class SensitiveDataFilter(logging.Filter):
    """Masks relay credentials, bearer tokens and phone numbers in log records."""

    PATTERNS = [_key_value_pattern(key) for key in SECRET_KEYS] + [
        re.compile(r'(bearer\s+)([^\s,}\'\"]+)', re.IGNORECASE),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._mask(record.msg)
        if isinstance(record.args, dict):
            record.args = {key: self._mask(value) for key, value in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._mask(arg) for arg in record.args)
        return True

    def _mask(self, value):
        if not isinstance(value, str):
            return value
        for pattern in self.PATTERNS:
            value = pattern.sub(rf'\1{MASK}', value)
        return value


def _masking_handler(root: logging.Logger) -> Optional[logging.Handler]:
    for handler in root.handlers:
        if any(isinstance(f, SensitiveDataFilter) for f in handler.filters):
            return handler
    return None


def setup_logging(component_name: str, log_level: Optional[str] = None) -> logging.Logger:
    """
    Configure process-wide logging and return the component's logger.

    The stdout handler goes on the root logger, so ``logging.getLogger(__name__)``
    loggers in the transfer and relay packages share its format and masking.
    Calling this again only adjusts the level.

    Args:
        component_name: Logger name for the entry point (e.g. 'telestore', 'telestore-cli')
        log_level: DEBUG, INFO, WARNING or ERROR; falls back to the LOG_LEVEL env var, then INFO
    """
    level_name = (log_level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    handler = _masking_handler(root)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        handler.addFilter(SensitiveDataFilter())
        root.addHandler(handler)
    handler.setLevel(level)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
