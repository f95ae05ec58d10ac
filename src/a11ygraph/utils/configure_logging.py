# src/a11ygraph/utils/configure_logging.py
import logging
import sys
from typing import Any, Dict, Optional, Union

from tqdm import tqdm

Level = Union[str, int]


class LogWithTqdm(logging.Handler):
    """
    Logging handler that writes through `tqdm.write()` so log lines do not
    break the analyzer progress bar.
    """

    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
            self.flush()
        except Exception:
            self.handleError(record)


def _level(value: Level, fallback: int) -> int:
    if isinstance(value, str):
        return getattr(logging, value.upper(), fallback)
    return value


def configure_logger(
        general_level: Level = 'INFO',
        module_specific_levels: Optional[Dict[str, Level]] = None,
        silenced_loggers: Optional[Dict[str, Level]] = None,
) -> logging.Logger:
    """
    Configures the root logger with a single tqdm-aware handler.
    Replaces any handlers already installed on the root logger.
    """
    handler = LogWithTqdm()
    handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(_level(general_level, logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name, level in (module_specific_levels or {}).items():
        logging.getLogger(name).setLevel(_level(level, logging.INFO))

    # Muzzle noisy loggers
    for name, level in (silenced_loggers or {}).items():
        logging.getLogger(name).setLevel(_level(level, logging.CRITICAL))

    return root_logger


def configure_from_settings(config: Any) -> logging.Logger:
    """Applies the 'debug' section of a ConfigManager."""
    return configure_logger(
        general_level=config.get_nested("debug.level", "INFO"),
        module_specific_levels=config.get_nested("debug.module_levels", {}),
        silenced_loggers=config.get_nested("debug.silenced_loggers", {}),
    )
