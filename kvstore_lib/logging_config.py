from __future__ import annotations
import itertools
import logging
from pathlib import Path
from typing import Any, Optional, Union

import yaml

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s]: %(message)s'

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]

_ids = itertools.count(1)


class _ForwardingHandler(logging.Handler):
    """Hand formatted records to a foreign logger object's level methods."""

    _METHODS = {
        logging.DEBUG: ('debug',),
        logging.INFO: ('info',),
        logging.WARNING: ('warning', 'warn'),
        logging.ERROR: ('error',),
        logging.CRITICAL: ('critical', 'fatal', 'error'),
    }

    def __init__(self, target: Any) -> None:
        super().__init__(logging.NOTSET)
        self.target = target

    def emit(self, record: logging.LogRecord) -> None:
        level = max((lvl for lvl in self._METHODS if lvl <= record.levelno), default=logging.DEBUG)
        for name in self._METHODS[level]:
            method = getattr(self.target, name, None)
            if callable(method):
                method(self.format(record))
                return


def _is_logger_object(obj: Any) -> bool:
    return any(callable(getattr(obj, name, None)) for name in ('debug', 'info', 'warning', 'warn', 'error'))


def normalize_logger(logger: Any = None) -> LoggerLike:
    """Return a stdlib-compatible logger for whatever the caller passed in.

    - None: a disabled logger, so no logging occurs.
    - a `logging.Logger` or `logging.LoggerAdapter`: returned unchanged.
    - a string: the stdlib logger of that name.
    - any other object with `debug`/`info`/`warning`/`error` style methods
      (structlog, loguru, a console-like shim): wrapped in a private logger
      whose handler forwards messages, so level checks such as
      `isEnabledFor` behave the same for every logger.
    """
    if isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        return logger
    if isinstance(logger, str):
        return logging.getLogger(logger)
    # Private loggers are not registered with the logging manager, so they
    # never propagate into application handlers.
    wrapped = logging.Logger(f'kvstore_lib.normalized.{next(_ids)}')
    wrapped.propagate = False
    if logger is None:
        wrapped.disabled = True
        return wrapped
    if not _is_logger_object(logger):
        raise TypeError(f'Unsupported logger object: {logger!r}')
    level = getattr(logger, 'level', logging.DEBUG)
    wrapped.setLevel(level if isinstance(level, int) else logging.DEBUG)
    wrapped.addHandler(_ForwardingHandler(logger))
    return wrapped


def configure_logging(level: Optional[Union[int, str]] = None, config_path: Optional[Path] = None) -> logging.Logger:
    """Configure root logging for command line use.

    The level comes from `level`, else from `log_level` in the YAML config
    file, else defaults to WARNING. Returns a module logger for the caller.
    """
    resolved = logging.WARNING
    if level is None and config_path is not None and config_path.exists():
        try:
            with config_path.open('r', encoding='utf-8') as _f:
                _cfg = yaml.safe_load(_f) or {}
                level = _cfg.get('log_level')
        except (OSError, yaml.YAMLError):
            # If config parse fails, fall back to default level
            logging.getLogger(__name__).warning('Could not read log level from %s', config_path)
    if isinstance(level, int):
        resolved = level
    elif isinstance(level, str):
        numeric = getattr(logging, level.upper(), None)
        if isinstance(numeric, int):
            resolved = numeric

    # Reconfigure root handlers to use the selected level and format
    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logger = logging.getLogger(__name__)
    logger.debug('Log level set to: %s', logging.getLevelName(resolved))
    return logger
