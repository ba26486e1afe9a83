"""
Logging setup for the home tour engine

One `home_tour` logger feeds a rotating file and a rich console. Individual
subsystems can be turned up or down through `logging.module_levels`, e.g.

    logging:
      module_levels:
        home_tour.media_generation: DEBUG
        aiohttp.access: WARNING
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Dict

from rich.logging import RichHandler

ROOT_LOGGER = 'home_tour'

# Client libraries that log every request at INFO/DEBUG
QUIET_LIBRARIES = ('google.auth', 'google.cloud', 'urllib3', 'aiohttp.access')


def _level(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


def apply_module_levels(module_levels: Dict[str, str]) -> Dict[str, int]:
    """Set per-logger levels; third-party noise defaults to WARNING"""
    levels = {name: logging.WARNING for name in QUIET_LIBRARIES}
    levels.update({name: _level(value) for name, value in (module_levels or {}).items()})

    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)
    return levels


def setup_logging(config: 'Config') -> logging.Logger:
    """Set up logging configuration"""

    log_config = config.logging
    level = log_config.get('level', 'INFO')
    format_str = log_config.get('format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    log_file = log_config.get('file', str(Path(config.paths.logs) / 'home_tour.log'))
    max_size_mb = log_config.get('max_size_mb', 50)
    backup_count = log_config.get('backup_count', 5)

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    # Package loggers are children of this one
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(_level(level))
    logger.handlers.clear()

    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding='utf-8'
    )
    file_handler.setFormatter(logging.Formatter(format_str))
    logger.addHandler(file_handler)

    # Rich prints its own time and level columns
    console_handler = RichHandler(show_path=False, rich_tracebacks=True)
    console_handler.setFormatter(logging.Formatter('%(name)s: %(message)s'))
    logger.addHandler(console_handler)

    apply_module_levels(log_config.get('module_levels', {}))
    return logger


class LoggerMixin:
    """Mixin class to add logging capabilities to other classes"""

    @property
    def logger(self) -> logging.Logger:
        """Get logger instance"""
        if not hasattr(self, '_logger'):
            self._logger = logging.getLogger(f'{ROOT_LOGGER}.{self.__class__.__name__}')
        return self._logger
