"""Calculator configuration and logging setup"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off', ''}


def _parse_bool(value: str, field_name: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{field_name} must be a boolean, got {value!r}")


@dataclass
class CalculatorConfig:
    """Runtime settings for the calculator"""

    DEFAULT_HISTORY_CAPACITY = 50

    history_capacity: int = DEFAULT_HISTORY_CAPACITY
    rewrite_pipeline: bool = False     # Evaluate through the text rewrite stages
    log_level: str = "WARNING"
    log_dir: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.history_capacity, int) or self.history_capacity <= 0:
            raise ValueError(f"history_capacity must be a positive integer, got {self.history_capacity!r}")

        self.log_level = self.log_level.upper().strip()
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Unknown log level: {self.log_level}")

    @classmethod
    def from_env(cls, environ=None):
        """Build configuration from CALC_* environment variables"""
        environ = os.environ if environ is None else environ
        kwargs = {}

        if 'CALC_HISTORY_CAPACITY' in environ:
            try:
                kwargs['history_capacity'] = int(environ['CALC_HISTORY_CAPACITY'])
            except ValueError:
                raise ValueError(
                    f"CALC_HISTORY_CAPACITY must be an integer, got {environ['CALC_HISTORY_CAPACITY']!r}"
                )
        if 'CALC_REWRITE_PIPELINE' in environ:
            kwargs['rewrite_pipeline'] = _parse_bool(environ['CALC_REWRITE_PIPELINE'], 'CALC_REWRITE_PIPELINE')
        if 'CALC_LOG_LEVEL' in environ:
            kwargs['log_level'] = environ['CALC_LOG_LEVEL']
        if environ.get('CALC_LOG_DIR'):
            kwargs['log_dir'] = environ['CALC_LOG_DIR']

        return cls(**kwargs)


def setup_logging(config: CalculatorConfig):
    """Configure root logging: console always, a dated file when log_dir is set"""
    handlers = [logging.StreamHandler()]

    if config.log_dir:
        log_dir = Path(config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.FileHandler(log_dir / f'calculator_{datetime.now().strftime("%Y%m%d")}.log')
        )

    logging.basicConfig(
        level=config.log_level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )
