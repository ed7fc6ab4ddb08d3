"""
App Configuration
=================
Settings read from the environment (and a local .env file, if present).
"""

import logging
import os
import secrets
from dataclasses import dataclass

from dotenv import load_dotenv

from map_errors import ConfigError
from overlay_renderer import DEFAULT_MAX_BYTES


LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_console_handler = None  # installed once by configure_logging


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class AppConfig:
    data_dir: str = 'DataProj'
    info_file: str = 'infoMap.txt'
    max_bytes: int = DEFAULT_MAX_BYTES
    min_side: int = 1
    opacity: float = 0.8
    max_sessions: int = 256
    secret_key: str = ''
    log_level: str = 'INFO'
    port: int = 5000

    def __post_init__(self):
        if self.max_bytes < 4:
            raise ConfigError(f"max_bytes must be at least 4, got {self.max_bytes}")
        if self.min_side < 1:
            raise ConfigError(f"min_side must be at least 1, got {self.min_side}")
        if not 0.0 <= self.opacity <= 1.0:
            raise ConfigError(f"opacity must be within [0, 1], got {self.opacity}")
        if self.max_sessions < 1:
            raise ConfigError(f"max_sessions must be at least 1, got {self.max_sessions}")

    @classmethod
    def from_env(cls) -> 'AppConfig':
        load_dotenv()
        return cls(
            data_dir=os.environ.get('RESPIRIT_DATA_DIR', 'DataProj'),
            info_file=os.environ.get('RESPIRIT_INFO_FILE', 'infoMap.txt'),
            max_bytes=_env_number('RESPIRIT_MAX_BYTES', DEFAULT_MAX_BYTES, lambda v: int(float(v))),
            min_side=_env_number('RESPIRIT_MIN_SIDE', 1, int),
            opacity=_env_number('RESPIRIT_OPACITY', 0.8, float),
            max_sessions=_env_number('RESPIRIT_MAX_SESSIONS', 256, int),
            secret_key=os.environ.get('SECRET_KEY') or secrets.token_hex(32),
            log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
            port=_env_number('PORT', 5000, int),
        )


def configure_logging(level: str = 'INFO'):
    """Console logging for the whole app. Safe to call more than once."""
    global _console_handler
    root = logging.getLogger()
    if _console_handler is None:
        _console_handler = logging.StreamHandler()
        _console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    if _console_handler not in root.handlers:
        root.addHandler(_console_handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
