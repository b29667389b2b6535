"""
settings.py
-----------

Runtime settings for the cfgwatch entry point, read from the environment
after loading an optional ``.env`` file.

Variables:
    CFGWATCH_CONFIG_FILE   path of the watched config file
    CFGWATCH_SERVICE       service key to follow inside it
    CFGWATCH_LOG_LEVEL     logging level (default INFO)
    CFGWATCH_LOG_FILE      optional rotating log file
    CFGWATCH_STOP_TIMEOUT  seconds to wait for the dispatch thread on stop
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    config_file: Optional[str] = None
    service: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None
    stop_timeout: float = 5.0


def load_settings(dotenv_path: Optional[str] = None) -> Settings:
    """Load ``.env`` (without overriding real env vars) and build Settings."""
    load_dotenv(dotenv_path)
    raw_timeout = os.getenv("CFGWATCH_STOP_TIMEOUT", "5.0")
    try:
        stop_timeout = float(raw_timeout)
    except ValueError:
        raise ValueError(f"CFGWATCH_STOP_TIMEOUT must be a number, got {raw_timeout!r}") from None
    return Settings(
        config_file=os.getenv("CFGWATCH_CONFIG_FILE") or None,
        service=os.getenv("CFGWATCH_SERVICE") or None,
        log_level=os.getenv("CFGWATCH_LOG_LEVEL", "INFO"),
        log_file=os.getenv("CFGWATCH_LOG_FILE") or None,
        stop_timeout=stop_timeout,
    )
