"""YAML configuration for building a `Database` from a file.

Example `data/config/kvstore.yml`:

    type: sqlite
    settings:
      filename: var/kv.sqlite
    wrapper:
      write_interval: 0.1
    log_level: INFO

The path can be overridden with the `KVSTORE_CONFIG` environment variable.
"""
from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from kvstore_lib.storage.registry import parse_backend_type

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path('data/config/kvstore.yml')
CONFIG_ENV = 'KVSTORE_CONFIG'


class StoreConfig(BaseModel):
    model_config = ConfigDict(extra='forbid')

    type: Optional[str] = None
    settings: Union[Dict[str, Any], str, None] = None
    wrapper: Optional[Dict[str, Any]] = None
    log_level: Optional[str] = None

    @field_validator('type')
    @classmethod
    def _known_type(cls, value: Optional[str]) -> Optional[str]:
        if value:
            parse_backend_type(value)
        return value or None

    def create_database(self, logger: Any = None):
        from kvstore_lib.database import Database

        return Database(self.type, self.settings, self.wrapper, logger)


def config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Return the config file location: `path`, else $KVSTORE_CONFIG, else the default."""
    if path is not None:
        return Path(path)
    env = os.environ.get(CONFIG_ENV)
    return Path(env) if env else DEFAULT_CONFIG_PATH


def load_config(path: Optional[Union[str, Path]] = None) -> StoreConfig:
    """Load and validate the YAML config. A missing file yields the defaults."""
    cfg_path = config_path(path)
    if not cfg_path.exists():
        logger.debug('No config file at %s; using defaults', cfg_path)
        return StoreConfig()
    with cfg_path.open('r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f'{cfg_path}: expected a mapping at the top level')
    logger.debug('Loaded config from %s', cfg_path)
    return StoreConfig.model_validate(raw)
