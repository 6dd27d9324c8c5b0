"""Load and validate the JSON configuration document."""

from __future__ import annotations

import json
import logging
import os

from pydantic import ValidationError

from dbbackup.domain.errors import ConfigLoadError
from dbbackup.schemas.config import AppConfig


logger = logging.getLogger(__name__)


def load_config(path: str) -> AppConfig:
    """Read `path` and return the parsed configuration.

    Raises ConfigLoadError if the file is missing, is not valid JSON, or does
    not match the configuration schema.
    """
    if not path or not os.path.isfile(path):
        raise ConfigLoadError(f"Configuration file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ConfigLoadError(f"Malformed configuration file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"Cannot read configuration file {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigLoadError(f"Configuration root must be a JSON object: {path}")

    try:
        config = AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigLoadError(f"Invalid configuration file {path}: {exc}") from exc

    logger.debug(
        "config_loaded | path=%s databases=%s storage=%s",
        path,
        len(config.databases),
        len(config.storage),
    )
    return config
