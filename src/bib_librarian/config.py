"""Persistence of KeyConfig as a YAML file."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from bib_librarian.keygen import KeyConfig
from bib_librarian.storage import atomic_write

logger = logging.getLogger(__name__)

APP_NAME = "bib-librarian"


def default_config_path() -> Path:
    """Location of the config file.

    ``$BIB_LIBRARIAN_CONFIG`` wins, then ``$XDG_CONFIG_HOME``, then ``~/.config``.
    """
    explicit = os.environ.get("BIB_LIBRARIAN_CONFIG")
    if explicit:
        return Path(explicit)
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return Path(base) / APP_NAME / "config.yaml"


def default_data_dir() -> Path:
    """Directory holding the journal dictionaries."""
    explicit = os.environ.get("BIB_LIBRARIAN_DATA_DIR")
    if explicit:
        return Path(explicit)
    base = os.environ.get("XDG_DATA_HOME") or os.path.join(os.path.expanduser("~"), ".local", "share")
    return Path(base) / APP_NAME


def load_config(path: str | Path | None = None) -> KeyConfig:
    """Load the key config, falling back to defaults on any problem."""
    path = Path(path) if path else default_config_path()
    if not path.exists():
        return KeyConfig()
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read config %s: %s; using defaults", path, e)
        return KeyConfig()
    if not isinstance(data, dict):
        logger.warning("Config %s is not a mapping; using defaults", path)
        return KeyConfig()
    return KeyConfig.from_dict(data)


def save_config(config: KeyConfig, path: str | Path | None = None) -> Path:
    """Write the key config as YAML and return the path written."""
    path = Path(path) if path else default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(path, yaml.safe_dump(config.to_dict(), sort_keys=False, allow_unicode=True))
    logger.debug("Saved config to %s", path)
    return path
