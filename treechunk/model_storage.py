"""
Centralized model and configuration storage for treechunk.

Chunker models live in a common directory:
  ~/.treechunk/models/  (default)
    ├── chunker-en-le.properties
    ├── chunker-en-le.par
    └── chunk-en-penn.map

The models directory can be configured via:
  - Environment variable: TREECHUNK_MODELS_DIR
  - Config file: ~/.treechunk/config.json (set "models_dir" key)
  - Default: ~/.treechunk/models/
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_VARIANT = "le"


def get_config_dir(create: bool = True) -> Path:
    """
    Get the treechunk configuration directory.

    Checks in order:
    1. TREECHUNK_CONFIG_DIR environment variable
    2. XDG_DATA_HOME environment variable (if set)
    3. ~/.treechunk/
    """
    if "TREECHUNK_CONFIG_DIR" in os.environ:
        base = Path(os.environ["TREECHUNK_CONFIG_DIR"])
    elif "XDG_DATA_HOME" in os.environ:
        base = Path(os.environ["XDG_DATA_HOME"]) / "treechunk"
    else:
        base = Path.home() / ".treechunk"

    if create:
        try:
            base.mkdir(parents=True, exist_ok=True)
        except (OSError, PermissionError):
            # Caller gets the error once it actually writes there
            pass
    return base


def get_config_file(create_dir: bool = True) -> Path:
    """Get the path to the treechunk configuration file."""
    return get_config_dir(create=create_dir) / "config.json"


def read_config() -> dict:
    """
    Read the treechunk configuration file.

    Returns:
        Dictionary with configuration values (empty dict if the file doesn't exist)
    """
    config_file = get_config_file(create_dir=False)
    if not config_file.exists():
        return {}
    with open(config_file, "r", encoding="utf-8") as handle:
        content = handle.read().strip()
    if not content:
        return {}
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        logger.warning("Ignoring corrupted config file %s: %s", config_file, exc)
        return {}


def write_config(config: dict) -> None:
    """Merge ``config`` into the treechunk config file."""
    config_file = get_config_file()
    existing_config = read_config()
    existing_config.update(config)
    with open(config_file, "w", encoding="utf-8") as handle:
        json.dump(existing_config, handle, indent=2, ensure_ascii=False)


def get_models_dir(create: bool = True) -> Path:
    """
    Get the directory holding chunker models.

    Checks in order:
    1. TREECHUNK_MODELS_DIR environment variable
    2. config.json file (models_dir key)
    3. <config dir>/models/
    """
    if "TREECHUNK_MODELS_DIR" in os.environ:
        models_dir = Path(os.environ["TREECHUNK_MODELS_DIR"])
    else:
        config = read_config()
        if "models_dir" in config:
            models_dir = Path(config["models_dir"])
        else:
            models_dir = get_config_dir(create=False) / "models"
    if create:
        models_dir.mkdir(parents=True, exist_ok=True)
    return models_dir


def set_models_dir(path: str | Path) -> None:
    models_dir = Path(path).expanduser().resolve()
    models_dir.mkdir(parents=True, exist_ok=True)
    write_config({"models_dir": str(models_dir)})


def get_default_variant() -> str:
    """Return the model variant used when none is requested."""
    return read_config().get("default_variant") or DEFAULT_VARIANT


def set_default_variant(variant: str) -> None:
    write_config({"default_variant": variant})


def get_executable_path() -> Optional[str]:
    """Return the configured TreeTagger executable, if any."""
    return read_config().get("treetagger_executable")


def set_executable_path(path: Optional[str]) -> None:
    write_config({"treetagger_executable": path or None})


def get_model_registry_url() -> Optional[str]:
    """
    Return the model registry URL.

    TREECHUNK_MODEL_REGISTRY_URL takes precedence over the config file.
    """
    return os.environ.get("TREECHUNK_MODEL_REGISTRY_URL") or read_config().get("model_registry_url")


def set_model_registry_url(url: Optional[str]) -> None:
    write_config({"model_registry_url": url or None})


def get_default_download_model() -> bool:
    """Return whether missing models should be downloaded by default."""
    return bool(read_config().get("default_download_model", False))


def get_cache_dir(create: bool = True) -> Path:
    """Return the directory used for auxiliary cached data (such as model registries)."""
    cache_dir = get_config_dir(create=create) / "cache"
    if create:
        cache_dir.mkdir(parents=True, exist_ok=True)
    return cache_dir


def _get_model_cache_file(create_dir: bool = True) -> Path:
    return get_cache_dir(create=create_dir) / "model_lists.json"


def _load_model_cache() -> dict:
    cache_file = _get_model_cache_file(create_dir=False)
    if not cache_file.exists():
        return {}
    with open(cache_file, "r", encoding="utf-8") as handle:
        content = handle.read().strip()
    if not content:
        return {}
    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        logger.warning("Corrupted cache file %s: %s. Rebuilding cache.", cache_file, exc)
        return {}


def _write_model_cache(cache: dict) -> None:
    cache_file = _get_model_cache_file(create_dir=True)
    with open(cache_file, "w", encoding="utf-8") as handle:
        json.dump(cache, handle, indent=2, ensure_ascii=False)


def read_model_cache_entry(
    key: str,
    *,
    max_age_seconds: Optional[float] = None,
) -> Optional[dict]:
    """Read a cached entry. Returns None if missing or older than ``max_age_seconds``."""
    entry = _load_model_cache().get(key)
    if not entry:
        return None
    timestamp = entry.get("timestamp")
    if (
        max_age_seconds is not None
        and timestamp
        and (time.time() - float(timestamp)) > max_age_seconds
    ):
        return None
    return entry.get("data")


def write_model_cache_entry(key: str, data: dict) -> None:
    cache = _load_model_cache()
    cache[key] = {
        "timestamp": time.time(),
        "data": data,
    }
    _write_model_cache(cache)
