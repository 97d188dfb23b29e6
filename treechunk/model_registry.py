"""
Download chunker models from a model registry.

The registry is a JSON file with the following structure:
{
    "models": [
        {
            "language": "en",
            "variant": "le",
            "download_url": "https://.../chunker-en-le.tar.gz",
            "properties_file": "chunker-en-le.properties"
        }
    ]
}

The registry URL comes from TREECHUNK_MODEL_REGISTRY_URL or the "model_registry_url"
config key and may be a file:// URL.
"""

from __future__ import annotations

import gzip
import json
import logging
import os
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from .errors import ModelResolutionError
from .model_storage import get_model_registry_url, read_model_cache_entry, write_model_cache_entry

logger = logging.getLogger(__name__)

REGISTRY_CACHE_TTL_SECONDS = 60 * 60 * 24  # 24 hours
REGISTRY_CACHE_KEY = "model_registry"


def fetch_registry(
    url: Optional[str] = None,
    *,
    use_cache: bool = True,
    cache_ttl_seconds: int = REGISTRY_CACHE_TTL_SECONDS,
) -> Dict[str, Any]:
    """Fetch the model registry, preferring a cached copy younger than the TTL."""
    url = url or get_model_registry_url()
    if not url:
        raise ModelResolutionError(
            "Model download requested but no model registry is configured. "
            "Set TREECHUNK_MODEL_REGISTRY_URL or run 'treechunk config --set-registry-url'."
        )
    cache_key = f"{REGISTRY_CACHE_KEY}:{url}"
    if use_cache:
        cached = read_model_cache_entry(cache_key, max_age_seconds=cache_ttl_seconds)
        if cached:
            logger.debug("Using cached model registry from %s", url)
            return cached

    try:
        if url.startswith("file://"):
            with open(url[len("file://"):], "r", encoding="utf-8") as handle:
                registry = json.load(handle)
        else:
            logger.info("Fetching model registry from %s", url)
            response = requests.get(url, timeout=10.0)
            response.raise_for_status()
            registry = response.json()
    except (OSError, ValueError, requests.RequestException) as exc:
        cached = read_model_cache_entry(cache_key, max_age_seconds=None)
        if cached:
            logger.warning("Failed to fetch model registry (%s); using stale cached copy", exc)
            return cached
        raise ModelResolutionError(f"Cannot fetch model registry {url}: {exc}") from exc

    if not isinstance(registry, dict):
        raise ModelResolutionError(f"Model registry {url} must be a JSON object")
    try:
        write_model_cache_entry(cache_key, registry)
    except OSError as exc:
        logger.debug("Could not cache model registry: %s", exc)
    return registry


def select_registry_entry(registry: Dict[str, Any], language: str, variant: str) -> Dict[str, Any]:
    models: List[Any] = registry.get("models", [])
    for entry in models:
        if not isinstance(entry, dict):
            continue
        if (entry.get("language") or "").lower() == language.lower() and entry.get("variant") == variant:
            return entry
    raise ModelResolutionError(
        f"The model registry has no chunker model for language '{language}' (variant '{variant}')"
    )


def _download_file(url: str, destination: Path) -> None:
    logger.info("Downloading %s -> %s", url, destination)
    response = requests.get(url, stream=True, timeout=30)
    response.raise_for_status()
    destination.parent.mkdir(parents=True, exist_ok=True)
    with destination.open("wb") as handle:
        for chunk in response.iter_content(chunk_size=65536):
            if chunk:
                handle.write(chunk)


def _extract_tar(tar: tarfile.TarFile, target_dir: Path) -> None:
    if hasattr(tarfile, "data_filter"):
        tar.extractall(target_dir, filter="data")
        return
    # Interpreters without extraction filters: refuse members leaving target_dir
    root = target_dir.resolve()
    for member in tar.getmembers():
        destination = (root / member.name).resolve()
        if member.issym() or member.islnk() or (destination != root and root not in destination.parents):
            raise tarfile.TarError(f"Refusing to extract {member.name!r} outside {target_dir}")
    tar.extractall(target_dir)


def _decompress_archive(source: Path, target_dir: Path, archive_name: str) -> None:
    target_dir.mkdir(parents=True, exist_ok=True)
    if archive_name.endswith((".tar.gz", ".tgz", ".tar")):
        with tarfile.open(source, "r:*") as tar:
            _extract_tar(tar, target_dir)
    elif archive_name.endswith(".zip"):
        with zipfile.ZipFile(source, "r") as zip_ref:
            zip_ref.extractall(target_dir)
    elif archive_name.endswith(".gz"):
        with gzip.open(source, "rb") as src, (target_dir / archive_name[:-3]).open("wb") as dst:
            shutil.copyfileobj(src, dst)
    else:
        shutil.copy(source, target_dir / archive_name)


def ensure_model_available(
    language: str,
    variant: str,
    *,
    models_dir: Path,
    registry_url: Optional[str] = None,
) -> Path:
    """Download the model for ``language``/``variant`` unless present; return its properties file."""
    entry = select_registry_entry(fetch_registry(registry_url), language, variant)
    properties_name = entry.get("properties_file") or f"chunker-{language}-{variant}.properties"
    properties_path = Path(models_dir) / properties_name
    if properties_path.exists():
        return properties_path

    download_url = entry.get("download_url")
    if not download_url:
        raise ModelResolutionError(
            f"Registry entry for '{language}' (variant '{variant}') has no download_url"
        )
    archive_name = download_url.rstrip("/").rsplit("/", 1)[-1]
    tmp_fd, tmp_path_str = tempfile.mkstemp(suffix=f"-{archive_name}")
    os.close(tmp_fd)
    tmp_path = Path(tmp_path_str)
    try:
        _download_file(download_url, tmp_path)
        _decompress_archive(tmp_path, Path(models_dir), archive_name)
    except (OSError, requests.RequestException, tarfile.TarError, zipfile.BadZipFile) as exc:
        raise ModelResolutionError(f"Failed to download chunker model from {download_url}: {exc}") from exc
    finally:
        tmp_path.unlink(missing_ok=True)

    if not properties_path.exists():
        raise ModelResolutionError(
            f"Downloaded archive {archive_name} does not contain {properties_name}"
        )
    return properties_path
