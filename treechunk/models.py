"""
Locating chunker models and reading their metadata.

A model consists of a ``.properties`` metadata file and the TreeTagger
parameter file it refers to. Without an explicit location, models are looked up
in the models directory as ``chunker-{language}-{variant}.properties``.
"""

from __future__ import annotations

import codecs
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from . import model_storage
from .errors import ModelLoadError, ModelResolutionError
from .properties import read_properties

logger = logging.getLogger(__name__)

LOCATION_TEMPLATE = "chunker-{language}-{variant}.properties"
PROPERTIES_SUFFIX = ".properties"
MODEL_SUFFIX = ".par"
DEFAULT_ENCODING = "utf-8"

_TAG_LIST_SPLIT = re.compile(r"[\s,]+")


@dataclass(frozen=True)
class ModelKey:
    """Identifies a model configuration: (language, variant, explicit location)."""

    language: Optional[str] = None
    variant: Optional[str] = None
    location: Optional[str] = None

    def with_default_variant(self, default_variant: str) -> "ModelKey":
        if self.variant:
            return self
        return ModelKey(self.language, default_variant, self.location)

    def describe(self) -> str:
        if self.location:
            return self.location
        return f"{self.language or '?'}-{self.variant or '?'}"


@dataclass(frozen=True)
class ModelMetadata:
    encoding: str = DEFAULT_ENCODING
    tagset: Optional[str] = None
    flush_sequence: Optional[str] = None
    tags: Tuple[str, ...] = ()
    properties: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_properties(cls, properties: Dict[str, str]) -> "ModelMetadata":
        encoding = properties.get("encoding") or DEFAULT_ENCODING
        try:
            codecs.lookup(encoding)
        except LookupError as exc:
            raise ModelLoadError(f"Unknown model encoding {encoding!r}") from exc
        raw_tags = properties.get("chunk.tags", "")
        tags = tuple(tag for tag in _TAG_LIST_SPLIT.split(raw_tags) if tag)
        return cls(
            encoding=encoding,
            tagset=properties.get("chunk.tagset") or None,
            flush_sequence=properties.get("flushSequence") or None,
            tags=tags,
            properties=dict(properties),
        )


@dataclass(frozen=True)
class ResolvedModel:
    key: ModelKey
    name: str
    model_path: Path
    metadata_path: Optional[Path]
    metadata: ModelMetadata


def default_model_location(language: str, variant: str, models_dir: Optional[Path] = None) -> Path:
    base = Path(models_dir) if models_dir is not None else model_storage.get_models_dir(create=False)
    return base / LOCATION_TEMPLATE.format(language=language, variant=variant)


def locate_model(
    key: ModelKey,
    *,
    models_dir: Optional[Path] = None,
    download_model: bool = False,
) -> Tuple[Optional[Path], Path]:
    """
    Return ``(metadata_path, model_path)`` for a model key.

    Raises ModelResolutionError if nothing can be found at the resolved location.
    """
    if key.location:
        location = Path(key.location).expanduser()
        if not location.exists():
            raise ModelResolutionError(f"No chunker model at {location}")
        if location.suffix == PROPERTIES_SUFFIX:
            metadata_path: Optional[Path] = location
        else:
            sibling = location.with_suffix(PROPERTIES_SUFFIX)
            metadata_path = sibling if sibling.exists() else None
            return metadata_path, location
    else:
        if not key.language:
            raise ModelResolutionError(
                "Cannot locate a chunker model: the document has no language and none was configured."
            )
        if not key.variant:
            raise ModelResolutionError(f"No variant given for language '{key.language}'")
        metadata_path = default_model_location(key.language, key.variant, models_dir)
        if not metadata_path.exists() and download_model:
            from .model_registry import ensure_model_available

            metadata_path = ensure_model_available(
                key.language,
                key.variant,
                models_dir=metadata_path.parent,
            )
        if not metadata_path.exists():
            raise ModelResolutionError(
                f"No chunker model for language '{key.language}' (variant '{key.variant}') "
                f"at {metadata_path}. Pass a model location or enable model download."
            )

    properties = _read_metadata(metadata_path)
    model_ref = properties.get("model")
    if model_ref:
        model_path = Path(model_ref).expanduser()
        if not model_path.is_absolute():
            model_path = metadata_path.parent / model_path
    else:
        model_path = metadata_path.with_suffix(MODEL_SUFFIX)
    if not model_path.exists():
        raise ModelResolutionError(f"Model file {model_path} referenced by {metadata_path} does not exist")
    return metadata_path, model_path


def _read_metadata(path: Path) -> Dict[str, str]:
    try:
        return read_properties(path)
    except OSError as exc:
        raise ModelLoadError(f"Cannot read model metadata {path}: {exc}") from exc


def load_model(
    key: ModelKey,
    *,
    models_dir: Optional[Path] = None,
    download_model: bool = False,
) -> ResolvedModel:
    """Locate a model and parse its metadata."""
    metadata_path, model_path = locate_model(key, models_dir=models_dir, download_model=download_model)
    properties = _read_metadata(metadata_path) if metadata_path else {}
    metadata = ModelMetadata.from_properties(properties)
    name = (metadata_path or model_path).stem
    logger.debug("Resolved chunker model %s -> %s", key.describe(), model_path)
    return ResolvedModel(
        key=key,
        name=name,
        model_path=model_path,
        metadata_path=metadata_path,
        metadata=metadata,
    )
