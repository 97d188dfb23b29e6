"""
Configuration classes for treechunk.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Optional

from . import model_storage

DEFAULT_FLUSH_SEQUENCE = ".\n" * 10


@dataclass
class ChunkerConfig:
    """Configuration for the TreeTagger chunker."""
    language: Optional[str] = None  # Use this language instead of the document language
    variant: Optional[str] = None  # Model variant, falls back to the default variant ("le")
    model_location: Optional[str] = None  # Explicit .properties or model file
    executable_path: Optional[str] = None  # Explicit TreeTagger executable
    chunk_mapping_location: Optional[str] = None  # May contain {language} and {tagset}
    intern_tags: bool = True
    print_tagset: bool = False  # Log the declared tag set when a model is loaded
    performance_mode: bool = False  # Skip token sanity checks before sending to TreeTagger
    flush_sequence: Optional[str] = None  # Overrides the model's flushSequence
    outside_tag: Optional[str] = "O"  # Category that never becomes a span; None keeps all
    download_model: bool = False
    extra_args: Optional[List[str]] = None
    span_layer: str = "chunk"
    models_dir: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChunkerConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown chunker option(s): {', '.join(unknown)}")
        return cls(**data)

    def with_user_defaults(self) -> "ChunkerConfig":
        """Fill unset options from the user config file (~/.treechunk/config.json)."""
        updates: Dict[str, Any] = {}
        if self.executable_path is None:
            executable = model_storage.get_executable_path()
            if executable:
                updates["executable_path"] = executable
        if not self.download_model and model_storage.get_default_download_model():
            updates["download_model"] = True
        return replace(self, **updates) if updates else self
