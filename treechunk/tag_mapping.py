from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set

from tabulate import tabulate

from .decoder import parse_compound_tag
from .errors import ModelLoadError, TagFormatError
from .properties import read_properties

TAG_MAP_PREFIX = "pos.tag.map."
FALLBACK_KEY = "*"


@dataclass
class TagSubstitution:
    """Rewrites primary tags before tokens are sent to TreeTagger."""

    mapping: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_properties(cls, properties: Mapping[str, str]) -> "TagSubstitution":
        mapping = {
            key[len(TAG_MAP_PREFIX):]: value
            for key, value in properties.items()
            if key.startswith(TAG_MAP_PREFIX)
        }
        return cls(mapping)

    def translate(self, tag: str) -> str:
        return self.mapping.get(tag, tag)

    def token_text(self, text: str, tag: str) -> str:
        return f"{text}-{self.translate(tag)}"

    def __len__(self) -> int:
        return len(self.mapping)


@dataclass
class Tagset:
    """Categories a model can produce, grouped by tag-set name. Diagnostics only."""

    layer: str
    name: Optional[str]
    labels: Set[str] = field(default_factory=set)

    @classmethod
    def from_tags(cls, tags: Iterable[str], *, name: Optional[str] = None, layer: str = "chunk") -> "Tagset":
        tagset = cls(layer=layer, name=name)
        for tag in tags:
            try:
                _, category, _ = parse_compound_tag(tag)
            except TagFormatError as exc:
                raise ModelLoadError(f"Malformed entry in model tag list: {exc}") from exc
            tagset.labels.add(category)
        return tagset

    def as_dict(self) -> Dict[str, List[str]]:
        return {self.name or self.layer: sorted(self.labels)}

    def format_table(self) -> str:
        rows = [[self.layer, self.name or "-", label] for label in sorted(self.labels)]
        return tabulate(rows, headers=["Layer", "Tagset", "Tag"], tablefmt="simple")


@dataclass
class ChunkMapping:
    """Maps reconstructed chunk categories to the caller's output types."""

    mapping: Dict[str, str] = field(default_factory=dict)
    fallback: Optional[str] = None
    source: Optional[Path] = None

    @classmethod
    def from_file(cls, path: Path | str) -> "ChunkMapping":
        path = Path(path)
        try:
            properties = read_properties(path)
        except OSError as exc:
            raise ModelLoadError(f"Cannot read chunk mapping {path}: {exc}") from exc
        fallback = properties.pop(FALLBACK_KEY, None)
        mapping = {key: value for key, value in properties.items() if not key.startswith("__META_")}
        return cls(mapping=mapping, fallback=fallback, source=path)

    @classmethod
    def locate(
        cls,
        location: Optional[str],
        *,
        language: Optional[str],
        tagset: Optional[str],
        models_dir: Optional[Path] = None,
    ) -> "ChunkMapping":
        """
        Load the mapping for a model.

        An explicit ``location`` may use ``{language}`` and ``{tagset}``
        placeholders and must exist. Without one, ``chunk-{language}-{tagset}.map``
        in the models directory is used when present, else the identity mapping.
        """
        values = {"language": language or "", "tagset": tagset or ""}
        if location:
            path = Path(location.format(**values)).expanduser()
            if not path.exists():
                raise ModelLoadError(f"Chunk mapping file not found: {path}")
            return cls.from_file(path)
        if models_dir is not None and language and tagset:
            candidate = Path(models_dir) / "chunk-{language}-{tagset}.map".format(**values)
            if candidate.exists():
                return cls.from_file(candidate)
        return cls()

    def get_type(self, category: str) -> str:
        return self.mapping.get(category) or self.fallback or category
