from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional


def _normalize_attrs(attrs: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not attrs:
        return {}
    return dict(attrs)


@dataclass(frozen=True)
class Span:
    """A finalized span annotation over character offsets ``[start, end)``."""

    label: str
    start: int
    end: int
    type: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Span":
        return cls(
            label=data.get("label", ""),
            start=int(data.get("start", 0)),
            end=int(data.get("end", 0)),
            type=data.get("type", ""),
        )

    def to_dict(self) -> dict:
        result = {
            "label": self.label,
            "start": self.start,
            "end": self.end,
        }
        if self.type and self.type != self.label:
            result["type"] = self.type
        return result


@dataclass
class Token:
    id: int
    form: str
    xpos: str = ""
    char_start: Optional[int] = None
    char_end: Optional[int] = None
    attrs: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.attrs = _normalize_attrs(self.attrs)

    @classmethod
    def from_dict(cls, data: dict) -> "Token":
        return cls(
            id=int(data.get("id", 0)),
            form=data.get("form", ""),
            xpos=data.get("xpos", ""),
            char_start=data.get("char_start"),
            char_end=data.get("char_end"),
            attrs=_normalize_attrs(data.get("attrs")),
        )

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "form": self.form,
            "xpos": self.xpos,
        }
        if self.char_start is not None:
            result["char_start"] = self.char_start
        if self.char_end is not None:
            result["char_end"] = self.char_end
        if self.attrs:
            result["attrs"] = dict(self.attrs)
        return result


@dataclass
class Sentence:
    id: str
    tokens: List[Token] = field(default_factory=list)
    char_start: Optional[int] = None
    char_end: Optional[int] = None
    attrs: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.attrs = _normalize_attrs(self.attrs)

    def ordered_tokens(self) -> List[Token]:
        """Tokens sorted by begin offset (stable for tokens without offsets)."""
        return sorted(
            self.tokens,
            key=lambda tok: tok.char_start if tok.char_start is not None else -1,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "Sentence":
        return cls(
            id=data.get("id", ""),
            tokens=[Token.from_dict(t) for t in data.get("tokens", [])],
            char_start=data.get("char_start"),
            char_end=data.get("char_end"),
            attrs=_normalize_attrs(data.get("attrs")),
        )

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "tokens": [tok.to_dict() for tok in self.tokens],
        }
        if self.char_start is not None:
            result["char_start"] = self.char_start
        if self.char_end is not None:
            result["char_end"] = self.char_end
        if self.attrs:
            result["attrs"] = dict(self.attrs)
        return result


@dataclass
class Document:
    id: str = ""
    text: str = ""
    sentences: List[Sentence] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)
    attrs: Dict[str, Any] = field(default_factory=dict)
    spans: Dict[str, List[Span]] = field(default_factory=dict)

    def __post_init__(self):
        self.attrs = _normalize_attrs(self.attrs)
        self.spans = {
            key: [span if isinstance(span, Span) else Span.from_dict(span) for span in value]
            for key, value in self.spans.items()
        }

    @property
    def language(self) -> Optional[str]:
        return self.attrs.get("lang") or self.meta.get("language") or None

    def tokens(self) -> Iterable[Token]:
        for sentence in self.sentences:
            yield from sentence.tokens

    def add_span(self, layer: str, span: Span) -> None:
        self.spans.setdefault(layer, []).append(span)

    def iter_spans(self, layer: Optional[str] = None) -> Iterable[Span]:
        if layer is not None:
            for span in self.spans.get(layer, []):
                yield span
        else:
            for spans in self.spans.values():
                for span in spans:
                    yield span

    @classmethod
    def from_dict(cls, data: dict) -> "Document":
        return cls(
            id=data.get("id", ""),
            text=data.get("text", ""),
            sentences=[Sentence.from_dict(s) for s in data.get("sentences", [])],
            meta=dict(data.get("meta", {})),
            attrs=_normalize_attrs(data.get("attrs")),
            spans={layer: [Span.from_dict(span) for span in entries] for layer, entries in data.get("spans", {}).items()},
        )

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "sentences": [sent.to_dict() for sent in self.sentences],
            "meta": dict(self.meta),
            "attrs": dict(self.attrs),
        }
        if self.text:
            result["text"] = self.text
        if self.spans:
            result["spans"] = {
                layer: [span.to_dict() for span in spans] for layer, spans in self.spans.items()
            }
        return result
