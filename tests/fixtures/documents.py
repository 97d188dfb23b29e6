"""Builders for test documents and chunker model files."""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from treechunk.doc import Document, Sentence, Token

# POS tag -> chunk category understood by the fake tagger
FAKE_CHUNKS: Dict[str, str] = {
    "DT": "NP",
    "JJ": "NP",
    "NN": "NP",
    "NNS": "NP",
    "PRP": "NP",
    "MD": "VP",
    "VB": "VP",
    "VBZ": "VP",
    "IN": "PP",
}

DEFAULT_TAGS = "NN/B-NP NN/I-NP VB/B-VP VB/I-VP IN/B-PP ./O"


def make_document(
    *sentences: Sequence[Tuple[str, str]],
    language: Optional[str] = "en",
    doc_id: str = "doc1",
) -> Document:
    """Build a document from sentences of (form, xpos) pairs separated by single spaces."""
    text_parts: List[str] = []
    offset = 0
    built: List[Sentence] = []
    for sent_index, pairs in enumerate(sentences, start=1):
        tokens = []
        sent_start = offset
        for tok_index, (form, xpos) in enumerate(pairs, start=1):
            tokens.append(Token(id=tok_index, form=form, xpos=xpos, char_start=offset, char_end=offset + len(form)))
            text_parts.append(form)
            offset += len(form) + 1
        built.append(Sentence(id=f"s{sent_index}", tokens=tokens, char_start=sent_start, char_end=max(sent_start, offset - 1)))
    attrs = {"lang": language} if language else {}
    return Document(id=doc_id, text=" ".join(text_parts), sentences=built, attrs=attrs)


def write_model(
    directory: Path,
    language: str = "en",
    variant: str = "le",
    *,
    extra_properties: Iterable[str] = (),
    tags: str = DEFAULT_TAGS,
    chunks: Optional[Dict[str, str]] = None,
) -> Path:
    """Write chunker-<language>-<variant>.properties/.par and return the properties path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    stem = f"chunker-{language}-{variant}"
    (directory / f"{stem}.par").write_text(json.dumps(chunks or FAKE_CHUNKS), encoding="utf-8")
    lines = ["# test chunker model", "encoding=utf-8", "chunk.tagset=tt", f"chunk.tags={tags}"]
    lines.extend(extra_properties)
    properties = directory / f"{stem}.properties"
    properties.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return properties
