from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

from . import model_storage
from .config import ChunkerConfig
from .decoder import ChunkDecoder
from .doc import Document, Span, Token
from .language_utils import normalize_language
from .model_cache import EngineHandle, ModelCache
from .models import ModelKey
from .tag_mapping import ChunkMapping

logger = logging.getLogger(__name__)


@dataclass
class _DocumentLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


@dataclass
class ChunkResult:
    """Result of chunking one document."""
    document: Document
    stats: Dict[str, float] = field(default_factory=dict)


class TreeTaggerChunker:
    """Adds chunk spans to documents whose tokens already carry POS tags."""

    def __init__(self, config: Optional[ChunkerConfig] = None, *, cache: Optional[ModelCache] = None):
        self.config = config or ChunkerConfig()
        self._owns_cache = cache is None
        self.cache = cache if cache is not None else ModelCache.from_config(self.config)
        self._mappings: Dict[ModelKey, ChunkMapping] = {}
        self._document_locks: Dict[int, _DocumentLock] = {}
        self._guard = threading.Lock()

    def __enter__(self) -> "TreeTaggerChunker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_cache:
            self.cache.close()

    def model_key(self, document: Document) -> ModelKey:
        language = self.config.language or document.language
        return ModelKey(
            language=normalize_language(language),
            variant=self.config.variant,
            location=self.config.model_location,
        )

    def chunk_mapping(self, handle: EngineHandle) -> ChunkMapping:
        with self._guard:
            mapping = self._mappings.get(handle.key)
        if mapping is None:
            models_dir = self.cache.models_dir or model_storage.get_models_dir(create=False)
            mapping = ChunkMapping.locate(
                self.config.chunk_mapping_location,
                language=handle.key.language,
                tagset=handle.model.metadata.tagset,
                models_dir=models_dir,
            )
            with self._guard:
                self._mappings[handle.key] = mapping
        return mapping

    @contextmanager
    def _document_lock(self, document: Document) -> Iterator[threading.Lock]:
        key = id(document)
        with self._guard:
            entry = self._document_locks.setdefault(key, _DocumentLock())
            entry.users += 1
        try:
            yield entry.lock
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._document_locks[key]

    def annotate(self, document: Document) -> ChunkResult:
        """Chunk every sentence of ``document`` in order, appending spans to it."""
        handle = self.cache.resolve(self.model_key(document))
        mapping = self.chunk_mapping(handle)
        decoder = ChunkDecoder(
            outside_tag=self.config.outside_tag,
            intern_tags=self.config.intern_tags,
        )
        layer = self.config.span_layer
        counts = {"tokens": 0, "flushes": 0, "spans": 0}

        def handler(token: Optional[Token], tag: Optional[str]) -> None:
            if tag is None:
                for decoded in decoder.end_sentence():
                    document.add_span(
                        layer,
                        Span(
                            label=decoded.label,
                            start=decoded.start,
                            end=decoded.end,
                            type=mapping.get_type(decoded.label),
                        ),
                    )
                    counts["spans"] += 1
                counts["flushes"] += 1
                return
            decoder.feed(token.char_start, token.char_end, tag)
            counts["tokens"] += 1

        start = time.time()
        with handle.lock, self._document_lock(document) as document_lock:
            for sentence in document.sentences:
                tokens = sentence.ordered_tokens()
                with document_lock:
                    handle.engine.process(tokens, handler)
                    handler(None, None)
        elapsed = time.time() - start

        stats = {
            "backend": "treetagger",
            "model": handle.model.name,
            "sentences": len(document.sentences),
            "tokens": counts["tokens"],
            "flushes": counts["flushes"],
            "spans": counts["spans"],
            "elapsed_seconds": elapsed,
        }
        logger.debug(
            "Chunked document %s: %d sentences, %d tokens, %d spans in %.3fs",
            document.id or "<unnamed>",
            stats["sentences"],
            stats["tokens"],
            stats["spans"],
            elapsed,
        )
        return ChunkResult(document=document, stats=stats)


def chunk_document(document: Document, config: Optional[ChunkerConfig] = None) -> ChunkResult:
    """Chunk a single document with a short-lived chunker."""
    with TreeTaggerChunker(config) as chunker:
        return chunker.annotate(document)
