"""
Process-wide cache of configured chunker engines, keyed by model configuration.

Resolving a key the first time locates the model, parses its metadata, builds
the tag substitution and tag-set declaration and starts a TreeTagger process.
Later calls return the same handle. Loading is serialized per key, so
concurrent first use never spawns two processes for one model.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol

from . import model_storage
from .config import DEFAULT_FLUSH_SEQUENCE, ChunkerConfig
from .engine import TokenHandler, TreeTaggerProcess
from .errors import EngineProcessError, ModelLoadError
from .models import ModelKey, ResolvedModel, load_model
from .tag_mapping import Tagset, TagSubstitution

logger = logging.getLogger(__name__)


class Engine(Protocol):
    @property
    def is_alive(self) -> bool: ...

    def configure(
        self,
        model: ResolvedModel,
        *,
        substitutions: Optional[TagSubstitution] = None,
        flush_sequence: Optional[str] = None,
    ) -> None: ...

    def process(self, tokens, handler: TokenHandler) -> None: ...

    def close(self) -> None: ...


EngineFactory = Callable[[], Engine]


class EngineHandle:
    """A configured engine plus everything loaded for its model."""

    def __init__(
        self,
        model: ResolvedModel,
        engine: Engine,
        substitutions: TagSubstitution,
        tagset: Tagset,
    ):
        self.model = model
        self.engine = engine
        self.substitutions = substitutions
        self.tagset = tagset
        # Held while a document is being annotated with this engine
        self.lock = threading.Lock()

    @property
    def key(self) -> ModelKey:
        return self.model.key

    @property
    def is_alive(self) -> bool:
        return self.engine.is_alive

    def close(self) -> None:
        self.engine.close()

    def __repr__(self) -> str:
        return f"EngineHandle(model={self.model.name!r}, alive={self.is_alive})"


class ModelCache:
    def __init__(
        self,
        *,
        executable: Optional[str] = None,
        extra_args: Optional[list] = None,
        performance_mode: bool = False,
        flush_sequence: Optional[str] = None,
        print_tagset: bool = False,
        models_dir: Optional[str | Path] = None,
        default_variant: Optional[str] = None,
        download_model: bool = False,
        engine_factory: Optional[EngineFactory] = None,
    ):
        self.flush_sequence = flush_sequence
        self.print_tagset = print_tagset
        self.models_dir = Path(models_dir).expanduser() if models_dir else None
        self.default_variant = default_variant or model_storage.get_default_variant()
        self.download_model = download_model
        if engine_factory is None:
            def engine_factory() -> Engine:
                return TreeTaggerProcess(
                    executable,
                    extra_args=extra_args,
                    performance_mode=performance_mode,
                )
        self._engine_factory = engine_factory
        self._handles: Dict[ModelKey, EngineHandle] = {}
        self._key_locks: Dict[ModelKey, threading.Lock] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: ChunkerConfig, **kwargs) -> "ModelCache":
        return cls(
            executable=config.executable_path,
            extra_args=config.extra_args,
            performance_mode=config.performance_mode,
            flush_sequence=config.flush_sequence,
            print_tagset=config.print_tagset,
            models_dir=config.models_dir,
            download_model=config.download_model,
            **kwargs,
        )

    def __enter__(self) -> "ModelCache":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __contains__(self, key: ModelKey) -> bool:
        with self._lock:
            return self.effective_key(key) in self._handles

    def effective_key(self, key: ModelKey) -> ModelKey:
        return key.with_default_variant(self.default_variant)

    def resolve(self, key: ModelKey) -> EngineHandle:
        """Return the engine handle for ``key``, loading the model on first use."""
        key = self.effective_key(key)
        with self._lock:
            handle = self._handles.get(key)
            if handle is not None and handle.is_alive:
                return handle
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            with self._lock:
                handle = self._handles.get(key)
            if handle is not None:
                if handle.is_alive:
                    return handle
                logger.warning("TreeTagger process for %s has terminated; restarting it", key.describe())
                # Wait for a document still reading from the dead process
                with handle.lock:
                    handle.close()
            handle = self._load(key)
            with self._lock:
                self._handles[key] = handle
            return handle

    def _load(self, key: ModelKey) -> EngineHandle:
        model = load_model(
            key,
            models_dir=self.models_dir,
            download_model=self.download_model,
        )
        substitutions = TagSubstitution.from_properties(model.metadata.properties)
        tagset = Tagset.from_tags(model.metadata.tags, name=model.metadata.tagset)
        flush = self.flush_sequence or model.metadata.flush_sequence or DEFAULT_FLUSH_SEQUENCE

        engine = self._engine_factory()
        try:
            engine.configure(model, substitutions=substitutions, flush_sequence=flush)
        except (EngineProcessError, OSError) as exc:
            engine.close()
            raise ModelLoadError(f"Cannot configure TreeTagger for model {model.name}: {exc}") from exc

        if self.print_tagset:
            logger.info("Tag set of chunker model %s:\n%s", model.name, tagset.format_table())
        logger.debug(
            "Loaded chunker model %s (%d tag substitutions, %d chunk tags)",
            model.name,
            len(substitutions),
            len(tagset.labels),
        )
        return EngineHandle(model, engine, substitutions, tagset)

    def close(self) -> None:
        """Shut down all engine processes owned by this cache."""
        with self._lock:
            handles = list(self._handles.values())
            self._handles.clear()
            self._key_locks.clear()
        for handle in handles:
            handle.close()
