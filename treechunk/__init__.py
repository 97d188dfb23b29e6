"""
treechunk: chunk annotation with TreeTagger.

Feeds POS-tagged sentences to a long-lived TreeTagger chunker process and
reconstructs chunk spans from its BIO-style output.
"""

__version__ = "1.0.0"

from treechunk.chunker import ChunkResult, TreeTaggerChunker, chunk_document
from treechunk.config import ChunkerConfig
from treechunk.errors import (
    EngineProcessError,
    ModelLoadError,
    ModelResolutionError,
    TagFormatError,
    TreeChunkError,
)
from treechunk.model_cache import ModelCache
from treechunk.models import ModelKey

__all__ = [
    'ChunkResult',
    'ChunkerConfig',
    'EngineProcessError',
    'ModelCache',
    'ModelKey',
    'ModelLoadError',
    'ModelResolutionError',
    'TagFormatError',
    'TreeChunkError',
    'TreeTaggerChunker',
    'chunk_document',
    '__version__',
]
