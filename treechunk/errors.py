"""Exceptions raised by treechunk."""

from __future__ import annotations


class TreeChunkError(Exception):
    """Base class for all treechunk errors."""


class ModelResolutionError(TreeChunkError):
    """No model artifact could be found for the requested configuration."""


class ModelLoadError(TreeChunkError):
    """The model metadata could not be parsed or the engine could not be configured."""


class EngineProcessError(TreeChunkError, RuntimeError):
    """The TreeTagger process failed while tagging a sentence."""


class TagFormatError(TreeChunkError, ValueError):
    """A compound engine tag does not follow the ``tag/flag-category`` convention."""
