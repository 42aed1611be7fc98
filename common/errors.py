from __future__ import annotations

ERROR_PREFIX = "Error:"


class RagError(Exception):
    """Base class for failures raised inside the indexing/retrieval core."""


class StagingIOError(RagError):
    """Staging directory could not be cleared/created."""


class IndexBuildError(RagError):
    """Keyword engine failed or the build exceeded its deadline."""


class VectorPopulationError(RagError):
    """Vector store rejected a population run. Always degraded, never escalated."""


class RetrievalPathError(RagError):
    """One retrieval path (keyword or semantic) failed for a single query."""


class ModelCallError(RagError):
    """The language model call raised or timed out."""


class RebuildInProgressError(RagError):
    """A second rebuild was requested while one is still running."""


def error_sentinel(message: str) -> str:
    return f"{ERROR_PREFIX} {message}"


def is_error_sentinel(text: object) -> bool:
    return isinstance(text, str) and text.startswith(ERROR_PREFIX)
