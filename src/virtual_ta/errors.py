"""Exception hierarchy for the answer pipeline.

ValidationError is raised before any retrieval work and never produces a
question record. ProviderError wraps failures of the embedding or chat
provider. DataIntegrityError names dangling evidence references; the retriever
logs and skips those rather than raising.
"""

from __future__ import annotations


class VirtualTAError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(VirtualTAError):
    """Request or record failed validation (empty question, oversized image, ...)."""


class ProviderError(VirtualTAError):
    """An external embedding or completion provider call failed or timed out."""


class DataIntegrityError(VirtualTAError):
    """Evidence references a content item that no longer exists."""


class ReindexInProgressError(VirtualTAError):
    """A reindex is already running in this process."""
