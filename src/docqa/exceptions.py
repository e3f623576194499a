"""Exception hierarchy for the ingestion and query pipelines.

Every error carries a human-readable ``message`` plus an optional
``details`` dict so that log lines and HTTP error bodies can include
the identifiers involved without string parsing.

Ingestion-side errors never reach the request that triggered the
upload: the orchestrator catches them at the task boundary and turns
them into a ``FAILED`` status.  Query-side errors propagate to the
caller unchanged.
"""

from __future__ import annotations

from typing import Any


class DocQAError(Exception):
    """Base class for all application errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(DocQAError):
    """Bad or missing caller input."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class NotFoundError(DocQAError):
    """Requested resource is absent or not owned by the caller."""

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(f"{resource} not found: {identifier}", {"id": identifier})


# ── Ingestion ────────────────────────────────────────────────────────


class IngestionError(DocQAError):
    """The document itself cannot be processed."""


class ExtractionError(IngestionError):
    """Text extraction failed or produced no text."""


class EmptyContentError(IngestionError):
    """Extracted text yielded zero chunks."""


class IngestionCancelled(DocQAError):
    """The worker pool is shutting down; the run stopped between steps."""


class IngestionSuperseded(DocQAError):
    """The document is gone or no longer PROCESSING; the run was abandoned."""


# ── Remote services ──────────────────────────────────────────────────


class RemoteServiceError(DocQAError):
    """A remote model dependency failed."""


class EmbeddingServiceError(RemoteServiceError):
    """Embedding call failed or returned an unusable response."""


class NoEmbeddingError(EmbeddingServiceError):
    """The embedding service returned no vector at all."""


class SynthesisError(RemoteServiceError):
    """Answer generation failed or returned no choices."""


# ── Storage ──────────────────────────────────────────────────────────


class StorageError(DocQAError):
    """A storage collaborator failed."""


class ServiceUnavailableError(DocQAError):
    """The service is shutting down and accepts no new work."""
