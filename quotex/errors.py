"""
Exception taxonomy for the extraction pipeline.

Input errors abort before any service call; attempt-level failures are
consumed by the escalation controller; only ``ChunkExtractionError``
reaches the pipeline caller.
"""

from __future__ import annotations

from typing import Optional


class QuoteExtractionError(Exception):
    """Base class for every error raised by quotex."""


class NoUsableSheetsError(QuoteExtractionError):
    """The workbook has no sheet with more than a header row."""


class RecoveryError(QuoteExtractionError):
    """No recovery stage produced a structured value from the response text."""

    def __init__(self, text: str, preview_chars: int = 200):
        text = text or ""
        self.length = len(text)
        self.head = text[:preview_chars]
        self.tail = text[-preview_chars:] if len(text) > preview_chars else ""
        super().__init__(
            f"unrecoverable response (length={self.length}) "
            f"head={self.head!r} tail={self.tail!r}"
        )


class AttemptFailedError(QuoteExtractionError):
    """A single extraction attempt failed at the service or while parsing."""

    def __init__(self, tier: str, model: str, cause: BaseException, preview: str = ""):
        self.tier = tier
        self.model = model
        self.cause = cause
        self.preview = preview
        super().__init__(f"{tier} attempt on {model} failed: {cause}")


class ChunkExtractionError(QuoteExtractionError):
    """Every escalation tier failed for one chunk."""

    def __init__(
        self,
        sheet_name: str,
        chunk_index: int,
        total_chunks: int,
        cause: Optional[BaseException] = None,
        preview: str = "",
    ):
        self.sheet_name = sheet_name
        self.chunk_index = chunk_index
        self.total_chunks = total_chunks
        self.cause = cause
        self.preview = preview
        super().__init__(
            f"extraction failed for sheet {sheet_name!r} "
            f"(chunk {chunk_index + 1}/{total_chunks}): {cause}"
        )
