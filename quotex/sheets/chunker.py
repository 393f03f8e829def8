"""
Row-bounded chunking of category sheets.

Each chunk repeats the header line followed by a disjoint, order-preserving
slice of the data lines.
"""

from __future__ import annotations

from typing import List, Tuple

from quotex.config import DEFAULT_CONFIG
from quotex.models import Chunk, SheetText


def split_header(content: str) -> Tuple[str, List[str]]:
    """Return ``(header_line, data_lines)`` for delimited sheet text."""
    lines = content.splitlines()
    if not lines:
        return "", []
    return lines[0], lines[1:]


def whole_sheet_chunk(sheet: SheetText) -> Chunk:
    return Chunk(
        parent_sheet_name=sheet.name,
        content=sheet.content,
        row_count=sheet.row_count,
        index=0,
        total_chunks=1,
    )


def chunk_sheet(sheet: SheetText, max_rows: int = DEFAULT_CONFIG.chunk_rows) -> List[Chunk]:
    """
    Split *sheet* into chunks of at most *max_rows* data lines.

    A sheet at or below the bound yields exactly one chunk equal to itself.
    """
    if max_rows < 1:
        raise ValueError(f"max_rows must be positive, got {max_rows}")
    header, data = split_header(sheet.content)
    if len(data) <= max_rows:
        return [whole_sheet_chunk(sheet)]

    groups = [data[start:start + max_rows] for start in range(0, len(data), max_rows)]
    return [
        Chunk(
            parent_sheet_name=sheet.name,
            content="\n".join([header] + group),
            row_count=len(group) + 1,
            index=idx,
            total_chunks=len(groups),
        )
        for idx, group in enumerate(groups)
    ]
