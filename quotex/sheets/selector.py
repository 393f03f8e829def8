"""
Sheet selection: drop trivial sheets, cap text size, bound the sheet count.
"""

from __future__ import annotations

from typing import Iterable, List

from quotex.config import DEFAULT_CONFIG, PipelineConfig
from quotex.logger import get_logger
from quotex.models import SheetText

logger = get_logger(__name__)


def truncate_sheet(sheet: SheetText, max_chars: int) -> SheetText:
    """Return *sheet* with its content cut to *max_chars* characters."""
    if len(sheet.content) <= max_chars:
        return sheet
    logger.warning(
        "Sheet %r truncated from %d to %d chars", sheet.name, len(sheet.content), max_chars
    )
    content = sheet.content[:max_chars]
    return SheetText(name=sheet.name, content=content, row_count=len(content.splitlines()))


def select_sheets(sheets: Iterable[SheetText], cfg: PipelineConfig = DEFAULT_CONFIG) -> List[SheetText]:
    """
    Keep sheets with more than a header row, largest first, at most
    ``cfg.max_sheets`` of them, each capped at ``cfg.max_sheet_chars``.

    An empty result is not an error here; the pipeline decides.
    """
    usable: List[SheetText] = []
    for sheet in sheets:
        # Truncation can leave only the header, so count rows afterwards
        sheet = truncate_sheet(sheet, cfg.max_sheet_chars)
        if sheet.row_count <= 1:
            logger.debug("Skipping trivial sheet %r (rows=%d)", sheet.name, sheet.row_count)
            continue
        usable.append(sheet)

    # sorted() is stable, so equal row counts keep workbook order
    usable = sorted(usable, key=lambda s: s.row_count, reverse=True)
    if len(usable) > cfg.max_sheets:
        dropped = [s.name for s in usable[cfg.max_sheets:]]
        logger.warning("Sheet limit %d reached, dropping: %s", cfg.max_sheets, dropped)
        usable = usable[: cfg.max_sheets]
    return usable
