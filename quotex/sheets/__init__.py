"""
Sheet layer: workbook reading, selection, classification and chunking.
"""

from quotex.sheets.chunker import chunk_sheet, split_header
from quotex.sheets.classifier import classify
from quotex.sheets.reader import WorkbookReader, read_workbook
from quotex.sheets.selector import select_sheets

__all__ = [
    "WorkbookReader",
    "read_workbook",
    "select_sheets",
    "classify",
    "chunk_sheet",
    "split_header",
]
