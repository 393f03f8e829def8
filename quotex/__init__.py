"""
quotex: structured extraction of commercial quotations from spreadsheet
workbooks through a language-model service.
"""

from quotex.errors import ChunkExtractionError, NoUsableSheetsError, QuoteExtractionError, RecoveryError
from quotex.models import AggregateDocument, Category, SheetText
from quotex.pipeline import extract, extract_workbook

__version__ = "0.1.0"

__all__ = [
    "AggregateDocument",
    "Category",
    "ChunkExtractionError",
    "NoUsableSheetsError",
    "QuoteExtractionError",
    "RecoveryError",
    "SheetText",
    "extract",
    "extract_workbook",
]
