"""
WorkbookReader: spreadsheet adapter that turns a workbook into SheetText.

Encapsulates:
- openpyxl for .xlsx/.xlsm, pandas (xlrd engine) for legacy .xls, pandas for .csv
- cell → string cleaning
- empty-row skipping and trailing-empty-cell trimming

The pipeline core never touches cells; it only consumes the SheetText list.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, List, Sequence

import pandas as pd
from openpyxl import load_workbook

from quotex.logger import get_logger
from quotex.models import SheetText

logger = get_logger(__name__)

CELL_SEPARATOR = " | "


def cell_to_str(value: Any) -> str:
    """Convert an arbitrary cell value to a clean single-line string."""
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    if isinstance(value, str):
        text = value
    elif isinstance(value, bool):
        text = "TRUE" if value else "FALSE"
    elif isinstance(value, float) and value.is_integer():
        text = str(int(value))
    elif isinstance(value, (datetime, pd.Timestamp)):
        text = value.isoformat(sep=" ", timespec="seconds")
    elif isinstance(value, date):
        text = value.isoformat()
    else:
        # Rich-text objects from openpyxl may expose .plain or .text
        plain_attr = getattr(value, "plain", None)
        text_attr = getattr(value, "text", None)
        if isinstance(plain_attr, str):
            text = plain_attr
        elif isinstance(text_attr, str):
            text = text_attr
        else:
            text = str(value)
    text = " ".join(text.split())
    if text.lower() in {"nan", "none", "nat"}:
        return ""
    return text


def rows_to_lines(rows: Iterable[Sequence[Any]]) -> List[str]:
    """Render rows as delimited lines, skipping rows without any value."""
    lines: List[str] = []
    for row in rows:
        cells = [cell_to_str(c) for c in row]
        while cells and cells[-1] == "":
            cells.pop()
        if not any(cells):
            continue
        lines.append(CELL_SEPARATOR.join(cells))
    return lines


def lines_to_sheet(name: str, lines: List[str]) -> SheetText:
    return SheetText(name=name, content="\n".join(lines), row_count=len(lines))


class WorkbookReader:
    """Read every worksheet of a workbook into :class:`SheetText` objects."""

    def read(self, file_path: str) -> List[SheetText]:
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Workbook not found: {path}")
        suffix = path.suffix.lower()
        if suffix == ".csv":
            sheets = self._read_csv(path)
        elif suffix == ".xls":
            sheets = self._read_xls(path)
        else:
            sheets = self._read_xlsx(path)
        logger.info(
            "Workbook read: %s (%d sheets: %s)",
            path.name,
            len(sheets),
            ", ".join(f"{s.name}={s.row_count}" for s in sheets),
        )
        return sheets

    @staticmethod
    def _read_xlsx(path: Path) -> List[SheetText]:
        wb = load_workbook(path, read_only=True, data_only=True)
        try:
            return [
                lines_to_sheet(ws.title, rows_to_lines(ws.iter_rows(values_only=True)))
                for ws in wb.worksheets
            ]
        finally:
            wb.close()

    @staticmethod
    def _read_xls(path: Path) -> List[SheetText]:
        frames = pd.read_excel(path, sheet_name=None, header=None, engine="xlrd", keep_default_na=False)
        return [
            lines_to_sheet(str(name), rows_to_lines(df.itertuples(index=False, name=None)))
            for name, df in frames.items()
        ]

    @staticmethod
    def _read_csv(path: Path) -> List[SheetText]:
        df = pd.read_csv(path, header=None, dtype=str, keep_default_na=False)
        return [lines_to_sheet(path.stem, rows_to_lines(df.itertuples(index=False, name=None)))]


def read_workbook(file_path: str) -> List[SheetText]:
    """Convenience wrapper around :class:`WorkbookReader`."""
    return WorkbookReader().read(file_path)
