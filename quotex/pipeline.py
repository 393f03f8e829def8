"""
Pipeline: thin orchestrator for one workbook.

extract          – sheets → AggregateDocument (async)
extract_workbook – file path → AggregateDocument (sync bridge)

Order of work:
  1. Sheet selection (drop trivial sheets, truncate, rank, cap)
  2. Classification by sheet name
  3. The largest Summary sheet, whole, first; its record becomes context
  4. Every other selected sheet in rank order, chunked by rows
  5. Each chunk → EscalationController → Aggregator
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from quotex.config import DEFAULT_CONFIG, PipelineConfig, get_settings
from quotex.errors import ChunkExtractionError, NoUsableSheetsError
from quotex.extract.aggregator import Aggregator
from quotex.extract.escalation import EscalationController
from quotex.extract.requests import build_request
from quotex.llm import LLMClient, get_llm_client
from quotex.logger import get_logger
from quotex.models import AggregateDocument, Category, SheetText, SummaryRecord
from quotex.prompts_loader import get_prompts
from quotex.sheets.chunker import chunk_sheet, whole_sheet_chunk
from quotex.sheets.classifier import classify
from quotex.sheets.reader import read_workbook
from quotex.sheets.selector import select_sheets
from quotex.usage import LoggingUsageSink, UsageSink, build_usage_sink

logger = get_logger(__name__)

ProgressCallback = Callable[[str], Any]
SheetInput = Union[SheetText, Tuple[str, str, int], Sequence[Any]]


def _as_sheet(item: SheetInput) -> SheetText:
    if isinstance(item, SheetText):
        return item
    name, content, row_count = item
    return SheetText(name=str(name), content=str(content), row_count=int(row_count))


def _notify(progress_callback: Optional[ProgressCallback], message: str) -> None:
    if progress_callback is None:
        return
    try:
        progress_callback(message)
    except Exception as exc:  # noqa: BLE001
        logger.warning("progress callback raised, ignoring: %s", exc)


def summary_context(summary: Optional[SummaryRecord]) -> Optional[str]:
    """Short context block carried into every non-summary request."""
    if summary is None:
        return None
    lines = []
    if summary.project_name:
        lines.append(f"Project: {summary.project_name}")
    if summary.client_name:
        lines.append(f"Client: {summary.client_name}")
    if lines:
        lines.append(f"Currency: {summary.currency}")
    return "\n".join(lines) or None


def plan_sheets(sheets: List[SheetText]) -> Tuple[Optional[SheetText], List[Tuple[SheetText, Category]]]:
    """
    Split selected sheets into the summary sheet and the ordered work list.

    Only the summary sheet with the most rows is kept; the selector has
    already ranked by row count so the first one wins ties.
    """
    summary_sheet: Optional[SheetText] = None
    work: List[Tuple[SheetText, Category]] = []
    for sheet in sheets:
        category = classify(sheet.name)
        if category == Category.SUMMARY:
            if summary_sheet is None:
                summary_sheet = sheet
            else:
                logger.info("Skipping extra summary sheet: %s", sheet.name)
            continue
        work.append((sheet, category))
    return summary_sheet, work


async def extract(
    sheets: Iterable[SheetInput],
    progress_callback: Optional[ProgressCallback] = None,
    *,
    llm: Optional[LLMClient] = None,
    prompts: Optional[Dict[str, str]] = None,
    cfg: PipelineConfig = DEFAULT_CONFIG,
    usage_sink: Optional[UsageSink] = None,
    user_id: Optional[str] = None,
    fail_fast: Optional[bool] = None,
) -> AggregateDocument:
    """
    Extract one AggregateDocument from the sheets of a workbook.

    Raises ``NoUsableSheetsError`` before any service call when nothing
    survives selection, and ``ChunkExtractionError`` on the first chunk
    that fails every tier unless *fail_fast* is False.
    """
    selected = select_sheets([_as_sheet(s) for s in sheets], cfg)
    if not selected:
        raise NoUsableSheetsError("workbook has no sheet with data rows")

    if llm is None:
        llm = get_llm_client()
        if usage_sink is None:
            usage_sink = build_usage_sink(get_settings().USAGE_LOG_PATH)
        if user_id is None:
            user_id = get_settings().EXTRACTION_USER_ID
    if usage_sink is None:
        usage_sink = LoggingUsageSink()
    if prompts is None:
        prompts = get_prompts()
    if fail_fast is None:
        fail_fast = cfg.fail_fast

    controller = EscalationController(
        llm, prompts, usage_sink=usage_sink, cfg=cfg, user_id=user_id or "system"
    )
    aggregator = Aggregator()
    summary_sheet, work = plan_sheets(selected)
    logger.info(
        "Extraction start | selected=%d | summary=%s | work_sheets=%d | fail_fast=%s",
        len(selected),
        summary_sheet.name if summary_sheet else None,
        len(work),
        fail_fast,
    )

    context: Optional[str] = None
    if summary_sheet is not None:
        _notify(progress_callback, f"Extracting summary: {summary_sheet.name}")
        aggregator.begin_sheet(summary_sheet.name)
        chunk = whole_sheet_chunk(summary_sheet)
        request = build_request(chunk, Category.SUMMARY, prompts)
        try:
            summary = await controller.run(request, chunk)
        except ChunkExtractionError as exc:
            if fail_fast:
                raise
            aggregator.add_failure(summary_sheet.name, 0, str(exc.cause), exc.preview)
        else:
            aggregator.add(Category.SUMMARY, summary)
            context = summary_context(summary)  # type: ignore[arg-type]

    for sheet, category in work:
        aggregator.begin_sheet(sheet.name)
        for chunk in chunk_sheet(sheet, cfg.chunk_rows):
            _notify(progress_callback, f"Extracting {category.value}: {chunk.label}")
            request = build_request(chunk, category, prompts, context)
            try:
                records = await controller.run(request, chunk)
            except ChunkExtractionError as exc:
                if fail_fast:
                    raise
                logger.warning("Continuing after failed chunk: %s", exc)
                aggregator.add_failure(sheet.name, chunk.index, str(exc.cause), exc.preview)
                continue
            aggregator.add(category, records)

    return aggregator.finalize()


def extract_workbook(
    file_path: str,
    progress_callback: Optional[ProgressCallback] = None,
    **kwargs: Any,
) -> AggregateDocument:
    """Read *file_path* and run :func:`extract` to completion."""
    sheets = read_workbook(file_path)
    logger.info("Workbook loaded: %s (%d sheets)", file_path, len(sheets))
    return LLMClient._run_sync(extract(sheets, progress_callback, **kwargs))
