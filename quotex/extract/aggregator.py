"""
Aggregator: accumulate per-chunk records into one AggregateDocument.
"""

from __future__ import annotations

from typing import List, Optional, Set

from quotex.extract.normalize import RecoveredRecord
from quotex.logger import get_logger
from quotex.models import (
    AggregateDocument,
    Category,
    EquipmentGroup,
    ExpenseGroup,
    ServiceGroup,
    SheetFailure,
    SummaryRecord,
)

logger = get_logger(__name__)


class Aggregator:
    """
    Running collections for a single pipeline run.

    Groups are appended in processing order and never merged or
    deduplicated; only the two identifier sets collapse duplicates.
    """

    def __init__(self) -> None:
        self.equipment_groups: List[EquipmentGroup] = []
        self.service_groups: List[ServiceGroup] = []
        self.expense_groups: List[ExpenseGroup] = []
        self.summary: Optional[SummaryRecord] = None
        self.resource_names: Set[str] = set()
        self.schedule_codes: Set[str] = set()
        self.sheet_names: List[str] = []
        self.failures: List[SheetFailure] = []

    def begin_sheet(self, sheet_name: str) -> None:
        if sheet_name not in self.sheet_names:
            self.sheet_names.append(sheet_name)

    def set_summary(self, record: SummaryRecord) -> None:
        if self.summary is not None:
            logger.warning("Summary already set, keeping the first one")
            return
        self.summary = record

    def add(self, category: Category, record: RecoveredRecord) -> None:
        """Append a chunk's groups to the collection for *category*."""
        if category == Category.SUMMARY:
            self.set_summary(record)  # type: ignore[arg-type]
        elif category == Category.EQUIPMENT:
            self.equipment_groups.extend(record)  # type: ignore[arg-type]
        elif category == Category.SERVICES:
            self.service_groups.extend(record)  # type: ignore[arg-type]
            self._collect_identifiers(record)  # type: ignore[arg-type]
        else:
            self.expense_groups.extend(record)  # type: ignore[arg-type]

    def add_failure(self, sheet_name: str, chunk_index: int, error: str, preview: str = "") -> None:
        self.failures.append(
            SheetFailure(sheet_name=sheet_name, chunk_index=chunk_index, error=error, preview=preview)
        )

    def _collect_identifiers(self, groups: List[ServiceGroup]) -> None:
        for group in groups:
            if group.suggested_schedule_code:
                self.schedule_codes.add(group.suggested_schedule_code)
            for activity in group.activities:
                for resource in activity.resources:
                    self.resource_names.add(resource.resource_name)

    def finalize(self) -> AggregateDocument:
        doc = AggregateDocument(
            equipment_groups=list(self.equipment_groups),
            service_groups=list(self.service_groups),
            expense_groups=list(self.expense_groups),
            summary=self.summary or SummaryRecord(),
            unique_resource_names=sorted(self.resource_names),
            unique_schedule_codes=sorted(self.schedule_codes),
            sheet_names=list(self.sheet_names),
            failures=list(self.failures),
        )
        logger.info(
            "Aggregate ready | sheets=%d | equipment_groups=%d | service_groups=%d | "
            "expense_groups=%d | resources=%d | schedule_codes=%d | failures=%d",
            len(doc.sheet_names),
            len(doc.equipment_groups),
            len(doc.service_groups),
            len(doc.expense_groups),
            len(doc.unique_resource_names),
            len(doc.unique_schedule_codes),
            len(doc.failures),
        )
        return doc
