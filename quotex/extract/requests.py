"""
Request Builder: one extraction request per chunk, shaped by category.

Pure functions only; prompt text comes from :mod:`quotex.prompts_loader`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional

from quotex.models import Category, Chunk

PROMPT_KEY_BY_CATEGORY: Dict[Category, str] = {
    Category.SUMMARY: "SUMMARY_PROMPT",
    Category.EQUIPMENT: "EQUIPMENT_PROMPT",
    Category.SERVICES: "SERVICES_PROMPT",
    Category.EXPENSES: "EXPENSES_PROMPT",
}

# Summary answers are one small object; line-item sheets can be long
MAX_OUTPUT_TOKENS: Dict[Category, Optional[int]] = {
    Category.SUMMARY: 2000,
    Category.EQUIPMENT: None,
    Category.SERVICES: None,
    Category.EXPENSES: None,
}


@dataclass(frozen=True)
class ExtractionRequest:
    """
    Opaque payload handed to the inference service.

    ``max_output_tokens`` of ``None`` means the client default.
    """
    category: Category
    system: str
    prompt: str
    sheet_name: str
    chunk_index: int = 0
    total_chunks: int = 1
    max_output_tokens: Optional[int] = None

    def reinforced(self, instruction: str) -> "ExtractionRequest":
        """Same request with *instruction* prepended to the user prompt."""
        return replace(self, prompt=f"{instruction.strip()}\n\n{self.prompt}")


def render_user_prompt(chunk: Chunk, context: Optional[str] = None) -> str:
    parts = [f"Sheet: {chunk.parent_sheet_name}"]
    if chunk.total_chunks > 1:
        parts.append(
            f"Part {chunk.index + 1} of {chunk.total_chunks}. The header line is repeated; "
            f"extract only the rows shown in this part."
        )
    if context:
        parts.append(f"Quotation context:\n{context.strip()}")
    parts.append(f"Sheet content ({chunk.row_count} rows):\n{chunk.content}")
    return "\n\n".join(parts)


def build_request(
    chunk: Chunk,
    category: Category,
    prompts: Dict[str, str],
    context: Optional[str] = None,
) -> ExtractionRequest:
    """Build the extraction request for *chunk* under *category*."""
    return ExtractionRequest(
        category=category,
        system=prompts.get(PROMPT_KEY_BY_CATEGORY[category], ""),
        prompt=render_user_prompt(chunk, context),
        sheet_name=chunk.parent_sheet_name,
        chunk_index=chunk.index,
        total_chunks=chunk.total_chunks,
        max_output_tokens=MAX_OUTPUT_TOKENS[category],
    )
