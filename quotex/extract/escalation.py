"""
EscalationController: up to three attempts per chunk.

    BASELINE    default model, request as built
    REINFORCED  default model, JSON-only instruction prepended
    ESCALATED   escalation model, request as built (skipped when the
                default model is already the highest tier)

Attempts are driven by tenacity with a fixed wait before each retry. A
service exception and an unrecoverable response are the same failure.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import openai
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_chain, wait_fixed

from quotex.config import DEFAULT_CONFIG, PipelineConfig
from quotex.errors import AttemptFailedError, ChunkExtractionError, RecoveryError
from quotex.extract.normalize import RecoveredRecord, normalize_payload
from quotex.extract.recovery import RecoveryParser
from quotex.extract.requests import ExtractionRequest
from quotex.logger import get_logger
from quotex.models import Category, Chunk, ExtractionAttempt, Tier
from quotex.usage import REQUEST_KIND_SHEET_EXTRACTION, UsageEvent, UsageSink, record_usage_safely

logger = get_logger(__name__)


def _log_escalation(retry_state: Any) -> None:
    outcome = retry_state.outcome
    exc = outcome.exception() if outcome else None
    logger.warning(
        "Extraction attempt %d failed, escalating | tier=%s | model=%s | wait=%.1fs | error=%s",
        retry_state.attempt_number,
        getattr(exc, "tier", "unknown"),
        getattr(exc, "model", "unknown"),
        retry_state.next_action.sleep if retry_state.next_action else 0.0,
        getattr(exc, "cause", exc),
    )


class EscalationController:
    """
    Resolve one chunk into a typed record or raise ``ChunkExtractionError``.

    The controller is stateless between chunks and safe to reuse for a run.
    """

    def __init__(
        self,
        llm: Any,
        prompts: Dict[str, str],
        usage_sink: Optional[UsageSink] = None,
        cfg: PipelineConfig = DEFAULT_CONFIG,
        user_id: str = "system",
        parser: Optional[RecoveryParser] = None,
    ):
        self._llm = llm
        self._reinforcement = prompts.get("REINFORCEMENT_PROMPT", "")
        self._usage_sink = usage_sink
        self._cfg = cfg
        self._user_id = user_id
        self._parser = parser or RecoveryParser(cfg)

    def tier_plan(self) -> List[Tuple[Tier, str]]:
        """Ordered ``(tier, model)`` pairs this controller will try."""
        base_model = self._llm.model
        plan = [(Tier.BASELINE, base_model), (Tier.REINFORCED, base_model)]
        escalation_model = getattr(self._llm, "escalation_model", None)
        if escalation_model and escalation_model != base_model:
            plan.append((Tier.ESCALATED, escalation_model))
        return plan

    async def run(self, request: ExtractionRequest, chunk: Chunk) -> RecoveredRecord:
        plan = self.tier_plan()
        attempts: List[ExtractionAttempt] = []
        retrying = AsyncRetrying(
            stop=stop_after_attempt(len(plan)),
            wait=wait_chain(
                wait_fixed(self._cfg.backoff_seconds),
                wait_fixed(self._cfg.escalation_backoff_seconds),
            ),
            retry=retry_if_exception_type(AttemptFailedError),
            before_sleep=_log_escalation,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    tier, model = plan[attempt.retry_state.attempt_number - 1]
                    record = await self._attempt(request, chunk, tier, model, attempts)
        except AttemptFailedError as exc:
            last = attempts[-1] if attempts else None
            preview = (last.result_text or "")[: self._cfg.preview_chars] if last else ""
            logger.error(
                "All %d tiers failed for %s: %s", len(plan), chunk.label, exc.cause
            )
            raise ChunkExtractionError(
                chunk.parent_sheet_name,
                chunk.index,
                chunk.total_chunks,
                cause=exc.cause,
                preview=preview,
            ) from exc
        return record

    async def _attempt(
        self,
        request: ExtractionRequest,
        chunk: Chunk,
        tier: Tier,
        model: str,
        attempts: List[ExtractionAttempt],
    ) -> RecoveredRecord:
        if tier == Tier.REINFORCED:
            request = request.reinforced(self._reinforcement)
        step = f"{request.category.value}:{tier.value}"

        try:
            response = await self._llm.complete(
                request.system,
                request.prompt,
                model=model,
                max_tokens=request.max_output_tokens,
                step=step,
            )
        except Exception as exc:  # noqa: BLE001
            attempts.append(ExtractionAttempt(chunk=chunk, tier=tier, service_model=model, error=str(exc)))
            if isinstance(exc, openai.APIStatusError):
                # The service answered with an error status; no token counts
                await self._report_usage(
                    request, chunk, tier, model, 0, 0, error=type(exc).__name__
                )
            raise AttemptFailedError(tier.value, model, exc) from exc

        await self._report_usage(
            request, chunk, tier, model, response.input_tokens, response.output_tokens
        )
        try:
            recovered = self._parser.parse(response.text)
        except RecoveryError as exc:
            attempts.append(
                ExtractionAttempt(
                    chunk=chunk,
                    tier=tier,
                    service_model=model,
                    result_text=response.text,
                    error=str(exc),
                )
            )
            raise AttemptFailedError(tier.value, model, exc, preview=exc.head) from exc

        logger.info(
            "Chunk resolved | %s | tier=%s | model=%s | recovery_stage=%d",
            chunk.label,
            tier.value,
            model,
            recovered.stage,
        )
        record = normalize_payload(request.category, recovered.value, chunk.parent_sheet_name)
        if request.category != Category.SUMMARY and not record and chunk.row_count > 1:
            logger.warning(
                "No %s groups found in %s (%d rows); response keys=%s",
                request.category.value,
                chunk.label,
                chunk.row_count,
                list(recovered.value)[:5] if isinstance(recovered.value, dict) else "list",
            )
        return record

    async def _report_usage(
        self,
        request: ExtractionRequest,
        chunk: Chunk,
        tier: Tier,
        model: str,
        input_tokens: int,
        output_tokens: int,
        error: Optional[str] = None,
    ) -> None:
        if self._usage_sink is None:
            return
        metadata: Dict[str, Any] = {
            "tier": tier.value,
            "category": request.category.value,
            "sheet": chunk.parent_sheet_name,
            "chunk": chunk.index,
            "total_chunks": chunk.total_chunks,
        }
        if error:
            metadata["error"] = error
        event = UsageEvent(
            user_id=self._user_id,
            request_kind=REQUEST_KIND_SHEET_EXTRACTION,
            model=model,
            input_tokens=int(input_tokens or 0),
            output_tokens=int(output_tokens or 0),
            metadata=metadata,
        )
        # Sinks may write files; keep that off the event loop
        await asyncio.to_thread(record_usage_safely, self._usage_sink, event)
