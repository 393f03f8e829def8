"""
End-to-end pipeline tests with a fake service client.
"""
import asyncio
import json
import re

import pytest

from conftest import ScriptedLLMClient
from quotex.config import PipelineConfig
from quotex.errors import ChunkExtractionError, NoUsableSheetsError
from quotex.models import SheetText
from quotex.pipeline import extract, plan_sheets, summary_context
from quotex.usage import MemoryUsageSink

RE_ROW_CODE = re.compile(r"^(C\d+) \|", re.MULTILINE)

SUMMARY_JSON = json.dumps(
    {"project_name": "Planta Norte", "client_name": "ACME", "currency": "USD", "total": 1500}
)


def equipment_responder(system, prompt, model):
    """Return one item per data row seen in the prompt."""
    if system == "SYSTEM:summary":
        return SUMMARY_JSON
    codes = RE_ROW_CODE.findall(prompt)
    return json.dumps({"groups": [{"group": "Equipos", "items": [{"code": c} for c in codes]}]})


def _run(sheets, llm, prompts, cfg, **kwargs):
    return asyncio.run(extract(sheets, llm=llm, prompts=prompts, cfg=cfg, **kwargs))


def test_summary_and_equipment_sheet(make_sheet, prompts, fast_config):
    sheets = [make_sheet("RESUMEN", 2), make_sheet("MAT. ELECTRICOS", 49)]
    llm = ScriptedLLMClient(responder=equipment_responder)

    doc = _run(sheets, llm, prompts, fast_config)

    assert doc.summary.project_name == "Planta Norte"
    assert doc.summary.total == 1500.0
    assert len(doc.equipment_groups) == 1
    assert len(doc.equipment_groups[0].items) == 49
    assert doc.sheet_names == ["RESUMEN", "MAT. ELECTRICOS"]
    assert doc.failures == []
    # summary first, then one request for the equipment sheet
    assert [c["system"] for c in llm.calls] == ["SYSTEM:summary", "SYSTEM:equipment"]


def test_summary_context_reaches_other_requests(make_sheet, prompts, fast_config):
    llm = ScriptedLLMClient(responder=equipment_responder)
    _run([make_sheet("Resumen", 3), make_sheet("Equipos", 5)], llm, prompts, fast_config)
    assert "Project: Planta Norte" in llm.calls[1]["prompt"]
    assert "Client: ACME" in llm.calls[1]["prompt"]


def test_large_sheet_chunks_are_all_aggregated(make_sheet, prompts):
    cfg = PipelineConfig(chunk_rows=120, backoff_seconds=0.0, escalation_backoff_seconds=0.0)
    llm = ScriptedLLMClient(responder=equipment_responder)

    doc = _run([make_sheet("Equipos", 300)], llm, prompts, cfg)

    assert len(llm.calls) == 3
    assert [len(g.items) for g in doc.equipment_groups] == [120, 120, 60]
    assert sum(len(g.items) for g in doc.equipment_groups) == 300
    assert doc.sheet_names == ["Equipos"]


def test_duplicate_items_across_chunks_are_kept(make_sheet, prompts):
    cfg = PipelineConfig(chunk_rows=10, backoff_seconds=0.0, escalation_backoff_seconds=0.0)
    same = json.dumps({"groups": [{"group": "G", "items": [{"code": "SAME"}]}]})
    llm = ScriptedLLMClient(responder=lambda s, p, m: same)

    doc = _run([make_sheet("Equipos", 30)], llm, prompts, cfg)

    assert [g.name for g in doc.equipment_groups] == ["G", "G", "G"]


def test_chunk_failing_every_tier_aborts_run(make_sheet, prompts, fast_config):
    def responder(system, prompt, model):
        if system == "SYSTEM:services":
            raise ConnectionError("service unavailable")
        return equipment_responder(system, prompt, model)

    llm = ScriptedLLMClient(responder=responder)
    sheets = [make_sheet("Equipos", 10), make_sheet("Servicios", 5)]

    with pytest.raises(ChunkExtractionError) as exc_info:
        _run(sheets, llm, prompts, fast_config)

    assert exc_info.value.sheet_name == "Servicios"
    assert "Servicios" in str(exc_info.value)
    services_calls = [c for c in llm.calls if c["system"] == "SYSTEM:services"]
    assert [c["model"] for c in services_calls] == ["base-model", "base-model", "big-model"]


def test_partial_mode_records_failure_and_continues(make_sheet, prompts, fast_config):
    def responder(system, prompt, model):
        if system == "SYSTEM:services":
            return "not json"
        return equipment_responder(system, prompt, model)

    llm = ScriptedLLMClient(responder=responder)
    sheets = [make_sheet("Servicios", 20), make_sheet("Equipos", 10)]

    doc = _run(sheets, llm, prompts, fast_config, fail_fast=False)

    assert len(doc.failures) == 1
    assert doc.failures[0].sheet_name == "Servicios"
    assert doc.failures[0].preview == "not json"
    assert len(doc.equipment_groups) == 1
    assert doc.sheet_names == ["Servicios", "Equipos"]


def test_no_usable_sheets_fails_before_any_call(prompts, fast_config):
    llm = ScriptedLLMClient(responder=equipment_responder)
    sheets = [SheetText(name="Vacía", content="A | B", row_count=1)]
    with pytest.raises(NoUsableSheetsError):
        _run(sheets, llm, prompts, fast_config)
    assert llm.calls == []


def test_only_largest_summary_sheet_is_used(make_sheet, prompts, fast_config):
    llm = ScriptedLLMClient(responder=equipment_responder)
    sheets = [make_sheet("Resumen viejo", 2), make_sheet("Resumen", 6), make_sheet("Equipos", 4)]

    doc = _run(sheets, llm, prompts, fast_config)

    assert doc.sheet_names == ["Resumen", "Equipos"]
    assert [c["system"] for c in llm.calls].count("SYSTEM:summary") == 1


def test_workbook_without_summary_gets_default_summary(make_sheet, prompts, fast_config):
    llm = ScriptedLLMClient(responder=equipment_responder)
    doc = _run([make_sheet("Equipos", 4)], llm, prompts, fast_config)
    assert doc.summary.project_name == ""
    assert doc.summary.currency == "USD"


def test_tuple_input_and_progress_callback(prompts, fast_config):
    messages = []
    llm = ScriptedLLMClient(responder=equipment_responder)
    sheets = [
        ("RESUMEN", "Item | Total\nEquipos | 100", 2),
        ("Equipos", "Code | Desc\nC1 | Cable\nC2 | Tubo", 3),
    ]

    doc = _run(sheets, llm, prompts, fast_config, progress_callback=messages.append)

    assert [i.code for i in doc.equipment_groups[0].items] == ["C1", "C2"]
    assert messages == ["Extracting summary: RESUMEN", "Extracting equipment: Equipos"]


def test_progress_callback_errors_are_ignored(make_sheet, prompts, fast_config):
    def bad_callback(message):
        raise RuntimeError("ui closed")

    llm = ScriptedLLMClient(responder=equipment_responder)
    doc = _run([make_sheet("Equipos", 3)], llm, prompts, fast_config, progress_callback=bad_callback)
    assert len(doc.equipment_groups) == 1


def test_usage_events_carry_user_id(make_sheet, prompts, fast_config):
    sink = MemoryUsageSink()
    llm = ScriptedLLMClient(responder=equipment_responder)
    _run([make_sheet("Equipos", 3)], llm, prompts, fast_config, usage_sink=sink, user_id="u-42")
    assert [e.user_id for e in sink.events] == ["u-42"]


def test_plan_sheets_and_summary_context(make_sheet):
    summary_sheet, work = plan_sheets([make_sheet("Servicios", 9), make_sheet("Resumen", 3), make_sheet("Gastos", 2)])
    assert summary_sheet.name == "Resumen"
    assert [(s.name, c.value) for s, c in work] == [("Servicios", "services"), ("Gastos", "expenses")]
    assert summary_context(None) is None
