"""
Pytest configuration and shared fixtures.
"""
import os
import sys
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

# Add project root to path for imports
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from quotex.config import PipelineConfig
from quotex.llm import LLMClient, LLMResponse
from quotex.models import SheetText

Scripted = Union[str, BaseException]


class ScriptedLLMClient(LLMClient):
    """
    Fake service client.

    Either pops scripted items in order (strings are returned as response
    text, exceptions are raised) or delegates to a responder callable
    ``(system, prompt, model) -> str``.
    """

    def __init__(
        self,
        responses: Optional[List[Scripted]] = None,
        responder: Optional[Callable[[str, str, str], Scripted]] = None,
        model: str = "base-model",
        escalation_model: str = "big-model",
    ):
        self.model = model
        self.escalation_model = escalation_model
        self.responses = list(responses or [])
        self.responder = responder
        self.calls: List[Dict[str, Any]] = []

    async def complete(self, system, prompt, model=None, max_tokens=None, step=None):
        target = model or self.model
        self.calls.append(
            {"system": system, "prompt": prompt, "model": target, "max_tokens": max_tokens, "step": step}
        )
        if self.responder is not None:
            item = self.responder(system, prompt, target)
        elif self.responses:
            item = self.responses.pop(0)
        else:
            raise AssertionError("ScriptedLLMClient ran out of responses")
        if isinstance(item, BaseException):
            raise item
        return LLMResponse(text=item, input_tokens=100, output_tokens=50, model=target)


@pytest.fixture
def prompts():
    return {
        "SUMMARY_PROMPT": "SYSTEM:summary",
        "EQUIPMENT_PROMPT": "SYSTEM:equipment",
        "SERVICES_PROMPT": "SYSTEM:services",
        "EXPENSES_PROMPT": "SYSTEM:expenses",
        "REINFORCEMENT_PROMPT": "Respond with a single JSON value and nothing else.",
    }


@pytest.fixture
def fast_config():
    """Pipeline config with no waits between escalation tiers."""
    return PipelineConfig(backoff_seconds=0.0, escalation_backoff_seconds=0.0, fail_fast=True)


@pytest.fixture
def make_sheet():
    """Build a SheetText with a header line and *rows* generated data lines."""
    def _make(name: str, rows: int, header: str = "Code | Description | Qty") -> SheetText:
        lines = [header] + [f"C{i} | Row {i} | {i}" for i in range(1, rows + 1)]
        return SheetText(name=name, content="\n".join(lines), row_count=len(lines))
    return _make

