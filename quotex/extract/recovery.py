"""
RecoveryParser: turn free-text model output into a structured JSON value.

Stages, tried strictly in order, first success wins:

1. substring extraction  – code fence / BOM / surrounding prose stripped
2. structural repair     – close strings and brackets, drop dangling fragments
3. aggressive truncation – cut at the last closing bracket, then repair
4. largest-block search  – longest line span of the raw text that parses
5. failure               – ``RecoveryError`` with length and previews

Only dicts and lists count as success; scalars never do.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from quotex.config import DEFAULT_CONFIG, PipelineConfig
from quotex.errors import RecoveryError
from quotex.logger import get_logger

logger = get_logger(__name__)

JSONValue = Union[dict, list]

RE_FENCE = re.compile(r"```[\w-]*[ \t]*\r?\n?(.*?)(?:```|\Z)", re.DOTALL)

# Fragments that can be left dangling at the end of a truncated document
RE_DANGLING_KEY_COLON = re.compile(r'"(?:[^"\\]|\\.)*"\s*:$')
RE_DANGLING_KEY = re.compile(r'([{,])\s*"(?:[^"\\]|\\.)*"$')
RE_PARTIAL_LITERAL = re.compile(r"([\[{:,])\s*(?:t|tr|tru|f|fa|fal|fals|n|nu|nul)$")
RE_PARTIAL_NUMBER = re.compile(r"([\[{:,])\s*(?:-|-?\d+\.|-?\d+(?:\.\d+)?[eE][+-]?)$")
RE_PARTIAL_UNICODE_ESCAPE = re.compile(r"(?<!\\)((?:\\\\)*)\\u[0-9a-fA-F]{0,3}$")

OPENERS = "{["
CLOSERS = "}]"
CLOSER_FOR = {"{": "}", "[": "]"}
BOM = "\ufeff"


@dataclass(frozen=True)
class RecoveredJSON:
    """A parsed value plus the stage (1-4) that produced it."""
    value: JSONValue
    stage: int


@dataclass
class _ScanState:
    text: str
    stack: List[str]
    in_string: bool
    escape: bool


def _try_parse(text: str) -> Optional[JSONValue]:
    if not text:
        return None
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, RecursionError):
        return None
    if isinstance(value, (dict, list)):
        return value
    return None


def _scan(text: str) -> _ScanState:
    """
    Walk *text* tracking string/escape state and the bracket stack.

    Unquoted commas directly followed by a closing bracket are dropped from
    the returned text.
    """
    out: List[str] = []
    stack: List[str] = []
    in_string = False
    escape = False
    n = len(text)
    for i, ch in enumerate(text):
        if in_string:
            out.append(ch)
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in OPENERS:
            stack.append(ch)
        elif ch in CLOSERS:
            if stack:
                stack.pop()
        elif ch == ",":
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            if j < n and text[j] in CLOSERS:
                continue
        out.append(ch)
    return _ScanState("".join(out), stack, in_string, escape)


def _strip_dangling(text: str, top: Optional[str]) -> str:
    """Remove trailing commas, keys without values and half-written literals."""
    while True:
        s = text.rstrip()
        if s.endswith(","):
            text = s[:-1]
            continue
        m = RE_DANGLING_KEY_COLON.search(s)
        if m:
            text = s[: m.start()]
            continue
        if top == "{":
            m = RE_DANGLING_KEY.search(s)
            if m:
                text = s[: m.start(1) + 1]
                continue
        m = RE_PARTIAL_LITERAL.search(s) or RE_PARTIAL_NUMBER.search(s)
        if m:
            text = s[: m.start(1) + 1]
            continue
        return s


def repair_structure(text: str) -> str:
    """
    Close an unterminated string, drop the dangling tail fragment and
    append the closers for every bracket still open.
    """
    state = _scan(text)
    repaired = state.text
    if state.in_string:
        if state.escape:
            repaired = repaired[:-1]
        repaired = RE_PARTIAL_UNICODE_ESCAPE.sub(r"\1", repaired)
        repaired += '"'
    top = state.stack[-1] if state.stack else None
    repaired = _strip_dangling(repaired, top)
    return repaired + "".join(CLOSER_FOR[opener] for opener in reversed(state.stack))


class RecoveryParser:
    """
    Category-agnostic parser for model responses.

    The instance only holds thresholds; :meth:`parse` is re-entrant.
    """

    def __init__(self, cfg: PipelineConfig = DEFAULT_CONFIG):
        self._cfg = cfg

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, text: str) -> RecoveredJSON:
        """Return the first stage result or raise :class:`RecoveryError`."""
        raw = text or ""
        head, span = self.extract_substring(raw)

        value = self._stage_substring(raw, span)
        if value is not None:
            return RecoveredJSON(value, 1)

        value = self._stage_repair(head, span)
        if value is not None:
            logger.debug("Recovered via structural repair (chars=%d)", len(raw))
            return RecoveredJSON(value, 2)

        value = self._stage_truncate(head)
        if value is not None:
            logger.debug("Recovered via aggressive truncation (chars=%d)", len(raw))
            return RecoveredJSON(value, 3)

        value = self._stage_largest_block(raw)
        if value is not None:
            logger.debug("Recovered via largest-block search (chars=%d)", len(raw))
            return RecoveredJSON(value, 4)

        logger.debug("All recovery stages failed (chars=%d)", len(raw))
        raise RecoveryError(raw, self._cfg.preview_chars)

    @staticmethod
    def extract_substring(raw: str) -> Tuple[str, str]:
        """
        Return ``(head, span)``.

        *head* runs from the first opening bracket to the end of the fenced
        body (or of the text); *span* additionally stops at the last closing
        bracket. Both are empty when the text has no opening bracket.
        """
        text = raw.lstrip(BOM)
        fence = RE_FENCE.search(text)
        if fence:
            text = fence.group(1)
        text = text.strip().lstrip(BOM)

        starts = [idx for idx in (text.find("{"), text.find("[")) if idx != -1]
        if not starts:
            return "", ""
        head = text[min(starts):]
        last_close = max(head.rfind("}"), head.rfind("]"))
        span = head[: last_close + 1] if last_close > 0 else head
        return head, span

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    @staticmethod
    def _stage_substring(raw: str, span: str) -> Optional[JSONValue]:
        value = _try_parse(raw.strip().lstrip(BOM))
        if value is not None:
            return value
        return _try_parse(span)

    @staticmethod
    def _stage_repair(head: str, span: str) -> Optional[JSONValue]:
        value = _try_parse(repair_structure(head))
        if value is None and span and span != head:
            value = _try_parse(repair_structure(span))
        return value

    def _stage_truncate(self, head: str) -> Optional[JSONValue]:
        last_close = max(head.rfind("}"), head.rfind("]"))
        if last_close <= len(head) * self._cfg.truncation_guard_ratio:
            return None
        return _try_parse(repair_structure(head[: last_close + 1]))

    def _stage_largest_block(self, raw: str) -> Optional[JSONValue]:
        if len(raw) > self._cfg.largest_block_max_chars:
            logger.debug(
                "Largest-block search skipped: %d chars over limit %d",
                len(raw),
                self._cfg.largest_block_max_chars,
            )
            return None

        lines = raw.splitlines()
        best: Optional[JSONValue] = None
        best_len = 0
        for i, line in enumerate(lines):
            if not line.lstrip().startswith(("{", "[")):
                continue
            for j in range(len(lines) - 1, i - 1, -1):
                candidate = "\n".join(lines[i : j + 1])
                if len(candidate) <= best_len:
                    break
                value = _try_parse(candidate)
                if value is not None:
                    best, best_len = value, len(candidate)
                    break
        return best


def recover_json(text: str, cfg: PipelineConfig = DEFAULT_CONFIG) -> RecoveredJSON:
    """Module-level shortcut for :meth:`RecoveryParser.parse`."""
    return RecoveryParser(cfg).parse(text)
