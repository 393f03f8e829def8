"""
用量记录模块 (Usage Accounting Module)
=====================================

每次到达推理服务的尝试（无论层级与成败）都会上报一条用量事件。
上报是 fire-and-forget：sink 的任何异常只记录日志，不影响提取结果。
"""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from quotex.logger import get_logger

logger = get_logger(__name__)

REQUEST_KIND_SHEET_EXTRACTION = "excel_sheet_extraction"


@dataclass(frozen=True)
class UsageEvent:
    """
    一条用量事件。
    属性: user_id, request_kind, model, input_tokens, output_tokens, metadata, timestamp
    """
    user_id: str
    request_kind: str
    model: str
    input_tokens: int
    output_tokens: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    )


class UsageSink:
    """用量 sink 基类，默认丢弃事件。"""

    def record(self, event: UsageEvent) -> None:
        return None


class LoggingUsageSink(UsageSink):
    """将用量事件写入日志。"""

    def record(self, event: UsageEvent) -> None:
        logger.info(
            "usage | user=%s | kind=%s | model=%s | input=%d | output=%d | meta=%s",
            event.user_id,
            event.request_kind,
            event.model,
            event.input_tokens,
            event.output_tokens,
            event.metadata,
        )


class JsonlUsageSink(UsageSink):
    """将用量事件逐行追加到 JSONL 文件，线程安全。"""

    def __init__(self, path: str):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def record(self, event: UsageEvent) -> None:
        line = json.dumps(asdict(event), ensure_ascii=False, default=str)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")


class MemoryUsageSink(UsageSink):
    """在内存中保留事件，便于调试与测试。"""

    def __init__(self) -> None:
        self.events: List[UsageEvent] = []

    def record(self, event: UsageEvent) -> None:
        self.events.append(event)


def build_usage_sink(usage_log_path: Optional[str]) -> UsageSink:
    """根据配置选择 sink：配置了文件路径则写 JSONL，否则写日志。"""
    if usage_log_path:
        return JsonlUsageSink(usage_log_path)
    return LoggingUsageSink()


def record_usage_safely(sink: Optional[UsageSink], event: UsageEvent) -> None:
    """上报用量；sink 出错时仅记录警告。"""
    if sink is None:
        return
    try:
        sink.record(event)
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "Usage sink %s failed for model=%s kind=%s: %s",
            type(sink).__name__,
            event.model,
            event.request_kind,
            exc,
        )
