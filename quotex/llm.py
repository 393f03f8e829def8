"""
LLM 客户端模块 (LLM Client Module)
=================================

封装 OpenAI 兼容 API 的文本补全调用：按层级指定模型、限制输出长度、
统计 Token 用量。客户端本身不做重试，重试与升级由升级控制器负责。
"""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from openai import AsyncOpenAI

from quotex.config import get_settings
from quotex.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class LLMResponse:
    """
    单次调用的响应，不可变。
    属性: text, input_tokens, output_tokens, model
    """
    text: str
    input_tokens: int
    output_tokens: int
    model: str


class TokenTracker:
    """
    Token 使用追踪器，累计多次 LLM 请求的 token 消耗。
    """

    def __init__(self) -> None:
        self._usage: Dict[str, int] = {
            "input_tokens": 0,
            "output_tokens": 0,
            "total_tokens": 0,
            "requests_count": 0,
        }

    def update(self, input_tokens: int, output_tokens: int) -> None:
        """累加一次请求的 token 统计。"""
        self._usage["input_tokens"] += input_tokens
        self._usage["output_tokens"] += output_tokens
        self._usage["total_tokens"] += input_tokens + output_tokens
        self._usage["requests_count"] += 1
        logger.debug(
            "Token usage: input=%d, output=%d (cumulative=%d)",
            input_tokens,
            output_tokens,
            self._usage["total_tokens"],
        )

    def get(self) -> Dict[str, int]:
        """返回当前 token 使用统计的副本。"""
        return dict(self._usage)

    def reset(self) -> None:
        """重置统计。"""
        for key in self._usage:
            self._usage[key] = 0


# Module-level singleton instance
_llm_client_instance: Optional["LLMClient"] = None


def get_llm_client() -> "LLMClient":
    """
    获取 LLMClient 单例。

    确保整个应用只创建一个 LLMClient 并复用。
    """
    global _llm_client_instance
    if _llm_client_instance is None:
        logger.debug("Creating new LLMClient singleton instance")
        _llm_client_instance = LLMClient()
    return _llm_client_instance


def reset_llm_client() -> None:
    """
    重置 LLMClient 单例。

    用于测试或配置变更后需要重新创建客户端时。
    """
    global _llm_client_instance
    _llm_client_instance = None
    logger.debug("LLMClient singleton instance reset")


class LLMClient:
    """
    LLM 客户端，封装 OpenAI 兼容 API 的异步调用。

    model 为基础层级模型，escalation_model 为升级层级模型；
    两者相同表示基础层级已是最高层级。
    """

    def __init__(self) -> None:
        settings = get_settings()
        timeout = httpx.Timeout(settings.REQUEST_TIMEOUT, connect=10.0)
        self.client = AsyncOpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            timeout=timeout,
        )
        self.model = settings.OPENAI_MODEL
        self.escalation_model = settings.OPENAI_ESCALATION_MODEL
        self.temperature = settings.TEMPERATURE
        self.timeout = settings.REQUEST_TIMEOUT
        self.max_output_tokens = settings.LLM_MAX_OUTPUT_TOKENS
        self.token_tracker = TokenTracker()
        self._last_call_info: Optional[Dict[str, Any]] = None
        logger.info(
            "LLMClient initialized with model=%s, escalation_model=%s",
            self.model,
            self.escalation_model,
        )

    def _set_last_call_start(self, *, step: Optional[str], model: str, prompt_len: int) -> float:
        start_time = time.time()
        self._last_call_info = {
            "step": step,
            "model": model,
            "timeout": self.timeout,
            "prompt_chars": prompt_len,
            "status": "in_progress",
            "start_time": start_time,
        }
        return start_time

    def _set_last_call_end(self, start_time: float, status: str, error: Optional[str] = None) -> None:
        if self._last_call_info is None:
            self._last_call_info = {}
        end_time = time.time()
        self._last_call_info.update(
            {"status": status, "end_time": end_time, "elapsed_ms": int((end_time - start_time) * 1000)}
        )
        if error:
            self._last_call_info["error"] = error

    def get_last_call_info(self) -> Optional[Dict[str, Any]]:
        return dict(self._last_call_info) if self._last_call_info else None

    def get_token_usage(self) -> Dict[str, int]:
        return self.token_tracker.get()

    @staticmethod
    def _build_messages(prompt: str, system: Optional[str] = None) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages

    @staticmethod
    def _run_sync(coro: Any) -> Any:
        """
        Run a coroutine from sync context.

        - Preferred path: `asyncio.run` (script/worker context).
        - Fallback: if already inside a running loop, execute in a helper thread.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)

        holder: Dict[str, Any] = {}

        def _runner() -> None:
            try:
                holder["result"] = asyncio.run(coro)
            except BaseException as thread_exc:  # noqa: BLE001
                holder["error"] = thread_exc

        thread = threading.Thread(target=_runner, daemon=True)
        thread.start()
        thread.join()
        if "error" in holder:
            raise holder["error"]
        return holder.get("result")

    async def complete(
        self,
        system: str,
        prompt: str,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        step: Optional[str] = None,
    ) -> LLMResponse:
        """
        发送一次补全请求并返回原始文本与 token 计数。

        任何网络、超时或服务端错误原样抛出，由调用方决定是否重试。
        """
        target_model = model or self.model
        messages = self._build_messages(prompt, system=system)
        logger.info(
            "LLM complete start | step=%s | model=%s | timeout=%s | prompt_chars=%d",
            step,
            target_model,
            self.timeout,
            len(prompt),
        )
        start = self._set_last_call_start(step=step, model=target_model, prompt_len=len(prompt))
        try:
            response = await self.client.chat.completions.create(
                model=target_model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=max_tokens or self.max_output_tokens,
            )
        except Exception as exc:
            self._set_last_call_end(start, "error", error=str(exc))
            raise

        usage = getattr(response, "usage", None)
        input_tokens = int(getattr(usage, "prompt_tokens", 0) or 0)
        output_tokens = int(getattr(usage, "completion_tokens", 0) or 0)
        self.token_tracker.update(input_tokens, output_tokens)
        content = response.choices[0].message.content or ""
        self._set_last_call_end(start, "ok")
        logger.info(
            "LLM complete done | step=%s | model=%s | elapsed_ms=%d | output_chars=%d",
            step,
            target_model,
            self._last_call_info.get("elapsed_ms", 0) if self._last_call_info else 0,
            len(content),
        )
        return LLMResponse(
            text=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=target_model,
        )

    def complete_sync(
        self,
        system: str,
        prompt: str,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        step: Optional[str] = None,
    ) -> LLMResponse:
        """Sync bridge for scripts that are not running an event loop."""
        return self._run_sync(
            self.complete(system, prompt, model=model, max_tokens=max_tokens, step=step)
        )
