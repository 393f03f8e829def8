"""
配置模块 (Configuration Module)
==============================

从环境变量和 .env 文件加载应用配置：

- Settings: OpenAI 兼容推理服务的连接与模型层级设置（pydantic-settings）
- PipelineConfig: 提取流水线的阈值与上限（不可变 dataclass，可由环境变量覆盖）
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    """
    应用配置类，继承自 Pydantic BaseSettings，支持从环境变量自动加载。

    属性:
        OPENAI_BASE_URL: OpenAI 兼容 API 基础 URL
        OPENAI_API_KEY: API 密钥（必填）
        OPENAI_MODEL: 基础层级模型（Baseline / Reinforced 使用）
        OPENAI_ESCALATION_MODEL: 升级层级模型（Escalated 使用）；与基础模型相同时跳过升级
        TEMPERATURE: 生成温度，0 表示确定性输出
        REQUEST_TIMEOUT: 请求超时秒数
        LLM_MAX_OUTPUT_TOKENS: 单次响应的最大输出 token 数
        USAGE_LOG_PATH: 可选的用量记录 JSONL 文件路径
        EXTRACTION_USER_ID: 用量记录中使用的用户标识
    """
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_ESCALATION_MODEL: str = "gpt-4o"
    TEMPERATURE: float = 0.0
    REQUEST_TIMEOUT: int = 180
    LLM_MAX_OUTPUT_TOKENS: int = 16000
    USAGE_LOG_PATH: Optional[str] = None
    EXTRACTION_USER_ID: str = "system"

    @field_validator("OPENAI_API_KEY")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        """
        校验 OPENAI_API_KEY 已设置且非空。

        若未配置则抛出 ValueError，提示用户检查 .env 文件。
        """
        if v is None or v.strip() == "":
            raise ValueError(
                "OPENAI_API_KEY is not set or empty. "
                "Please check your .env file and ensure OPENAI_API_KEY is configured."
            )
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False


# 全局单例，避免重复加载配置
_settings_instance = None


def get_settings() -> Settings:
    """
    获取配置单例。

    首次调用时创建 Settings 实例并缓存，后续调用返回同一实例。
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------

def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)).strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)).strip())
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# PipelineConfig: tunable bounds
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PipelineConfig:
    """Immutable bag of bounds and delays used throughout the pipeline."""

    # Sheet selection
    max_sheet_chars: int = _env_int("EXTRACTION_MAX_SHEET_CHARS", 80_000)
    max_sheets: int = _env_int("EXTRACTION_MAX_SHEETS", 12)

    # Chunking
    chunk_rows: int = _env_int("EXTRACTION_CHUNK_ROWS", 120)

    # Recovery parser
    largest_block_max_chars: int = _env_int("EXTRACTION_LARGEST_BLOCK_MAX_CHARS", 60_000)
    truncation_guard_ratio: float = 1 / 3
    preview_chars: int = 200

    # Escalation
    backoff_seconds: float = _env_float("EXTRACTION_BACKOFF_SECONDS", 1.0)
    escalation_backoff_seconds: float = _env_float("EXTRACTION_ESCALATION_BACKOFF_SECONDS", 2.0)

    # Aggregation
    fail_fast: bool = _env_bool("EXTRACTION_FAIL_FAST", True)


# Singleton default config
DEFAULT_CONFIG = PipelineConfig()
