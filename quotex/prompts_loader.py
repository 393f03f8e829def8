"""
提示词加载模块 (Prompts Loader Module)
=====================================

从 Markdown 文件加载各类别的系统提示词，支持 PROMPT_FILE 环境变量指定文件路径。
"""

import os
import re
from pathlib import Path

# 需要从 prompt 文件中解析的提示词键名
PROMPT_KEYS = [
    "SUMMARY_PROMPT",
    "EQUIPMENT_PROMPT",
    "SERVICES_PROMPT",
    "EXPENSES_PROMPT",
    "REINFORCEMENT_PROMPT",
]

# 提示词缓存，避免重复读取文件
_prompts_cache = None


def _resolve_prompt_file(package_root: Path) -> Path:
    """
    解析提示词文件路径：优先使用 PROMPT_FILE 环境变量，否则使用包内的 prompt.md。
    """
    configured = os.getenv("PROMPT_FILE", "").strip()
    if not configured:
        return package_root / "prompt.md"
    prompt_path = Path(configured).expanduser()
    if not prompt_path.is_absolute():
        prompt_path = (Path.cwd() / prompt_path).resolve()
    return prompt_path


def parse_prompt_sections(content: str) -> dict:
    """按 "## 标题" 切分 Markdown，返回 {标题: 正文}。"""
    section_map = {}
    for section in re.split(r"^##\s+", content, flags=re.MULTILINE)[1:]:
        lines = section.split("\n", 1)
        if len(lines) >= 2:
            section_map[lines[0].strip()] = lines[1].strip()
    return section_map


def get_prompts() -> dict:
    """
    获取所有提示词，按 PROMPT_KEYS 解析 prompt 文件中的 ## 标题段落。
    结果会缓存，避免重复读取。缺少任一段落时抛出 ValueError。
    """
    global _prompts_cache
    if _prompts_cache is not None:
        return _prompts_cache

    prompt_file = _resolve_prompt_file(Path(__file__).parent)
    if not prompt_file.exists():
        raise FileNotFoundError(
            f"Prompt file not found: {prompt_file}\n"
            f"Please create the prompt file (or set PROMPT_FILE) with sections: "
            + ", ".join(f"## {key}" for key in PROMPT_KEYS)
        )

    section_map = parse_prompt_sections(prompt_file.read_text(encoding="utf-8"))
    missing = [key for key in PROMPT_KEYS if not section_map.get(key)]
    if missing:
        raise ValueError(f"Prompt file {prompt_file} is missing sections: {missing}")

    _prompts_cache = {key: section_map[key] for key in PROMPT_KEYS}
    return _prompts_cache


def reset_prompts_cache() -> None:
    """清空缓存，便于测试或切换 PROMPT_FILE。"""
    global _prompts_cache
    _prompts_cache = None
