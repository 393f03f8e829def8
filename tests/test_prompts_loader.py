"""
Tests for prompt file loading.
"""
import pytest

from quotex.prompts_loader import PROMPT_KEYS, get_prompts, parse_prompt_sections, reset_prompts_cache


@pytest.fixture(autouse=True)
def clean_cache(monkeypatch):
    monkeypatch.delenv("PROMPT_FILE", raising=False)
    reset_prompts_cache()
    yield
    reset_prompts_cache()


def test_packaged_prompt_file_has_every_section():
    prompts = get_prompts()
    assert set(prompts) == set(PROMPT_KEYS)
    assert all(prompts[key] for key in PROMPT_KEYS)
    assert "JSON" in prompts["REINFORCEMENT_PROMPT"]


def test_prompt_file_override(tmp_path, monkeypatch):
    body = "\n".join(f"## {key}\ntext for {key}\n" for key in PROMPT_KEYS)
    path = tmp_path / "custom.md"
    path.write_text("# Custom\n" + body, encoding="utf-8")
    monkeypatch.setenv("PROMPT_FILE", str(path))

    prompts = get_prompts()
    assert prompts["SERVICES_PROMPT"] == "text for SERVICES_PROMPT"


def test_missing_section_raises(tmp_path, monkeypatch):
    path = tmp_path / "partial.md"
    path.write_text("## SUMMARY_PROMPT\nonly this\n", encoding="utf-8")
    monkeypatch.setenv("PROMPT_FILE", str(path))
    with pytest.raises(ValueError):
        get_prompts()


def test_parse_prompt_sections():
    sections = parse_prompt_sections("intro\n## A\nfirst\n## B\nsecond\nline\n")
    assert sections == {"A": "first", "B": "second\nline"}
