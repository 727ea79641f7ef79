from __future__ import annotations

import pytest

from agents.prompt_loader import PROMPTS_DIR, load_prompt


def test_load_interviewer_prompt() -> None:
    text = load_prompt("interviewer_system.txt")

    assert "{job_title}" in text
    assert "{pacing_section}" in text
    assert text == text.strip()


def test_prompts_live_beside_packages() -> None:
    assert (PROMPTS_DIR / "interviewer_system.txt").is_file()


def test_load_prompt_missing_raises() -> None:
    with pytest.raises(FileNotFoundError):
        load_prompt("nonexistent_file_xyz.txt")
