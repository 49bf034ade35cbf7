from pathlib import Path

import pytest

from agm.config import ConfigManager
from agm.registry import SkillRegistry


def write_skill(root: Path, name: str, body: str = "# Skill\n") -> Path:
    skill_dir = root / name
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "SKILL.md").write_text(body, encoding="utf-8")
    return skill_dir


@pytest.fixture
def config(tmp_path):
    return ConfigManager(tmp_path / "home")


@pytest.fixture
def registry(config):
    return SkillRegistry(config)


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    cwd = tmp_path / "project"
    cwd.mkdir()
    monkeypatch.chdir(cwd)
    return cwd
