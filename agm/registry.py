"""
Skill registry.

File format (<repo_dir>/skills.json):
  {
    "<skill_id>": {
      "commitId": "...",   # optional
      "type": "github" | "local" | "registry",
      "path": "..."        # optional, repo-relative subfolder for github skills
    }
  }

The file is re-read on every call and rewritten on every mutation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from .config import ConfigManager
from .core import atomic_write_json, read_json
from .logger import get_logger

logger = get_logger(__name__)

REGISTRY_FILE_NAME = "skills.json"


class SkillType(str, Enum):
    GITHUB = "github"
    LOCAL = "local"
    REGISTRY = "registry"


@dataclass(frozen=True)
class Skill:
    id: str
    type: str
    commit_id: str = ""
    path: str = ""

    @property
    def short_commit(self) -> str:
        return self.commit_id[:7]


def make_skill_id(source: SkillType, locator: str) -> str:
    return f"{source.value}:{locator}"


class SkillRegistry:
    def __init__(self, config: Optional[ConfigManager] = None, *, registry_file: Optional[Path] = None):
        if registry_file is None:
            if config is None:
                raise ValueError("SkillRegistry needs a ConfigManager or an explicit registry_file")
            registry_file = config.repo_dir / REGISTRY_FILE_NAME
        self.registry_file = Path(registry_file)

    def _load(self) -> Dict[str, dict]:
        data = read_json(self.registry_file)
        if not isinstance(data, dict):
            if self.registry_file.exists():
                logger.warning(f"Ignoring unreadable registry file {self.registry_file}")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, dict)}

    def _save(self, skills: Dict[str, dict]) -> None:
        atomic_write_json(self.registry_file, skills)

    @staticmethod
    def _to_skill(skill_id: str, stored: dict) -> Skill:
        return Skill(
            id=skill_id,
            type=str(stored.get("type", "")),
            commit_id=str(stored.get("commitId") or ""),
            path=str(stored.get("path") or ""),
        )

    def add_skill(self, skill_id: str, skill_type: str, commit_id: str = "", path: str = "") -> None:
        """Insert or overwrite a skill record."""
        skills = self._load()
        record: Dict[str, str] = {"type": SkillType(skill_type).value}
        if commit_id:
            record["commitId"] = commit_id
        if path:
            record["path"] = path
        skills[skill_id] = record
        self._save(skills)
        logger.info(f"Registered {skill_id} ({record})")

    def remove_skill(self, skill_id: str) -> None:
        skills = self._load()
        if skills.pop(skill_id, None) is not None:
            logger.info(f"Unregistered {skill_id}")
        self._save(skills)

    def get_skill(self, skill_id: str) -> Optional[Skill]:
        stored = self._load().get(skill_id)
        if stored is None:
            return None
        return self._to_skill(skill_id, stored)

    def update_skill_version(self, skill_id: str, commit_id: str) -> None:
        skills = self._load()
        if skill_id not in skills:
            return
        skills[skill_id]["commitId"] = commit_id
        self._save(skills)
        logger.info(f"Updated {skill_id} to {commit_id}")

    def get_all_skills(self) -> List[Skill]:
        """All registered skills, sorted by id."""
        skills = self._load()
        return [self._to_skill(skill_id, skills[skill_id]) for skill_id in sorted(skills)]
