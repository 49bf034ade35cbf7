"""Detect which AI coding tools are set up in a working directory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .config import AIToolConfig, ConfigManager
from .logger import get_logger

logger = get_logger(__name__)

DEFAULT_AI_TOOLS: List[AIToolConfig] = [
    AIToolConfig("antigravity", [".gemini/antigravity/global_skills/skills", ".agent/skills"]),
    AIToolConfig("github", [".copilot/skills", ".github/skills"]),
    AIToolConfig("cursor", [".cursor/skills"]),
    AIToolConfig("claude", [".claude/skills"]),
    AIToolConfig("codex", [".codex/skills", ".agents/skills"]),
]


@dataclass(frozen=True)
class ProjectInfo:
    tool_type: str
    root: Path
    skill_dir: Path


class ProjectDetector:
    def __init__(
        self,
        cwd: Optional[Union[str, Path]] = None,
        ai_tools: Optional[Sequence[AIToolConfig]] = None,
    ):
        self.cwd = Path(cwd) if cwd else Path(os.getcwd())
        self.ai_tools = list(ai_tools) if ai_tools else list(DEFAULT_AI_TOOLS)

    @classmethod
    def from_config(cls, config: ConfigManager, cwd: Optional[Union[str, Path]] = None) -> "ProjectDetector":
        return cls(cwd, config.get_ai_tools())

    def detect_all(self) -> List[ProjectInfo]:
        """
        One entry per tool whose skill directory *parent* exists
        (e.g. `.claude/` for `.claude/skills`); candidates are tried in order.
        """
        projects: List[ProjectInfo] = []
        for tool in self.ai_tools:
            for rel in tool.skill_dirs:
                skill_dir = self.cwd / rel
                if skill_dir.parent.is_dir():
                    projects.append(ProjectInfo(tool_type=tool.type, root=self.cwd, skill_dir=skill_dir))
                    break
        logger.debug(f"Detected tools in {self.cwd}: {[p.tool_type for p in projects]}")
        return projects


def supported_markers(ai_tools: Optional[Sequence[AIToolConfig]] = None) -> List[str]:
    """Top-level marker folders for the "nothing detected" hint, e.g. ".cursor/"."""
    markers: List[str] = []
    for tool in ai_tools or DEFAULT_AI_TOOLS:
        for rel in tool.skill_dirs:
            marker = rel.split("/", 1)[0] + "/"
            if marker not in markers:
                markers.append(marker)
    return markers
