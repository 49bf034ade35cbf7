"""
Configuration manager.

Owns the agm home directory layout:

    ~/.agent-management/
        config.json         {"system": ..., "registry": ..., "aiTools": [...]}
        repo/               one folder per skill, named by get_safe_name(id)
        repo/skills.json    the skill registry (see registry.py)
        registry/           clone of the team registry repository
        logs/               --verbose log files

A single ConfigManager is built in cli.main() and handed to every component.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .core import read_json, safe_write_json
from .logger import get_logger

logger = get_logger(__name__)

HOME_DIR_NAME = ".agent-management"
HOME_DIR_ENV = "AGM_HOME"
CONFIG_FILE_NAME = "config.json"
REPO_DIR_NAME = "repo"
REGISTRY_DIR_NAME = "registry"
LOG_DIR_NAME = "logs"

ID_DELIMITER = ":"
SAFE_DELIMITER = "__"


@dataclass
class AIToolConfig:
    type: str
    skill_dirs: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AIToolConfig":
        return cls(type=str(data.get("type", "")), skill_dirs=[str(p) for p in data.get("skillDirs") or []])

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "skillDirs": list(self.skill_dirs)}


@dataclass
class Config:
    system: str = sys.platform
    registry: str = ""
    ai_tools: List[AIToolConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        tools = [AIToolConfig.from_dict(t) for t in data.get("aiTools") or [] if isinstance(t, dict)]
        return cls(
            system=str(data.get("system") or sys.platform),
            registry=str(data.get("registry") or ""),
            ai_tools=tools,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"system": self.system}
        if self.registry:
            out["registry"] = self.registry
        if self.ai_tools:
            out["aiTools"] = [t.to_dict() for t in self.ai_tools]
        return out


def default_home_dir() -> Path:
    override = os.environ.get(HOME_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / HOME_DIR_NAME


class ConfigManager:
    """Paths, identifier encoding and the persisted config file."""

    def __init__(self, home_dir: Optional[Union[str, Path]] = None):
        self.home_dir = Path(home_dir) if home_dir else default_home_dir()
        self.repo_dir = self.home_dir / REPO_DIR_NAME
        self.config_file = self.home_dir / CONFIG_FILE_NAME
        self.registry_dir = self.home_dir / REGISTRY_DIR_NAME
        self.log_dir = self.home_dir / LOG_DIR_NAME

        self.home_dir.mkdir(parents=True, exist_ok=True)
        self.repo_dir.mkdir(parents=True, exist_ok=True)

        if not self.config_file.exists():
            logger.info(f"Creating default config at {self.config_file}")
            safe_write_json(self.config_file, Config().to_dict(), keep_backups=0)

    # --- Identifier encoding ---

    @staticmethod
    def get_safe_name(skill_id: str) -> str:
        """
        Filesystem-safe directory name for a skill id.
        "github:user/repo/path" -> "github__user__repo__path"
        """
        source, sep, rest = skill_id.partition(ID_DELIMITER)
        if not sep:
            return skill_id.replace("/", SAFE_DELIMITER)
        return source + SAFE_DELIMITER + rest.replace("/", SAFE_DELIMITER)

    @staticmethod
    def parse_safe_name(safe_name: str) -> str:
        """
        Inverse of get_safe_name.
        "github__user__repo__path" -> "github:user/repo/path"
        """
        source, sep, rest = safe_name.partition(SAFE_DELIMITER)
        if not sep:
            return safe_name
        return source + ID_DELIMITER + rest.replace(SAFE_DELIMITER, "/")

    @staticmethod
    def get_link_name(skill_id: str) -> str:
        """
        Short name used for symlinks in project directories.
        "local:figma-mcp" -> "figma-mcp", "github:user/repo/my-skill" -> "my-skill"
        """
        _, sep, rest = skill_id.partition(ID_DELIMITER)
        name = rest if sep else skill_id
        return name.rsplit("/", 1)[-1]

    def get_repo_path(self, skill_id: str) -> Path:
        return self.repo_dir / self.get_safe_name(skill_id)

    # --- Config file ---

    def load_config(self) -> Config:
        data = read_json(self.config_file)
        if not isinstance(data, dict):
            if self.config_file.exists():
                logger.warning(f"Could not parse {self.config_file}; using defaults")
            return Config()
        return Config.from_dict(data)

    def save_config(self, config: Config) -> None:
        safe_write_json(self.config_file, config.to_dict())

    def get_ai_tools(self) -> Optional[List[AIToolConfig]]:
        """User-configured AI tools, or None to use the built-in list."""
        tools = self.load_config().ai_tools
        return tools or None

    def get_registry(self) -> str:
        return self.load_config().registry

    def set_registry(self, url: str) -> None:
        config = self.load_config()
        config.registry = url.strip()
        self.save_config(config)
        logger.info(f"Registry URL set to {config.registry}")
