"""
Link reconciliation between the skill repository and project tool folders.

A project skill folder (e.g. ./.claude/skills) holds one entry per linked skill,
named by ConfigManager.get_link_name(). On POSIX the entry is a symlink; on
Windows it is a directory junction created with `mklink /J`.
"""

from __future__ import annotations

import os
import sys
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from .config import ConfigManager
from .core import run_command
from .logger import get_logger
from .project import ProjectInfo
from .registry import Skill
from .skills import is_skill_dir

logger = get_logger(__name__)


class LinkOutcome(str, Enum):
    CREATED = "created"
    EXISTS = "exists"


class LinkError(Exception):
    pass


def _lexists(path: Path) -> bool:
    """Non-dereferencing existence check: true for broken symlinks too."""
    return os.path.lexists(path)


def _is_link(path: Path) -> bool:
    is_junction = getattr(path, "is_junction", None)  # Python 3.12+
    return path.is_symlink() or bool(is_junction and is_junction())


def skill_target_path(config: ConfigManager, skill: Skill) -> Path:
    """Folder a project link should point at: the repo copy, or its subfolder for sparse clones."""
    repo_path = config.get_repo_path(skill.id)
    if skill.path:
        return repo_path / skill.path
    return repo_path


def _create_link(link_path: Path, target: Path) -> None:
    if sys.platform == "win32":
        res = run_command(["cmd", "/c", "mklink", "/J", str(link_path), str(target)])
        if res.returncode != 0:
            raise LinkError((res.stderr or res.stdout or "mklink failed").strip())
        return
    try:
        link_path.symlink_to(target, target_is_directory=True)
    except OSError as e:
        raise LinkError(str(e)) from e


def _remove_link(link_path: Path) -> None:
    # Junctions report as directories on Windows; rmdir removes the junction, not the target.
    if sys.platform == "win32" and not link_path.is_symlink() and _is_link(link_path):
        os.rmdir(link_path)
    else:
        link_path.unlink()


def link_skill(config: ConfigManager, skill: Skill, project: ProjectInfo) -> LinkOutcome:
    """Link a registered skill into a project tool folder. No-op if the name is taken."""
    project.skill_dir.mkdir(parents=True, exist_ok=True)
    link_path = project.skill_dir / config.get_link_name(skill.id)
    if _lexists(link_path):
        return LinkOutcome.EXISTS

    target = skill_target_path(config, skill)
    try:
        _create_link(link_path, target)
    except LinkError as e:
        logger.error(f"Failed to link {skill.id} -> {link_path}: {e}")
        raise
    logger.info(f"Linked {link_path} -> {target}")
    return LinkOutcome.CREATED


def unlink_skill(config: ConfigManager, skill_id: str, project: ProjectInfo) -> bool:
    """Remove a skill's link from a project folder. Returns False if nothing was there."""
    link_path = project.skill_dir / config.get_link_name(skill_id)
    if not _lexists(link_path):
        return False
    _remove_link(link_path)
    logger.info(f"Unlinked {link_path}")
    return True


def remove_skill_link_if_present(config: ConfigManager, skill_id: str, project: ProjectInfo) -> bool:
    """Like unlink_skill, but failures are logged and reported as False."""
    try:
        return unlink_skill(config, skill_id, project)
    except OSError as e:
        logger.warning(f"Could not remove link for {skill_id} in {project.skill_dir}: {e}")
        return False


def remove_links_everywhere(config: ConfigManager, skill_id: str, projects: Iterable[ProjectInfo]) -> int:
    """Remove a skill's link from every given project. Returns how many were removed."""
    return sum(1 for p in projects if remove_skill_link_if_present(config, skill_id, p))


def get_linked_skills(config: ConfigManager, skills: Sequence[Skill], skill_dir: Path) -> Dict[str, bool]:
    """Map of skill id -> True for skills whose link name is present in `skill_dir`."""
    return {s.id: True for s in skills if _lexists(skill_dir / config.get_link_name(s.id))}


def find_broken_links(skill_dir: Path) -> List[str]:
    """Names of symlinks in `skill_dir` whose target no longer resolves."""
    if not skill_dir.is_dir():
        return []
    return sorted(p.name for p in skill_dir.iterdir() if _is_link(p) and not p.exists())


def find_other_skills(skill_dir: Path) -> List[str]:
    """Real (non-link) skill folders in `skill_dir` that agm does not manage."""
    if not skill_dir.is_dir():
        return []
    return sorted(p.name for p in skill_dir.iterdir() if not _is_link(p) and is_skill_dir(p))


def remove_broken_links(skill_dir: Path, names: Iterable[str]) -> List[str]:
    removed: List[str] = []
    for name in names:
        link_path = skill_dir / name
        try:
            link_path.unlink()
        except OSError as e:
            logger.warning(f"Could not remove broken link {link_path}: {e}")
            continue
        removed.append(name)
    return removed
