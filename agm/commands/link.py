"""Link registered skills into the AI tool folders of the current project."""

from __future__ import annotations

from typing import List, Optional, Sequence

from ..config import ConfigManager
from ..links import (
    LinkError,
    LinkOutcome,
    find_broken_links,
    find_other_skills,
    get_linked_skills,
    link_skill,
    remove_broken_links,
    unlink_skill,
)
from ..logger import get_logger
from ..project import ProjectDetector, ProjectInfo, supported_markers
from ..registry import SkillRegistry
from ..tui import (
    format_menu_choices,
    prompt_multi_select,
    prompt_toolkit_menu,
    prompt_yes_no,
    render_error,
    render_info,
    render_muted,
    render_section,
    render_success,
    render_warning,
)

logger = get_logger(__name__)

ALL_TOOLS = "__all__"


def pick_projects(projects: Sequence[ProjectInfo], message: str = "Which tool?") -> Optional[List[ProjectInfo]]:
    """One detected tool is used directly; several offer "all" or a single pick."""
    if len(projects) == 1:
        return list(projects)

    items = [{"title": "🔗 All detected tools", "value": ALL_TOOLS}]
    items += [{"title": p.tool_type, "value": i} for i, p in enumerate(projects)]
    selected = prompt_toolkit_menu(format_menu_choices(items), message=message)
    if selected is None:
        return None
    if selected == ALL_TOOLS:
        return list(projects)
    return [projects[selected]]


def link_skill_to_project(config: ConfigManager, registry: SkillRegistry, skill_id: str, project: ProjectInfo) -> bool:
    skill = registry.get_skill(skill_id)
    if skill is None:
        render_error(f"Skill {skill_id} not found.")
        return False
    try:
        outcome = link_skill(config, skill, project)
    except (LinkError, OSError) as e:
        render_error(f"Failed to link {skill_id}: {e}")
        return False
    if outcome == LinkOutcome.CREATED:
        render_success(f"Linked {skill_id}")
    return True


def unlink_skill_from_project(config: ConfigManager, skill_id: str, project: ProjectInfo) -> bool:
    try:
        removed = unlink_skill(config, skill_id, project)
    except OSError as e:
        render_error(f"Failed to unlink {skill_id}: {e}")
        return False
    if removed:
        render_success(f"Unlinked {skill_id}")
    return removed


def _offer_broken_link_cleanup(project: ProjectInfo) -> None:
    broken = find_broken_links(project.skill_dir)
    if not broken:
        return
    render_warning(f"Found {len(broken)} broken symlink(s)")
    if not prompt_yes_no("Remove broken symlinks?", default=True):
        return
    for name in remove_broken_links(project.skill_dir, broken):
        render_success(f"Removed {name}")


def _show_other_skills(project: ProjectInfo) -> None:
    others = find_other_skills(project.skill_dir)
    if not others:
        return
    render_muted("\n  Other skills (not managed by agm):")
    for name in others:
        render_muted(f"    • {name}")
    render_muted("")


def toggle_project_links(config: ConfigManager, registry: SkillRegistry, project: ProjectInfo) -> Optional[int]:
    """
    Multi-select over all registered skills, pre-checked with what is linked now,
    then apply the difference. Returns the number of changes, or None if cancelled.
    """
    render_section(f"{project.tool_type} Skills")
    render_muted(f"  {project.skill_dir}")

    project.skill_dir.mkdir(parents=True, exist_ok=True)
    _offer_broken_link_cleanup(project)
    _show_other_skills(project)

    all_skills = registry.get_all_skills()
    linked = get_linked_skills(config, all_skills, project.skill_dir)

    items = [
        {"title": s.id + (" ✓" if linked.get(s.id) else ""), "value": s.id, "checked": linked.get(s.id, False)}
        for s in all_skills
    ]
    selected = prompt_multi_select(format_menu_choices(items), "Toggle skills")
    if selected is None:
        return None

    wanted = set(selected)
    changes = 0
    for skill in all_skills:
        is_linked = linked.get(skill.id, False)
        should_link = skill.id in wanted
        if should_link and not is_linked:
            if link_skill_to_project(config, registry, skill.id, project):
                changes += 1
        elif is_linked and not should_link:
            if unlink_skill_from_project(config, skill.id, project):
                changes += 1

    logger.info(f"{changes} link change(s) in {project.skill_dir}")
    if changes == 0:
        render_muted("\nNo changes.")
    else:
        render_success(f"{changes} change(s) applied to {project.tool_type}")
    return changes


def link_to_project(config: ConfigManager) -> None:
    """Top-level "Link to project" flow."""
    registry = SkillRegistry(config)
    if not registry.get_all_skills():
        render_warning("No skills in repository. Add skills first.")
        return

    detector = ProjectDetector.from_config(config)
    projects = detector.detect_all()
    if not projects:
        render_warning("No AI tools detected in current directory.")
        render_muted("  Supported: " + " ".join(supported_markers(detector.ai_tools)))
        return

    if len(projects) == 1:
        render_info(f"Detected: {projects[0].tool_type}")
    chosen = pick_projects(projects)
    if not chosen:
        return

    for project in chosen:
        if toggle_project_links(config, registry, project) is None:
            return
