"""Inspect, update and delete registered skills."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rich.table import Table

from ..config import ConfigManager
from ..core import remove_path_safely
from ..git_ops import GitError, GitManager
from ..links import get_linked_skills, remove_links_everywhere, skill_target_path
from ..logger import get_logger
from ..project import ProjectDetector
from ..registry import Skill, SkillRegistry, SkillType
from ..skills import extract_skill_description
from ..tui import (
    console,
    format_menu_choices,
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


@dataclass
class UpdateInfo:
    remote_head: str
    branch: str


def _github_user_repo(skill: Skill) -> str:
    """"github:owner/repo/some/path" -> "owner/repo"."""
    locator = skill.id.partition(":")[2]
    return "/".join(locator.split("/")[:2])


def check_for_update(config: ConfigManager, git: GitManager, skill: Skill) -> Optional[UpdateInfo]:
    """
    Fetch the skill's clone and compare the last commit touching its path on the
    remote branch with the local one. Returns None when up to date or on any git failure.
    """
    repo_dir = config.get_repo_path(skill.id)
    sub_path = skill.path or "."
    try:
        local_commit = git.get_local_path_commit_id(repo_dir, sub_path)
        render_info("Checking for updates...")
        git.fetch(repo_dir)
        branch = git.get_current_branch(repo_dir) or git.get_default_branch(_github_user_repo(skill))
        remote_head = git.get_remote_path_commit_id(repo_dir, f"origin/{branch}", sub_path)
    except GitError as e:
        logger.warning(f"Update check failed for {skill.id}: {e}")
        return None

    if remote_head and remote_head != local_commit:
        return UpdateInfo(remote_head=remote_head, branch=branch)
    return None


def do_update(config: ConfigManager, git: GitManager, skill: Skill, update: UpdateInfo) -> bool:
    render_info(f"Updating {skill.id}...")
    try:
        git.pull(config.get_repo_path(skill.id))
    except GitError as e:
        render_error(f"Failed: {e}")
        return False
    SkillRegistry(config).update_skill_version(skill.id, update.remote_head)
    render_success(f"Updated {skill.id}")
    return True


def do_delete(config: ConfigManager, skill_id: str) -> bool:
    """Remove the repo copy, links in detected tools and the registry record."""
    if not prompt_yes_no(f"Delete {skill_id}? This cannot be undone.", default=False):
        render_muted("Cancelled.")
        return False

    remove_path_safely(config.get_repo_path(skill_id))
    projects = ProjectDetector.from_config(config).detect_all()
    removed_links = remove_links_everywhere(config, skill_id, projects)
    SkillRegistry(config).remove_skill(skill_id)

    render_success(f"Deleted {skill_id}")
    if removed_links:
        render_info(f"{removed_links} project link(s) removed")
    return True


def _manage_one_skill(config: ConfigManager, git: GitManager, skill: Skill) -> None:
    render_section(skill.id)

    items = []
    update: Optional[UpdateInfo] = None
    if skill.type == SkillType.GITHUB:
        update = check_for_update(config, git, skill)
        if update is not None:
            items.append(
                {"title": f"⬆️  Update ({skill.short_commit} → {update.remote_head[:7]})", "value": "update"}
            )
        else:
            render_success("  Up to date")
    elif skill.type == SkillType.REGISTRY:
        render_muted("  Registry skill, updated by sync")
    else:
        render_muted("  Local, no remote updates")

    items += [
        {"title": "🗑️  Delete", "value": "delete"},
        {"title": "← Back", "value": "back"},
    ]
    action = prompt_toolkit_menu(format_menu_choices(items), message="Action")
    if action == "update" and update is not None:
        do_update(config, git, skill, update)
    elif action == "delete":
        do_delete(config, skill.id)


def manage_skills(config: ConfigManager, git: GitManager) -> None:
    """Top-level "Manage skills" flow: pick a skill, act on it, repeat."""
    registry = SkillRegistry(config)
    while True:
        skills = registry.get_all_skills()
        if not skills:
            render_warning("No skills installed. Use 'Import skills' first.")
            return

        render_section("Manage Skills")
        items = []
        for s in skills:
            tag = s.short_commit if s.type == SkillType.GITHUB and s.commit_id else s.type
            items.append({"title": f"{s.id} ({tag})", "value": s.id})
        items.append({"title": "← Back", "value": "back"})

        selected = prompt_toolkit_menu(format_menu_choices(items), message="Select a skill")
        if not selected or selected == "back":
            return

        skill = registry.get_skill(selected)
        if skill is not None:
            _manage_one_skill(config, git, skill)


def build_skills_table(config: ConfigManager) -> Optional[Table]:
    """Registered skills with description and a link column per detected tool."""
    skills = SkillRegistry(config).get_all_skills()
    if not skills:
        return None

    projects = ProjectDetector.from_config(config).detect_all()

    table = Table(title="Registered skills", show_lines=False)
    table.add_column("Skill ID", style="bold")
    table.add_column("Type")
    table.add_column("Commit")
    table.add_column("Description")
    for p in projects:
        table.add_column(p.tool_type, justify="center")

    linked = [get_linked_skills(config, skills, p.skill_dir) for p in projects]
    for s in skills:
        description = extract_skill_description(skill_target_path(config, s))
        statuses = ["✓" if by_id.get(s.id) else "·" for by_id in linked]
        table.add_row(s.id, s.type, s.short_commit, description, *statuses)
    return table


def list_skills(config: ConfigManager) -> None:
    table = build_skills_table(config)
    if table is None:
        render_warning("No skills installed. Use 'Import skills' first.")
        return
    console.print(table)
