"""
Import skills into the agm repository.

Sources:
- GitHub: a repo or /tree/ URL. If SKILL.md sits at the URL's path it is one
  skill ("github:owner/repo[/path]"); otherwise the folder is cloned to a temp
  dir, scanned one level deep and each picked skill is sparse-cloned.
- Local folder: each picked subfolder is copied in as "local:<name>".
- Registry: delegated to commands.sync.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import List, Optional

from ..config import ConfigManager
from ..core import copy_dir, expand_user_path, remove_path_safely
from ..git_ops import GitError, GitManager, GitNotAvailableError, URLInfo, normalize_url, parse_github_repo
from ..logger import get_logger
from ..project import ProjectDetector
from ..registry import SkillRegistry, SkillType, make_skill_id
from ..skills import scan_for_skills
from ..tui import (
    console,
    format_menu_choices,
    prompt_multi_select,
    prompt_path,
    prompt_text,
    prompt_toolkit_menu,
    prompt_yes_no,
    render_error,
    render_info,
    render_muted,
    render_success,
    render_warning,
)
from .link import link_skill_to_project, pick_projects
from .sync import set_registry_flow, sync_skills

logger = get_logger(__name__)


def _confirm_overwrite(config: ConfigManager, registry: SkillRegistry, skill_id: str) -> bool:
    """True if `skill_id` is free, or the user agreed to replace it (old copy is removed)."""
    if registry.get_skill(skill_id) is None:
        return True
    if not prompt_yes_no(f"{skill_id} already exists. Overwrite?", default=False):
        return False
    remove_path_safely(config.get_repo_path(skill_id))
    return True


def _installed_label(registry: SkillRegistry, name: str, skill_id: str) -> str:
    if registry.get_skill(skill_id) is not None:
        return f"{name} (installed)"
    return name


def _pick_found(registry: SkillRegistry, found: List[Path], id_for) -> Optional[List[str]]:
    items = [{"title": _installed_label(registry, p.name, id_for(p.name)), "value": p.name} for p in found]
    selected = prompt_multi_select(
        format_menu_choices(items),
        f"Found {len(found)} skills, select which to add",
    )
    if selected is None:
        return None
    if not selected:
        render_muted("No skills selected.")
    return selected


def _report_added(added: List[str]) -> None:
    if added:
        console.print()
        render_success(f"{len(added)} skill(s) added")


# --- GitHub ---

def _github_locator(user_repo: str, *parts: str) -> str:
    return "/".join([user_repo] + [p for p in parts if p])


def add_single_github_skill(
    config: ConfigManager,
    registry: SkillRegistry,
    git: GitManager,
    info: URLInfo,
    user_repo: str,
    branch: str,
) -> List[str]:
    skill_id = make_skill_id(SkillType.GITHUB, _github_locator(user_repo, info.path))
    if not _confirm_overwrite(config, registry, skill_id):
        return []

    dest = config.get_repo_path(skill_id)
    dest.parent.mkdir(parents=True, exist_ok=True)
    render_info(f"Cloning {skill_id}...")
    try:
        if info.path:
            git.clone_sparse(info.url, dest, info.path, branch)
        else:
            git.clone_full(info.url, dest, branch=info.branch)
    except GitError as e:
        render_error(f"Failed to clone: {e}")
        return []

    try:
        commit_id = git.get_local_path_commit_id(dest, info.path or ".")
    except GitError as e:
        logger.warning(f"No commit id for {skill_id}: {e}")
        commit_id = ""

    registry.add_skill(skill_id, SkillType.GITHUB, commit_id, info.path)
    render_success(f"Added {skill_id}")
    return [skill_id]


def add_github_skills_folder(
    config: ConfigManager,
    registry: SkillRegistry,
    git: GitManager,
    info: URLInfo,
    user_repo: str,
    branch: str,
) -> List[str]:
    render_info("No SKILL.md at root, scanning for skills inside...")

    def id_for(name: str) -> str:
        return make_skill_id(SkillType.GITHUB, _github_locator(user_repo, info.path, name))

    with tempfile.TemporaryDirectory(prefix="agm-scan-") as tmp:
        scan_checkout = Path(tmp) / "repo"
        try:
            if info.path:
                git.clone_sparse(info.url, scan_checkout, info.path, branch)
            else:
                git.clone_full(info.url, scan_checkout, branch=info.branch)
        except GitError as e:
            render_error(f"Failed to clone: {e}")
            return []
        found = scan_for_skills(scan_checkout / info.path if info.path else scan_checkout)

    if not found:
        render_error("No skills found (no subdirectories with SKILL.md).")
        return []

    selected = _pick_found(registry, found, id_for)
    if not selected:
        return []

    added: List[str] = []
    for name in selected:
        skill_id = id_for(name)
        sub_path = f"{info.path}/{name}" if info.path else name
        if not _confirm_overwrite(config, registry, skill_id):
            continue

        dest = config.get_repo_path(skill_id)
        dest.parent.mkdir(parents=True, exist_ok=True)
        render_info(f"Cloning {name}...")
        try:
            git.clone_sparse(info.url, dest, sub_path, branch)
            commit_id = git.get_local_path_commit_id(dest, sub_path)
        except GitError as e:
            render_error(f"Failed to clone {name}: {e}")
            continue

        registry.add_skill(skill_id, SkillType.GITHUB, commit_id, sub_path)
        added.append(skill_id)
        render_success(f"Added {skill_id}")

    _report_added(added)
    return added


def add_github_skill(config: ConfigManager, git: GitManager, url: Optional[str] = None) -> List[str]:
    """Import one skill or a folder of skills from a GitHub URL. Returns the added ids."""
    if url is None:
        url = prompt_text(
            "GitHub URL",
            instruction="(repo or subdirectory, e.g. https://github.com/user/repo/tree/main/skills)",
        )
    if not url:
        return []

    try:
        git.check_git_version()
    except GitNotAvailableError as e:
        render_error(str(e))
        return []

    info = normalize_url(url)
    user_repo = parse_github_repo(info.url)
    if not user_repo:
        render_error("Only GitHub URLs are supported.")
        return []

    branch = info.branch or git.get_default_branch(user_repo)
    registry = SkillRegistry(config)

    render_info("Checking for SKILL.md...")
    if git.check_remote_skill_md(user_repo, branch, info.path):
        return add_single_github_skill(config, registry, git, info, user_repo, branch)
    return add_github_skills_folder(config, registry, git, info, user_repo, branch)


# --- Local folder ---

def add_skills_folder(config: ConfigManager, folder: Optional[Path] = None) -> List[str]:
    """Copy picked skills from a local folder into the repository. Returns the added ids."""
    if folder is None:
        raw = prompt_path("Skills folder path (directory containing skill subdirectories):")
        folder = expand_user_path(raw or "")
    if folder is None:
        return []
    if not folder.is_dir():
        render_error("Path does not exist or is not a directory.")
        return []

    found = scan_for_skills(folder)
    if not found:
        render_warning("No skills found (no subdirectories with SKILL.md).")
        return []

    registry = SkillRegistry(config)

    def id_for(name: str) -> str:
        return make_skill_id(SkillType.LOCAL, name)

    selected = _pick_found(registry, found, id_for)
    if not selected:
        return []

    by_name = {p.name: p for p in found}
    added: List[str] = []
    for name in selected:
        skill_id = id_for(name)
        if not _confirm_overwrite(config, registry, skill_id):
            continue

        render_info(f"Copying {name}...")
        try:
            copy_dir(by_name[name], config.get_repo_path(skill_id))
        except OSError as e:
            render_error(f"Failed: {name}: {e}")
            continue

        registry.add_skill(skill_id, SkillType.LOCAL)
        added.append(skill_id)
        render_success(f"Added {skill_id}")

    _report_added(added)
    return added


# --- Wizard ---

def offer_link_after_add(config: ConfigManager, added_ids: List[str]) -> None:
    projects = ProjectDetector.from_config(config).detect_all()
    if not projects:
        return
    if not prompt_yes_no("Link these skills to a project now?", default=True):
        return

    chosen = pick_projects(projects)
    if not chosen:
        return

    registry = SkillRegistry(config)
    for project in chosen:
        if len(chosen) > 1:
            render_info(f"Linking to {project.tool_type}...")
        for skill_id in added_ids:
            link_skill_to_project(config, registry, skill_id, project)


def add_skills(config: ConfigManager, git: GitManager) -> None:
    """Top-level "Import skills" flow."""
    has_registry = bool(config.get_registry())
    items = [{"title": "🔄 Sync from registry" if has_registry else "🔄 Set up registry", "value": "sync"}]
    if has_registry:
        items.append({"title": "✏️  Change registry URL", "value": "registry"})
    items += [
        {"title": "🌐 GitHub Repository", "value": "github"},
        {"title": "📁 Local Folder", "value": "folder"},
        {"title": "← Cancel", "value": "cancel"},
    ]

    choice = prompt_toolkit_menu(format_menu_choices(items), message="Where are the skills?")
    if choice == "sync":
        sync_skills(config, git, interactive=True)
        return
    if choice == "registry":
        if set_registry_flow(config) and prompt_yes_no("Sync from the new registry now?", default=True):
            sync_skills(config, git, interactive=True)
        return

    if choice == "github":
        added = add_github_skill(config, git)
    elif choice == "folder":
        added = add_skills_folder(config)
    else:
        return

    if added:
        offer_link_after_add(config, added)
