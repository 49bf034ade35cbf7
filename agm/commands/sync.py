"""
Sync skills from the team registry repository.

Registry skills live one level below the registry root (or below the subfolder
of a /tree/<branch>/<path> URL) and are registered as "registry:<folder name>".
A registry skill always wins over a github:/local: skill with the same link
name; the interactive flow asks before replacing one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from ..config import ConfigManager
from ..core import copy_dir, remove_path_safely
from ..git_ops import GitError, GitManager, GitNotAvailableError, normalize_url
from ..links import remove_links_everywhere
from ..logger import get_logger
from ..project import ProjectDetector, ProjectInfo
from ..registry import SkillRegistry, SkillType, make_skill_id
from ..skills import scan_for_skills
from ..tui import (
    console,
    prompt_text,
    prompt_yes_no,
    render_error,
    render_failure_panel,
    render_info,
    render_success,
    render_warning,
)

logger = get_logger(__name__)

ConfirmReplace = Callable[[str, List[str]], bool]


@dataclass
class SyncReport:
    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    replaced: int = 0
    replaced_links: int = 0
    removed_links: int = 0

    def changed(self) -> int:
        return len(self.added) + len(self.updated) + len(self.removed)


class SyncOrchestrator:
    def __init__(
        self,
        config: ConfigManager,
        registry: SkillRegistry,
        git: GitManager,
        projects: Sequence[ProjectInfo] = (),
        confirm_replace: Optional[ConfirmReplace] = None,
    ):
        self.config = config
        self.registry = registry
        self.git = git
        self.projects = list(projects)
        self.confirm_replace = confirm_replace

    def update_checkout(self, registry_url: str) -> Path:
        """Clone the registry repo on first use, pull afterwards. Returns the folder to scan."""
        info = normalize_url(registry_url)
        checkout = self.config.registry_dir

        if not (checkout / ".git").exists():
            render_info("Cloning registry...")
            remove_path_safely(checkout)
            checkout.parent.mkdir(parents=True, exist_ok=True)
            self.git.clone_full(info.url, checkout, branch=info.branch)
        else:
            render_info("Pulling latest changes...")
            self.git.pull(checkout)

        if info.path:
            return checkout / info.path
        return checkout

    def _remove_duplicates(self, link_name: str, keep_id: str) -> Optional[Tuple[int, int]]:
        """
        Drop differently-sourced skills that share `link_name`.
        Returns (skills removed, project links removed), or None if the user declined.
        """
        duplicates = [
            s.id
            for s in self.registry.get_all_skills()
            if s.id != keep_id and self.config.get_link_name(s.id) == link_name
        ]
        if not duplicates:
            return 0, 0
        if self.confirm_replace is not None and not self.confirm_replace(link_name, duplicates):
            return None

        links = 0
        for skill_id in duplicates:
            remove_path_safely(self.config.get_repo_path(skill_id))
            links += remove_links_everywhere(self.config, skill_id, self.projects)
            self.registry.remove_skill(skill_id)
            logger.warning(f"Replaced {skill_id} with {keep_id}")
        return len(duplicates), links

    def _commit_for(self, checkout: Path, skill_dir: Path) -> str:
        rel = skill_dir.relative_to(checkout).as_posix()
        try:
            return self.git.get_local_path_commit_id(checkout, rel)
        except GitError as e:
            logger.warning(f"No commit id for {rel}: {e}")
            return ""

    def sync(self, registry_url: str) -> SyncReport:
        """Bring the local registry in line with the registry repository."""
        report = SyncReport()

        scan_root = self.update_checkout(registry_url)
        checkout = self.config.registry_dir

        found = scan_for_skills(scan_root)
        if not found:
            render_warning("No skills found in registry (no SKILL.md files).")
            return report

        found_ids = set()
        for skill_dir in found:
            name = skill_dir.name
            skill_id = make_skill_id(SkillType.REGISTRY, name)
            found_ids.add(skill_id)

            replaced = self._remove_duplicates(name, skill_id)
            if replaced is None:
                render_warning(f"  = {name}: kept existing source, registry copy skipped")
                report.skipped.append(skill_id)
                continue
            removed_sources, removed_links = replaced
            if removed_sources:
                report.replaced += removed_sources
                report.replaced_links += removed_links
                render_warning(f"  ~ {name}: replaced {removed_sources} existing source(s) with registry")

            existing = self.registry.get_skill(skill_id)
            dest = self.config.get_repo_path(skill_id)
            try:
                remove_path_safely(dest)
                copy_dir(skill_dir, dest)
            except OSError as e:
                render_error(f"Failed to copy {name}: {e}")
                report.failed.append(skill_id)
                continue

            commit_id = self._commit_for(checkout, skill_dir)
            self.registry.add_skill(skill_id, SkillType.REGISTRY, commit_id)

            if existing is None:
                render_success(f"  + {name} (new)")
                report.added.append(skill_id)
            elif existing.commit_id != commit_id:
                render_success(f"  ↑ {name} (updated)")
                report.updated.append(skill_id)
            else:
                report.unchanged.append(skill_id)

        for skill in self.registry.get_all_skills():
            if skill.type != SkillType.REGISTRY or skill.id in found_ids:
                continue
            remove_path_safely(self.config.get_repo_path(skill.id))
            report.removed_links += remove_links_everywhere(self.config, skill.id, self.projects)
            self.registry.remove_skill(skill.id)
            render_warning(f"  - {self.config.get_link_name(skill.id)} (removed from registry)")
            report.removed.append(skill.id)

        logger.info(
            f"Sync of {registry_url}: {len(report.added)} new, {len(report.updated)} updated, "
            f"{len(report.unchanged)} unchanged, {len(report.removed)} removed, {report.replaced} replaced"
        )
        return report


def print_sync_report(report: SyncReport) -> None:
    console.print()
    render_success(
        f"Sync complete: {len(report.added)} new, {len(report.updated)} updated, {len(report.unchanged)} unchanged"
    )
    if report.replaced:
        render_info(f"{report.replaced} duplicate source skill(s) replaced by registry")
        if report.replaced_links:
            render_info(f"{report.replaced_links} linked skill entry(s) removed for replaced sources")
    if report.removed:
        render_info(f"{len(report.removed)} skill(s) removed (no longer in registry)")
        if report.removed_links:
            render_info(f"{report.removed_links} linked skill entry(s) removed from detected project tools")
    if report.skipped:
        render_warning(f"{len(report.skipped)} registry skill(s) skipped")
    if report.failed:
        render_error(f"{len(report.failed)} skill(s) failed to copy")


def confirm_replace_interactive(link_name: str, skill_ids: List[str]) -> bool:
    answer = prompt_yes_no(
        f"Registry skill '{link_name}' replaces {', '.join(skill_ids)} (repo copy and project links). Continue?",
        default=True,
    )
    return bool(answer)


def set_registry_flow(config: ConfigManager) -> Optional[str]:
    """Ask for the registry URL and persist it. Returns the URL, or None if cancelled."""
    current = config.get_registry()
    url = prompt_text(
        "Registry URL",
        default=current,
        instruction="(GitHub repo with your team's skills, e.g. https://github.com/org/skills)",
    )
    if not url:
        return None

    if url != current and (config.registry_dir / ".git").exists():
        # Old checkout belongs to a different repository.
        remove_path_safely(config.registry_dir)
    config.set_registry(url)
    render_success(f"Registry saved: {url}")
    return url


def sync_skills(config: ConfigManager, git: GitManager, interactive: bool) -> Optional[SyncReport]:
    """
    Sync flow. Interactive mode asks for a registry URL when none is set and
    confirms duplicate replacement; non-interactive mode (--sync) does neither.
    """
    try:
        git.check_git_version()
    except GitNotAvailableError as e:
        render_error(str(e), stderr=not interactive)
        return None

    registry_url = config.get_registry()
    if not registry_url:
        if not interactive:
            render_error("No registry configured. Run agm and use 'Set up registry' to configure one.", stderr=True)
            return None
        registry_url = set_registry_flow(config)
        if not registry_url:
            return None

    orchestrator = SyncOrchestrator(
        config,
        SkillRegistry(config),
        git,
        ProjectDetector.from_config(config).detect_all(),
        confirm_replace=confirm_replace_interactive if interactive else None,
    )
    try:
        report = orchestrator.sync(registry_url)
    except (GitError, OSError) as e:
        render_failure_panel("Sync failed", str(e))
        return None

    print_sync_report(report)
    return report
