import shutil
import sys

import pytest

from agm.commands.sync import SyncOrchestrator, sync_skills
from agm.links import link_skill
from agm.project import ProjectInfo
from agm.registry import SkillType

from conftest import write_skill

REGISTRY_URL = "https://github.com/org/skills"


class FakeGit:
    """Stands in for GitManager: "remote" is a local folder, commits are a dict."""

    def __init__(self, remote):
        self.remote = remote
        self.commits = {}
        self.clones = 0
        self.pulls = 0

    def check_git_version(self):
        pass

    def _copy_remote(self, dest):
        shutil.copytree(self.remote, dest, dirs_exist_ok=True)
        (dest / ".git").mkdir(exist_ok=True)

    def clone_full(self, url, dest, branch="", quiet=True):
        self.clones += 1
        self._copy_remote(dest)

    def pull(self, cwd, quiet=True):
        self.pulls += 1
        for child in cwd.iterdir():
            if child.name != ".git":
                shutil.rmtree(child)
        self._copy_remote(cwd)

    def get_local_path_commit_id(self, repo_dir, sub_path="."):
        return self.commits.get(sub_path, "c0ffee1")


@pytest.fixture
def remote(tmp_path):
    root = tmp_path / "remote"
    write_skill(root, "team-skill")
    write_skill(root, "reviewer")
    return root


@pytest.fixture
def git(remote):
    return FakeGit(remote)


@pytest.fixture
def project(tmp_path):
    return ProjectInfo("claude", tmp_path, tmp_path / ".claude" / "skills")


def test_first_sync_adds_and_second_is_a_noop(config, registry, git):
    orchestrator = SyncOrchestrator(config, registry, git)

    first = orchestrator.sync(REGISTRY_URL)
    assert sorted(first.added) == ["registry:reviewer", "registry:team-skill"]
    assert git.clones == 1
    assert (config.get_repo_path("registry:reviewer") / "SKILL.md").is_file()
    assert registry.get_skill("registry:reviewer").commit_id == "c0ffee1"

    second = orchestrator.sync(REGISTRY_URL)
    assert second.changed() == 0
    assert sorted(second.unchanged) == ["registry:reviewer", "registry:team-skill"]
    assert git.pulls == 1


def test_new_commit_marks_skill_updated(config, registry, git):
    orchestrator = SyncOrchestrator(config, registry, git)
    orchestrator.sync(REGISTRY_URL)

    git.commits["reviewer"] = "deadbee"
    report = orchestrator.sync(REGISTRY_URL)

    assert report.updated == ["registry:reviewer"]
    assert registry.get_skill("registry:reviewer").commit_id == "deadbee"


def test_tree_url_scans_subfolder(config, registry, tmp_path):
    remote = tmp_path / "nested-remote"
    write_skill(remote / "skills", "inner")
    write_skill(remote, "outer")

    report = SyncOrchestrator(config, registry, FakeGit(remote)).sync(REGISTRY_URL + "/tree/main/skills")

    assert report.added == ["registry:inner"]


@pytest.mark.skipif(sys.platform == "win32", reason="symlink based")
def test_skill_removed_upstream_is_dropped_with_links(config, registry, git, remote, project):
    orchestrator = SyncOrchestrator(config, registry, git, [project])
    orchestrator.sync(REGISTRY_URL)
    link_skill(config, registry.get_skill("registry:reviewer"), project)

    shutil.rmtree(remote / "reviewer")
    report = orchestrator.sync(REGISTRY_URL)

    assert report.removed == ["registry:reviewer"]
    assert report.removed_links == 1
    assert registry.get_skill("registry:reviewer") is None
    assert not config.get_repo_path("registry:reviewer").exists()
    assert not (project.skill_dir / "reviewer").exists()
    assert registry.get_skill("registry:team-skill") is not None


def test_empty_registry_removes_nothing(config, registry, git, remote):
    orchestrator = SyncOrchestrator(config, registry, git)
    orchestrator.sync(REGISTRY_URL)

    for child in list(remote.iterdir()):
        shutil.rmtree(child)
    report = orchestrator.sync(REGISTRY_URL)

    assert report.removed == []
    assert len(registry.get_all_skills()) == 2


@pytest.mark.skipif(sys.platform == "win32", reason="symlink based")
def test_registry_replaces_same_named_source(config, registry, git, project):
    dup_id = "github:someone/repo/team-skill"
    write_skill(config.get_repo_path(dup_id), "placeholder")
    registry.add_skill(dup_id, SkillType.GITHUB, "1234567")
    link_skill(config, registry.get_skill(dup_id), project)

    report = SyncOrchestrator(config, registry, git, [project]).sync(REGISTRY_URL)

    assert report.replaced == 1
    assert report.replaced_links == 1
    assert registry.get_skill(dup_id) is None
    assert not config.get_repo_path(dup_id).exists()
    assert "registry:team-skill" in report.added
    assert not (project.skill_dir / "team-skill").exists()


def test_declined_replacement_keeps_existing_source(config, registry, git):
    dup_id = "local:team-skill"
    write_skill(config.repo_dir, config.get_safe_name(dup_id))
    registry.add_skill(dup_id, SkillType.LOCAL)
    asked = []

    def decline(link_name, ids):
        asked.append((link_name, ids))
        return False

    report = SyncOrchestrator(config, registry, git, confirm_replace=decline).sync(REGISTRY_URL)

    assert asked == [("team-skill", [dup_id])]
    assert report.skipped == ["registry:team-skill"]
    assert report.added == ["registry:reviewer"]
    assert registry.get_skill(dup_id) is not None
    assert registry.get_skill("registry:team-skill") is None


def test_non_interactive_sync_without_registry_fails(config, git):
    assert sync_skills(config, git, interactive=False) is None


def test_non_interactive_sync_uses_configured_registry(config, git, workdir):
    config.set_registry(REGISTRY_URL)
    report = sync_skills(config, git, interactive=False)
    assert report is not None
    assert len(report.added) == 2
