import subprocess
from pathlib import Path

import pytest

from agm import git_ops
from agm.git_ops import GitError, GitManager, GitNotAvailableError, URLInfo, normalize_url, parse_github_repo


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("https://github.com/user/repo", URLInfo("https://github.com/user/repo.git")),
        ("https://github.com/user/repo.git", URLInfo("https://github.com/user/repo.git")),
        ("https://github.com/user/repo/", URLInfo("https://github.com/user/repo.git")),
        (
            "https://github.com/user/repo/tree/main/skills/tooling?tab=readme#section",
            URLInfo("https://github.com/user/repo.git", "main", "skills/tooling"),
        ),
        (
            "https://github.com/user/repo/tree/feature%2Fmy-work",
            URLInfo("https://github.com/user/repo.git", "feature/my-work", ""),
        ),
        (
            "https://github.com/user/repo/tree/dev/my%20skills/",
            URLInfo("https://github.com/user/repo.git", "dev", "my skills"),
        ),
    ],
)
def test_normalize_url(raw, expected):
    assert normalize_url(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "https://github.com/user/repo",
        "https://github.com/user/repo/tree/main",
        "https://gitlab.com/group/project",
    ],
)
def test_normalize_url_is_idempotent(raw):
    once = normalize_url(raw)
    assert normalize_url(once.url).url == once.url


def test_parse_github_repo():
    assert parse_github_repo("https://github.com/user/repo.git") == "user/repo"
    assert parse_github_repo("https://github.com/user/repo") == "user/repo"
    assert parse_github_repo("https://gitlab.com/group/project.git") is None


def _fake_run(returncode=0, stdout="", stderr=""):
    calls = []

    def run(cmd, capture_output=True, cwd=None, env=None):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)

    return run, calls


@pytest.mark.parametrize("version", ["git version 2.25.0", "git version 2.43.1 (Apple Git-115)", "git version 3.0.0"])
def test_check_git_version_accepts_supported(monkeypatch, version):
    run, _ = _fake_run(stdout=version + "\n")
    monkeypatch.setattr(git_ops, "run_command", run)
    GitManager().check_git_version()


def test_check_git_version_rejects_old(monkeypatch):
    run, _ = _fake_run(stdout="git version 2.24.3\n")
    monkeypatch.setattr(git_ops, "run_command", run)
    with pytest.raises(GitNotAvailableError, match="2.25"):
        GitManager().check_git_version()


def test_check_git_version_missing_binary(monkeypatch):
    run, _ = _fake_run(returncode=127, stderr="No such file or directory: 'git'")
    monkeypatch.setattr(git_ops, "run_command", run)
    with pytest.raises(GitNotAvailableError):
        GitManager().check_git_version()


def test_clone_failure_carries_stderr(monkeypatch, tmp_path):
    run, calls = _fake_run(returncode=128, stderr="fatal: repository not found\n")
    monkeypatch.setattr(git_ops, "run_command", run)

    with pytest.raises(GitError) as excinfo:
        GitManager().clone_full("https://github.com/user/missing.git", tmp_path / "dest", branch="dev")

    assert excinfo.value.stderr == "fatal: repository not found"
    assert calls[0][:4] == ["git", "clone", "--branch", "dev"]


def test_get_default_branch_parses_symref(monkeypatch):
    run, _ = _fake_run(stdout="ref: refs/heads/trunk\tHEAD\nabc123\tHEAD\n")
    monkeypatch.setattr(git_ops, "run_command", run)
    assert GitManager().get_default_branch("user/repo") == "trunk"


def test_get_default_branch_falls_back_to_main(monkeypatch):
    run, _ = _fake_run(returncode=2)
    monkeypatch.setattr(git_ops, "run_command", run)
    assert GitManager().get_default_branch("user/repo") == "main"


def test_get_current_branch_detached_head(monkeypatch, tmp_path):
    run, _ = _fake_run(stdout="HEAD\n")
    monkeypatch.setattr(git_ops, "run_command", run)
    assert GitManager().get_current_branch(tmp_path) is None


def _scripted_git(archive_ok=True, fail_step=None, manifest="SKILL.md"):
    """Fake run_command for check_remote_skill_md; the checkout step writes `manifest`."""
    calls = []
    tmp_dirs = []

    def run(cmd, capture_output=True, cwd=None, env=None):
        args = cmd[1:]
        verb = args[0]
        calls.append(verb)
        returncode, stdout = 0, ""
        if verb == "ls-remote":
            stdout = "abc123\trefs/heads/main\n"
        elif verb == "archive":
            output = next(a for a in args if a.startswith("--output="))
            tmp_dirs.append(Path(output.split("=", 1)[1]).parent)
            returncode = 0 if archive_ok else 128
        elif verb == "clone":
            Path(args[-1]).mkdir(parents=True)
        elif verb == "checkout" and verb != fail_step:
            (cwd / manifest).parent.mkdir(parents=True, exist_ok=True)
            (cwd / manifest).write_text("# skill")
        if verb == fail_step:
            returncode = 1
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")

    return run, calls, tmp_dirs


def test_remote_skill_md_found_by_archive(monkeypatch):
    run, calls, tmp_dirs = _scripted_git(archive_ok=True)
    monkeypatch.setattr(git_ops, "run_command", run)

    assert GitManager().check_remote_skill_md("user/repo", "main") is True
    assert calls == ["ls-remote", "archive"]
    assert tmp_dirs[0].name.startswith("agm-check-")
    assert not tmp_dirs[0].exists()


def test_remote_skill_md_falls_back_to_sparse_clone(monkeypatch):
    run, calls, tmp_dirs = _scripted_git(archive_ok=False, manifest="skills/tooling/SKILL.md")
    monkeypatch.setattr(git_ops, "run_command", run)

    assert GitManager().check_remote_skill_md("user/repo", "main", "skills/tooling") is True
    assert calls == ["ls-remote", "archive", "clone", "sparse-checkout", "sparse-checkout", "checkout"]
    assert not tmp_dirs[0].exists()


def test_remote_skill_md_root_skips_sparse_set(monkeypatch):
    run, calls, _ = _scripted_git(archive_ok=False)
    monkeypatch.setattr(git_ops, "run_command", run)

    assert GitManager().check_remote_skill_md("user/repo", "main") is True
    assert calls.count("sparse-checkout") == 1


def test_remote_skill_md_missing_after_clone(monkeypatch):
    run, _, tmp_dirs = _scripted_git(archive_ok=False, manifest="elsewhere/SKILL.md")
    monkeypatch.setattr(git_ops, "run_command", run)

    assert GitManager().check_remote_skill_md("user/repo", "main", "skills/tooling") is False
    assert not tmp_dirs[0].exists()


@pytest.mark.parametrize("step", ["clone", "sparse-checkout", "checkout"])
def test_remote_skill_md_clone_step_failure(monkeypatch, step):
    run, calls, tmp_dirs = _scripted_git(archive_ok=False, fail_step=step)
    monkeypatch.setattr(git_ops, "run_command", run)

    assert GitManager().check_remote_skill_md("user/repo", "main", "skills") is False
    assert calls[-1] == step
    assert not tmp_dirs[0].exists()


def test_remote_skill_md_unknown_branch(monkeypatch):
    run, calls = _fake_run(stdout="")
    monkeypatch.setattr(git_ops, "run_command", run)

    assert GitManager().check_remote_skill_md("user/repo", "nope") is False
    assert len(calls) == 1


def _log_then_rev_parse(log_stdout, head="feedbeef"):
    calls = []

    def run(cmd, capture_output=True, cwd=None, env=None):
        verb = cmd[3]  # git -C <dir> <verb>
        calls.append(verb)
        stdout = log_stdout if verb == "log" else head + "\n"
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    return run, calls


def test_local_path_commit_id_uses_path_history(monkeypatch, tmp_path):
    run, calls = _log_then_rev_parse("0123abc\n")
    monkeypatch.setattr(git_ops, "run_command", run)

    assert GitManager().get_local_path_commit_id(tmp_path, "skills/tooling") == "0123abc"
    assert calls == ["log"]


def test_local_path_commit_id_falls_back_to_head(monkeypatch, tmp_path):
    run, calls = _log_then_rev_parse("")
    monkeypatch.setattr(git_ops, "run_command", run)

    assert GitManager().get_local_path_commit_id(tmp_path, "missing/path") == "feedbeef"
    assert calls == ["log", "rev-parse"]


def test_remote_path_commit_id_falls_back_to_branch_tip(monkeypatch, tmp_path):
    run, calls = _log_then_rev_parse("", head="cafe123")
    monkeypatch.setattr(git_ops, "run_command", run)

    assert GitManager().get_remote_path_commit_id(tmp_path, "origin/main", "skills") == "cafe123"
    assert calls == ["log", "rev-parse"]
