"""
Git operations for agm.

Supported GitHub URL forms (see normalize_url):

1) Repo URL
   - https://github.com/owner/repo
   - https://github.com/owner/repo.git
2) Tree URL pointing at a branch root
   - https://github.com/owner/repo/tree/main
   - https://github.com/owner/repo/tree/feature%2Fmy-work   (branch "feature/my-work")
3) Tree URL pointing at a subfolder
   - https://github.com/owner/repo/tree/main/skills/tooling

Query strings and fragments are ignored. Branch names containing a literal "/"
can only be expressed percent-encoded; "tree/feature/x/skills" is read as
branch "feature" and path "x/skills".
"""

from __future__ import annotations

import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import unquote

from .core import run_command
from .logger import get_logger

logger = get_logger(__name__)

# -----------------------------
# --- Git requirements ---
MIN_GIT_VERSION = (2, 25)  # sparse-checkout --cone
DEFAULT_BRANCH = "main"
SKILL_MANIFEST = "SKILL.md"
# -----------------------------

# --- URL patterns (applied after stripping query/fragment/.git) ---
GITHUB_TREE_PATH_RE = re.compile(r"^(https://github\.com/[^/]+/[^/]+)/tree/([^/]+)/(.+)$")
GITHUB_TREE_BRANCH_RE = re.compile(r"^(https://github\.com/[^/]+/[^/]+)/tree/([^/]+)$")
GITHUB_USER_REPO_RE = re.compile(r"github\.com/([^/]+/[^/]+?)(?:\.git)?$")
GIT_VERSION_RE = re.compile(r"git version (\d+)\.(\d+)")
LS_REMOTE_HASH_RE = re.compile(r"^([0-9a-f]+)\t", re.MULTILINE)
SYMREF_HEAD_RE = re.compile(r"ref: refs/heads/([^\t\n]+)")

PathLike = Union[str, Path]


class GitError(Exception):
    """A git subprocess failed. `stderr` carries git's own message."""

    def __init__(self, message: str, stderr: str = ""):
        self.stderr = (stderr or "").strip()
        super().__init__(f"{message}: {self.stderr}" if self.stderr else message)


class GitNotAvailableError(GitError):
    """git is missing from PATH or too old for sparse checkouts."""


@dataclass(frozen=True)
class URLInfo:
    url: str          # normalized clone URL, always ends in .git
    branch: str = ""  # branch from a /tree/ URL
    path: str = ""    # repo-relative subfolder from a /tree/ URL


def normalize_url(input_url: str) -> URLInfo:
    """Parse a GitHub web URL into clone URL, branch and subfolder."""
    url = input_url.strip().rstrip("/")

    url = url.split("?", 1)[0]
    url = url.split("#", 1)[0]
    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]

    m = GITHUB_TREE_PATH_RE.match(url)
    if m:
        return URLInfo(
            url=m.group(1) + ".git",
            branch=unquote(m.group(2)),
            path=unquote(m.group(3)).rstrip("/"),
        )

    m = GITHUB_TREE_BRANCH_RE.match(url)
    if m:
        return URLInfo(url=m.group(1) + ".git", branch=unquote(m.group(2)))

    return URLInfo(url=url + ".git")


def parse_github_repo(url: str) -> Optional[str]:
    """
    Extract "owner/repo" from a normalized GitHub clone URL.
    Returns None for other hosts.
    """
    m = GITHUB_USER_REPO_RE.search(url)
    if not m:
        return None
    return m.group(1)


def github_clone_url(user_repo: str) -> str:
    return f"https://github.com/{user_repo}.git"


class GitManager:
    """Thin facade over the git CLI. Every failure raises GitError; nothing is retried."""

    def __init__(self, git_binary: str = "git"):
        self.git_binary = git_binary

    def _git(self, args: List[str], cwd: Optional[PathLike] = None, quiet: bool = True):
        cmd = [self.git_binary] + args
        logger.debug(f"Running {' '.join(cmd)} (cwd={cwd})")
        return run_command(cmd, capture_output=quiet, cwd=Path(cwd) if cwd else None)

    def _check(self, args: List[str], message: str, cwd: Optional[PathLike] = None, quiet: bool = True) -> str:
        res = self._git(args, cwd=cwd, quiet=quiet)
        if res.returncode != 0:
            logger.warning(f"{message} (exit {res.returncode}): {(res.stderr or '').strip()}")
            raise GitError(message, res.stderr or "")
        return (res.stdout or "").strip()

    # --- Environment ---

    def check_git_version(self) -> None:
        res = self._git(["--version"])
        if res.returncode != 0:
            raise GitNotAvailableError("git is not installed or not in PATH", res.stderr or "")

        m = GIT_VERSION_RE.search(res.stdout or "")
        if not m:
            raise GitNotAvailableError(f"could not parse git version from: {(res.stdout or '').strip()}")

        found = (int(m.group(1)), int(m.group(2)))
        if found < MIN_GIT_VERSION:
            raise GitNotAvailableError(
                f"git version must be >= {MIN_GIT_VERSION[0]}.{MIN_GIT_VERSION[1]}, found {found[0]}.{found[1]}"
            )

    # --- Remote queries ---

    def get_remote_head(self, url: str, ref: str = "HEAD") -> str:
        out = self._check(["ls-remote", url, ref or "HEAD"], f"failed to get remote head for {url} {ref}")
        m = LS_REMOTE_HASH_RE.search(out)
        if not m:
            raise GitError(f"could not parse remote head for {url} {ref}")
        return m.group(1)

    def get_default_branch(self, user_repo: str) -> str:
        res = self._git(["ls-remote", "--symref", github_clone_url(user_repo), "HEAD"])
        if res.returncode == 0:
            m = SYMREF_HEAD_RE.search(res.stdout or "")
            if m:
                return m.group(1)
        return DEFAULT_BRANCH

    def check_remote_skill_md(self, user_repo: str, branch: str, sub_path: str = "") -> bool:
        """
        True if SKILL.md exists at `sub_path` on `branch`.
        Tries `git archive --remote` first (not every host allows it), then a
        throwaway shallow sparse clone.
        """
        url = github_clone_url(user_repo)
        skill_path = f"{sub_path}/{SKILL_MANIFEST}" if sub_path else SKILL_MANIFEST

        try:
            commit = self.get_remote_head(url, f"refs/heads/{branch}")
        except GitError:
            return False

        tmp_dir = Path(tempfile.mkdtemp(prefix="agm-check-"))
        try:
            archive = tmp_dir / "probe.tar"
            if self._git(["archive", "--remote", url, f"--output={archive}", commit, skill_path]).returncode == 0:
                return True

            checkout = tmp_dir / "repo"
            steps = [
                (["clone", "--depth=1", "--filter=blob:none", "--no-checkout", url, str(checkout)], None),
                (["sparse-checkout", "init", "--cone"], checkout),
            ]
            # Cone mode always includes root files, so the root manifest needs no pattern.
            if sub_path:
                steps.append((["sparse-checkout", "set", sub_path], checkout))
            steps.append((["checkout", branch], checkout))
            for args, cwd in steps:
                if self._git(args, cwd=cwd).returncode != 0:
                    return False
            return (checkout / skill_path).is_file()
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

    # --- Clones ---

    def clone_full(self, url: str, dest: PathLike, branch: str = "", quiet: bool = True) -> None:
        args = ["clone"]
        if branch:
            args += ["--branch", branch]
        self._check(args + [url, str(dest)], f"clone of {url} failed", quiet=quiet)

    def clone_sparse(self, url: str, dest: PathLike, sub_path: str, branch: str = "", quiet: bool = True) -> None:
        """Blob-filtered clone with a cone-mode sparse checkout of `sub_path`."""
        branch = branch or DEFAULT_BRANCH
        self._check(
            ["clone", "--filter=blob:none", "--no-checkout", url, str(dest)],
            "sparse clone failed",
            quiet=quiet,
        )
        self._check(["sparse-checkout", "init", "--cone"], "sparse-checkout init failed", cwd=dest)
        self._check(["sparse-checkout", "set", sub_path], "sparse-checkout set failed", cwd=dest)
        self._check(["checkout", branch], f"checkout {branch} failed", cwd=dest, quiet=quiet)

    def pull(self, cwd: PathLike, quiet: bool = True) -> None:
        self._check(["pull"], f"pull failed in {cwd}", cwd=cwd, quiet=quiet)

    def fetch(self, cwd: PathLike) -> None:
        self._check(["fetch", "origin"], f"fetch failed in {cwd}", cwd=cwd)

    # --- Local history ---

    def get_current_branch(self, repo_dir: PathLike) -> Optional[str]:
        res = self._git(["-C", str(repo_dir), "rev-parse", "--abbrev-ref", "HEAD"])
        branch = (res.stdout or "").strip()
        if res.returncode != 0 or not branch or branch == "HEAD":
            return None
        return branch

    def get_local_path_commit_id(self, repo_dir: PathLike, sub_path: str = ".") -> str:
        """Last commit touching `sub_path`, or HEAD when the path has no history."""
        res = self._git(["-C", str(repo_dir), "log", "-1", "--format=%H", "--", sub_path or "."])
        commit = (res.stdout or "").strip()
        if res.returncode == 0 and commit:
            return commit
        return self._check(["-C", str(repo_dir), "rev-parse", "HEAD"], f"failed to get HEAD for {repo_dir}")

    def get_remote_path_commit_id(self, repo_dir: PathLike, remote_branch: str, sub_path: str = ".") -> str:
        """Same as get_local_path_commit_id against a remote-tracking branch. Call after fetch()."""
        res = self._git(["-C", str(repo_dir), "log", "-1", "--format=%H", remote_branch, "--", sub_path or "."])
        commit = (res.stdout or "").strip()
        if res.returncode == 0 and commit:
            return commit
        return self._check(
            ["-C", str(repo_dir), "rev-parse", remote_branch],
            f"failed to get {remote_branch} head for {repo_dir}",
        )
