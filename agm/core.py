"""
agm core helpers.
Persistence and subprocess plumbing shared by every component.

GUIDELINES:
- COMMANDS: Use `run_command` instead of raw `subprocess.run` for consistent error handling.
- PERSISTENCE: Use `safe_write_json` for user-edited files, `atomic_write_json` for data files.
- UI: Interactive prompts and rendering live in `.tui`; this module stays UI-free.
- PATHS: Always use `pathlib.Path` and handle `~` expansion for user inputs.
"""

import datetime
import json
import os
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

# --- JSON Persistence Helpers ---
JSON_BACKUP_KEEP_DEFAULT = 5
JSON_BACKUP_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"  # yyyymmddhhmmss
# ------------------------------


def _json_backup_path(path: Path, ts: str, counter: int = 0) -> Path:
    """
    abc.json -> abc-yyyymmddhhmmss.json (or abc-yyyymmddhhmmss-1.json on collision)
    """
    suffix = path.suffix or ".json"
    base = path.with_suffix("").name
    if counter <= 0:
        return path.with_name(f"{base}-{ts}{suffix}")
    return path.with_name(f"{base}-{ts}-{counter}{suffix}")


def _rotate_json_backups(path: Path, keep: int) -> None:
    """
    Keep only the newest `keep` backups named like abc-yyyymmddhhmmss(.json) or abc-yyyymmddhhmmss-<n>.json.
    """
    if keep <= 0:
        return
    parent = path.parent
    suffix = path.suffix or ".json"
    base = path.with_suffix("").name
    pattern = re.compile(rf"^{re.escape(base)}-(\d{{14}})(?:-(\d+))?{re.escape(suffix)}$")

    matches: List[tuple[str, int, Path]] = []
    try:
        for p in parent.iterdir():
            if not p.is_file():
                continue
            m = pattern.match(p.name)
            if not m:
                continue
            matches.append((m.group(1), int(m.group(2) or "0"), p))
    except OSError:
        return

    # Newest first by (timestamp, counter)
    matches.sort(key=lambda t: (t[0], t[1]), reverse=True)
    for _, _, p in matches[keep:]:
        try:
            p.unlink(missing_ok=True)
        except OSError:
            pass


def backup_json_with_timestamp(path: Path, keep: int = JSON_BACKUP_KEEP_DEFAULT) -> Optional[Path]:
    """
    If `path` exists, copy it to a timestamped backup next to it, then rotate backups.
    Returns the created backup path, or None if no backup was created.
    """
    if not path.exists() or not path.is_file():
        return None

    ts = datetime.datetime.now().strftime(JSON_BACKUP_TIMESTAMP_FORMAT)
    backup_path = _json_backup_path(path, ts, 0)
    counter = 0
    while backup_path.exists():
        counter += 1
        backup_path = _json_backup_path(path, ts, counter)

    try:
        shutil.copy2(path, backup_path)
    except OSError:
        return None

    _rotate_json_backups(path, keep=keep)
    return backup_path


def atomic_write_text(path: Path, content: str) -> None:
    """
    Atomically write text by writing to a temp file in the same directory and renaming.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        delete=False,
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
    ) as tf:
        tf.write(content)
        tf.flush()
        os.fsync(tf.fileno())
        tmp_path = Path(tf.name)
    os.replace(tmp_path, path)


def atomic_write_json(path: Path, data: Any, *, indent: int = 2) -> None:
    """Atomically replace `path` with JSON content, without keeping backups."""
    atomic_write_text(path, json.dumps(data, indent=indent) + "\n")


def safe_write_json(
    path: Path,
    data: Any,
    *,
    keep_backups: int = JSON_BACKUP_KEEP_DEFAULT,
    indent: int = 2,
) -> None:
    """
    Safe JSON persistence:
    - Create a timestamped backup of the existing file (rotated to `keep_backups`)
    - Atomically replace the file with new JSON content
    """
    backup_json_with_timestamp(path, keep=keep_backups)
    atomic_write_json(path, data, indent=indent)


def read_json(path: Path) -> Optional[Any]:
    """Parse a JSON file. Returns None when the file is missing or not valid JSON."""
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8", errors="ignore") or "null")
    except (json.JSONDecodeError, OSError):
        return None


def run_command(
    cmd: List[str],
    capture_output: bool = True,
    cwd: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Robust wrapper for subprocess execution.
    Handles encoding, output capture, and provides a mock response on failure.
    """
    try:
        return subprocess.run(
            cmd,
            capture_output=capture_output,
            text=True,
            check=False,  # Callers inspect returncode themselves
            cwd=str(cwd) if cwd else None,
            env=env,
        )
    except (OSError, ValueError) as e:
        # Create a mock CompletedProcess for catastrophic failures (e.g. binary not found)
        return subprocess.CompletedProcess(args=cmd, returncode=127, stdout="", stderr=str(e))


def expand_user_path(raw: str) -> Optional[Path]:
    """Resolve a user-typed path (with ~ and env vars) to an absolute path."""
    cleaned = (raw or "").strip()
    if not cleaned:
        return None
    return Path(os.path.expandvars(cleaned)).expanduser().resolve()


def remove_path_safely(path: Path) -> None:
    """Remove a symlink, file or directory tree. Missing paths are ignored."""
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
        return
    if path.exists() and path.is_dir():
        shutil.rmtree(path)


def copy_dir(src: Path, dst: Path) -> None:
    """Recursively copy `src` into `dst`, creating parents. `dst` must not exist."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copytree(src, dst, symlinks=True)
