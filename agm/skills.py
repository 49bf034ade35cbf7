"""Filesystem helpers for skill folders (a folder with a SKILL.md manifest)."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List, Optional

from .git_ops import SKILL_MANIFEST

# -----------------------------
# --- Description extraction ---
DEFAULT_DESCRIPTION_WORDS = 10
DESCRIPTION_SCAN_LINES = 80
FRONTMATTER_DESCRIPTION_RE = re.compile(r"^description:\s*(.+)$")
# -----------------------------


def is_skill_dir(path: Path) -> bool:
    return path.is_dir() and (path / SKILL_MANIFEST).is_file()


def scan_for_skills(root: Path) -> List[Path]:
    """
    Direct children of `root` that contain SKILL.md, sorted by name.
    Hidden folders are skipped; nested skills are not searched.
    """
    if not root.is_dir():
        return []
    return sorted(
        (p for p in root.iterdir() if not p.name.startswith(".") and is_skill_dir(p)),
        key=lambda p: p.name,
    )


def _first_meaningful_line(lines: Iterable[str]) -> Optional[str]:
    for ln in lines:
        s = ln.strip()
        if not s:
            continue
        # Skip common frontmatter separators
        if s in ("---", "```"):
            continue
        return s
    return None


def _clean_description(text: str) -> str:
    s = text.strip().strip("\"'")
    s = re.sub(r"^#{1,6}\s+", "", s)
    s = s.replace("`", "").replace("*", "")
    return re.sub(r"\s+", " ", s).strip()


def _shorten_words(text: str, max_words: int) -> str:
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + "…"


def extract_skill_description(skill_dir: Path, max_words: int = DEFAULT_DESCRIPTION_WORDS) -> str:
    """
    Short description for listings: the frontmatter `description:` if present,
    else the first markdown heading, else the first non-empty line.
    """
    manifest = skill_dir / SKILL_MANIFEST
    if not manifest.is_file():
        return ""
    try:
        raw_lines = manifest.read_text(encoding="utf-8", errors="ignore").splitlines()[:DESCRIPTION_SCAN_LINES]
    except OSError:
        return ""

    for ln in raw_lines:
        m = FRONTMATTER_DESCRIPTION_RE.match(ln.strip())
        if m:
            return _shorten_words(_clean_description(m.group(1)), max_words)

    heading = next((ln for ln in raw_lines if ln.strip().startswith("#")), None)
    line = heading or _first_meaningful_line(raw_lines)
    if not line:
        return ""
    return _shorten_words(_clean_description(line), max_words)
