"""
Ignore rules for folder uploads.

A file is ignored when it matches one of the built-in patterns, a pattern
from a .folderpushignore file, or a pattern passed in by the caller.

Pattern syntax (a gitignore subset):
    - Blank lines and lines starting with "#" are skipped
    - A pattern without "/" matches any single path segment ("*.log",
      "node_modules")
    - A pattern with "/" is anchored to the directory of the ignore file
      ("/build", "drafts/*.html"); a trailing "/" is dropped
    - In an anchored pattern a "**" segment matches zero or more directories
      ("docs/**/*.md" covers "docs/a.md" and "docs/x/y/a.md")
    - A leading "!" re-includes a path excluded by an earlier pattern; the
      last matching pattern wins
"""

import fnmatch
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence

from folderpush.uploader.paths import convert_to_unix_path
from folderpush.utils.logging import get_logger

logger = get_logger(__name__)

IGNORE_FILENAME = ".folderpushignore"

DEFAULT_IGNORE_PATTERNS = [
    "fields.output.json",
    "folderpush.yaml",
    "folderpush.yml",
    IGNORE_FILENAME,
    ".env",
    ".git",
    ".hg",
    ".svn",
    "node_modules",
    ".DS_Store",
    "._*",
    "Thumbs.db",
    "ehthumbs.db",
    "Desktop.ini",
    "*.log",
    "*.swp",
    "*.swo",
    "*~",
]


@dataclass(frozen=True)
class IgnoreRule:
    """One parsed ignore pattern, anchored at base_dir."""

    pattern: str
    base_dir: str
    negated: bool = False

    @property
    def anchored(self) -> bool:
        return "/" in self.pattern

    def matches(self, file_path: str) -> bool:
        relative = os.path.relpath(file_path, self.base_dir)
        if relative.split(os.sep)[0] == os.pardir:
            return False
        segments = convert_to_unix_path(relative).split("/")

        if not self.anchored:
            return any(fnmatch.fnmatchcase(segment, self.pattern) for segment in segments)

        pattern_parts = self.pattern.lstrip("/").split("/")
        return _match_leading_segments(pattern_parts, segments)


def _match_leading_segments(pattern_parts: Sequence[str], segments: Sequence[str]) -> bool:
    # Matching the leading segments also covers everything inside a matched directory.
    if not pattern_parts:
        return True

    head, rest = pattern_parts[0], pattern_parts[1:]
    if head == "**":
        return any(
            _match_leading_segments(rest, segments[skip:]) for skip in range(len(segments) + 1)
        )

    if not segments or not fnmatch.fnmatchcase(segments[0], head):
        return False
    return _match_leading_segments(rest, segments[1:])


def parse_ignore_patterns(lines: Iterable[str], base_dir: str) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        negated = line.startswith("!")
        if negated:
            line = line[1:]
        line = line.rstrip("/")
        if not line:
            continue

        rules.append(IgnoreRule(pattern=line, base_dir=base_dir, negated=negated))
    return rules


def find_ignore_file(start_dir: str) -> Optional[Path]:
    """
    Find the nearest ignore file at or above start_dir.

    Returns:
        Path of the ignore file, or None if there is none up to the
        filesystem root
    """
    current = Path(os.path.abspath(start_dir))
    while True:
        candidate = current / IGNORE_FILENAME
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def load_ignore_rules(source_root: str, extra_patterns: Sequence[str] = ()) -> List[IgnoreRule]:
    """
    Collect the rules that apply to an upload of source_root.

    Built-in patterns come first, then the nearest ignore file, then
    extra_patterns (anchored at source_root), so later sources can re-include
    with "!".
    """
    source_root = os.path.abspath(source_root)
    rules = parse_ignore_patterns(DEFAULT_IGNORE_PATTERNS, source_root)

    ignore_file = find_ignore_file(source_root)
    if ignore_file is not None:
        logger.debug(f"Loading ignore rules from {ignore_file}")
        with open(ignore_file, "r", encoding="utf-8") as f:
            rules.extend(parse_ignore_patterns(f, str(ignore_file.parent)))

    rules.extend(parse_ignore_patterns(extra_patterns, source_root))
    return rules


def is_ignored(file_path: str, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(file_path):
            ignored = not rule.negated
    return ignored


def create_ignore_filter(
    source_root: str, extra_patterns: Sequence[str] = ()
) -> Callable[[str], bool]:
    """
    Build a predicate that keeps files not matched by the ignore rules.

    Example:
        >>> keep = create_ignore_filter("/work/theme", ["*.psd"])
        >>> eligible = [f for f in files if keep(f)]
    """
    rules = load_ignore_rules(source_root, extra_patterns)

    def keep(file_path: str) -> bool:
        return not is_ignored(os.path.abspath(file_path), rules)

    return keep
