"""
Exclusion filtering of parsed diff files.

Patterns are glob-style ("*.lock", "dist/**", "**/*.min.js"). A pattern
matches if it matches the whole path or any trailing part of it, the way
.gitignore entries do.
"""

import fnmatch
import re
from typing import Iterable, List, Pattern

from pr_reviewer.errors import ConfigError
from pr_reviewer.models import DiffFile


def compile_patterns(patterns: Iterable[str]) -> List[Pattern[str]]:
    """Compile glob patterns to regexes. Raises ConfigError on an invalid pattern."""
    compiled = []
    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        # "**/" also matches zero directories
        while pattern.startswith("**/"):
            pattern = pattern[3:]
        try:
            compiled.append(re.compile(fnmatch.translate(pattern)))
        except re.error as e:
            raise ConfigError(f"Invalid exclude pattern '{pattern}': {e}") from e
    return compiled


def is_excluded(path: str, compiled: List[Pattern[str]]) -> bool:
    parts = path.split("/")
    for i in range(len(parts)):
        subpath = "/".join(parts[i:])
        if any(regex.match(subpath) for regex in compiled):
            return True
    return False


def filter_files(files: List[DiffFile], patterns: Iterable[str]) -> List[DiffFile]:
    """Drop deleted files and files whose new path matches an exclusion pattern."""
    compiled = compile_patterns(patterns)
    return [
        f for f in files
        if not f.is_deleted and not is_excluded(f.new_path, compiled)
    ]
