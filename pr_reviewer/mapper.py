"""
Anchoring model suggestions to diff positions.

The model reports file-relative line numbers, which are unreliable. A
suggestion is kept only when its line number belongs to an added or
unchanged line of the same file's diff; it is never moved to a nearby line.
"""

import logging
from typing import Dict, Iterable, List

from pr_reviewer.errors import MappingMiss
from pr_reviewer.models import DiffFile, ModelSuggestion, ResolvedComment

logger = logging.getLogger(__name__)


def index_by_path(diff_files: Iterable[DiffFile]) -> Dict[str, DiffFile]:
    files: Dict[str, DiffFile] = {}
    for diff_file in diff_files:
        files.setdefault(diff_file.new_path, diff_file)
    return files


def resolve_suggestion(suggestion: ModelSuggestion, files_by_path: Dict[str, DiffFile]) -> ResolvedComment:
    """
    Find the diff position for a suggestion.

    Matches the first added or unchanged line, in diff order, whose new or
    old line number equals the suggested line. Raises MappingMiss otherwise.
    """
    path = suggestion.path.strip()
    if path.startswith("b/") and path not in files_by_path:
        path = path[2:]
    diff_file = files_by_path.get(path)
    if diff_file is None:
        raise MappingMiss(f"{suggestion.path} is not part of the reviewed diff", path=suggestion.path,
                          line=suggestion.line)

    target = suggestion.line
    if target < 1:
        raise MappingMiss(f"invalid line {target} in {path}", path=path, line=target)

    for line in diff_file.iter_lines():
        if not line.commentable:
            continue
        if line.file_line_new == target or line.file_line_old == target:
            return ResolvedComment(path=diff_file.new_path, body=suggestion.comment, position=line.diff_position)

    raise MappingMiss(f"no matching diff line or position found for line {target} in {path}", path=path,
                      line=target)


def map_suggestions(suggestions: Iterable[ModelSuggestion], diff_files: Iterable[DiffFile]) -> List[ResolvedComment]:
    """Resolve every suggestion; unmappable ones are logged and dropped."""
    files_by_path = index_by_path(diff_files)
    resolved = []
    for suggestion in suggestions:
        try:
            resolved.append(resolve_suggestion(suggestion, files_by_path))
        except MappingMiss as e:
            logger.warning(f"Skipping comment: {e}")
    return resolved
