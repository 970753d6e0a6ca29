"""
Unified diff parsing.

Turns the raw diff of a pull request (or a commit range) into DiffFile
records. Each line carries its file-relative line numbers and its diff
position: the line right below a file's first "@@" header is position 1 and
every following line of that file's diff, later hunk headers included,
takes the next position. This is the address GitHub expects for inline
review comments.
"""

import logging
import re
from typing import List

from unidiff import PatchSet, UnidiffParseError
from unidiff.constants import (
    LINE_TYPE_ADDED,
    LINE_TYPE_CONTEXT,
    LINE_TYPE_EMPTY,
    LINE_TYPE_NO_NEWLINE,
    LINE_TYPE_REMOVED,
)

from pr_reviewer.errors import ParseError
from pr_reviewer.models import DiffFile, DiffHunk, DiffLine, LineKind

logger = logging.getLogger(__name__)

DEV_NULL = "/dev/null"

_FILE_HEADER_RE = re.compile(r"^diff --git ", re.MULTILINE)
_GIT_HEADER_PATH_RE = re.compile(r"^diff --git a/(?P<old>.+?) b/(?P<new>.+)$", re.MULTILINE)

_LINE_KINDS = {
    LINE_TYPE_ADDED: LineKind.ADD,
    LINE_TYPE_REMOVED: LineKind.DEL,
    LINE_TYPE_CONTEXT: LineKind.CONTEXT,
    LINE_TYPE_EMPTY: LineKind.CONTEXT,
}


def split_file_sections(diff_text: str) -> List[str]:
    """Split a multi-file git diff into one text section per file."""
    starts = [m.start() for m in _FILE_HEADER_RE.finditer(diff_text)]
    if not starts:
        return [diff_text] if diff_text.strip() else []
    sections = []
    if diff_text[:starts[0]].strip():
        # Plain unified diff content before the first git header
        sections.append(diff_text[:starts[0]])
    bounds = starts + [len(diff_text)]
    for begin, end in zip(bounds, bounds[1:]):
        sections.append(diff_text[begin:end])
    return sections


def _strip_prefix(path: str, prefix: str) -> str:
    if path and path.startswith(prefix):
        return path[len(prefix):]
    return path


def _section_path(section: str) -> str:
    m = _GIT_HEADER_PATH_RE.search(section)
    return m.group("new") if m else "<unknown>"


def _hunk_header(hunk) -> str:
    header = f"@@ -{hunk.source_start},{hunk.source_length} +{hunk.target_start},{hunk.target_length} @@"
    if hunk.section_header:
        header += f" {hunk.section_header}"
    return header


def _convert_file(patched_file) -> DiffFile:
    old_path = _strip_prefix(patched_file.source_file or DEV_NULL, "a/")
    new_path = _strip_prefix(patched_file.target_file or DEV_NULL, "b/")
    if patched_file.is_removed_file:
        new_path = DEV_NULL
    if patched_file.is_added_file:
        old_path = DEV_NULL

    diff_file = DiffFile(
        old_path=old_path,
        new_path=new_path,
        is_deleted=new_path == DEV_NULL,
        is_new=old_path == DEV_NULL,
    )

    position = 0
    for index, hunk in enumerate(patched_file):
        if index > 0:
            # Subsequent hunk headers occupy a position of their own
            position += 1
        lines = []
        for line in hunk:
            position += 1
            if line.line_type == LINE_TYPE_NO_NEWLINE:
                continue
            kind = _LINE_KINDS.get(line.line_type)
            if kind is None:
                continue
            lines.append(DiffLine(
                kind=kind,
                content=line.value.rstrip("\r\n"),
                file_line_old=line.source_line_no,
                file_line_new=line.target_line_no,
                diff_position=position,
            ))
        diff_file.hunks.append(DiffHunk(header=_hunk_header(hunk), lines=lines))
    return diff_file


def _check_unconsumed_lines(section: str, patch: PatchSet, path: str) -> None:
    """
    Raise ParseError if a body line of the section belongs to no hunk.

    unidiff stops reading a hunk once the counts from its header are reached
    and treats whatever follows as patch metadata, so a hunk that is longer
    than announced loses its tail without an error.
    """
    consumed = {
        line.diff_line_no
        for patched_file in patch
        for hunk in patched_file
        for line in hunk
        if line.diff_line_no is not None
    }
    rows = section.split("\n")
    in_hunks = False
    for number, row in enumerate(rows, 1):
        if number in consumed:
            continue
        if row.startswith("@@"):
            in_hunks = True
            continue
        if row.startswith("--- ") and number < len(rows) and rows[number].startswith("+++ "):
            # File header of the next file in a plain multi-file section
            in_hunks = False
            continue
        if in_hunks and row[:1] in (" ", "+", "-"):
            raise ParseError(f"Malformed diff for {path}: hunk is longer than its header "
                             f"announces (line {number})", path=path)


def parse_file_section(section: str) -> List[DiffFile]:
    """
    Parse one file section.

    Raises ParseError if unidiff rejects the section (bad hunk header,
    hunk shorter than its header announces) or if the section carries hunk
    lines beyond what the headers announce.
    """
    path = _section_path(section)
    try:
        patch = PatchSet.from_string(section)
    except UnidiffParseError as e:
        raise ParseError(f"Malformed diff for {path}: {e}", path=path) from e
    _check_unconsumed_lines(section, patch, path)
    return [_convert_file(patched_file) for patched_file in patch]


def parse_diff(diff_text: str) -> List[DiffFile]:
    """
    Parse a unified diff into DiffFile records, in diff order.

    A malformed file section is skipped with a warning; the remaining files
    are still returned.
    """
    files: List[DiffFile] = []
    # CRLF diffs would otherwise leave "\r" on paths and headers
    text = (diff_text or "").replace("\r\n", "\n")
    for section in split_file_sections(text):
        try:
            files.extend(parse_file_section(section))
        except ParseError as e:
            logger.warning(f"Skipping file: {e}")
    logger.debug(f"Parsed {len(files)} files from diff")
    return files


def format_file_diff(diff_file: DiffFile) -> str:
    """
    Render a file's hunks for the model.

    Every line becomes "<kind> <line number> <content>", using the new-file
    number for added and unchanged lines and the old-file number for removed
    lines.
    """
    rows = []
    for hunk in diff_file.hunks:
        rows.append(hunk.header)
        for line in hunk.lines:
            number = line.file_line_old if line.kind == LineKind.DEL else line.file_line_new
            rows.append(f"{line.kind.value} {number} {line.content}")
    return "\n".join(rows)
