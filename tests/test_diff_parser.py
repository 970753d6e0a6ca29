"""
Tests for diff parsing and position assignment.

Run with: pytest tests/
"""

import logging

from pr_reviewer.diff_parser import format_file_diff, parse_diff, split_file_sections
from pr_reviewer.models import LineKind


TWO_HUNK_DIFF = """diff --git a/app/service.py b/app/service.py
index 1111111..2222222 100644
--- a/app/service.py
+++ b/app/service.py
@@ -1,4 +1,5 @@
 import os
-import sys
+import json
+import logging
 # helpers
 def run():
@@ -10,3 +11,4 @@ def run():
     x = 1
     y = 2
+    z = 3
     return x
"""

NEW_AND_DELETED_DIFF = """diff --git a/docs/new.md b/docs/new.md
new file mode 100644
index 0000000..3333333
--- /dev/null
+++ b/docs/new.md
@@ -0,0 +1,2 @@
+# Title
+text
diff --git a/old.txt b/old.txt
deleted file mode 100644
index 4444444..0000000
--- a/old.txt
+++ /dev/null
@@ -1,2 +0,0 @@
-first
-second
"""

MALFORMED_THEN_VALID_DIFF = """diff --git a/broken.py b/broken.py
index 1111111..2222222 100644
--- a/broken.py
+++ b/broken.py
@@ -1,5 +1,5 @@
 a
-b
diff --git a/ok.py b/ok.py
index 1111111..2222222 100644
--- a/ok.py
+++ b/ok.py
@@ -1,2 +1,2 @@
 keep
-old
+new
"""

NO_NEWLINE_DIFF = """diff --git a/a.txt b/a.txt
index 1111111..2222222 100644
--- a/a.txt
+++ b/a.txt
@@ -1 +1 @@
-before
\\ No newline at end of file
+after
\\ No newline at end of file
"""


def test_split_file_sections():
    """Each 'diff --git' header starts a new section."""
    sections = split_file_sections(NEW_AND_DELETED_DIFF)
    assert len(sections) == 2
    assert sections[0].startswith("diff --git a/docs/new.md")
    assert sections[1].startswith("diff --git a/old.txt")


def test_split_empty_diff():
    assert split_file_sections("") == []
    assert parse_diff("") == []


def test_line_numbers_and_kinds():
    """Lines carry old/new file numbers according to their kind."""
    files = parse_diff(TWO_HUNK_DIFF)
    assert len(files) == 1
    diff_file = files[0]
    assert diff_file.old_path == "app/service.py"
    assert diff_file.new_path == "app/service.py"
    assert not diff_file.is_new and not diff_file.is_deleted
    assert len(diff_file.hunks) == 2

    first = diff_file.hunks[0].lines
    assert [line.kind for line in first] == [
        LineKind.CONTEXT, LineKind.DEL, LineKind.ADD, LineKind.ADD, LineKind.CONTEXT, LineKind.CONTEXT,
    ]
    assert (first[0].file_line_old, first[0].file_line_new) == (1, 1)
    assert (first[1].file_line_old, first[1].file_line_new) == (2, None)
    assert (first[2].file_line_old, first[2].file_line_new) == (None, 2)
    assert (first[5].file_line_old, first[5].file_line_new) == (4, 5)


def test_positions_span_hunks():
    """Positions start at 1 and the second hunk header takes a position."""
    diff_file = parse_diff(TWO_HUNK_DIFF)[0]
    first, second = diff_file.hunks
    assert [line.diff_position for line in first.lines] == [1, 2, 3, 4, 5, 6]
    assert [line.diff_position for line in second.lines] == [8, 9, 10, 11]
    assert second.lines[2].file_line_new == 13


def test_positions_strictly_increasing_from_one():
    for diff_file in parse_diff(TWO_HUNK_DIFF + NEW_AND_DELETED_DIFF):
        positions = [line.diff_position for line in diff_file.iter_lines()]
        assert positions[0] == 1
        assert all(a < b for a, b in zip(positions, positions[1:]))


def test_positions_reset_per_file():
    files = parse_diff(NEW_AND_DELETED_DIFF)
    assert [line.diff_position for line in files[0].iter_lines()] == [1, 2]
    assert [line.diff_position for line in files[1].iter_lines()] == [1, 2]


def test_new_and_deleted_files():
    new_file, deleted = parse_diff(NEW_AND_DELETED_DIFF)
    assert new_file.is_new
    assert new_file.old_path == "/dev/null"
    assert new_file.new_path == "docs/new.md"
    assert deleted.is_deleted
    assert deleted.new_path == "/dev/null"
    assert deleted.old_path == "old.txt"


def test_malformed_file_is_skipped():
    """A hunk shorter than its header is skipped; other files survive."""
    files = parse_diff(MALFORMED_THEN_VALID_DIFF)
    assert [f.new_path for f in files] == ["ok.py"]


def test_no_newline_marker_consumes_position():
    diff_file = parse_diff(NO_NEWLINE_DIFF)[0]
    lines = list(diff_file.iter_lines())
    assert [line.kind for line in lines] == [LineKind.DEL, LineKind.ADD]
    assert [line.diff_position for line in lines] == [1, 3]


def test_format_file_diff():
    """Rendered rows are '<kind> <line> <content>'."""
    rendered = format_file_diff(parse_diff(TWO_HUNK_DIFF)[0]).splitlines()
    assert rendered[0] == "@@ -1,4 +1,5 @@"
    assert rendered[1] == "normal 1 import os"
    assert rendered[2] == "del 2 import sys"
    assert rendered[3] == "add 2 import json"
    assert rendered[7] == "@@ -10,3 +11,4 @@ def run():"
    assert rendered[10] == "add 13     z = 3"


LONG_HUNK_THEN_VALID_DIFF = """diff --git a/a.py b/a.py
index 1111111..2222222 100644
--- a/a.py
+++ b/a.py
@@ -1,1 +1,1 @@
-y
+z
 extra1
 extra2
diff --git a/b.py b/b.py
index 1111111..2222222 100644
--- a/b.py
+++ b/b.py
@@ -1 +1 @@
-old
+new
"""


def test_hunk_longer_than_header_is_skipped(caplog):
    """Lines past the announced hunk length reject the file instead of being dropped."""
    with caplog.at_level(logging.WARNING):
        files = parse_diff(LONG_HUNK_THEN_VALID_DIFF)
    assert [f.new_path for f in files] == ["b.py"]
    assert "a.py" in caplog.text


def test_hunk_length_check_accepts_multi_hunk_files():
    files = parse_diff(TWO_HUNK_DIFF + NO_NEWLINE_DIFF)
    assert [f.new_path for f in files] == ["app/service.py", "a.txt"]


def test_crlf_diff_paths_are_clean():
    files = parse_diff(TWO_HUNK_DIFF.replace("\n", "\r\n"))
    assert [f.new_path for f in files] == ["app/service.py"]
    assert [line.content for line in files[0].iter_lines()][:2] == ["import os", "import sys"]
    assert [line.diff_position for line in files[0].iter_lines()][-1] == 11
