"""
Tests for anchoring model suggestions to diff positions.

Run with: pytest tests/
"""

import logging

import pytest

from pr_reviewer.diff_parser import parse_diff
from pr_reviewer.errors import MappingMiss
from pr_reviewer.mapper import index_by_path, map_suggestions, resolve_suggestion
from pr_reviewer.models import ModelSuggestion


CONTEXT_DIFF = """diff --git a/src/calc.py b/src/calc.py
index 1111111..2222222 100644
--- a/src/calc.py
+++ b/src/calc.py
@@ -37,5 +37,6 @@ def total(items):
     z = 0
     a = 1
     b = 2
-    c = 3
+    c = 4
+    d = 5
     return a + b + c
"""

DELETION_DIFF = """diff --git a/src/trim.py b/src/trim.py
index 1111111..2222222 100644
--- a/src/trim.py
+++ b/src/trim.py
@@ -1,4 +1,2 @@
 keep_one = 1
-gone_two = 2
-gone_three = 3
 keep_four = 4
"""


@pytest.fixture
def files():
    return index_by_path(parse_diff(CONTEXT_DIFF + DELETION_DIFF))


def suggest(path: str, line: int, comment: str = "Consider this") -> ModelSuggestion:
    return ModelSuggestion(path=path, line=line, comment=comment)


def test_context_line_resolves_to_its_position(files):
    """Line 42 is an unchanged line at diff position 7."""
    resolved = resolve_suggestion(suggest("src/calc.py", 42, "Overflow?"), files)
    assert resolved.path == "src/calc.py"
    assert resolved.position == 7
    assert resolved.body == "Overflow?"


def test_added_line_resolves(files):
    resolved = resolve_suggestion(suggest("src/calc.py", 41), files)
    assert resolved.position == 6


def test_number_shared_by_deleted_and_added_line_uses_added(files):
    """Line 40 is both the removed 'c = 3' and the added 'c = 4'."""
    resolved = resolve_suggestion(suggest("src/calc.py", 40), files)
    assert resolved.position == 5


def test_first_match_in_diff_order_wins(files):
    """Old line 2 is not commentable, new line 2 is the context line 'keep_four'."""
    resolved = resolve_suggestion(suggest("src/trim.py", 2), files)
    assert resolved.position == 4


def test_deleted_only_line_is_rejected(files):
    with pytest.raises(MappingMiss):
        resolve_suggestion(suggest("src/trim.py", 3), files)


def test_line_outside_diff_is_rejected(files):
    with pytest.raises(MappingMiss):
        resolve_suggestion(suggest("src/calc.py", 100), files)


def test_zero_line_is_rejected(files):
    with pytest.raises(MappingMiss):
        resolve_suggestion(suggest("src/calc.py", 0), files)


def test_unknown_path_is_rejected(files):
    with pytest.raises(MappingMiss):
        resolve_suggestion(suggest("src/other.py", 42), files)


def test_git_prefixed_path_is_accepted(files):
    resolved = resolve_suggestion(suggest("b/src/calc.py", 42), files)
    assert resolved.path == "src/calc.py"


def test_map_suggestions_drops_misses_and_logs(caplog):
    suggestions = [
        suggest("src/calc.py", 42, "kept"),
        suggest("src/trim.py", 3, "deleted line"),
        suggest("src/calc.py", 999, "nowhere"),
        suggest("src/trim.py", 1, "kept too"),
    ]
    with caplog.at_level(logging.WARNING):
        resolved = map_suggestions(suggestions, parse_diff(CONTEXT_DIFF + DELETION_DIFF))

    assert [(c.path, c.position, c.body) for c in resolved] == [
        ("src/calc.py", 7, "kept"),
        ("src/trim.py", 1, "kept too"),
    ]
    assert "line 999" in caplog.text
    assert "line 3" in caplog.text
