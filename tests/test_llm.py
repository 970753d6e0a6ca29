"""
Tests for model output decoding and the model client.

Run with: pytest tests/
"""

import logging

import pytest

from pr_reviewer.errors import ConfigError, ModelResponseError, ReviewerError
from pr_reviewer.llm import LLMClient, decode_review, parse_model_output, strip_code_fences
from pr_reviewer.models import DecodedReview, DecodeFailure, PullRequestInfo, ReviewFile, ReviewRequest, SuggestedAction
from pr_reviewer.prompts import PROMPT_VERSION


VALID_OUTPUT = '''{
    "summary": "Adds retry handling",
    "comments": [
        {"path": "app/client.py", "line": 12, "comment": "Retry count is never reset"}
    ],
    "suggestedAction": "request_changes",
    "confidence": 85
}'''


def make_request() -> ReviewRequest:
    return ReviewRequest(
        files=[ReviewFile(path="a.py", diff="add 1 x = 1")],
        pull_request=PullRequestInfo(title="t", description="d", base="b", head="h"),
    )


def test_parse_valid_json():
    """Should parse a valid review object."""
    review = parse_model_output(VALID_OUTPUT)
    assert review.summary == "Adds retry handling"
    assert len(review.comments) == 1
    assert review.comments[0].line == 12
    assert review.suggested_action == SuggestedAction.REQUEST_CHANGES
    assert review.confidence == 85


def test_parse_json_with_markdown():
    """Should handle JSON wrapped in markdown code blocks."""
    review = parse_model_output(f"```json\n{VALID_OUTPUT}\n```")
    assert review.comments[0].path == "app/client.py"


def test_strip_code_fences():
    assert strip_code_fences("```\n{}\n```") == "{}"
    assert strip_code_fences("```JSON {\"a\": 1}```") == '{"a": 1}'
    assert strip_code_fences("  {}  ") == "{}"


def test_decode_returns_tagged_result():
    assert isinstance(decode_review(VALID_OUTPUT), DecodedReview)
    failure = decode_review("I could not review this.")
    assert isinstance(failure, DecodeFailure)
    assert failure.raw_text == "I could not review this."


def test_parse_invalid_json():
    """Should raise ModelResponseError for invalid JSON, keeping the raw text."""
    with pytest.raises(ModelResponseError) as excinfo:
        parse_model_output("not json")
    assert excinfo.value.raw_text == "not json"


def test_parse_empty_output():
    with pytest.raises(ModelResponseError):
        parse_model_output("")
    with pytest.raises(ModelResponseError):
        parse_model_output(None)


def test_parse_non_object_json():
    """A bare array is not a review."""
    with pytest.raises(ModelResponseError):
        parse_model_output('[{"path": "a.py", "line": 1, "comment": "x"}]')


def test_parse_comments_not_a_list():
    with pytest.raises(ModelResponseError):
        parse_model_output('{"summary": "s", "comments": "none"}')


def test_parse_invalid_comment_schema():
    """Should skip comments with invalid schema."""
    content = '''{
        "summary": "s",
        "comments": [
            {"path": "a.py", "line": 3, "comment": "Valid comment"},
            {"path": "a.py", "comment": "missing line"},
            {"path": "a.py", "line": "three", "comment": "bad line"},
            "just text"
        ],
        "suggestedAction": "comment",
        "confidence": 50
    }'''
    review = parse_model_output(content)
    assert len(review.comments) == 1
    assert review.comments[0].comment == "Valid comment"


def test_string_line_numbers_are_coerced():
    review = parse_model_output('{"comments": [{"path": "a.py", "line": "7", "comment": "c"}]}')
    assert review.comments[0].line == 7


def test_missing_fields_default():
    review = parse_model_output('{"summary": null}')
    assert review.summary == ""
    assert review.comments == []
    assert review.suggested_action == SuggestedAction.COMMENT
    assert review.confidence == 0


@pytest.mark.parametrize("raw,expected", [
    ("approve", SuggestedAction.APPROVE),
    ("APPROVE", SuggestedAction.APPROVE),
    ("request_changes", SuggestedAction.REQUEST_CHANGES),
    ("Request Changes", SuggestedAction.REQUEST_CHANGES),
    ("comment", SuggestedAction.COMMENT),
    ("merge it", SuggestedAction.COMMENT),
])
def test_suggested_action_normalized(raw, expected):
    review = parse_model_output(f'{{"summary": "s", "suggestedAction": "{raw}"}}')
    assert review.suggested_action == expected


def test_confidence_clamped():
    assert parse_model_output('{"confidence": 250}').confidence == 100
    assert parse_model_output('{"confidence": -3}').confidence == 0
    assert parse_model_output('{"confidence": "high"}').confidence == 0


def test_unsupported_provider():
    with pytest.raises(ConfigError):
        LLMClient(provider="carrier-pigeon")


def test_review_wraps_provider_output(monkeypatch):
    """review() decodes whatever the provider returned."""
    client = LLMClient(provider="local", model="llama3")
    monkeypatch.setattr(client, "_call_local", lambda system, task: VALID_OUTPUT)
    review = client.review(make_request())
    assert review.comments[0].path == "app/client.py"


def test_review_raises_on_garbage(monkeypatch):
    client = LLMClient(provider="local", model="llama3")
    monkeypatch.setattr(client, "_call_local", lambda system, task: "Sorry, no JSON today")
    with pytest.raises(ModelResponseError):
        client.review(make_request())


def test_unexpected_provider_failure_becomes_reviewer_error(monkeypatch):
    client = LLMClient(provider="local", model="llama3")

    def boom(system, task):
        raise RuntimeError("socket closed")

    monkeypatch.setattr(client, "_call_local", boom)
    with pytest.raises(ReviewerError):
        client.review(make_request())


def test_missing_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    client = LLMClient(provider="openai", model="gpt-4o")
    with pytest.raises(ReviewerError):
        client.review(make_request())


def test_display_name():
    assert LLMClient(provider="anthropic", model="claude").display_name == "ANTHROPIC - claude"


def test_review_logs_prompt_version(monkeypatch, caplog):
    client = LLMClient(provider="local", model="llama3")
    monkeypatch.setattr(client, "_call_local", lambda system, task: VALID_OUTPUT)
    with caplog.at_level(logging.DEBUG, logger="pr_reviewer.llm"):
        client.review(make_request())
    assert f"prompt {PROMPT_VERSION}" in caplog.text
