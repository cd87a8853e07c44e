import json

import pytest

from proposal_engine.core.exceptions import ParseError
from proposal_engine.utils.response_parser import ResponseParser


def test_fenced_json_parses_without_repair() -> None:
    text = '```json\n{"strategies": [{"id": "s1"}]}\n```'

    assert ResponseParser.parse_json(text) == {"strategies": [{"id": "s1"}]}


def test_plain_fence_and_whitespace_are_stripped() -> None:
    assert ResponseParser.clean_json_response('  ```\n[1, 2]\n```  ') == '[1, 2]'


def test_malformed_json_raises_parse_error_with_raw_text() -> None:
    raw = '{"title": "unterminated'

    with pytest.raises(ParseError) as excinfo:
        ResponseParser.parse_json(raw)

    assert excinfo.value.raw_text == raw
    assert isinstance(excinfo.value.original_error, json.JSONDecodeError)


def test_inner_quotes_are_escaped() -> None:
    before = '{"title": "The "best" plan", "n": 1}'
    after = ResponseParser.escape_inner_quotes(before)

    assert after == '{"title": "The \\"best\\" plan", "n": 1}'
    assert json.loads(after) == {"title": 'The "best" plan', "n": 1}


def test_already_escaped_quotes_are_left_alone() -> None:
    text = '{"a": "say \\"hi\\""}'

    assert ResponseParser.escape_inner_quotes(text) == text


def test_repair_handles_raw_newlines_in_strings() -> None:
    raw = '{"steps": ["Step one:\nfirst", "Step two"]}'

    with pytest.raises(ParseError):
        ResponseParser.parse_json(raw)
    assert ResponseParser.parse_json(raw, repair=True) == {"steps": ["Step one: first", "Step two"]}


def test_aggressive_pass_normalizes_curly_quotes() -> None:
    raw = '{“plans”: []}'

    assert ResponseParser.parse_json(raw, repair=True) == {"plans": []}


def test_object_is_extracted_from_surrounding_prose() -> None:
    raw = 'Here are the plans:\n{"implementation_plans": []}\nHope this helps!'

    assert ResponseParser.parse_json(raw, repair=True) == {"implementation_plans": []}


def test_repair_gives_up_with_parse_error() -> None:
    with pytest.raises(ParseError, match="multiple cleaning attempts"):
        ResponseParser.parse_json("not json at all", repair=True)


def test_describe_error_position_points_at_failure() -> None:
    try:
        json.loads('{"a": 1,, "b": 2}')
    except json.JSONDecodeError as e:
        description = ResponseParser.describe_error_position(e)

    assert "position 8" in description
    assert ResponseParser.describe_error_position(ValueError("x")) == ''
