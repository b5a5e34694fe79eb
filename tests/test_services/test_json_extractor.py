"""Tests for locating and validating JSON in model output."""

import json

import pytest

from schema_llm.errors import ConfigurationError, ExtractionError, SchemaMismatchError
from schema_llm.services.json_extractor import (
    check_schema,
    extract_json,
    iter_json_candidates,
    parse_structured_output,
    validate_json,
)


@pytest.mark.parametrize(
    "text",
    [
        '{"colors": ["red", "blue"]}',
        '  \n{"colors": ["red", "blue"]}\n',
        'Here is the answer: {"colors": ["red", "blue"]} Hope that helps!',
        '```json\n{"colors": ["red", "blue"]}\n```',
        'Sure!\n```\n{"colors": ["red", "blue"]}\n```\nAnything else?',
        '{"colors": ["red", "blue"]}\n{"colors": ["trailing',
    ],
)
def test_round_trips_embedded_object(text, colors_schema):
    value = parse_structured_output(text, colors_schema)

    assert json.loads(json.dumps(value)) == {"colors": ["red", "blue"]}


def test_nested_values_are_returned_whole():
    text = 'prefix {"a": {"b": [1, {"c": 2}]}} suffix'

    assert extract_json(text) == {"a": {"b": [1, {"c": 2}]}}


def test_braces_inside_strings_do_not_confuse_extraction():
    text = 'Answer: {"note": "use } and { freely", "n": 1}'

    assert extract_json(text) == {"note": "use } and { freely", "n": 1}


def test_no_json_raises_extraction_error(colors_schema):
    with pytest.raises(ExtractionError):
        parse_structured_output("I'm sorry, I cannot help with that.", colors_schema)


def test_empty_text_raises_extraction_error(colors_schema):
    with pytest.raises(ExtractionError):
        parse_structured_output("   ", colors_schema)


def test_unbalanced_json_raises_extraction_error():
    with pytest.raises(ExtractionError):
        extract_json('{"colors": ["red", ')


def test_deeply_nested_text_raises_extraction_error(colors_schema):
    with pytest.raises(ExtractionError):
        parse_structured_output("Answer: " + "[" * 5000, colors_schema)


def test_deeply_nested_noise_before_answer_is_skipped(colors_schema):
    text = "[" * 3000 + ' then {"colors": ["red"]}'

    assert parse_structured_output(text, colors_schema) == {"colors": ["red"]}


def test_schema_mismatch_is_distinct_from_extraction(colors_schema):
    with pytest.raises(SchemaMismatchError) as exc_info:
        parse_structured_output('{"colours": ["red"]}', colors_schema)

    assert "colors" in str(exc_info.value)
    assert exc_info.value.instance == {"colours": ["red"]}


def test_wrong_item_type_is_a_mismatch(colors_schema):
    with pytest.raises(SchemaMismatchError, match="colors/1"):
        parse_structured_output('{"colors": ["red", 2]}', colors_schema)


def test_first_valid_candidate_wins(colors_schema):
    text = 'As noted in [1], the answer is {"colors": ["green"]}.'

    assert parse_structured_output(text, colors_schema) == {"colors": ["green"]}


def test_candidates_follow_text_order():
    text = 'first {"a": 1} then [2, 3] and finally {"b": 4}'

    assert list(iter_json_candidates(text)) == [{"a": 1}, [2, 3], {"b": 4}]


def test_validate_json_accepts_matching_instance(colors_schema):
    validate_json({"colors": []}, colors_schema)


def test_check_schema_rejects_invalid_schema():
    with pytest.raises(ConfigurationError, match="Invalid output schema"):
        check_schema({"type": "not-a-type"})
