"""
Locate, parse and validate the JSON answer inside free model text.

Models are told to answer with JSON only, but answers still arrive wrapped in
prose, markdown code fences or followed by stray tokens.  Candidates are
tried in this order:

1. the whole text, stripped
2. the body of each fenced code block
3. every ``{`` / ``[`` position, decoded with ``JSONDecoder.raw_decode``

The first candidate that validates against the schema wins.  If none
validates, the failure of the first parsed candidate is raised as
``SchemaMismatchError``; if nothing parsed at all, ``ExtractionError``.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterator

from jsonschema import validators
from jsonschema.exceptions import SchemaError, best_match

from ..errors import ConfigurationError, ExtractionError, SchemaMismatchError

_FENCE_RE = re.compile(r"```[ \t]*(?:json|JSON)?[ \t]*\r?\n?(.*?)```", re.DOTALL)
_decoder = json.JSONDecoder()


def check_schema(json_schema: dict[str, Any]) -> None:
    """
    Make sure ``json_schema`` is itself a valid JSON Schema.

    Raises:
        ConfigurationError: If the schema is invalid
    """
    validator_cls = validators.validator_for(json_schema)
    try:
        validator_cls.check_schema(json_schema)
    except SchemaError as e:
        raise ConfigurationError(f"Invalid output schema: {e.message}") from e


def iter_json_candidates(text: str) -> Iterator[Any]:
    """Yield every JSON value found in ``text``, in the order described above."""
    stripped = text.strip()
    if not stripped:
        return

    try:
        yield json.loads(stripped)
        return
    except (json.JSONDecodeError, RecursionError):
        pass

    for match in _FENCE_RE.finditer(text):
        body = match.group(1).strip()
        if not body:
            continue
        try:
            yield json.loads(body)
        except (json.JSONDecodeError, RecursionError):
            continue

    index = 0
    length = len(text)
    while index < length:
        if text[index] not in "{[":
            index += 1
            continue
        try:
            value, end = _decoder.raw_decode(text, index)
        except (json.JSONDecodeError, RecursionError):
            index += 1
            continue
        yield value
        # Nested values were part of this candidate; resume after it
        index = end


def extract_json(text: str) -> Any:
    """
    Return the first JSON value embedded in ``text``.

    Raises:
        ExtractionError: If no JSON value can be located
    """
    for candidate in iter_json_candidates(text):
        return candidate
    raise ExtractionError(text)


def validate_json(instance: Any, json_schema: dict[str, Any]) -> None:
    """
    Raises:
        SchemaMismatchError: If ``instance`` does not satisfy ``json_schema``
    """
    validator_cls = validators.validator_for(json_schema)
    error = best_match(validator_cls(json_schema).iter_errors(instance))
    if error is not None:
        location = "/".join(str(p) for p in error.absolute_path) or "<root>"
        raise SchemaMismatchError(f"{error.message} (at {location})", instance=instance)


def parse_structured_output(text: str, json_schema: dict[str, Any]) -> Any:
    """
    Locate the JSON answer in ``text`` and validate it against ``json_schema``.

    Raises:
        ExtractionError: No JSON value in the text
        SchemaMismatchError: JSON found, but none of it satisfies the schema
    """
    first_mismatch = None
    for candidate in iter_json_candidates(text):
        try:
            validate_json(candidate, json_schema)
        except SchemaMismatchError as e:
            if first_mismatch is None:
                first_mismatch = e
            continue
        return candidate

    if first_mismatch is not None:
        raise first_mismatch
    raise ExtractionError(text)
