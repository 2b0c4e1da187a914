"""
Response decoder — turns a raw model reply into a validated JSON object.

The reply is either already a structured object or a string that may wrap the
JSON in prose or markdown fences. Strings are scanned for balanced ``{...}``
spans (quotes and escapes respected, so a ``}`` inside a string value never
ends a span), and the first span that parses to a JSON object wins.
"""

import json
from typing import Any, Iterator, Mapping

from study_helper.exceptions import DecodeError, DecodeFailure

ARRAY = "array"
OBJECT = "object"

_KIND_TYPES = {
    ARRAY: list,
    OBJECT: dict,
}


def iter_object_spans(text: str) -> Iterator[str]:
    """Yield every top-level balanced ``{...}`` span in ``text``, left to right.

    An unterminated span (e.g. a reply cut off by the token budget) yields
    nothing.
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if depth == 0:
            if ch == "{":
                depth = 1
                start = i
                in_string = False
                escaped = False
            continue

        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                yield text[start:i + 1]


def extract_json_object(text: str) -> dict:
    """Parse the first balanced ``{...}`` span of ``text`` that is a JSON object."""
    found_span = False
    last_error = ""
    for span in iter_object_spans(text.strip()):
        found_span = True
        try:
            parsed = json.loads(span)
        except json.JSONDecodeError as e:
            last_error = e.msg
            continue
        if isinstance(parsed, dict):
            return parsed

    if not found_span:
        raise DecodeError(DecodeFailure.NO_JSON_FOUND, "No JSON found in response")
    raise DecodeError(DecodeFailure.INVALID_JSON, f"Invalid JSON in response: {last_error}")


def check_fields(parsed: dict, expected_fields: Mapping[str, str]) -> None:
    for name, kind in expected_fields.items():
        if name not in parsed:
            raise DecodeError(DecodeFailure.MISSING_FIELD, f"Missing expected field: {name}")
        expected_type = _KIND_TYPES[kind]
        if not isinstance(parsed[name], expected_type):
            raise DecodeError(DecodeFailure.WRONG_FIELD_TYPE, f"Field '{name}' should be an {kind}")


def decode(raw_reply: Any, expected_fields: Mapping[str, str] | None = None) -> dict:
    """Extract and validate a JSON object from a model reply.

    Only a mapping counts as a structured reply. A list or any other
    non-string value fails with ``UnexpectedFormat`` before field checks run,
    rather than reaching them and reporting ``MissingField``.

    Args:
        raw_reply:       The ``response`` value returned by the model client.
        expected_fields: Field name -> ``"array"`` | ``"object"``.
    Returns:
        The parsed object, unmodified.
    Raises:
        DecodeError: with the failing ``DecodeFailure`` as ``reason``.
    """
    if isinstance(raw_reply, dict):
        parsed = raw_reply
    elif isinstance(raw_reply, str):
        parsed = extract_json_object(raw_reply)
    else:
        raise DecodeError(DecodeFailure.UNEXPECTED_FORMAT, "Unexpected response format")

    check_fields(parsed, expected_fields or {})
    return parsed
