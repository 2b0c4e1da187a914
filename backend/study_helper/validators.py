"""Input validation helpers for request payloads."""

import math
import re
from typing import Any

from study_helper.exceptions import ValidationError

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def validate_class_name(class_name: Any) -> str:
    """Return the class name, or raise ValidationError if missing/blank."""
    if not class_name or not isinstance(class_name, str):
        raise ValidationError("Class name is required")
    if not class_name.strip():
        raise ValidationError("Class name cannot be empty")
    return class_name


def validate_message(message: Any) -> str:
    if not message or not isinstance(message, str) or not message.strip():
        raise ValidationError("Message is required")
    return message


def validate_answers(answers: Any) -> list:
    if not isinstance(answers, list):
        raise ValidationError("Answers array is required")
    if len(answers) == 0:
        raise ValidationError("Answers array cannot be empty")
    return answers


def parse_int(value: Any) -> int | None:
    """Integer-prefix parsing: 7 -> 7, 7.9 -> 7, "12abc" -> 12, "abc" -> None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return None
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


def clamp_count(count: Any, minimum: int = 1, maximum: int = 50) -> int:
    """Clamp a requested item count into [minimum, maximum].

    Non-numeric input falls back to ``minimum``.
    """
    num = parse_int(count)
    if num is None or num < minimum:
        return minimum
    if num > maximum:
        return maximum
    return num
