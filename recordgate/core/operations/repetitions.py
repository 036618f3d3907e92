"""
Conversion between the flat "name[i]" wire encoding of repeating fields and
the backend's "name -> {i: value}" form.
"""

import re
from collections.abc import Mapping
from typing import Any

REPETITION_PATTERN = re.compile(r"^(.+)\[(\d+)\]$")


def split_repetition(field_name: str) -> tuple[str, int | None]:
    """
    Split "phone[2]" into ("phone", 2); plain names give (name, None).
    """
    match = REPETITION_PATTERN.match(field_name)
    if match is None:
        return field_name, None
    return match.group(1), int(match.group(2))


def to_repetitions(values: Mapping[str, Any]) -> dict[str, Any]:
    """
    Convert flat wire values to backend write values.

    "phone[2]" = v becomes "phone" = {2: v}. Indexes are kept as given, so
    gaps survive. Plain field names pass through unchanged.

    Args:
        values: Field name -> value, possibly with "name[i]" keys

    Returns:
        Field name -> value, or repetition index -> value for repeating fields
    """
    converted: dict[str, Any] = {}
    for field_name, value in values.items():
        name, repetition = split_repetition(field_name)
        if repetition is None:
            converted[name] = value
            continue

        existing = converted.get(name)
        repeat_values = existing if isinstance(existing, dict) else {}
        repeat_values[repetition] = value
        converted[name] = repeat_values
    return converted


def from_repetitions(values: Mapping[str, Any]) -> dict[str, Any]:
    """
    Convert backend values back to flat wire values.

    {2: v} under "phone" becomes "phone[2]" = v, in ascending index order.
    Lists are treated as repetitions starting at index 0.
    """
    flat: dict[str, Any] = {}
    for name, value in values.items():
        if isinstance(value, Mapping):
            for repetition in sorted(value, key=int):
                flat[f"{name}[{int(repetition)}]"] = value[repetition]
        elif isinstance(value, list):
            for repetition, repetition_value in enumerate(value):
                flat[f"{name}[{repetition}]"] = repetition_value
        else:
            flat[name] = value
    return flat
