# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Dot-segmented key pattern matching for watch subscriptions.

``*`` matches exactly one segment, ``**`` (final segment only) matches zero
or more remaining segments, and any other segment must match literally.
"""

from .errors import ValidationError

SINGLE = "*"
MULTI = "**"


def validate_pattern(pattern: str) -> str:
    """Return the pattern if well formed.

    Raises:
        ValidationError: On an empty pattern, an empty segment, or ``**``
            anywhere but the final segment
    """
    if not pattern:
        raise ValidationError("pattern must not be empty")
    segments = pattern.split(".")
    for index, segment in enumerate(segments):
        if not segment:
            raise ValidationError(f"pattern '{pattern}' contains an empty segment")
        if segment == MULTI and index != len(segments) - 1:
            raise ValidationError(f"pattern '{pattern}' uses '**' before the final segment")
    return pattern


def match_pattern(pattern: str, key: str) -> bool:
    """Return True if ``key`` matches ``pattern``."""
    if not key:
        return False
    pattern_segments = pattern.split(".")
    key_segments = key.split(".")

    for index, segment in enumerate(pattern_segments):
        if segment == MULTI:
            return index == len(pattern_segments) - 1
        if index >= len(key_segments):
            return False
        if segment != SINGLE and segment != key_segments[index]:
            return False

    return len(pattern_segments) == len(key_segments)


def match_any(patterns: list[str], key: str) -> bool:
    return any(match_pattern(p, key) for p in patterns)
