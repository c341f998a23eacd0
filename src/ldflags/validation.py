"""Validation rules for add-rule input.

All checks run before any network call.
"""

from __future__ import annotations

import re

from .exceptions import FlagsErrorCodes, ValidationError
from .models import Variation

ENDPOINT_PATTERN_RE = re.compile(r"^(GET|POST|PUT|DELETE|PATCH|OPTIONS|HEAD)\s+/\S*$")

MIN_VARIATIONS = 2


def validate_project_key(project_key: str | None) -> None:
    """Validate that a project key is present."""
    if not project_key:
        raise ValidationError(
            "project",
            "No project specified and no default project configured.",
        )


def validate_environment_key(environment_key: str | None) -> None:
    """Validate that an environment key is present."""
    if not environment_key:
        raise ValidationError(
            "environment",
            "No environment specified and no default environment configured.",
        )


def validate_percentages(first: int, second: int) -> None:
    """Validate a two-way split (each 0-100, sum exactly 100)."""
    total = first + second
    if total != 100:
        raise ValidationError(
            "percentages",
            f"Percentages must sum to 100%. Current sum: {total}%",
        )
    for value in (first, second):
        if value < 0 or value > 100:
            raise ValidationError(
                "percentages",
                f"Percentages must be between 0 and 100, got {value}",
            )


def validate_endpoint_pattern(pattern: str) -> None:
    """Validate the "METHOD /path" endpoint pattern format."""
    if not ENDPOINT_PATTERN_RE.match(pattern):
        raise ValidationError(
            "pattern",
            'Pattern must be in the format "HTTP_METHOD /path" (e.g. "GET /api/users")',
        )


def validate_position(position: int) -> None:
    """Validate insertion position (>= 0; large values append)."""
    if position < 0:
        raise ValidationError(
            "position",
            f"Position must be >= 0, got {position}",
        )


def validate_variations(flag_key: str, variations: list[Variation]) -> None:
    """Validate that a flag has enough variations for a two-way rollout."""
    if len(variations) < MIN_VARIATIONS:
        raise ValidationError(
            "variations",
            f"Flag '{flag_key}' does not have enough variations.",
            code=FlagsErrorCodes.INSUFFICIENT_VARIATIONS,
        )
