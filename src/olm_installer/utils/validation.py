"""Validation utilities for the OLM installer."""

import math
import re

_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ms|s|m|h)")


def validate_olm_version(version: str) -> bool:
    """Validate OLM version format.

    Version must be a semantic version with an optional leading "v"
    (e.g., 0.28.0, v0.28.0, 0.28.0-rc.1).

    Args:
        version: OLM version string

    Returns:
        True if valid

    Raises:
        ValueError: If version format is invalid
    """
    if not version:
        raise ValueError("OLM version cannot be empty")

    if not re.match(r"^v?\d+\.\d+\.\d+(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?$", version):
        raise ValueError(
            f"Invalid OLM version format: {version}. "
            "Must be a semantic version such as 0.28.0 or v0.28.0"
        )

    return True


def validate_namespace(name: str) -> bool:
    """Validate namespace follows Kubernetes naming conventions.

    Args:
        name: Namespace to validate

    Returns:
        True if valid

    Raises:
        ValueError: If namespace is invalid
    """
    if not name:
        raise ValueError("Namespace cannot be empty")

    if len(name) > 63:
        raise ValueError("Namespace must be 63 characters or less")

    if not re.match(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$", name):
        raise ValueError(
            "Namespace must be lowercase alphanumeric with hyphens, "
            "starting and ending with alphanumeric characters"
        )

    return True


def parse_duration(value: str) -> float:
    """Parse a duration string into seconds.

    Accepts Go-style durations ("90s", "2m", "1h30m", "1.5m", "500ms") or a
    bare number of seconds ("120").

    Args:
        value: Duration string

    Returns:
        Duration in seconds

    Raises:
        ValueError: If the duration cannot be parsed
    """
    text = value.strip() if value else ""
    if not text:
        raise ValueError("Duration cannot be empty")

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ValueError(f"Invalid duration: {value!r}")
        return seconds

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"Invalid duration: {value!r} (expected e.g. 90s, 2m, 1h30m)")

    return sign * total
