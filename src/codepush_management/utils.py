"""
Utility functions for codepush-management-client.

This module provides helper functions for common operations like
name validation, timestamp parsing and request path encoding.
"""

import random
import re
import string
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

import pandas as pd

from .exceptions import ConflictError

VALID_APP_OS = ["iOS", "Android", "Windows", "Linux"]
VALID_APP_PLATFORMS = ["React-Native", "Cordova", "Electron"]

APP_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\-._]+$")
APP_NAME_MAX_LENGTH = 1000

# Tokens never expire; report the same far-future date as the legacy API.
NEVER_EXPIRES = int(
    datetime(9999, 12, 31, 23, 59, 59, tzinfo=timezone.utc).timestamp() * 1000
)

_FILENAME_CHARS = string.ascii_uppercase + string.ascii_lowercase + string.digits


def is_valid_string(value: Any, max_length: int = 1000, min_length: int = 0) -> bool:
    """
    Check that a value is a string within the given length bounds.

    A ``max_length`` of zero or less disables the upper bound.
    """
    if not isinstance(value, str):
        return False

    if max_length > 0 and len(value) > max_length:
        return False

    return len(value) >= min_length


def is_valid_app_name(name: Any) -> bool:
    """Only alphanumeric characters, dashes, periods, or underscores."""
    return is_valid_string(
        name, max_length=APP_NAME_MAX_LENGTH, min_length=1
    ) and bool(APP_NAME_PATTERN.match(name))


def validate_app_name(name: str) -> str:
    """
    Validate an app name.

    Args:
        name: The app name to validate

    Returns:
        The validated app name

    Raises:
        ConflictError: If the app name is invalid
    """
    if not is_valid_app_name(name):
        raise ConflictError(
            f'The app name "{name}" isn\'t valid. It can only contain '
            "alphanumeric characters, dashes, periods, or underscores."
        )
    return name


def validate_app_os(app_os: str) -> str:
    """
    Validate an app operating system.

    Raises:
        ConflictError: If the OS is not supported
    """
    if app_os not in VALID_APP_OS:
        raise ConflictError(
            f'The app OS "{app_os}" isn\'t valid. '
            'It should be "iOS", "Android", "Windows" or "Linux".'
        )
    return app_os


def validate_app_platform(platform: str) -> str:
    """
    Validate an app platform.

    Raises:
        ConflictError: If the platform is not supported
    """
    if platform not in VALID_APP_PLATFORMS:
        raise ConflictError(
            f'The app platform "{platform}" isn\'t valid. '
            'It should be "React-Native", "Cordova" or "Electron".'
        )
    return platform


def parse_timestamp(value: Optional[str]) -> Optional[int]:
    """
    Parse an ISO 8601 timestamp into milliseconds since the epoch.

    Timestamps without an offset are read as UTC. Returns None when the
    value is missing or cannot be parsed.
    """
    if not value:
        return None

    # pandas accepts any fraction length, e.g. 7-digit .NET timestamps
    parsed = pd.to_datetime(value.strip(), utc=True, errors="coerce")
    if pd.isna(parsed):
        return None

    return int(parsed.value // 1_000_000)


def url_encode(value: Any) -> str:
    """Encode a single path segment, including any slash characters."""
    return quote(str(value), safe="")


def generate_random_filename(length: int) -> str:
    """Build a random alphanumeric filename of the given length."""
    return "".join(random.choice(_FILENAME_CHARS) for _ in range(length))


def format_percent(value: float) -> str:
    """
    Format a ratio for display.

    Args:
        value: Ratio between 0 and 1

    Returns:
        Formatted percentage string
    """
    return f"{value * 100:.1f}%"
