"""Input validation for names and numeric query parameters.

Each function raises an ``S3Error`` subclass on invalid input.
"""

import re

from dirstore.errors import InvalidArgument, InvalidBucketName

# S3 bucket naming rules:
#   - 3-63 characters
#   - lowercase letters, digits, hyphens, and periods
#   - must start and end with a letter or digit
#   - must not be formatted as an IP address
#   - no consecutive periods

_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")
_IP_RE = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")

_MAX_MAX_KEYS = 1000
_MAX_PART_NUMBER = 10000


def validate_bucket_name(name: str) -> None:
    """Validate a bucket name against S3 naming rules.

    Raises:
        InvalidBucketName: If the name violates any rule.
    """
    if not _BUCKET_RE.match(name) or _IP_RE.match(name) or ".." in name:
        raise InvalidBucketName(name)


def validate_max_keys(value: str | None) -> int:
    """Parse ``max-keys``; absent means 1000.

    Raises:
        InvalidArgument: If the value is not an integer in [0, 1000].
    """
    if value is None or value == "":
        return _MAX_MAX_KEYS
    try:
        n = int(value)
    except ValueError:
        raise InvalidArgument(f"Argument max-keys must be an integer between 0 and {_MAX_MAX_KEYS}")
    if n < 0 or n > _MAX_MAX_KEYS:
        raise InvalidArgument(f"Argument max-keys must be an integer between 0 and {_MAX_MAX_KEYS}")
    return n


def validate_part_number(value: str) -> int:
    """Parse a ``partNumber`` query value.

    Raises:
        InvalidArgument: If the value is not an integer in [1, 10000].
    """
    try:
        n = int(value)
    except ValueError:
        n = 0
    if n < 1 or n > _MAX_PART_NUMBER:
        raise InvalidArgument(
            f"Part number must be an integer between 1 and {_MAX_PART_NUMBER}, inclusive"
        )
    return n
