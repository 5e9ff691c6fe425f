# backend/sparfinder/api/dependencies/ids.py
"""Path identifier parsing."""

from ...core.exceptions import InvalidIdException


def parse_id(raw: str, *, label: str = "ID") -> int:
    """
    Parse a numeric path identifier.

    Path ids are declared as strings so a malformed id is reported as
    ``INVALID_ID`` (400) rather than a framework validation error.

    Raises:
        InvalidIdException: ``raw`` is not a positive integer
    """
    value = raw.strip()
    if not (value.isascii() and value.isdigit()) or int(value) < 1:
        raise InvalidIdException(f"Invalid {label}")
    return int(value)
