"""
Utility Functions

Identifier generation and data URI helpers shared by the translators.
"""

import random
import re
import string
from typing import Optional

_ID_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
_ID_LENGTH = 29

_DATA_URI_RE = re.compile(r"^data:(?P<mime_type>.*?)(?P<base64>;base64)?,(?P<data>.*)$", re.DOTALL)


def generate_id() -> str:
    """
    Generate a 29-character alphanumeric identifier

    Used for completion ids and synthesized tool call ids. Only needs to avoid
    collisions, so the non-cryptographic `random` module is sufficient.

    Example:
        >>> len(generate_id())
        29
    """
    return "".join(random.choices(_ID_ALPHABET, k=_ID_LENGTH))


def parse_data_uri(uri: str) -> Optional[tuple[str, str]]:
    """
    Split a `data:` URI into (mime_type, data)

    Returns:
        Optional[tuple[str, str]]: None when the string is not a data URI
    """
    match = _DATA_URI_RE.match(uri)
    if not match:
        return None
    return match.group("mime_type"), match.group("data")


def strip_prefix(value: str, prefix: str) -> str:
    if value.startswith(prefix):
        return value[len(prefix):]
    return value
