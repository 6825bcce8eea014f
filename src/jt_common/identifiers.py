"""Identifiers: row ids and human-readable order codes.

Order code format: JST-XXXXXX-XX
  - XXXXXX: 6 random chars from a 31-char alphabet without 0/O/1/I/L
  - XX:     2-char checksum derived from sha256 of the random part
Codes are not sequential, so they cannot be enumerated from a known one.
"""

import hashlib
import re
import secrets
import uuid

_SAFE_ALPHABET = "23456789ABCDEFGHJKMNPQRSTUVWXYZ"
_RANDOM_LEN = 6
_CODE_RE = re.compile(
    rf"^JST-([{_SAFE_ALPHABET}]{{{_RANDOM_LEN}}})-([{_SAFE_ALPHABET}]{{2}})$"
)


def generate_id() -> str:
    """Row id (UUID4 string, matches gen_random_uuid() columns)."""
    return str(uuid.uuid4())


def _checksum(random_part: str) -> str:
    digest = hashlib.sha256(random_part.encode()).digest()
    n = len(_SAFE_ALPHABET)
    return _SAFE_ALPHABET[digest[0] % n] + _SAFE_ALPHABET[digest[1] % n]


def generate_order_code() -> str:
    random_part = "".join(secrets.choice(_SAFE_ALPHABET) for _ in range(_RANDOM_LEN))
    return f"JST-{random_part}-{_checksum(random_part)}"


def validate_order_code(order_code: str) -> bool:
    match = _CODE_RE.match(order_code)
    if match is None:
        return False
    return match.group(2) == _checksum(match.group(1))
