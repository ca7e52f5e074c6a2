"""
Identifier generation: request IDs and document IDs.
"""
import time
import random

CROCKFORD = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
HEX = "0123456789abcdef"


def ulid() -> str:
    """
    Generate a simple ULID-like identifier.
    Format: timestamp (10 chars) + random (16 chars)
    """
    timestamp = int(time.time() * 1000)
    random_part = "".join(random.choices(CROCKFORD, k=16))
    return f"{base32_encode(timestamp, 10)}{random_part}"


def base32_encode(num: int, length: int) -> str:
    """Simple base32 encoding for timestamp."""
    result = []
    while num > 0 and len(result) < length:
        num, remainder = divmod(num, 32)
        result.append(CROCKFORD[remainder])
    while len(result) < length:
        result.append("0")
    return "".join(reversed(result))


def document_id() -> str:
    """
    Generate a document ID in the shape Appwrite's ID.unique() produces:
    hex seconds + hex microseconds + random hex, 20 chars in total.
    """
    now = time.time()
    seconds = int(now)
    micros = int((now - seconds) * 1_000_000)
    prefix = f"{seconds:08x}{micros:05x}"
    return prefix + "".join(random.choices(HEX, k=20 - len(prefix)))


def request_id(header_value: str | None = None) -> str:
    """
    Get or generate a request ID.
    If header_value is provided, use it; otherwise generate a new ULID.
    """
    if header_value:
        return header_value.strip()
    return ulid()
