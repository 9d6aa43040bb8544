"""Opaque 24-hex record identifiers.

Layout follows the MongoDB ObjectId: 4-byte big-endian seconds timestamp,
5 random bytes fixed per process, 3-byte incrementing counter.
"""
import itertools
import os
import re
import secrets
import threading
import time

OBJECT_ID_RE = re.compile(r"[0-9a-fA-F]{24}")

_PROCESS_RANDOM = secrets.token_bytes(5)
_counter = itertools.count(secrets.randbelow(0xFFFFFF))
_counter_lock = threading.Lock()
_pid = os.getpid()


def generate_object_id() -> str:
    """Return a new lowercase 24-hex identifier."""
    global _PROCESS_RANDOM, _pid

    with _counter_lock:
        if os.getpid() != _pid:
            # Forked worker: do not share the parent's random part
            _pid = os.getpid()
            _PROCESS_RANDOM = secrets.token_bytes(5)
        count = next(_counter) & 0xFFFFFF

    raw = (
        int(time.time()).to_bytes(4, "big")
        + _PROCESS_RANDOM
        + count.to_bytes(3, "big")
    )
    return raw.hex()


def is_valid_object_id(value: object) -> bool:
    """True only for a 24-hex string that decodes to exactly 12 bytes. Never raises."""
    if not isinstance(value, str) or not OBJECT_ID_RE.fullmatch(value):
        return False
    try:
        return len(bytes.fromhex(value)) == 12
    except ValueError:
        return False
