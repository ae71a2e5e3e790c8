"""Session id generation.

Ids combine the creation timestamp, random entropy, and a short
environment fingerprint, hashed down to a compact alphanumeric token.
Uniqueness is advisory: collisions are astronomically unlikely within a
session lifetime but nothing is guaranteed across a fleet.
"""

from __future__ import annotations

import base64
import hashlib
import platform
import re
import secrets

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")
TOKEN_LENGTH = 16


def environment_fingerprint() -> str:
    """Short, stable description of the running environment."""
    return f"{platform.system()}{platform.python_implementation()}"[:10]


def generate_session_id(now_ms: int, fingerprint: str | None = None) -> str:
    """Return ``"<now_ms>-<16 alphanumeric chars>"``."""
    fp = fingerprint if fingerprint is not None else environment_fingerprint()
    raw = f"{now_ms}{secrets.token_hex(8)}{fp}".encode()
    digest = base64.b64encode(hashlib.sha256(raw).digest()).decode("ascii")
    token = _NON_ALNUM.sub("", digest)[:TOKEN_LENGTH]
    return f"{now_ms}-{token}"
