"""
services/passwords.py — bcrypt hashing for passwords and refresh fingerprints.

All bcrypt work is submitted to the shared HashingPool (extensions.py) when
one is given, so the request thread only waits on the result. Unit tests pass
no pool and the work runs inline.

Refresh-token fingerprints are bcrypt(sha256_hex(token)). bcrypt only reads
the first 72 bytes of its input and a JWT's first 72 bytes are its header and
the start of an almost constant payload, so the raw token is digested first.
The 64-char hex digest fits inside bcrypt's window.
"""

from __future__ import annotations

import functools
import hashlib
from typing import Callable, Sequence

import bcrypt

# bcrypt silently ignores (older releases) or rejects (newer releases)
# anything past 72 bytes.
MAX_PASSWORD_BYTES = 72


@functools.lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> bytes:
    """Hash used to equalise timing when the account does not exist."""
    return bcrypt.hashpw(b"hrdesk_timing_dummy", bcrypt.gensalt(rounds=rounds))


def _token_digest(raw_token: str) -> bytes:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest().encode("ascii")


def _checkpw(secret: bytes, hashed: bytes) -> bool:
    try:
        return bcrypt.checkpw(secret, hashed)
    except ValueError:
        # Malformed stored hash, or a secret bcrypt refuses to process.
        return False


class PasswordHasher:

    def __init__(self, rounds: int = 12, pool=None) -> None:
        self._rounds = rounds
        self._pool = pool

    def _run(self, fn: Callable, *args):
        if self._pool is None:
            return fn(*args)
        return self._pool.submit(fn, *args).result()

    # ── Passwords ──────────────────────────────────────────────────────────

    def hash_password(self, plain: str) -> str:
        return self._run(self._hash, plain.encode("utf-8"))

    def verify_password(self, plain: str, hashed: str | None) -> bool:
        """
        Returns True if `plain` matches `hashed`.

        A missing hash still costs one bcrypt check against a dummy hash, so
        an unknown email takes as long as a wrong password.
        """
        if hashed is None:
            self._run(_checkpw, plain.encode("utf-8"), _dummy_hash(self._rounds))
            return False
        return self._run(_checkpw, plain.encode("utf-8"), hashed.encode("utf-8"))

    # ── Refresh-token fingerprints ─────────────────────────────────────────

    def fingerprint(self, raw_token: str) -> str:
        return self._run(self._hash, _token_digest(raw_token))

    def match_fingerprint(self, raw_token: str, fingerprints: Sequence[str]) -> int | None:
        """
        Returns the index of the first fingerprint matching `raw_token`,
        or None. Each fingerprint has its own salt, so this is a linear
        scan; callers pass one user's sessions, bounded by their devices.
        """
        return self._run(self._scan, _token_digest(raw_token), list(fingerprints))

    def _hash(self, secret: bytes) -> str:
        return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    @staticmethod
    def _scan(digest: bytes, fingerprints: list[str]) -> int | None:
        for index, stored in enumerate(fingerprints):
            if _checkpw(digest, stored.encode("utf-8")):
                return index
        return None
