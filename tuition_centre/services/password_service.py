from __future__ import annotations

import asyncio
import logging
import re
import secrets
import string

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

logger = logging.getLogger(__name__)

# At least 8 characters with lower, upper, digit and a symbol.
PASSWORD_POLICY = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^\w\s]).{8,}$")
PASSWORD_POLICY_MESSAGE = (
    "password must be at least 8 characters and contain upper and lower case "
    "letters, a number and a special character"
)

_SYMBOLS = "!@#$%^&*"


def check_password_policy(password: str) -> str:
    """Return ``password`` unchanged, or raise ValueError.

    Meant for pydantic field validators, which turn ValueError into a 400.
    """
    if not PASSWORD_POLICY.match(password):
        raise ValueError(PASSWORD_POLICY_MESSAGE)
    return password


def generate_temporary_password(length: int = 12) -> str:
    """Random password that satisfies PASSWORD_POLICY."""
    alphabet = string.ascii_letters + string.digits + _SYMBOLS
    required = [
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.digits),
        secrets.choice(_SYMBOLS),
    ]
    rest = [secrets.choice(alphabet) for _ in range(length - len(required))]
    chars = required + rest
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


class PasswordService:
    """Argon2 hashing.

    Hashing is deliberately slow, so the async methods run it in a worker
    thread to keep the event loop responsive.  Argon2 hash strings encode
    their own parameters and salt.
    """

    def __init__(
        self, *, time_cost: int | None = None, memory_cost: int | None = None
    ) -> None:
        params: dict[str, int] = {}
        if time_cost is not None:
            params["time_cost"] = time_cost
        if memory_cost is not None:
            params["memory_cost"] = memory_cost
        self._ph = PasswordHasher(**params)
        # Same parameters as real hashes, so checking against it costs the same.
        self.dummy_hash = self._ph.hash(secrets.token_urlsafe(16))

    def hash_sync(self, plain_password: str) -> str:
        if not plain_password:
            raise ValueError("password must be non-empty")
        return self._ph.hash(plain_password)

    def verify_sync(self, plain_password: str, password_hash: str) -> bool:
        if not plain_password or not password_hash:
            return False
        try:
            return self._ph.verify(password_hash, plain_password)
        except (VerifyMismatchError, VerificationError, InvalidHash):
            return False

    def needs_rehash(self, password_hash: str) -> bool:
        try:
            return self._ph.check_needs_rehash(password_hash)
        except InvalidHash:
            return False

    async def hash(self, plain_password: str) -> str:
        return await asyncio.to_thread(self.hash_sync, plain_password)

    async def verify(self, plain_password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self.verify_sync, plain_password, password_hash)
