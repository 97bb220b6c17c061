"""bcrypt password hashing."""

import bcrypt

# Checked against when the account does not exist, so a login for an unknown
# email costs the same as one with a wrong password.
_DUMMY_HASH = bcrypt.hashpw(b"stayledger-dummy-password", bcrypt.gensalt()).decode("utf-8")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Check ``plain_password`` against a stored hash; a missing hash never matches."""
    candidate = (hashed_password or _DUMMY_HASH).encode("utf-8")
    matched = bcrypt.checkpw(plain_password.encode("utf-8"), candidate)
    return matched and hashed_password is not None
