from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError

passwordHasher = PasswordHasher(encoding="utf-8")


def makePassword(password: str) -> str:
    """Hash a plain-text password using Argon2."""
    return passwordHasher.hash(password)


def checkPassword(password: str, hashedPassword: str) -> bool:
    """
    Verify a plain-text password against a stored Argon2 hash.

    Malformed hashes are treated as a mismatch so a corrupted row
    can never authenticate.
    """
    try:
        return passwordHasher.verify(hashedPassword, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def needsRehash(hashedPassword: str) -> bool:
    """
    Whether the stored hash was produced with outdated Argon2 parameters.

    Checked after a successful login, the hash is then replaced with one
    made using the current parameters.
    """
    return passwordHasher.check_needs_rehash(hashedPassword)
