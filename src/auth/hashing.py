"""Password and card secret hashing through werkzeug.security."""

from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash


class PasswordHasher:
    """``Hasher`` port implementation (salted PBKDF2 by default)."""

    def __init__(self, method: str = 'pbkdf2:sha256', salt_length: int = 16):
        self.method = method
        self.salt_length = salt_length

    def hash(self, plaintext: str) -> str:
        return generate_password_hash(plaintext, method=self.method, salt_length=self.salt_length)

    def compare(self, plaintext: str, digest: Optional[str]) -> bool:
        if not digest or not isinstance(plaintext, str):
            return False
        return check_password_hash(digest, plaintext)


__all__ = ['PasswordHasher']
