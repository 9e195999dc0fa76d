"""DTOs for user operations (no dependency on ORM)."""

from dataclasses import dataclass


@dataclass(frozen=True)
class UserResult:
    """User read-model. No password hash; cached under user:{email} and in all_users."""

    id: int
    first_name: str
    last_name: str
    email: str


@dataclass(frozen=True)
class RegisterUserRequest:
    """Registration input. password_hash is produced by the caller's hashing service."""

    first_name: str
    last_name: str
    email: str
    password_hash: str
