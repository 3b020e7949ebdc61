"""
Records and the store interface used by the verification flow.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol

from dateutil import parser


@dataclass
class VerificationCode:
    email: str
    code: str
    expires_at: datetime
    used: bool = False

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now

    def as_row(self) -> dict:
        return {
            "email": self.email,
            "code": self.code,
            "expires_at": self.expires_at.isoformat(),
            "used": self.used,
        }

    @classmethod
    def from_row(cls, row: dict) -> "VerificationCode":
        expires_at = row["expires_at"]
        if isinstance(expires_at, str):
            expires_at = parser.isoparse(expires_at)
        # timestamp columns without a zone hold UTC
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return cls(
            email=row["email"],
            code=str(row["code"]),
            expires_at=expires_at,
            used=bool(row.get("used", False)),
        )


class CodeStore(Protocol):
    """Identity, one-time code and profile storage."""

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when credentials are missing."""
        ...

    def find_user_id(self, email: str) -> Optional[str]:
        ...

    def create_user(self, email: str, password: str) -> str:
        """Create a confirmed account. Raises AccountExistsError on conflict."""
        ...

    def insert_code(self, code: VerificationCode) -> None:
        ...

    def find_unused_code(self, email: str, code: str) -> Optional[VerificationCode]:
        """Most recent unused row for (email, code), or None."""
        ...

    def mark_code_used(self, email: str, code: str) -> bool:
        """Flip used false -> true. Returns False when no unused row was updated."""
        ...

    def upsert_profile(self, user_id: str, fields: dict) -> None:
        ...
