"""
In-memory store for local development and tests.
Mirrors the Supabase semantics the verification flow relies on: no unique
constraint on codes, conditional mark-used, merge-on-conflict profiles.
"""
import threading
import uuid
from typing import Dict, List, Optional

from lhyst.core.errors import AccountExistsError
from lhyst.db.base import VerificationCode


class InMemoryStore:
    def __init__(self):
        self._lock = threading.Lock()
        self.users: Dict[str, dict] = {}
        self.codes: List[VerificationCode] = []
        self.profiles: Dict[str, dict] = {}

    def reset(self) -> None:
        with self._lock:
            self.users.clear()
            self.codes.clear()
            self.profiles.clear()

    def ensure_configured(self) -> None:
        pass

    def find_user_id(self, email: str) -> Optional[str]:
        with self._lock:
            user = self.users.get(email)
        return user["id"] if user else None

    def create_user(self, email: str, password: str) -> str:
        with self._lock:
            if email in self.users:
                raise AccountExistsError("User already registered")
            user_id = str(uuid.uuid4())
            self.users[email] = {"id": user_id, "email": email, "email_confirmed": True}
            return user_id

    def insert_code(self, code: VerificationCode) -> None:
        with self._lock:
            self.codes.append(code)

    def _unused(self, email: str, code: str) -> List[VerificationCode]:
        return [row for row in self.codes if row.email == email and row.code == code and not row.used]

    def find_unused_code(self, email: str, code: str) -> Optional[VerificationCode]:
        with self._lock:
            matches = self._unused(email, code)
        if not matches:
            return None
        return max(matches, key=lambda row: row.expires_at)

    def mark_code_used(self, email: str, code: str) -> bool:
        with self._lock:
            matches = self._unused(email, code)
            for row in matches:
                row.used = True
            return bool(matches)

    def upsert_profile(self, user_id: str, fields: dict) -> None:
        with self._lock:
            profile = self.profiles.setdefault(user_id, {"id": user_id})
            profile.update(fields)
