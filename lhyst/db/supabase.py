"""
Supabase-backed store.
Accounts go through the GoTrue admin API, codes and profiles through PostgREST.
Every request authenticates with the service role key, which never leaves
the server.
"""
import logging
from typing import Optional
from urllib.parse import quote

import requests

from lhyst.core import config
from lhyst.core.errors import AccountExistsError, ConfigurationError, StorageError, UpstreamError
from lhyst.db.base import VerificationCode

logger = logging.getLogger(__name__)

CODES_TABLE = "email_codes"
PROFILES_TABLE = "profiles"

# GoTrue answers 422 (email_exists) on newer releases, 409/400 on older ones
CONFLICT_STATUSES = (409, 422)
CONFLICT_MARKERS = ("already registered", "already been registered", "email_exists", "already exists")

# GoTrue default page size for the admin user listing
USERS_PER_PAGE = 50


def _eq(value: str) -> str:
    return "eq." + quote(value, safe="@")


class SupabaseStore:
    def __init__(self, url: Optional[str] = None, service_key: Optional[str] = None):
        self.url = (url or config.supabase_url() or "").rstrip("/")
        self.service_key = service_key or config.supabase_service_key()

    def ensure_configured(self) -> None:
        if not self.url or not self.service_key:
            raise ConfigurationError("Supabase configuration is missing")

    def _headers(self, prefer: Optional[str] = None) -> dict:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _rest(self, table: str, query: str = "") -> str:
        url = f"{self.url}/rest/v1/{table}"
        return f"{url}?{query}" if query else url

    def _codes_query(self, email: str, code: str) -> str:
        return f"email={_eq(email)}&code={_eq(code)}&used=eq.false"

    # -- accounts ---------------------------------------------------------

    def find_user_id(self, email: str) -> Optional[str]:
        # The admin listing may ignore the email filter, so walk every page
        # and match locally
        page = 1
        while True:
            users = self._list_users(email, page)
            for user in users:
                if (user.get("email") or "").strip().lower() == email:
                    return user.get("id")
            if len(users) < USERS_PER_PAGE:
                return None
            page += 1

    def _list_users(self, email: str, page: int) -> list:
        try:
            response = requests.get(
                f"{self.url}/auth/v1/admin/users",
                params={"email": email, "page": page, "per_page": USERS_PER_PAGE},
                headers=self._headers(),
            )
        except requests.exceptions.RequestException as e:
            raise StorageError(f"Failed to query users: {str(e)}")
        if not response.ok:
            raise StorageError(f"Failed to query users: {response.text}")

        data = response.json() or {}
        users = data.get("users", []) if isinstance(data, dict) else data
        return users or []

    def create_user(self, email: str, password: str) -> str:
        try:
            response = requests.post(
                f"{self.url}/auth/v1/admin/users",
                json={"email": email, "password": password, "email_confirm": True},
                headers=self._headers(),
            )
        except requests.exceptions.RequestException as e:
            raise UpstreamError(f"Failed to create user: {str(e)}")

        if response.ok:
            created = response.json() or {}
            user_id = created.get("id") or (created.get("user") or {}).get("id")
            if not user_id:
                raise UpstreamError("Failed to create user: response carried no user id")
            logger.info("[SUPABASE] Created user %s", user_id)
            return user_id

        text = response.text or ""
        if response.status_code in CONFLICT_STATUSES or any(m in text.lower() for m in CONFLICT_MARKERS):
            raise AccountExistsError(f"User already exists: {text}")
        raise UpstreamError(f"Failed to create user: {text}")

    # -- one-time codes ---------------------------------------------------

    def insert_code(self, code: VerificationCode) -> None:
        try:
            response = requests.post(
                self._rest(CODES_TABLE),
                json=[code.as_row()],
                headers=self._headers(prefer="return=minimal"),
            )
        except requests.exceptions.RequestException as e:
            raise StorageError(f"Failed to save verification code: {str(e)}")
        if not response.ok:
            raise StorageError(f"Failed to save verification code: {response.text}")

    def find_unused_code(self, email: str, code: str) -> Optional[VerificationCode]:
        query = self._codes_query(email, code) + "&order=expires_at.desc&limit=1"
        try:
            response = requests.get(self._rest(CODES_TABLE, query), headers=self._headers())
        except requests.exceptions.RequestException as e:
            raise StorageError(f"Failed to verify code: {str(e)}")
        if not response.ok:
            raise StorageError(f"Failed to verify code: {response.text}")

        rows = response.json()
        if not isinstance(rows, list) or not rows:
            return None
        return VerificationCode.from_row(rows[0])

    def mark_code_used(self, email: str, code: str) -> bool:
        # Filtering on used=false makes the update a compare-and-set;
        # return=representation tells us whether any row actually flipped.
        try:
            response = requests.patch(
                self._rest(CODES_TABLE, self._codes_query(email, code)),
                json={"used": True},
                headers=self._headers(prefer="return=representation"),
            )
        except requests.exceptions.RequestException as e:
            raise StorageError(f"Failed to mark code as used: {str(e)}")
        if not response.ok:
            raise StorageError(f"Failed to mark code as used: {response.text}")

        rows = response.json()
        return isinstance(rows, list) and len(rows) > 0

    # -- profiles ---------------------------------------------------------

    def upsert_profile(self, user_id: str, fields: dict) -> None:
        row = dict(fields, id=user_id)
        try:
            response = requests.post(
                self._rest(PROFILES_TABLE),
                json=[row],
                headers=self._headers(prefer="resolution=merge-duplicates,return=minimal"),
            )
        except requests.exceptions.RequestException as e:
            raise StorageError(f"Failed to update profile: {str(e)}")
        if not response.ok:
            raise StorageError(f"Failed to update profile: {response.text}")
