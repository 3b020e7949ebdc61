"""
Environment-backed configuration.
Values are read on every call so a redeploy (or a test) can change them
without re-importing modules.
"""
import os
from typing import List, Optional

REPORT_SUCCESS_WITH_NOTE = "report_success_with_note"
FAIL_ON_DELIVERY_FAILURE = "fail"
DELIVERY_FAILURE_POLICIES = (REPORT_SUCCESS_WITH_NOTE, FAIL_ON_DELIVERY_FAILURE)

DEFAULT_SITE_URL = "https://lhystlog.com"
DEFAULT_FEEDBACK_SENDER = "no-reply@lhystlog.com"
DEFAULT_PORT = 8000
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8888",  # netlify dev
    "https://lhystlog.com",
    "https://www.lhystlog.com",
]

_TRUTHY = {"1", "true", "yes", "on"}


def _env(name: str) -> Optional[str]:
    """Return a stripped env value, treating blank strings as unset."""
    value = os.getenv(name, "").strip()
    return value or None


def _flag(name: str) -> bool:
    return (os.getenv(name, "") or "").strip().lower() in _TRUTHY


def supabase_url() -> Optional[str]:
    url = _env("SUPABASE_URL")
    return url.rstrip("/") if url else None


def supabase_service_key() -> Optional[str]:
    return _env("SUPABASE_SERVICE_ROLE_KEY")


def use_in_memory_store() -> bool:
    return _flag("LHYST_USE_IN_MEMORY_STORE")


def sender_address() -> Optional[str]:
    return _env("FROM_EMAIL")


def resend_api_key() -> Optional[str]:
    return _env("RESEND_API_KEY")


def sendgrid_api_key() -> Optional[str]:
    return _env("SENDGRID_API_KEY")


def mailgun_api_key() -> Optional[str]:
    return _env("MAILGUN_API_KEY")


def mailgun_domain() -> Optional[str]:
    return _env("MAILGUN_DOMAIN")


def delivery_failure_policy() -> str:
    """
    What generate-code does when the code was stored but no email went out.
    Unknown values fall back to reporting success with a note.
    """
    policy = (_env("DELIVERY_FAILURE_POLICY") or REPORT_SUCCESS_WITH_NOTE).lower()
    if policy not in DELIVERY_FAILURE_POLICIES:
        return REPORT_SUCCESS_WITH_NOTE
    return policy


def return_code_in_response() -> bool:
    return _flag("RETURN_CODE_IN_RESPONSE")


def feedback_recipient() -> Optional[str]:
    return _env("FEEDBACK_TO_EMAIL")


def stripe_secret_key() -> Optional[str]:
    return _env("STRIPE_SECRET_KEY")


def stripe_price_id(plan: str, frequency: str) -> Optional[str]:
    # PRICE_BASIC_MONTHLY, PRICE_PRO_YEARLY, ...
    return _env(f"PRICE_{plan.upper()}_{frequency.upper()}")


def site_url() -> str:
    return (_env("SITE_URL") or DEFAULT_SITE_URL).rstrip("/")


def cors_origins() -> List[str]:
    raw = _env("CORS_ORIGINS")
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def port() -> int:
    return int(_env("PORT") or DEFAULT_PORT)
