"""
Sign-up verification: one-time code issuance and redemption.

generate-code stores a 6-digit code valid for one hour and emails it;
verify-code redeems it exactly once, creates the (confirmed) account and
starts the trial on the profile.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from lhyst.core import config
from lhyst.core.errors import (
    AccountExistsError,
    ConfigurationError,
    DuplicateAccountError,
    ExpiredCodeError,
    InvalidCodeError,
    UpstreamError,
    ValidationError,
)
from lhyst.core.plans import CODE_MAX, CODE_MIN, CODE_TTL, TRIAL_PERIOD, is_known_plan, normalize_plan
from lhyst.db.base import CodeStore, VerificationCode
from lhyst.services.mailer import EmailMessage, Mailer

logger = logging.getLogger(__name__)

CODE_SUBJECT = "Your Lhyst verification code"


@dataclass
class IssuedCode:
    code: str
    expires_at: datetime
    delivered: bool
    provider: Optional[str] = None
    note: Optional[str] = None


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_code() -> str:
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def build_code_message(email: str, code: str) -> EmailMessage:
    text = (
        f"Hello,\n\nYour Lhyst verification code is {code}. It expires in 1 hour.\n"
        "Please enter this code on the verification page to complete your registration."
    )
    html = (
        f"<p>Hello,</p><p>Your Lhyst verification code is <strong>{code}</strong>. "
        "It expires in 1 hour.</p>"
        "<p>Please enter this code on the verification page to complete your registration.</p>"
    )
    return EmailMessage(to=email, subject=CODE_SUBJECT, text=text, html=html)


def issue_code(store: CodeStore, mailer: Mailer, email: Optional[str], now: Optional[datetime] = None) -> IssuedCode:
    """
    Issue a fresh code for an email that has no account yet.
    Earlier unexpired codes are left alone and stay redeemable. Once the
    code is stored it is never rolled back, even if no email goes out.
    """
    email = normalize_email(email)
    if not email:
        raise ValidationError("Email is required")
    store.ensure_configured()
    if not mailer.sender:
        raise ConfigurationError("FROM_EMAIL is not configured")

    if store.find_user_id(email):
        raise DuplicateAccountError("This email is already registered")

    now = now or _utcnow()
    row = VerificationCode(email=email, code=generate_code(), expires_at=now + CODE_TTL)
    store.insert_code(row)
    logger.info("[VERIFY] Stored verification code for %s (expires %s)", email, row.expires_at.isoformat())

    outcome = mailer.send(build_code_message(email, row.code))
    if not outcome.sent:
        logger.warning("[VERIFY] Verification email to %s not delivered: %s", email, outcome.note)
        if config.delivery_failure_policy() == config.FAIL_ON_DELIVERY_FAILURE:
            raise UpstreamError("Failed to send verification email", note=outcome.note)

    return IssuedCode(
        code=row.code,
        expires_at=row.expires_at,
        delivered=outcome.sent,
        provider=outcome.provider,
        note=outcome.note,
    )


def verify_code(
    store: CodeStore,
    email: Optional[str],
    code: Optional[str],
    password: Optional[str],
    plan: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Redeem a code and provision the account. Returns the account id."""
    email = normalize_email(email)
    code = (code or "").strip()
    if not email or not code or not password:
        raise ValidationError("Email, code and password are required")
    plan = normalize_plan(plan)
    if not is_known_plan(plan):
        raise ValidationError(f"Unknown plan '{plan}'")
    store.ensure_configured()

    row = store.find_unused_code(email, code)
    if row is None:
        raise InvalidCodeError("Invalid verification code")

    now = now or _utcnow()
    if row.is_expired(now):
        raise ExpiredCodeError("Verification code has expired")

    # Code is consumed before the account exists
    if not store.mark_code_used(email, code):
        raise InvalidCodeError("Invalid verification code")

    try:
        user_id = store.create_user(email, password)
    except AccountExistsError as e:
        user_id = store.find_user_id(email)
        if not user_id:
            raise UpstreamError(f"Failed to create user: {e.message}")
        logger.info("[VERIFY] Account for %s already existed; reusing %s", email, user_id)

    store.upsert_profile(user_id, {"plan": plan, "trial_end_at": (now + TRIAL_PERIOD).isoformat()})
    logger.info("[VERIFY] Verified %s on plan %s", email, plan)
    return user_id
