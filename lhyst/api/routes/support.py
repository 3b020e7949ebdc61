"""
Support Routes
Relays in-app feedback to the support inbox through the email fallback
(Resend, then SendGrid, then Mailgun).
"""
import logging

from fastapi import APIRouter, Depends

from lhyst.core import config
from lhyst.core.errors import ConfigurationError, UpstreamError, ValidationError
from lhyst.schemas.support import FeedbackRequest, FeedbackResponse
from lhyst.services.mailer import EmailMessage, Mailer, get_mailer

logger = logging.getLogger(__name__)
router = APIRouter()

FEEDBACK_SUBJECT = "Feedback"
MAX_FEEDBACK_LENGTH = 20000


@router.post("/feedback", response_model=FeedbackResponse)
def send_feedback(request: FeedbackRequest, mailer: Mailer = Depends(get_mailer)):
    """
    Send a feedback message by email.
    The subject is fixed; the reporter's address (`from`) becomes reply-to.
    FEEDBACK_TO_EMAIL, when set, overrides the requested recipient.
    """
    to = config.feedback_recipient() or (request.to or "").strip()
    text = str(request.body or "")[:MAX_FEEDBACK_LENGTH]
    if not to or not text.strip():
        raise ValidationError("Missing 'to' or 'body'.")

    message = EmailMessage(
        to=to,
        subject=FEEDBACK_SUBJECT,
        text=text,
        reply_to=request.reply_to or None,
        sender_name=request.name or None,
    )
    outcome = mailer.send(message, sender=mailer.sender or config.DEFAULT_FEEDBACK_SENDER)
    if outcome.no_provider:
        raise ConfigurationError(
            "No email provider configured. Set RESEND_API_KEY, SENDGRID_API_KEY "
            "or MAILGUN_API_KEY and MAILGUN_DOMAIN.",
            note=outcome.note,
        )
    if not outcome.sent:
        raise UpstreamError("Failed to send feedback", note=outcome.note)

    logger.info("[FEEDBACK] Feedback relayed to %s via %s", to, outcome.provider)
    return FeedbackResponse(provider=outcome.provider)
