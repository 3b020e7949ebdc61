"""
Sign-up verification routes.
POST /generate-code emails a one-time code, POST /verify-code redeems it
and creates the account.
"""
from fastapi import APIRouter, Depends

from lhyst.core import config
from lhyst.db.base import CodeStore
from lhyst.db.session import get_store
from lhyst.schemas.auth import GenerateCodeRequest, GenerateCodeResponse, VerifyCodeRequest, VerifyCodeResponse
from lhyst.services.mailer import Mailer, get_mailer
from lhyst.services.verification import issue_code, verify_code

router = APIRouter()


@router.post("/generate-code", response_model=GenerateCodeResponse, response_model_exclude_none=True)
def generate_code(
    request: GenerateCodeRequest,
    store: CodeStore = Depends(get_store),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Issue a verification code for a new sign-up.
    Answers 200 even when the email could not be delivered (unless
    DELIVERY_FAILURE_POLICY=fail); the reason is returned in `note`.
    """
    issued = issue_code(store, mailer, request.email)
    response = GenerateCodeResponse(note=issued.note)
    if config.return_code_in_response():
        response.code = issued.code
    return response


@router.post("/verify-code", response_model=VerifyCodeResponse)
def verify(request: VerifyCodeRequest, store: CodeStore = Depends(get_store)):
    """Redeem a verification code, create the account and start the trial."""
    verify_code(store, request.email, request.code, request.password, request.plan)
    return VerifyCodeResponse()
