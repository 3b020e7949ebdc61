from pydantic import BaseModel
from typing import Optional


class GenerateCodeRequest(BaseModel):
    # Optional so a missing email reaches the service and becomes a 400
    email: Optional[str] = None


class GenerateCodeResponse(BaseModel):
    success: bool = True
    note: Optional[str] = None
    code: Optional[str] = None  # Only filled when RETURN_CODE_IN_RESPONSE is on


class VerifyCodeRequest(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None
    password: Optional[str] = None
    plan: Optional[str] = None  # Defaults to "basic"


class VerifyCodeResponse(BaseModel):
    success: bool = True
