from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class FeedbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: Optional[str] = None
    body: Optional[str] = None
    reply_to: Optional[str] = Field(default=None, alias="from")  # Reporter's address
    name: Optional[str] = None  # Reporter's display name


class FeedbackResponse(BaseModel):
    success: bool = True
    provider: str
