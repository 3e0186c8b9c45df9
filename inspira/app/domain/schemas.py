"""API I/O schemas."""
from typing import Optional

from pydantic import BaseModel, Field

from .models import FlowView, Identity, PageState, ProviderKind


class PromptRequest(BaseModel):
    link: str = ""


class SignInRequest(BaseModel):
    provider: ProviderKind = ProviderKind.GOOGLE
    subject: Optional[str] = Field(None, description="provider-issued account id")
    display_name: Optional[str] = None
    email: Optional[str] = None

    def credential(self) -> dict:
        return {
            key: value
            for key, value in {
                "subject": self.subject,
                "display_name": self.display_name,
                "email": self.email,
            }.items()
            if value
        }


class FlowStateOut(BaseModel):
    view: FlowView
    page: PageState
    login_popup_open: bool
    link_input: str
    identity: Optional[Identity]
    sign_in_pending: bool
    error_message: str
    notice: str
    is_enrolled: bool
    is_admin: bool
    gesture_count: int
