"""Domain models shared between the flow, the store and the API."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import JSON, DateTime
from sqlmodel import Column, Field as SQLField, SQLModel

NO_EMAIL = "이메일 없음 (테스트 계정)"
NO_NAME = "이름 없음 (테스트 유저)"


class ProviderKind(str, Enum):
    GOOGLE = "google"


class PageState(str, Enum):
    LANDING = "landing"
    TUTORIAL = "tutorial"


class FlowView(str, Enum):
    """What the rendering layer should draw."""

    LANDING = "landing"
    LOGIN_POPUP = "login_popup"  # modal on top of the landing page
    TUTORIAL = "tutorial"
    TUTORIAL_ADMIN = "tutorial_admin"


class Identity(BaseModel):
    """The principal of the current session; anonymous or federated."""

    uid: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    is_anonymous: bool = True

    model_config = ConfigDict(frozen=True)


class EnrollmentRecord(BaseModel):
    """One tester application, keyed by ``uid``.

    Field aliases are the document keys written to the store.
    """

    uid: str
    email: str
    display_name: str = Field(alias="displayName")
    applied_at: str = Field(alias="appliedAt")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def for_identity(cls, identity: Identity, applied_at: str) -> "EnrollmentRecord":
        return cls(
            uid=identity.uid,
            email=identity.email or NO_EMAIL,
            display_name=identity.display_name or NO_NAME,
            applied_at=applied_at,
        )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentRow(SQLModel, table=True):
    """A schemaless document addressed by its full slash-separated path."""

    __tablename__ = "documents"

    path: str = SQLField(primary_key=True)
    collection: str = SQLField(index=True)
    doc_id: str = SQLField(index=True)
    data: Dict[str, Any] = SQLField(
        sa_column=Column(JSON, nullable=False, server_default="{}")
    )
    updated_at: datetime = SQLField(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
