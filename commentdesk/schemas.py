"""Request bodies accepted by the HTTP API."""

from datetime import date
from typing import Any, List, Optional, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator

from commentdesk.models import RulemakingStatus, SubmissionStatus, parse_date


def _required_text(value: Any) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValueError("must not be empty")
    return text


def _deadline(value: Any) -> date:
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise ValueError("Valid deadline date is required") from None


class ContextDocumentIn(BaseModel):
    title: str
    url: Optional[str] = None
    description: Optional[str] = None


class RulemakingCreate(BaseModel):
    """Body for creating a rulemaking."""

    agency: str
    title: str
    docket_id: str
    comment_deadline: date
    status: RulemakingStatus
    description: Optional[str] = None
    federal_register_url: Optional[str] = None
    context_documents: Optional[List[Union[ContextDocumentIn, str]]] = None
    legal_analysis: Optional[str] = None
    opposition_points: Optional[List[str]] = None

    @field_validator("agency", "title", "docket_id")
    @classmethod
    def check_not_empty(cls, value: Any) -> str:
        return _required_text(value)

    @field_validator("comment_deadline", mode="before")
    @classmethod
    def parse_deadline(cls, value: Any) -> date:
        return _deadline(value)


class RulemakingUpdate(BaseModel):
    """Partial update; present fields obey the same rules as on create."""

    agency: Optional[str] = None
    title: Optional[str] = None
    docket_id: Optional[str] = None
    comment_deadline: Optional[date] = None
    status: Optional[RulemakingStatus] = None
    description: Optional[str] = None
    federal_register_url: Optional[str] = None
    context_documents: Optional[List[Union[ContextDocumentIn, str]]] = None
    legal_analysis: Optional[str] = None
    opposition_points: Optional[List[str]] = None

    @field_validator("agency", "title", "docket_id")
    @classmethod
    def check_not_empty(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _required_text(value)

    @field_validator("comment_deadline", mode="before")
    @classmethod
    def parse_deadline(cls, value: Any) -> Optional[date]:
        if value is None:
            return None
        return _deadline(value)


class GenerateCommentRequest(BaseModel):
    """Body for ``POST /comments/generate``."""

    rulemaking_id: str
    user_name: str
    user_email: Optional[str] = None
    user_city: Optional[str] = None
    user_state: Optional[str] = None
    user_zip: Optional[str] = None
    personal_story: Optional[str] = None
    why_it_matters: Optional[str] = None
    experiences: Optional[str] = None
    concerns: Optional[str] = None
    recaptcha_token: str

    @field_validator("rulemaking_id", "user_name", "recaptcha_token")
    @classmethod
    def check_not_empty(cls, value: Any) -> str:
        return _required_text(value)


class FinalizeCommentRequest(BaseModel):
    """Body for ``PUT /comments/{id}``."""

    final_comment: str
    submission_status: SubmissionStatus = Field(
        default=SubmissionStatus.SUBMITTED,
        validation_alias=AliasChoices("submission_status", "status"),
    )

    @field_validator("final_comment")
    @classmethod
    def check_not_empty(cls, value: str) -> str:
        # Stored exactly as edited
        _required_text(value)
        return value


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AdminCreateRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None
    role: str = "admin"


class PasswordChangeRequest(BaseModel):
    new_password: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("new_password", "newPassword")
    )


class AdminUpdateRequest(BaseModel):
    """Fields an admin may change on an account; others are ignored."""

    name: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None
