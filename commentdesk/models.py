"""
CommentDesk data model - rulemakings, submissions, analytics and admins

Each record type converts to and from the flat row shape held by the record
store. Nested structures (context documents, opposition points) are encoded
as JSON text only at that boundary.
"""

import json
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class RulemakingStatus(Enum):
    """Lifecycle of a rulemaking record."""

    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"


class SubmissionStatus(Enum):
    """Lifecycle of a citizen submission."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    FAILED = "failed"


# Request metadata never returned outside the admin surface
SENSITIVE_SUBMISSION_FIELDS = ("ip_address", "user_agent")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clean_optional(value: Any) -> Optional[str]:
    """Normalise optional text input: blank and missing both become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_iso(value: Any) -> Optional[str]:
    """Render a datetime/date (or an already-ISO string) as ISO text."""
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date(value: Any) -> date:
    """Parse an ISO-8601 date (a full timestamp is truncated to its date)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) > 10:
        return parse_datetime(text).date()
    return date.fromisoformat(text)


def _load_json(value: Any, default: Any) -> Any:
    if value is None or value == "":
        return default
    if isinstance(value, (list, dict)):
        return value
    return json.loads(value)


@dataclass
class ContextDocument:
    """A background document attached to a rulemaking."""

    title: str
    url: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "url": self.url, "description": self.description}

    @classmethod
    def from_value(cls, value: Any) -> "ContextDocument":
        # Older rows store a bare file name per document
        if isinstance(value, str):
            return cls(title=value)
        return cls(
            title=value["title"],
            url=value.get("url"),
            description=value.get("description"),
        )


@dataclass
class Rulemaking:
    """A regulatory proceeding open for public comment."""

    id: str
    agency: str
    title: str
    docket_id: str
    comment_deadline: date
    status: RulemakingStatus = RulemakingStatus.ACTIVE
    description: Optional[str] = None
    federal_register_url: Optional[str] = None
    context_documents: List[ContextDocument] = field(default_factory=list)
    legal_analysis: Optional[str] = None
    opposition_points: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def accepts_comments(self, today: Optional[date] = None) -> bool:
        """Only active rulemakings whose deadline has not passed take comments."""
        today = today or utcnow().date()
        return self.status is RulemakingStatus.ACTIVE and self.comment_deadline >= today

    def summary(self) -> Dict[str, Any]:
        """Subset returned alongside a freshly generated draft."""
        return {
            "title": self.title,
            "agency": self.agency,
            "docket_id": self.docket_id,
            "federal_register_url": self.federal_register_url,
            "comment_deadline": self.comment_deadline.isoformat(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agency": self.agency,
            "title": self.title,
            "description": self.description,
            "docket_id": self.docket_id,
            "federal_register_url": self.federal_register_url,
            "comment_deadline": self.comment_deadline.isoformat(),
            "status": self.status.value,
            "context_documents": [doc.to_dict() for doc in self.context_documents],
            "legal_analysis": self.legal_analysis,
            "opposition_points": list(self.opposition_points),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    def to_row(self) -> Dict[str, Any]:
        row = self.to_dict()
        row["context_documents"] = (
            json.dumps(row["context_documents"]) if self.context_documents else None
        )
        row["opposition_points"] = (
            json.dumps(row["opposition_points"]) if self.opposition_points else None
        )
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Rulemaking":
        documents = _load_json(row.get("context_documents"), [])
        return cls(
            id=row["id"],
            agency=row["agency"],
            title=row["title"],
            docket_id=row["docket_id"],
            comment_deadline=parse_date(row["comment_deadline"]),
            status=RulemakingStatus(row.get("status") or "active"),
            description=row.get("description"),
            federal_register_url=row.get("federal_register_url"),
            context_documents=[ContextDocument.from_value(doc) for doc in documents],
            legal_analysis=row.get("legal_analysis"),
            opposition_points=[str(p) for p in _load_json(row.get("opposition_points"), [])],
            created_at=parse_datetime(row.get("created_at")) or utcnow(),
            updated_at=parse_datetime(row.get("updated_at")) or utcnow(),
        )


@dataclass
class Submission:
    """One citizen's comment-letter attempt for a single rulemaking."""

    id: str
    rulemaking_id: str
    user_name: str
    generated_comment: str
    user_email: Optional[str] = None
    user_city: Optional[str] = None
    user_state: Optional[str] = None
    user_zip: Optional[str] = None
    personal_story: Optional[str] = None
    why_it_matters: Optional[str] = None
    experiences: Optional[str] = None
    concerns: Optional[str] = None
    final_comment: Optional[str] = None
    submission_status: SubmissionStatus = SubmissionStatus.DRAFT
    federal_register_submission_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    recaptcha_verified: bool = False
    created_at: datetime = field(default_factory=utcnow)
    submitted_at: Optional[datetime] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rulemaking_id": self.rulemaking_id,
            "user_name": self.user_name,
            "user_email": self.user_email,
            "user_city": self.user_city,
            "user_state": self.user_state,
            "user_zip": self.user_zip,
            "personal_story": self.personal_story,
            "why_it_matters": self.why_it_matters,
            "experiences": self.experiences,
            "concerns": self.concerns,
            "generated_comment": self.generated_comment,
            "final_comment": self.final_comment,
            "submission_status": self.submission_status.value,
            "federal_register_submission_id": self.federal_register_submission_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "recaptcha_verified": self.recaptcha_verified,
            "created_at": to_iso(self.created_at),
            "submitted_at": to_iso(self.submitted_at),
        }

    def public_dict(self) -> Dict[str, Any]:
        """Row without request metadata."""
        return sanitize(self.to_row())

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Submission":
        return cls(
            id=row["id"],
            rulemaking_id=row["rulemaking_id"],
            user_name=row["user_name"],
            generated_comment=row.get("generated_comment") or "",
            user_email=row.get("user_email"),
            user_city=row.get("user_city"),
            user_state=row.get("user_state"),
            user_zip=row.get("user_zip"),
            personal_story=row.get("personal_story"),
            why_it_matters=row.get("why_it_matters"),
            experiences=row.get("experiences"),
            concerns=row.get("concerns"),
            final_comment=row.get("final_comment"),
            submission_status=SubmissionStatus(row.get("submission_status") or "draft"),
            federal_register_submission_id=row.get("federal_register_submission_id"),
            ip_address=row.get("ip_address"),
            user_agent=row.get("user_agent"),
            recaptcha_verified=bool(row.get("recaptcha_verified")),
            created_at=parse_datetime(row.get("created_at")) or utcnow(),
            submitted_at=parse_datetime(row.get("submitted_at")),
        )


@dataclass
class AnalyticsSnapshot:
    """Per-day, per-rulemaking submission aggregate."""

    id: str
    date: date
    rulemaking_id: str
    total_submissions: int = 0
    unique_users: int = 0
    states_represented: int = 0
    avg_comment_length: float = 0.0
    created_at: datetime = field(default_factory=utcnow)

    def metrics(self) -> Dict[str, Any]:
        return {
            "total_submissions": self.total_submissions,
            "unique_users": self.unique_users,
            "states_represented": self.states_represented,
            "avg_comment_length": self.avg_comment_length,
        }

    def to_row(self) -> Dict[str, Any]:
        row = {
            "id": self.id,
            "date": self.date.isoformat(),
            "rulemaking_id": self.rulemaking_id,
            "created_at": to_iso(self.created_at),
        }
        row.update(self.metrics())
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AnalyticsSnapshot":
        return cls(
            id=row["id"],
            date=parse_date(row["date"]),
            rulemaking_id=row["rulemaking_id"],
            total_submissions=int(row.get("total_submissions") or 0),
            unique_users=int(row.get("unique_users") or 0),
            states_represented=int(row.get("states_represented") or 0),
            avg_comment_length=float(row.get("avg_comment_length") or 0.0),
            created_at=parse_datetime(row.get("created_at")) or utcnow(),
        )


@dataclass
class AdminAccount:
    """An operator permitted to manage rulemakings."""

    id: str
    email: str
    password_hash: str
    name: Optional[str] = None
    role: str = "admin"
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    last_login: Optional[datetime] = None

    def profile(self) -> Dict[str, Any]:
        return {"id": self.id, "email": self.email, "name": self.name, "role": self.role}

    def to_public_dict(self) -> Dict[str, Any]:
        data = self.profile()
        data.update(
            {
                "is_active": self.is_active,
                "created_at": to_iso(self.created_at),
                "updated_at": to_iso(self.updated_at),
                "last_login": to_iso(self.last_login),
            }
        )
        return data

    def to_row(self) -> Dict[str, Any]:
        row = self.to_public_dict()
        row["password_hash"] = self.password_hash
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AdminAccount":
        return cls(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            name=row.get("name"),
            role=row.get("role") or "admin",
            is_active=bool(row.get("is_active")),
            created_at=parse_datetime(row.get("created_at")) or utcnow(),
            updated_at=parse_datetime(row.get("updated_at")) or utcnow(),
            last_login=parse_datetime(row.get("last_login")),
        )


def sanitize(row: Dict[str, Any]) -> Dict[str, Any]:
    """Drop request metadata from a submission-shaped row."""
    return {k: v for k, v in row.items() if k not in SENSITIVE_SUBMISSION_FIELDS}
