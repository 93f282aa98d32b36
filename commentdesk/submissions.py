"""
Submission lifecycle - draft creation, finalisation and reporting

A submission is created together with its generated draft (status
``draft``) and finalised once with the citizen's edited text (normally
``submitted``). Finalising schedules an analytics recomputation for the
owning rulemaking on the background task runner.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from commentdesk.analytics import AnalyticsAggregator
from commentdesk.drafting import DraftGenerator, UserNarrative
from commentdesk.errors import DomainRuleViolation, NotFound, ValidationFailed
from commentdesk.models import (
    Submission,
    SubmissionStatus,
    clean_optional,
    sanitize,
    utcnow,
)
from commentdesk.rulemakings import RulemakingService
from commentdesk.schemas import GenerateCommentRequest
from commentdesk.store import RecordStore
from commentdesk.tasks import InlineTaskRunner, TaskRunner
from commentdesk.verification import BotVerifier

logger = logging.getLogger(__name__)

ANALYTICS_TASK = "analytics_recompute"

EXPORT_SQL = """
    SELECT
        s.*,
        r.title AS rulemaking_title,
        r.agency AS agency,
        r.docket_id AS docket_id
    FROM submissions s
    LEFT JOIN rulemakings r ON s.rulemaking_id = r.id
"""


@dataclass
class DraftResult:
    """What a citizen gets back after asking for a draft."""

    submission_id: str
    generated_comment: str
    rulemaking: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "generated_comment": self.generated_comment,
            "rulemaking": self.rulemaking,
        }


class SubmissionService:
    """Owns submission state transitions."""

    def __init__(
        self,
        store: RecordStore,
        generator: DraftGenerator,
        verifier: BotVerifier,
        task_runner: Optional[TaskRunner] = None,
        rulemakings: Optional[RulemakingService] = None,
        aggregator: Optional[AnalyticsAggregator] = None,
    ):
        self.store = store
        self.generator = generator
        self.verifier = verifier
        self.task_runner = task_runner or InlineTaskRunner()
        self.aggregator = aggregator or AnalyticsAggregator(store)
        self.rulemakings = rulemakings or RulemakingService(store, self.aggregator)

    def create_draft(
        self,
        request: GenerateCommentRequest,
        remote_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> DraftResult:
        """Verify, generate and persist a new draft submission."""
        narrative = UserNarrative(
            name=request.user_name,
            email=request.user_email,
            city=request.user_city,
            state=request.user_state,
            zip=request.user_zip,
            personal_story=request.personal_story,
            why_it_matters=request.why_it_matters,
            experiences=request.experiences,
            concerns=request.concerns,
        )

        if not self.verifier.verify(request.recaptcha_token, remote_ip):
            raise DomainRuleViolation("reCAPTCHA verification failed")

        rulemaking = self.rulemakings.get(request.rulemaking_id)
        if not rulemaking.accepts_comments():
            raise DomainRuleViolation("This rulemaking is no longer accepting comments")

        # Raises GenerationFailed; nothing is written in that case
        generated = self.generator.generate_draft(rulemaking, narrative)

        submission = Submission(
            id=str(uuid.uuid4()),
            rulemaking_id=rulemaking.id,
            user_name=narrative.name,
            generated_comment=generated,
            user_email=narrative.email,
            user_city=narrative.city,
            user_state=narrative.state,
            user_zip=narrative.zip,
            personal_story=narrative.personal_story,
            why_it_matters=narrative.why_it_matters,
            experiences=narrative.experiences,
            concerns=narrative.concerns,
            submission_status=SubmissionStatus.DRAFT,
            ip_address=remote_ip,
            user_agent=clean_optional(user_agent),
            recaptcha_verified=True,
        )
        self.store.insert("submissions", [submission.to_row()])
        logger.info(f"Created draft submission {submission.id} for rulemaking {rulemaking.id}")

        return DraftResult(
            submission_id=submission.id,
            generated_comment=generated,
            rulemaking=rulemaking.summary(),
        )

    def get(self, submission_id: str) -> Submission:
        row = self.store.get_by_id("submissions", submission_id)
        if not row:
            raise NotFound("Submission not found")
        return Submission.from_row(row)

    def get_public(self, submission_id: str) -> Dict[str, Any]:
        """Submission without origin address or client identifier."""
        return self.get(submission_id).public_dict()

    def finalize(
        self,
        submission_id: str,
        final_comment: Optional[str],
        status: SubmissionStatus = SubmissionStatus.SUBMITTED,
    ) -> Submission:
        """Record the edited letter and move the submission out of draft.

        ``submitted_at`` is stamped only for ``submitted``; any other status
        clears it.
        """
        if not (final_comment or "").strip():
            raise ValidationFailed("Final comment is required")
        status = SubmissionStatus(status)

        submission = self.get(submission_id)
        if status is not SubmissionStatus.DRAFT and not submission.generated_comment.strip():
            raise DomainRuleViolation("Submission has no generated draft")

        submission.final_comment = final_comment
        submission.submission_status = status
        submission.submitted_at = utcnow() if status is SubmissionStatus.SUBMITTED else None

        row = submission.to_row()
        applied = self.store.update(
            "submissions",
            submission_id,
            {
                "final_comment": row["final_comment"],
                "submission_status": row["submission_status"],
                "submitted_at": row["submitted_at"],
            },
        )
        if not applied:
            logger.warning(f"Finalize of {submission_id} deferred by the record store")
        else:
            logger.info(f"Submission {submission_id} finalized as {status.value}")

        self.task_runner.submit(
            ANALYTICS_TASK,
            self.aggregator.recompute,
            submission.rulemaking_id,
            utcnow().date(),
        )
        return submission

    def list_submissions(
        self,
        rulemaking_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Newest first, without request metadata."""
        if limit < 1 or limit > 1000:
            raise ValidationFailed("limit must be between 1 and 1000")
        if offset < 0:
            raise ValidationFailed("offset must not be negative")

        conditions = []
        params: Dict[str, Any] = {"limit": limit, "offset": offset}
        if rulemaking_id:
            conditions.append("rulemaking_id = :rulemaking_id")
            params["rulemaking_id"] = rulemaking_id
        if status:
            try:
                params["status"] = SubmissionStatus(status).value
            except ValueError:
                raise ValidationFailed(f"Unknown submission status: {status}") from None
            conditions.append("submission_status = :status")

        sql = "SELECT * FROM submissions"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY created_at DESC LIMIT :limit OFFSET :offset"

        return [sanitize(row) for row in self.store.query(sql, params)]

    def export_rows(self, rulemaking_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Submissions joined with their rulemaking, newest first."""
        sql = EXPORT_SQL
        params: Dict[str, Any] = {}
        if rulemaking_id:
            sql += " WHERE s.rulemaking_id = :rulemaking_id"
            params["rulemaking_id"] = rulemaking_id
        sql += " ORDER BY s.created_at DESC"
        return [sanitize(row) for row in self.store.query(sql, params)]
