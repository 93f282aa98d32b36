"""Tests for the submission lifecycle."""

from datetime import date, timedelta
from unittest.mock import Mock

import pytest

from commentdesk.analytics import AnalyticsAggregator
from commentdesk.errors import DomainRuleViolation, GenerationFailed, NotFound, ValidationFailed
from commentdesk.models import RulemakingStatus, SubmissionStatus
from commentdesk.schemas import GenerateCommentRequest
from commentdesk.submissions import ANALYTICS_TASK, SubmissionService

from conftest import GENERATED_LETTER, FakeGenerator, make_rulemaking


def _request(rulemaking_id: str, **overrides) -> GenerateCommentRequest:
    fields = dict(
        rulemaking_id=rulemaking_id,
        user_name="Jane Doe",
        user_city="Austin",
        user_state="TX",
        personal_story="I was hurt by predatory lending",
        recaptcha_token="good-token",
    )
    fields.update(overrides)
    return GenerateCommentRequest(**fields)


@pytest.fixture
def service(store, fake_generator, fake_verifier, task_runner) -> SubmissionService:
    return SubmissionService(store, fake_generator, fake_verifier, task_runner=task_runner)


def _count(store) -> int:
    return store.query("SELECT COUNT(*) AS n FROM submissions")[0]["n"]


class TestCreateDraft:
    def test_creates_draft_submission(self, service, store, rulemaking):
        result = service.create_draft(
            _request(rulemaking.id), remote_ip="203.0.113.7", user_agent="Mozilla/5.0"
        )

        assert result.generated_comment == GENERATED_LETTER
        assert result.rulemaking["docket_id"] == "CFPB-2025-0018"

        row = store.get_by_id("submissions", result.submission_id)
        assert row["submission_status"] == "draft"
        assert row["generated_comment"] == GENERATED_LETTER
        assert row["recaptcha_verified"] is True
        assert row["ip_address"] == "203.0.113.7"
        assert row["user_agent"] == "Mozilla/5.0"
        assert row["final_comment"] is None
        assert row["submitted_at"] is None

    def test_blank_optional_fields_stored_as_null(self, service, store, rulemaking):
        result = service.create_draft(_request(rulemaking.id, user_email="  ", concerns=""))
        row = store.get_by_id("submissions", result.submission_id)
        assert row["user_email"] is None
        assert row["concerns"] is None

    def test_failed_verification(self, service, store, rulemaking, fake_generator):
        with pytest.raises(DomainRuleViolation, match="reCAPTCHA verification failed"):
            service.create_draft(_request(rulemaking.id, recaptcha_token="bad-token"))
        assert fake_generator.calls == []
        assert _count(store) == 0

    def test_unknown_rulemaking(self, service, store):
        with pytest.raises(NotFound, match="Rulemaking not found"):
            service.create_draft(_request("missing"))
        assert _count(store) == 0

    def test_closed_rulemaking(self, service, store):
        closed = make_rulemaking(store, status=RulemakingStatus.CLOSED)
        with pytest.raises(DomainRuleViolation, match="no longer accepting comments"):
            service.create_draft(_request(closed.id))
        assert _count(store) == 0

    def test_deadline_passed(self, service, store):
        expired = make_rulemaking(store, deadline=date.today() - timedelta(days=2))
        with pytest.raises(DomainRuleViolation):
            service.create_draft(_request(expired.id))
        assert _count(store) == 0

    def test_generation_failure_leaves_no_record(self, store, fake_verifier, rulemaking):
        service = SubmissionService(store, FakeGenerator(fail=True), fake_verifier)
        with pytest.raises(GenerationFailed):
            service.create_draft(_request(rulemaking.id))
        assert _count(store) == 0


class TestFinalize:
    def test_submit(self, service, store, rulemaking):
        draft = service.create_draft(_request(rulemaking.id))

        submission = service.finalize(draft.submission_id, "  My edited letter.  ")

        assert submission.submission_status is SubmissionStatus.SUBMITTED
        row = store.get_by_id("submissions", draft.submission_id)
        assert row["final_comment"] == "  My edited letter.  "
        assert row["submission_status"] == "submitted"
        assert row["submitted_at"] is not None
        assert row["generated_comment"] == GENERATED_LETTER

    def test_non_submitted_status_clears_submitted_at(self, service, store, rulemaking):
        draft = service.create_draft(_request(rulemaking.id))
        service.finalize(draft.submission_id, "Letter", SubmissionStatus.SUBMITTED)
        service.finalize(draft.submission_id, "Letter v2", SubmissionStatus.DRAFT)

        row = store.get_by_id("submissions", draft.submission_id)
        assert row["submission_status"] == "draft"
        assert row["submitted_at"] is None

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_final_comment_rejected(self, service, store, rulemaking, text):
        draft = service.create_draft(_request(rulemaking.id))
        before = store.get_by_id("submissions", draft.submission_id)

        with pytest.raises(ValidationFailed):
            service.finalize(draft.submission_id, text)

        assert store.get_by_id("submissions", draft.submission_id) == before

    def test_unknown_submission(self, service):
        with pytest.raises(NotFound, match="Submission not found"):
            service.finalize("missing", "Letter")

    def test_triggers_analytics_recompute(self, service, store, rulemaking, task_runner):
        draft = service.create_draft(_request(rulemaking.id))
        service.finalize(draft.submission_id, "Letter")

        assert task_runner.stats()[ANALYTICS_TASK]["succeeded"] == 1
        snapshots = store.query(
            "SELECT * FROM analytics WHERE rulemaking_id = :rid", {"rid": rulemaking.id}
        )
        assert len(snapshots) == 1
        assert snapshots[0]["total_submissions"] == 1

    def test_analytics_failure_does_not_fail_finalize(
        self, store, fake_generator, fake_verifier, task_runner, rulemaking
    ):
        aggregator = Mock(spec=AnalyticsAggregator)
        aggregator.recompute.side_effect = RuntimeError("warehouse unavailable")
        service = SubmissionService(
            store, fake_generator, fake_verifier, task_runner=task_runner, aggregator=aggregator
        )
        draft = service.create_draft(_request(rulemaking.id))

        submission = service.finalize(draft.submission_id, "Letter")

        assert submission.submission_status is SubmissionStatus.SUBMITTED
        assert task_runner.stats()[ANALYTICS_TASK]["failed"] == 1
        assert store.get_by_id("submissions", draft.submission_id)["final_comment"] == "Letter"

    def test_deferred_store_update_still_schedules_analytics(
        self, service, store, rulemaking, task_runner
    ):
        draft = service.create_draft(_request(rulemaking.id))
        store.update = Mock(return_value=False)

        service.finalize(draft.submission_id, "Letter")

        assert task_runner.stats()[ANALYTICS_TASK]["submitted"] == 1


class TestReporting:
    def test_get_public_hides_request_metadata(self, service, rulemaking):
        draft = service.create_draft(
            _request(rulemaking.id), remote_ip="203.0.113.7", user_agent="Mozilla/5.0"
        )
        public = service.get_public(draft.submission_id)
        assert public["user_name"] == "Jane Doe"
        assert "ip_address" not in public
        assert "user_agent" not in public

    def test_get_public_missing(self, service):
        with pytest.raises(NotFound):
            service.get_public("missing")

    def test_list_filters_and_sanitises(self, service, store, rulemaking):
        other = make_rulemaking(store, docket_id="EPA-2025-0001")
        first = service.create_draft(_request(rulemaking.id), remote_ip="203.0.113.7")
        service.create_draft(_request(rulemaking.id, user_name="Sam Roe"))
        service.create_draft(_request(other.id))
        service.finalize(first.submission_id, "Letter")

        rows = service.list_submissions(rulemaking_id=rulemaking.id)
        assert len(rows) == 2
        assert all("ip_address" not in row for row in rows)

        submitted = service.list_submissions(status="submitted")
        assert [row["id"] for row in submitted] == [first.submission_id]

        assert len(service.list_submissions(limit=1)) == 1
        assert len(service.list_submissions(offset=2)) == 1

    @pytest.mark.parametrize("kwargs", [{"limit": 0}, {"limit": 1001}, {"offset": -1}])
    def test_list_bounds(self, service, kwargs):
        with pytest.raises(ValidationFailed):
            service.list_submissions(**kwargs)

    def test_list_unknown_status(self, service):
        with pytest.raises(ValidationFailed):
            service.list_submissions(status="archived")

    def test_export_rows_join_rulemaking(self, service, store, rulemaking):
        other = make_rulemaking(store, docket_id="EPA-2025-0001", agency="EPA")
        service.create_draft(_request(rulemaking.id), remote_ip="203.0.113.7")
        service.create_draft(_request(other.id))

        rows = service.export_rows()
        assert len(rows) == 2
        assert {row["docket_id"] for row in rows} == {"CFPB-2025-0018", "EPA-2025-0001"}
        assert all("ip_address" not in row for row in rows)

        scoped = service.export_rows(rulemaking.id)
        assert len(scoped) == 1
        assert scoped[0]["rulemaking_title"] == rulemaking.title
        assert scoped[0]["agency"] == "CFPB"
