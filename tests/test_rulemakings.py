"""Tests for the rulemaking catalogue and sample seeding."""

from datetime import date, timedelta

import pytest

from commentdesk.errors import NotFound
from commentdesk.models import RulemakingStatus
from commentdesk.rulemakings import RulemakingService
from commentdesk.schemas import RulemakingCreate, RulemakingUpdate
from commentdesk.seed import SAMPLE_RULEMAKINGS, seed_rulemakings

from conftest import make_rulemaking


@pytest.fixture
def service(store) -> RulemakingService:
    return RulemakingService(store)


def _payload(**overrides) -> RulemakingCreate:
    fields = dict(
        agency="EPA",
        title="Clean Water Rule",
        docket_id="EPA-HQ-OW-2025-0001",
        comment_deadline=date.today() + timedelta(days=45),
        status="active",
        context_documents=["rule.pdf", {"title": "Fact sheet", "url": "https://example.gov/f"}],
        opposition_points=["Weakens wetland protection"],
    )
    fields.update(overrides)
    return RulemakingCreate(**fields)


def test_create_and_get(service):
    created = service.create(_payload())
    fetched = service.get(created.id)

    assert fetched.docket_id == "EPA-HQ-OW-2025-0001"
    assert fetched.status is RulemakingStatus.ACTIVE
    assert [doc.title for doc in fetched.context_documents] == ["rule.pdf", "Fact sheet"]
    assert fetched.context_documents[1].url == "https://example.gov/f"
    assert fetched.opposition_points == ["Weakens wetland protection"]


def test_get_missing(service):
    with pytest.raises(NotFound, match="Rulemaking not found"):
        service.get("missing")
    assert service.find("missing") is None


def test_list_active_only(service, store):
    closed = make_rulemaking(store, status=RulemakingStatus.CLOSED)
    first = make_rulemaking(store, deadline=date.today() + timedelta(days=3))
    second = make_rulemaking(store, deadline=date.today() + timedelta(days=9))

    ids = [r.id for r in service.list_active()]

    assert ids == [first.id, second.id]
    assert closed.id not in ids


def test_update_partial(service, rulemaking):
    updated = service.update(
        rulemaking.id, RulemakingUpdate(title="New title", legal_analysis=None)
    )

    assert updated.title == "New title"
    assert updated.legal_analysis is None
    assert updated.agency == rulemaking.agency
    assert updated.opposition_points == rulemaking.opposition_points


def test_update_ignores_null_required_fields(service, rulemaking):
    updated = service.update(rulemaking.id, RulemakingUpdate(agency=None, status="closed"))
    assert updated.agency == "CFPB"
    assert updated.status is RulemakingStatus.CLOSED
    assert not updated.accepts_comments()


def test_update_missing(service):
    with pytest.raises(NotFound):
        service.update("missing", RulemakingUpdate(title="x"))


def test_analytics_defaults_cover_recent_submissions(service, rulemaking, store):
    summary = service.analytics(rulemaking.id)
    assert summary["total_submissions"] == 0
    assert summary["avg_comment_length"] == 0.0


class TestSeed:
    def test_seed_inserts_sample(self, service):
        created = seed_rulemakings(service, deadline=date(2030, 1, 1))

        assert len(created) == len(SAMPLE_RULEMAKINGS)
        rulemaking = service.get(created[0].id)
        assert rulemaking.docket_id == "CFPB-2025-0018"
        assert rulemaking.comment_deadline == date(2030, 1, 1)
        assert len(rulemaking.context_documents) == 3
        assert len(rulemaking.opposition_points) == 5

    def test_default_deadline_accepts_comments(self, service):
        created = seed_rulemakings(service)
        assert created[0].comment_deadline == date.today() + timedelta(days=90)
        assert created[0].accepts_comments()

    def test_seed_is_idempotent(self, service, store):
        seed_rulemakings(service)
        assert seed_rulemakings(service) == []
        assert len(store.query("SELECT id FROM rulemakings")) == 1
