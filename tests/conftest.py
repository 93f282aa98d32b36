"""Pytest configuration and fixtures."""

import uuid
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, List, Optional

import pytest
import requests_mock
from fastapi.testclient import TestClient

from commentdesk.api import create_api_app
from commentdesk.auth import AdminService, TokenService
from commentdesk.config import Settings
from commentdesk.errors import GenerationFailed
from commentdesk.models import ContextDocument, Rulemaking, RulemakingStatus
from commentdesk.store import RecordStore
from commentdesk.tasks import InlineTaskRunner

CLAUDE_URL = "https://api.anthropic.com/v1/messages"
RECAPTCHA_URL = "https://www.google.com/recaptcha/api/siteverify"

GENERATED_LETTER = (
    "Dear CFPB,\n\nMy name is Jane Doe and I live in Austin, TX. "
    "I oppose this proposed rule because it would leave families like mine exposed."
)


class FakeGenerator:
    """Stands in for the text-generation endpoint."""

    def __init__(self, text: str = GENERATED_LETTER, fail: bool = False):
        self.text = text
        self.fail = fail
        self.calls: List[tuple] = []

    def generate_draft(self, rulemaking, narrative) -> str:
        self.calls.append((rulemaking, narrative))
        if self.fail:
            raise GenerationFailed(details="upstream timed out")
        return self.text


class FakeVerifier:
    """Accepts every token except ``bad-token``."""

    def __init__(self):
        self.calls: List[tuple] = []

    def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        self.calls.append((token, remote_ip))
        return token != "bad-token"


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Path for a temporary SQLite database."""
    return tmp_path / "commentdesk-test.db"


@pytest.fixture
def store(temp_db: Path) -> RecordStore:
    """Record store with the schema applied."""
    record_store = RecordStore(str(temp_db))
    record_store.ensure_schema()
    return record_store


@pytest.fixture
def test_settings(temp_db: Path) -> Settings:
    """Create test settings."""
    return Settings(
        _env_file=None,
        database_file=str(temp_db),
        database_url=None,
        claude_api_key="test-claude-key",
        recaptcha_secret_key=None,
        jwt_secret="test-jwt-secret",
        environment="test",
        log_level="DEBUG",
    )


def make_rulemaking(
    store: RecordStore,
    status: RulemakingStatus = RulemakingStatus.ACTIVE,
    deadline: Optional[date] = None,
    **overrides,
) -> Rulemaking:
    """Insert a rulemaking and return it."""
    fields = dict(
        id=str(uuid.uuid4()),
        agency="CFPB",
        title="Legal Standard Applicable to Supervisory Designation Proceedings",
        docket_id="CFPB-2025-0018",
        comment_deadline=deadline or date.today() + timedelta(days=30),
        status=status,
        description="Raises the bar for supervisory designation.",
        federal_register_url="https://www.regulations.gov/docket/CFPB-2025-0018",
        context_documents=[ContextDocument(title="Federal Register notice.pdf")],
        legal_analysis="Delays intervention until harm has occurred.",
        opposition_points=["Delays consumer protection", "Weakens proactive supervision"],
    )
    fields.update(overrides)
    rulemaking = Rulemaking(**fields)
    store.insert("rulemakings", [rulemaking.to_row()])
    return rulemaking


@pytest.fixture
def rulemaking(store: RecordStore) -> Rulemaking:
    """An active rulemaking accepting comments."""
    return make_rulemaking(store)


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def fake_verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def task_runner() -> InlineTaskRunner:
    return InlineTaskRunner()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(secret="test-jwt-secret", issuer="commentdesk-test", expire_minutes=60)


@pytest.fixture
def admin_account(store: RecordStore) -> Dict[str, str]:
    """An active admin and the password that unlocks it."""
    account = AdminService(store).create_admin(
        "admin@example.org", "correct horse battery staple", "Ada Admin"
    )
    account["password"] = "correct horse battery staple"
    return account


@pytest.fixture
def auth_headers(admin_account: Dict[str, str], token_service: TokenService) -> Dict[str, str]:
    token = token_service.issue(admin_account)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app(store, test_settings, fake_generator, fake_verifier, task_runner, token_service):
    return create_api_app(
        store=store,
        settings=test_settings,
        generator=fake_generator,
        verifier=fake_verifier,
        task_runner=task_runner,
        token_service=token_service,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def mock_claude():
    """Mock the Anthropic Messages endpoint."""
    with requests_mock.Mocker() as m:
        m.post(CLAUDE_URL, json={"content": [{"type": "text", "text": GENERATED_LETTER}]})
        yield m


@pytest.fixture
def mock_recaptcha():
    """Mock the reCAPTCHA siteverify endpoint."""
    with requests_mock.Mocker() as m:
        m.post(RECAPTCHA_URL, json={"success": True})
        yield m
