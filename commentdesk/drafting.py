"""Draft generation via the Anthropic Messages API."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from commentdesk.errors import GenerationFailed, ValidationFailed
from commentdesk.models import Rulemaking, clean_optional

logger = logging.getLogger(__name__)

NOT_PROVIDED = "Not provided"
ANTHROPIC_VERSION = "2023-06-01"


@dataclass
class UserNarrative:
    """What the citizen told us about themselves and the rule."""

    name: str
    email: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    personal_story: Optional[str] = None
    why_it_matters: Optional[str] = None
    experiences: Optional[str] = None
    concerns: Optional[str] = None

    def __post_init__(self) -> None:
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValidationFailed("Name is required")
        for attr in (
            "email",
            "city",
            "state",
            "zip",
            "personal_story",
            "why_it_matters",
            "experiences",
            "concerns",
        ):
            setattr(self, attr, clean_optional(getattr(self, attr)))

    @property
    def location(self) -> str:
        return ", ".join(part for part in (self.city, self.state) if part) or NOT_PROVIDED


def build_prompt(rulemaking: Rulemaking, narrative: UserNarrative) -> str:
    """Assemble the letter-writing prompt for one citizen and one rulemaking."""
    if rulemaking.opposition_points:
        points = "\n".join(f"- {point}" for point in rulemaking.opposition_points)
    else:
        points = "No specific opposition points provided"

    return f"""You are helping create a unique, personalized comment letter opposing the {rulemaking.agency}'s proposed rule "{rulemaking.title}" (Docket No. {rulemaking.docket_id}).

The user has provided:
- Name: {narrative.name}
- Location: {narrative.location}
- Personal story: {narrative.personal_story or NOT_PROVIDED}
- Why this issue matters: {narrative.why_it_matters or NOT_PROVIDED}
- Relevant experiences: {narrative.experiences or NOT_PROVIDED}
- Concerns about the rule: {narrative.concerns or NOT_PROVIDED}

Background context (DO NOT quote or copy directly from any source):
{rulemaking.description or "No description provided"}

Legal analysis context (DO NOT quote directly):
{rulemaking.legal_analysis or "No legal analysis provided"}

Key opposition points (DO NOT quote directly):
{points}

Write a completely original, authentic comment letter that:
- Sounds like it comes from this specific person, not a template
- Uses ONLY their own words and experiences as the foundation
- Explains the issue in their voice, using analogies or examples that fit their background
- Makes 1-3 points about why the rule change is problematic based on their stated concerns
- Connects to their community or personal situation
- Shows genuine concern rather than policy jargon
- Is 300-500 words
- Avoids any phrases that sound like they came from advocacy materials
- Uses conversational but respectful tone appropriate for government comment
- NEVER suggests policy alternatives or solutions - only expresses opposition to the proposed rule
- NEVER mentions facts, statistics, or claims not provided by the user
- Focuses on the user's perspective and concerns rather than broader policy arguments
- Includes proper formatting with clear paragraphs

The goal is a letter so personal and authentic that it clearly comes from a real person with genuine concerns, based solely on what they have shared with you."""


class DraftGenerator:
    """Sends prompts to the text-generation endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "claude-sonnet-4-20250514",
        base_url: str = "https://api.anthropic.com/v1/messages",
        max_tokens: int = 1500,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """Initialize generator.

        Args:
            api_key: Anthropic API key
            model: Model identifier sent with every request
            base_url: Messages endpoint URL
            max_tokens: Output token budget per draft
            timeout: Seconds before a request is abandoned
            session: Optional pre-configured requests session
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "CommentDesk/1.0"})

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key or "",
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def _post(self, prompt: str, max_tokens: int, timeout: float) -> requests.Response:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        return self.session.post(
            self.base_url, json=payload, headers=self._headers(), timeout=timeout
        )

    def generate_draft(self, rulemaking: Rulemaking, narrative: UserNarrative) -> str:
        """Generate a letter draft; returns the model's text verbatim.

        Raises:
            GenerationFailed: On transport errors, timeouts, error statuses or
                a response without text content.
        """
        if not self.api_key:
            logger.error("Draft generation requested but CLAUDE_API_KEY is not set")
            raise GenerationFailed(details="Text generation is not configured")

        prompt = build_prompt(rulemaking, narrative)

        try:
            response = self._post(prompt, self.max_tokens, self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Draft generation request failed: {e}")
            raise GenerationFailed(details=str(e)) from e
        except ValueError as e:
            logger.error(f"Draft generation returned non-JSON body: {e}")
            raise GenerationFailed(details="Malformed response") from e

        try:
            text = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Invalid response from text-generation endpoint: {data!r}")
            raise GenerationFailed(details="Malformed response") from e

        if not isinstance(text, str) or not text.strip():
            logger.error("Text-generation endpoint returned an empty draft")
            raise GenerationFailed(details="Empty draft")

        logger.info(
            f"Generated draft for rulemaking {rulemaking.id} ({len(text)} characters)"
        )
        return text

    def check_api_key(self) -> bool:
        """Return True when the endpoint accepts our credentials."""
        if not self.api_key:
            return False
        try:
            response = self._post("test", max_tokens=10, timeout=10)
            return response.status_code == 200
        except requests.exceptions.RequestException as e:
            logger.error(f"Text-generation credential check failed: {e}")
            return False
