"""Bot verification against the reCAPTCHA siteverify endpoint."""

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class BotVerifier:
    """Checks human-verification tokens issued to the browser."""

    def __init__(
        self,
        secret_key: Optional[str],
        verify_url: str = "https://www.google.com/recaptcha/api/siteverify",
        timeout: float = 10.0,
        skip: bool = False,
    ):
        """Initialize verifier.

        Args:
            secret_key: reCAPTCHA server-side secret
            verify_url: siteverify endpoint
            timeout: Request timeout in seconds
            skip: Accept every token (non-production configurations only)
        """
        self.secret_key = secret_key
        self.verify_url = verify_url
        self.timeout = timeout
        self.skip = skip

    def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        """Return True when the provider confirms the token."""
        if self.skip:
            logger.debug("Bot verification skipped (non-production configuration)")
            return True

        if not self.secret_key:
            logger.error("Bot verification required but RECAPTCHA_SECRET_KEY is not set")
            return False

        data = {"secret": self.secret_key, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            response = requests.post(self.verify_url, data=data, timeout=self.timeout)
            response.raise_for_status()
            result = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Bot verification request failed: {e}")
            return False

        if not result.get("success"):
            logger.info(f"Bot verification rejected: {result.get('error-codes')}")
            return False
        return True
