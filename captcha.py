"""Cloudflare Turnstile bot verification."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


class TurnstileVerifier:
    def __init__(self, secret: Optional[str], timeout: float = 10.0) -> None:
        self.secret = secret
        self.client = httpx.Client(timeout=timeout)

    def verify(self, token: Optional[str], remote_ip: Optional[str] = None) -> bool:
        """True if the challenge token checks out.

        Verification is switched off when no secret is configured.
        """
        if not self.secret:
            return True
        if not token:
            return False
        data = {"secret": self.secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip
        try:
            response = self.client.post(VERIFY_URL, data=data)
            response.raise_for_status()
            result = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error verifying Turnstile token: %s", exc)
            return False
        if not result.get("success"):
            logger.info("Turnstile rejected token: %s", result.get("error-codes"))
        return bool(result.get("success"))
