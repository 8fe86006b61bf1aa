"""Relay of the GitHub OAuth code-for-token exchange."""

from __future__ import annotations

import logging
from typing import Any, Dict

import requests

from ..config import GitHubConfig
from ..errors import InvalidRequest, OAuthExchangeFailed
from ..logging import get_logger


class OAuthClient:
    """Exchanges an authorization code for an access token on behalf of a client app."""

    def __init__(
        self,
        config: GitHubConfig | None = None,
        *,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or GitHubConfig()
        self.session = session or requests.Session()
        self.logger = logger or get_logger("oauth")

    def exchange_code(self, code: str) -> Dict[str, Any]:
        if not code:
            raise InvalidRequest("No code provided")
        if not self.config.client_id or not self.config.client_secret:
            raise OAuthExchangeFailed("OAuth client credentials are not configured")

        self.logger.info("Exchanging GitHub code for token")
        try:
            response = self.session.post(
                self.config.oauth_url,
                headers={"Accept": "application/json"},
                data={
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "code": code,
                },
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as exc:
            raise OAuthExchangeFailed(f"OAuth request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise OAuthExchangeFailed("OAuth provider returned invalid JSON") from exc

        if not response.ok or not isinstance(payload, dict) or "error" in payload:
            detail = payload.get("error") if isinstance(payload, dict) else None
            raise OAuthExchangeFailed(str(detail or "Failed to get access token"))

        self.logger.info("GitHub authentication successful")
        return payload


__all__ = ["OAuthClient"]
