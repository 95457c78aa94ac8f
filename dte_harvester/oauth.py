"""Google OAuth for Gmail: consent URL, code exchange and a cached refresh token."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from .config import Settings

logger = logging.getLogger(__name__)

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]


class GmailAuthError(RuntimeError):
    """OAuth failure; ``code`` tells callers whether the user must reconnect."""

    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


class GoogleOAuth:
    """Authorization-code flow with the authorized-user JSON cached on disk."""

    AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
    TOKEN_URI = "https://oauth2.googleapis.com/token"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.cache_path: Path = settings.gmail_token_cache
        self._flow: Optional[Flow] = None
        self._email: Optional[str] = None
        self.credentials: Optional[Credentials] = self._load_credentials()

    def _client_config(self) -> dict[str, Any]:
        return {
            "installed": {
                "client_id": self.settings.google_client_id,
                "client_secret": self.settings.google_client_secret,
                "auth_uri": self.AUTH_URI,
                "token_uri": self.TOKEN_URI,
                "redirect_uris": [self.settings.google_redirect_uri],
            }
        }

    @property
    def flow(self) -> Flow:
        # One flow per consent round trip; it carries the PKCE verifier.
        if self._flow is None:
            self._flow = Flow.from_client_config(
                self._client_config(),
                scopes=GMAIL_SCOPES,
                redirect_uri=self.settings.google_redirect_uri,
            )
        return self._flow

    def authorization_url(self, state: str | None = None) -> str:
        url, _ = self.flow.authorization_url(
            access_type="offline",
            prompt="consent",
            include_granted_scopes="true",
            state=state,
        )
        return url

    def exchange_code(self, code: str) -> Credentials:
        """Trade an authorization code for credentials and cache them."""
        self.flow.fetch_token(code=code)
        credentials = self.flow.credentials
        if not credentials.refresh_token:
            raise GmailAuthError(
                "No refresh_token received. Try again with consent prompt.", code="REFRESH_FAILED"
            )
        self.credentials = credentials
        self._persist_token_cache()
        return credentials

    def acquire_token(self) -> str:
        if self.settings.gmail_access_token:
            return self.settings.gmail_access_token

        credentials = self.credentials
        if credentials is None or not credentials.refresh_token:
            raise GmailAuthError("Gmail not connected", code="NOT_CONNECTED")
        if not credentials.valid:
            try:
                logger.debug("Refreshing Gmail access token")
                credentials.refresh(Request())
            except RefreshError as exc:
                logger.error("Gmail token refresh failed: %s", exc)
                raise GmailAuthError(f"Unable to refresh access token: {exc}", code="REAUTH_REQUIRED") from exc
            self._persist_token_cache()
        return credentials.token

    def remember_account(self, email: str) -> None:
        self._email = email
        self._persist_token_cache()

    @property
    def account_email(self) -> str | None:
        return self._email

    def disconnect(self) -> None:
        """Forget the cached credentials."""
        if self.cache_path.exists():
            self.cache_path.unlink()
        self.credentials = None
        self._email = None

    def _load_credentials(self) -> Optional[Credentials]:
        if not self.cache_path.exists():
            return None
        info = json.loads(self.cache_path.read_text())
        self._email = info.get("account_email")
        return Credentials.from_authorized_user_info(info, GMAIL_SCOPES)

    def _persist_token_cache(self) -> None:
        if self.credentials is None:
            return
        info = json.loads(self.credentials.to_json())
        if self._email:
            info["account_email"] = self._email
        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        self.cache_path.write_text(json.dumps(info))
