"""Authentication providers for HTTP-based connectors.

Basic auth for SAP Gateway and OAuth2 client credentials for SAP BTP and
the Infor ION API gateway. Providers hand back an ``Authorization`` header
value; the HTTP client asks for it before every request.
"""

import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from core.clock import as_utc, utc_now
from core.errors import AuthenticationError

logger = logging.getLogger(__name__)


class AuthProvider:
    """Base provider: no credentials."""

    async def get_authorization_header(self, session=None) -> Optional[str]:
        return None

    def invalidate(self) -> None:
        """Forget any cached credential so the next call fetches a new one."""
        pass


class BasicAuthProvider(AuthProvider):
    """HTTP basic authentication."""

    def __init__(self, username: str, password: str):
        if not username:
            raise AuthenticationError("Basic auth requires a username")
        self.username = username
        self._header = "Basic " + base64.b64encode(
            f"{username}:{password or ''}".encode("utf-8")
        ).decode("ascii")

    async def get_authorization_header(self, session=None) -> Optional[str]:
        return self._header


@dataclass
class OAuth2Token:
    """OAuth2 access token with expiration tracking."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600
    obtained_at: datetime = field(default_factory=utc_now)

    @property
    def expires_at(self) -> datetime:
        return self.obtained_at + timedelta(seconds=self.expires_in)

    @property
    def is_expired(self) -> bool:
        """Check if token is expired (with 5-minute buffer)."""
        return utc_now() >= (as_utc(self.expires_at) - timedelta(minutes=5))

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"


class OAuth2ClientCredentialsProvider(AuthProvider):
    """Client-credentials flow with token caching.

    Usage:
        auth = OAuth2ClientCredentialsProvider(token_url, client_id, secret)
        header = await auth.get_authorization_header(session)
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: Optional[str] = None,
    ):
        if not token_url or not client_id:
            raise AuthenticationError(
                "OAuth2 requires token_url and client_id",
                details={"tokenUrl": token_url},
            )
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self._token: Optional[OAuth2Token] = None

    @property
    def token(self) -> Optional[OAuth2Token]:
        if self._token and not self._token.is_expired:
            return self._token
        return None

    def invalidate(self) -> None:
        self._token = None

    async def _fetch_token(self, session) -> OAuth2Token:
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        if self.scope:
            data["scope"] = self.scope

        async with session.post(
            self.token_url,
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        ) as response:
            if response.status != 200:
                error_text = await response.text()
                raise AuthenticationError(
                    f"Token request failed: {response.status}",
                    details={"tokenUrl": self.token_url, "status": response.status, "cause": error_text[:500]},
                )
            token_data = await response.json()

        if "access_token" not in token_data:
            raise AuthenticationError("Token response has no access_token", details={"tokenUrl": self.token_url})

        logger.debug(f"Obtained OAuth2 token from {self.token_url}")
        return OAuth2Token(
            access_token=token_data["access_token"],
            token_type=token_data.get("token_type", "Bearer"),
            expires_in=int(token_data.get("expires_in", 3600)),
        )

    async def get_authorization_header(self, session=None) -> Optional[str]:
        token = self.token
        if token is None:
            if session is None:
                raise AuthenticationError("OAuth2 token fetch needs an HTTP session")
            self._token = token = await self._fetch_token(session)
        return token.authorization_header
