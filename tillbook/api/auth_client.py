"""Supabase auth client: sessions and roles."""

from typing import Dict, Any, Optional
import httpx

from .base_client import BaseClient
from ..models.records import UserSession, USER_ROLES
from ..utils.config import get_config
from ..utils.logger import get_api_logger
from ..utils.exceptions import AuthenticationError

AUTH_PREFIX = "/auth/v1"


def _session_from_user(user: Dict[str, Any], access_token: Optional[str]) -> UserSession:
    """Build a ``UserSession`` from an auth user payload.

    The role lives in ``user_metadata.role``; anything else is a cashier.
    """
    metadata = user.get("user_metadata") or {}
    return UserSession(
        user_id=user.get("id", ""),
        email=user.get("email", ""),
        role=metadata.get("role") or "cashier",
        access_token=access_token
    )


class AuthClient(BaseClient):
    """Client for the hosted auth service."""

    def __init__(self, transport: Optional[httpx.BaseTransport] = None):
        config = get_config()
        url = config.env.supabase_url

        if not url.startswith("https://") and not url.startswith("http://"):
            url = f"https://{url}"

        super().__init__(
            base_url=url,
            headers={"apikey": config.env.supabase_key},
            transport=transport
        )
        self.logger = get_api_logger()

    def _auth_request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """
        Call an auth endpoint and return its JSON body.

        Raises:
            AuthenticationError: On network failure or a non-2xx answer.
        """
        try:
            response = self._make_request_with_retry(method, f"{AUTH_PREFIX}{endpoint}", **kwargs)
        except httpx.HTTPError as e:
            raise AuthenticationError(
                f"Network error during authentication: {str(e)}",
                details={"error": str(e)}
            )

        if response.status_code >= 400:
            raise AuthenticationError(
                f"Authentication failed (HTTP {response.status_code}): {self._error_message(response)}",
                details={"status_code": response.status_code, "response": response.text}
            )

        if not response.content:
            return {}
        return response.json()

    def sign_in(self, email: str, password: str) -> UserSession:
        """
        Sign in with email and password.

        Returns:
            The signed-in session, carrying the user's JWT.

        Raises:
            AuthenticationError: If the credentials are rejected
        """
        self.logger.info(f"Signing in {email}...")
        data = self._auth_request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password}
        )
        session = _session_from_user(data.get("user") or {}, data.get("access_token"))
        self.logger.info(f"Signed in {session.email} as {session.role}")
        return session

    def sign_up(self, email: str, password: str, role: str = "cashier") -> Optional[UserSession]:
        """
        Register a new account with the given role.

        Returns:
            A session when the project auto-confirms accounts, otherwise
            None (the user must confirm by email first).
        """
        if role not in USER_ROLES:
            raise ValueError(f"Role must be one of {', '.join(USER_ROLES)}")

        data = self._auth_request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": {"role": role}}
        )
        if not data.get("access_token"):
            self.logger.info(f"Sign-up for {email} awaiting email confirmation")
            return None
        return _session_from_user(data.get("user") or {}, data["access_token"])

    def get_user(self, access_token: str) -> UserSession:
        """Resolve a bearer token to its session."""
        data = self._auth_request(
            "GET",
            "/user",
            headers={"Authorization": f"Bearer {access_token}"}
        )
        return _session_from_user(data, access_token)

    def sign_out(self, session: UserSession):
        """Revoke the session's token."""
        if not session.access_token:
            return
        self._auth_request(
            "POST",
            "/logout",
            headers={"Authorization": f"Bearer {session.access_token}"}
        )
        self.logger.info(f"Signed out {session.email}")
