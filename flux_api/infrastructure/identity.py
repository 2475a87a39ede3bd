"""
HTTP client for the Supabase Auth (GoTrue) REST API.
"""
from typing import Any, Dict, Optional

import httpx
import structlog

from ..config import Settings, get_settings
from ..utils.exceptions import IdentityProviderError

logger = structlog.get_logger()


def _error_message(response: httpx.Response) -> str:
    """Pull a human readable message out of a GoTrue error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Identity provider returned {response.status_code}"

    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Identity provider returned {response.status_code}"


class IdentityProviderClient:
    """
    Thin async wrapper over the GoTrue endpoints used by the API.

    Every method returns the decoded JSON body. Non-2xx answers raise
    ``IdentityProviderError`` carrying the provider's message and status;
    callers decide which HTTP status to surface.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[Settings] = None
    ):
        self._settings = settings or get_settings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return f"{self._settings.supabase_url.rstrip('/')}/auth/v1"

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._settings.identity_timeout,
                transport=self._transport,
                headers={"apikey": self._settings.supabase_anon_key or ""},
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
        access_token: Optional[str] = None,
        service_role: bool = False,
    ) -> Dict[str, Any]:
        headers = {}
        if service_role and self._settings.supabase_service_role_key:
            headers["apikey"] = self._settings.supabase_service_role_key
            headers["Authorization"] = f"Bearer {self._settings.supabase_service_role_key}"
        elif access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            response = await self.client.request(
                method, path, json=json, params=params, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(
                "Identity provider unreachable",
                method=method,
                path=path,
                error=str(e)
            )
            raise IdentityProviderError(
                message="Identity provider unavailable",
                status_code=503
            )

        if response.is_error:
            message = _error_message(response)
            logger.warning(
                "Identity provider rejected request",
                method=method,
                path=path,
                status_code=response.status_code,
                error=message
            )
            raise IdentityProviderError(message=message, status_code=response.status_code)

        if not response.content:
            return {}
        return response.json()

    async def sign_up(
        self,
        email: str,
        password: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": data or {}}
        )

    async def sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password}
        )

    async def refresh_session(self, refresh_token: str) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token}
        )

    async def exchange_code_for_session(self, auth_code: str, code_verifier: str) -> Dict[str, Any]:
        """Exchange a PKCE authorization code for a session."""
        return await self._request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier}
        )

    async def get_user(self, access_token: str) -> Dict[str, Any]:
        return await self._request("GET", "/user", access_token=access_token)

    async def get_user_by_id(self, user_id: str) -> Dict[str, Any]:
        """Fetch a user through the admin API (service role key required)."""
        return await self._request("GET", f"/admin/users/{user_id}", service_role=True)

    async def unlink_identity(self, access_token: str, identity_id: str) -> Dict[str, Any]:
        return await self._request(
            "DELETE",
            f"/user/identities/{identity_id}",
            access_token=access_token
        )

    def authorize_url(self, params: Dict[str, str]) -> str:
        """Build the provider authorize URL the browser is redirected to."""
        return str(httpx.URL(f"{self.base_url}/authorize", params=params))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Global identity client instance
_identity_client: Optional[IdentityProviderClient] = None


def get_identity_client() -> IdentityProviderClient:
    """Get the global identity provider client."""
    global _identity_client
    if _identity_client is None:
        _identity_client = IdentityProviderClient()
    return _identity_client


async def cleanup_identity_client():
    """Close the global identity provider client."""
    global _identity_client
    if _identity_client is not None:
        await _identity_client.close()
        _identity_client = None
        logger.info("Identity provider client closed")
