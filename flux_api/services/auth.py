"""
Authentication service delegating credentials and sessions to the identity provider.
"""
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import structlog

from ..config import Settings, get_settings
from ..infrastructure import IdentityProviderClient, get_identity_client
from ..models.auth import AuthSession, AuthUser, OAuthProviderInfo
from ..utils.exceptions import (
    AuthenticationError,
    BusinessLogicError,
    IdentityProviderError,
    OAuthNotConfiguredError,
    ValidationError as AppValidationError,
)
from .oauth_providers import generate_pkce_pair, get_enabled_providers, get_provider
from .user import UserService

logger = structlog.get_logger()


def _session_from(body: Dict[str, Any]) -> Optional[AuthSession]:
    if not body.get("access_token") or not body.get("refresh_token"):
        return None
    return AuthSession.model_validate(body)


def _user_from(body: Dict[str, Any]) -> Optional[AuthUser]:
    # Token responses nest the user, sign-up without confirmation returns it bare
    data = body.get("user") if isinstance(body.get("user"), dict) else body
    if not data or not data.get("id"):
        return None
    return AuthUser.from_provider(data)


def _as_client_error(error: IdentityProviderError, status_code: int, code: str) -> IdentityProviderError:
    """Re-badge a provider rejection; provider outages keep their 5xx status."""
    if error.status_code >= 500:
        return error
    return IdentityProviderError(message=error.message, status_code=status_code, code=code)


class AuthService:
    """Authentication service backed by Supabase Auth."""

    def __init__(
        self,
        identity: Optional[IdentityProviderClient] = None,
        users: Optional[UserService] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.identity = identity or get_identity_client()
        self.users = users or UserService()

    async def sign_up(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None
    ) -> Tuple[AuthUser, Optional[AuthSession]]:
        """
        Register a user with email and password.

        The session is ``None`` when the provider requires email
        confirmation before the first sign-in.
        """
        metadata = {"full_name": full_name} if full_name else {}
        try:
            body = await self.identity.sign_up(email, password, metadata)
        except IdentityProviderError as e:
            logger.warning("Sign-up rejected", email=email, error=e.message)
            raise _as_client_error(e, 400, "SIGNUP_FAILED")

        user = _user_from(body)
        if user is None:
            raise IdentityProviderError(
                message="Identity provider returned no user",
                status_code=502
            )

        session = _session_from(body)
        logger.info(
            "User signed up",
            user_id=user.id,
            email_confirmed=user.email_confirmed,
            has_session=session is not None
        )
        return user, session

    async def sign_in(self, email: str, password: str) -> Tuple[AuthUser, AuthSession]:
        try:
            body = await self.identity.sign_in_with_password(email, password)
        except IdentityProviderError as e:
            if e.status_code >= 500:
                raise
            logger.warning("Sign-in rejected", email=email, error=e.message)
            raise AuthenticationError(message=e.message, code="INVALID_CREDENTIALS")

        user = _user_from(body)
        session = _session_from(body)
        if user is None or session is None:
            raise AuthenticationError(message="No session returned", code="INVALID_CREDENTIALS")

        logger.info("User signed in", user_id=user.id)
        return user, session

    async def refresh(self, refresh_token: str) -> Tuple[AuthUser, AuthSession]:
        try:
            body = await self.identity.refresh_session(refresh_token)
        except IdentityProviderError as e:
            if e.status_code >= 500:
                raise
            raise AuthenticationError(message=e.message, code="REFRESH_FAILED")

        user = _user_from(body)
        session = _session_from(body)
        if user is None or session is None:
            raise AuthenticationError(message="No session returned", code="REFRESH_FAILED")

        logger.info("Session refreshed", user_id=user.id)
        return user, session

    async def get_user(self, access_token: str) -> AuthUser:
        """Validate an access token and return its user."""
        try:
            body = await self.identity.get_user(access_token)
        except IdentityProviderError as e:
            if e.status_code >= 500:
                raise
            raise AuthenticationError()

        user = _user_from(body)
        if user is None:
            raise AuthenticationError()
        return user

    async def sync_user(self, user_id: str) -> Dict[str, Any]:
        """Copy the provider's current record of ``user_id`` into the users table."""
        try:
            body = await self.identity.get_user_by_id(user_id)
        except IdentityProviderError as e:
            logger.error("Failed to load user from identity provider", user_id=user_id, error=e.message)
            raise IdentityProviderError(
                message="Failed to retrieve user from identity provider",
                status_code=500
            )

        user = _user_from(body)
        if user is None:
            raise IdentityProviderError(
                message="Failed to retrieve user from identity provider",
                status_code=500
            )
        return await self.users.sync_user(user)

    # OAuth

    def callback_url(
        self,
        origin: str,
        provider: str,
        redirect_to: Optional[str] = None,
        linking: bool = False
    ) -> str:
        url = f"{origin.rstrip('/')}{self.settings.api_prefix}/auth/oauth/{provider}/callback"
        params = {}
        if linking:
            params["linking"] = "true"
        if redirect_to:
            params["redirectTo"] = redirect_to
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    def list_providers(self, origin: str) -> List[OAuthProviderInfo]:
        return [
            OAuthProviderInfo(
                name=provider.name,
                display_name=provider.display_name,
                icon=provider.icon,
                scopes=provider.scopes,
                enabled=provider.enabled,
                configured=self.settings.is_oauth_configured(provider.name),
                initiate_url=f"{self.settings.api_prefix}/auth/oauth/{provider.name}",
                callback_url=self.callback_url(origin, provider.name),
            )
            for provider in get_enabled_providers()
        ]

    def _authorize(self, provider_name: str, callback: str) -> Tuple[str, str]:
        provider = get_provider(provider_name)
        if not self.settings.is_oauth_configured(provider.name):
            logger.warning("OAuth provider not configured", provider=provider.name)
            raise OAuthNotConfiguredError(provider.display_name)

        verifier, challenge = generate_pkce_pair()
        params = {
            "provider": provider.name,
            "redirect_to": callback,
            "code_challenge": challenge,
            "code_challenge_method": "s256",
        }
        if provider.scopes:
            params["scopes"] = provider.scopes
        return self.identity.authorize_url(params), verifier

    def initiate_oauth(
        self,
        provider: str,
        redirect_to: Optional[str],
        origin: str
    ) -> Tuple[str, str]:
        """
        Build the provider authorize URL.

        Returns ``(url, code_verifier)``; the caller keeps the verifier for
        the callback. Raises ``OAuthNotConfiguredError`` before any network
        activity when the provider has no real credentials.
        """
        url, verifier = self._authorize(provider, self.callback_url(origin, provider, redirect_to))
        logger.info("OAuth flow initiated", provider=provider)
        return url, verifier

    def link_provider(
        self,
        provider: str,
        redirect_to: Optional[str],
        origin: str
    ) -> Tuple[str, str]:
        redirect_to = redirect_to or self.settings.oauth_link_redirect
        url, verifier = self._authorize(
            provider,
            self.callback_url(origin, provider, redirect_to, linking=True)
        )
        logger.info("OAuth linking initiated", provider=provider)
        return url, verifier

    async def complete_oauth(
        self,
        provider: str,
        code: Optional[str],
        code_verifier: Optional[str]
    ) -> Tuple[AuthUser, AuthSession]:
        """Exchange an authorization code for a session and sync the user."""
        get_provider(provider)
        if not code:
            raise AppValidationError(
                message="Authorization code is required",
                code="OAUTH_CODE_MISSING"
            )
        if not code_verifier:
            raise AppValidationError(
                message="OAuth session expired, please start again",
                code="OAUTH_CALLBACK_FAILED"
            )

        try:
            body = await self.identity.exchange_code_for_session(code, code_verifier)
        except IdentityProviderError as e:
            logger.warning("OAuth code exchange failed", provider=provider, error=e.message)
            raise _as_client_error(e, 400, "OAUTH_CALLBACK_FAILED")

        user = _user_from(body)
        session = _session_from(body)
        if user is None or session is None:
            raise IdentityProviderError(
                message="No session created from OAuth callback",
                code="OAUTH_CALLBACK_FAILED"
            )

        await self.users.sync_user(user)
        logger.info("OAuth sign-in completed", provider=provider, user_id=user.id)
        return user, session

    async def unlink_provider(self, access_token: str, provider: str) -> List[str]:
        """
        Remove a linked identity and return the providers still linked.

        The last remaining identity can never be removed.
        """
        get_provider(provider)
        user = await self.get_user(access_token)

        identity = next(
            (item for item in user.identities if item.get("provider") == provider),
            None
        )
        if identity is None:
            raise BusinessLogicError(
                message=f"User does not have {provider} linked",
                code="OAUTH_UNLINK_FAILED"
            )
        if len(user.identities) <= 1:
            raise BusinessLogicError(
                message="Cannot unlink the only authentication method. Add another login method first.",
                code="OAUTH_UNLINK_FAILED"
            )

        try:
            await self.identity.unlink_identity(
                access_token,
                identity.get("identity_id") or identity["id"]
            )
        except IdentityProviderError as e:
            if e.status_code >= 500:
                raise
            raise BusinessLogicError(message=e.message, code="OAUTH_UNLINK_FAILED")

        remaining = AuthUser(
            id=user.id,
            identities=[item for item in user.identities if item is not identity]
        ).providers
        await self.users.set_oauth_providers(user.id, remaining)

        logger.info("OAuth provider unlinked", provider=provider, user_id=user.id)
        return remaining
