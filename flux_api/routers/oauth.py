"""
OAuth sign-in and account linking endpoints.

Initiation answers with a redirect to the identity provider's authorize URL
and keeps the PKCE code verifier in an HTTP-only cookie scoped to this
router; the callback reads it back to exchange the authorization code.
"""
from typing import Any, Dict, Optional
from urllib.parse import urlencode, urlsplit

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
import structlog

from ..config import Settings, get_settings
from ..models.api_responses import ERROR_RESPONSES, ok
from ..models.auth import AuthUser, LinkProviderRequest, UnlinkProviderRequest
from ..services import AuthService
from ..utils.constants import PKCE_COOKIE_MAX_AGE, PKCE_COOKIE_NAME
from ..utils.dependencies import get_access_token, get_auth_service, get_current_user

logger = structlog.get_logger()
router = APIRouter()


def request_origin(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def safe_redirect_path(redirect_to: Optional[str], default: str) -> str:
    """Only same-site paths are accepted as post-login targets."""
    if not redirect_to:
        return default
    parts = urlsplit(redirect_to)
    if parts.scheme or parts.netloc or not redirect_to.startswith("/") or redirect_to.startswith("//"):
        logger.warning("Rejected off-site OAuth redirect", redirect_to=redirect_to)
        return default
    return redirect_to


def set_verifier_cookie(response: Response, verifier: str, settings: Settings) -> None:
    response.set_cookie(
        key=PKCE_COOKIE_NAME,
        value=verifier,
        max_age=PKCE_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path=f"{settings.api_prefix}/auth/oauth"
    )


@router.get("", status_code=status.HTTP_200_OK)
async def list_providers(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """List the OAuth providers users can sign in with."""
    providers = auth_service.list_providers(request_origin(request))
    return ok(
        {
            "providers": [provider.model_dump() for provider in providers],
            "total": len(providers)
        },
        "Available OAuth providers for Flux authentication"
    )


@router.post("/link-provider", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def link_provider(
    body: LinkProviderRequest,
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings)
) -> JSONResponse:
    """Generate the URL that links another OAuth provider to the current account."""
    redirect_to = safe_redirect_path(body.redirectTo, settings.oauth_link_redirect)
    url, verifier = auth_service.link_provider(body.provider, redirect_to, request_origin(request))

    logger.info("OAuth linking URL generated", provider=body.provider, user_id=current_user.id)
    response = JSONResponse(content=ok({"url": url}, "OAuth linking URL generated"))
    set_verifier_cookie(response, verifier, settings)
    return response


@router.post("/unlink-provider", status_code=status.HTTP_200_OK, responses=ERROR_RESPONSES)
async def unlink_provider(
    body: UnlinkProviderRequest,
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> Dict[str, Any]:
    """Remove an OAuth provider from the current account."""
    remaining = await auth_service.unlink_provider(access_token, body.provider)
    return ok(
        {"provider": body.provider, "remaining_providers": remaining},
        f"Successfully unlinked {body.provider} from your account"
    )


@router.get(
    "/{provider}",
    status_code=status.HTTP_302_FOUND,
    responses={
        302: {"description": "Redirect to the provider's authorize page"},
        501: {"description": "Provider credentials are not configured"},
        **ERROR_RESPONSES
    }
)
async def initiate_oauth(
    provider: str,
    request: Request,
    redirect_to: Optional[str] = Query(None, alias="redirectTo"),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings)
) -> RedirectResponse:
    """Start an OAuth sign-in with GitHub or Google."""
    redirect_to = safe_redirect_path(redirect_to, settings.oauth_default_redirect)
    url, verifier = auth_service.initiate_oauth(provider, redirect_to, request_origin(request))

    response = RedirectResponse(
        url=url,
        status_code=status.HTTP_302_FOUND,
        headers={"Cache-Control": "no-cache"}
    )
    set_verifier_cookie(response, verifier, settings)
    return response


@router.get("/{provider}/callback", responses=ERROR_RESPONSES)
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(None),
    redirect_to: Optional[str] = Query(None, alias="redirectTo"),
    response_format: Optional[str] = Query(None, alias="format"),
    linking: bool = Query(False),
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings)
) -> Response:
    """
    Finish an OAuth sign-in.

    With ``format=json`` the session is returned in the envelope. Otherwise
    the browser is redirected to ``redirectTo`` with the tokens and provider
    name as query parameters.
    """
    verifier = request.cookies.get(PKCE_COOKIE_NAME)
    user, session = await auth_service.complete_oauth(provider, code, verifier)

    if response_format == "json":
        response: Response = JSONResponse(
            content=ok(
                {
                    "user": {**user.public_dict(), "provider": provider},
                    "session": session.model_dump(exclude_none=True)
                },
                "OAuth authentication successful"
            )
        )
    else:
        default = settings.oauth_link_redirect if linking else settings.oauth_default_redirect
        target = safe_redirect_path(redirect_to, default)
        query = urlencode({
            "access_token": session.access_token,
            "refresh_token": session.refresh_token,
            "provider": provider
        })
        separator = "&" if "?" in target else "?"
        response = RedirectResponse(
            url=f"{request_origin(request)}{target}{separator}{query}",
            status_code=status.HTTP_302_FOUND
        )

    response.delete_cookie(PKCE_COOKIE_NAME, path=f"{settings.api_prefix}/auth/oauth")
    return response
