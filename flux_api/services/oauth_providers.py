"""
OAuth provider registry and PKCE helpers.
"""
import base64
import hashlib
import secrets
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from ..utils.exceptions import BusinessLogicError


class OAuthProvider(BaseModel):
    """Static description of a supported OAuth provider."""
    name: str
    display_name: str
    icon: str
    scopes: Optional[str] = None
    enabled: bool = True


OAUTH_PROVIDERS: Dict[str, OAuthProvider] = {
    "github": OAuthProvider(
        name="github",
        display_name="GitHub",
        icon="github",
    ),
    "google": OAuthProvider(
        name="google",
        display_name="Google",
        icon="google",
        scopes="openid email profile",
    ),
}


def get_enabled_providers() -> List[OAuthProvider]:
    return [provider for provider in OAUTH_PROVIDERS.values() if provider.enabled]


def is_provider_supported(name: str) -> bool:
    provider = OAUTH_PROVIDERS.get(name)
    return provider is not None and provider.enabled


def get_provider(name: str) -> OAuthProvider:
    """Look up an enabled provider or raise ``PROVIDER_NOT_SUPPORTED``."""
    if not is_provider_supported(name):
        raise BusinessLogicError(
            message=f"Provider {name} is not supported",
            code="PROVIDER_NOT_SUPPORTED"
        )
    return OAUTH_PROVIDERS[name]


def generate_pkce_pair() -> Tuple[str, str]:
    """
    Return a ``(code_verifier, code_challenge)`` pair.

    The challenge is the unpadded base64url SHA-256 of the verifier (RFC 7636
    ``S256`` method).
    """
    verifier = secrets.token_urlsafe(48)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge
