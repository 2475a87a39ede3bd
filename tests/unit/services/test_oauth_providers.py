"""
Tests for the OAuth provider registry and PKCE helpers.
"""

import base64
import hashlib

import pytest

from flux_api.services.oauth_providers import (
    generate_pkce_pair,
    get_enabled_providers,
    get_provider,
    is_provider_supported,
)
from flux_api.utils.exceptions import BusinessLogicError


@pytest.mark.unit
class TestProviders:

    def test_enabled_providers(self):
        providers = {provider.name: provider for provider in get_enabled_providers()}

        assert set(providers) == {"github", "google"}
        assert providers["github"].display_name == "GitHub"
        assert providers["google"].display_name == "Google"
        assert providers["google"].scopes == "openid email profile"

    @pytest.mark.parametrize("name,supported", [
        ("github", True),
        ("google", True),
        ("GitHub", False),
        ("facebook", False),
        ("", False),
    ])
    def test_is_provider_supported(self, name, supported):
        assert is_provider_supported(name) is supported

    def test_get_unknown_provider(self):
        with pytest.raises(BusinessLogicError) as exc_info:
            get_provider("facebook")

        assert exc_info.value.code == "PROVIDER_NOT_SUPPORTED"
        assert exc_info.value.status_code == 400


@pytest.mark.unit
class TestPkce:

    def test_challenge_is_s256_of_verifier(self):
        verifier, challenge = generate_pkce_pair()

        digest = hashlib.sha256(verifier.encode("ascii")).digest()
        assert challenge == base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
        assert "=" not in challenge

    def test_verifier_length_within_rfc_bounds(self):
        verifier, _ = generate_pkce_pair()

        assert 43 <= len(verifier) <= 128

    def test_pairs_are_random(self):
        assert generate_pkce_pair()[0] != generate_pkce_pair()[0]
