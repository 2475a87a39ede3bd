"""
Tests for the local user record service.
"""

import uuid

import pytest

from flux_api.models.auth import AuthUser, ProfileUpdateRequest
from flux_api.services import UserService
from flux_api.utils.exceptions import NotFoundError

from conftest import bound_columns
from factories.user_factory import IdentityFactory, ProviderUserFactory, UserRowFactory


@pytest.fixture
def service(fake_db) -> UserService:
    return UserService(db=fake_db)


@pytest.mark.unit
class TestUserService:

    @pytest.mark.asyncio
    async def test_sync_user_upserts_by_provider_id(self, service, fake_db):
        provider_user = ProviderUserFactory(
            email="nomad@example.com",
            user_metadata={"full_name": "Nomad"},
            identities=[IdentityFactory(), IdentityFactory(provider="github")]
        )
        user = AuthUser.from_provider(provider_user)
        fake_db.fetchrow.return_value = UserRowFactory(id=user.id)

        await service.sync_user(user)

        query, *args = fake_db.fetchrow.await_args.args
        assert "ON CONFLICT (id) DO UPDATE" in query
        assert args == [user.id, "nomad@example.com", "Nomad", "nomad", None, ["github"], True]

    @pytest.mark.asyncio
    async def test_get_user_missing(self, service, fake_db):
        with pytest.raises(NotFoundError):
            await service.get_user(str(uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_update_profile_only_sets_provided_fields(self, service, fake_db):
        user_id = str(uuid.uuid4())
        fake_db.fetchrow.return_value = UserRowFactory(id=user_id, currency="EUR")

        await service.update_profile(user_id, ProfileUpdateRequest(currency="EUR", timezone="Europe/Lisbon"))

        query, *args = fake_db.fetchrow.await_args.args
        assert bound_columns(query, args) == {"currency": "EUR", "timezone": "Europe/Lisbon", "id": user_id}
        assert len(args) == 3

    @pytest.mark.asyncio
    async def test_empty_update_returns_current_profile(self, service, fake_db):
        row = UserRowFactory()
        fake_db.fetchrow.return_value = row

        assert await service.update_profile(str(row["id"]), ProfileUpdateRequest()) == row
        assert "UPDATE" not in fake_db.fetchrow.await_args.args[0]

    @pytest.mark.asyncio
    async def test_first_user_id(self, service, fake_db):
        user_id = uuid.uuid4()
        fake_db.fetchval.return_value = user_id

        assert await service.get_first_user_id() == str(user_id)

    @pytest.mark.asyncio
    async def test_no_users(self, service, fake_db):
        assert await service.get_first_user_id() is None
