"""
Integration tests for group endpoints.
"""

import uuid

import pytest

from flux_api.utils.exceptions import AuthorizationError, BusinessLogicError, NotFoundError

from factories.expense_factory import GroupRowFactory

GROUPS_URL = "/api/v1/groups"


@pytest.mark.integration
class TestGroups:

    def test_requires_authentication(self, client, group_service):
        assert client.get(GROUPS_URL).status_code == 401
        group_service.list_groups.assert_not_called()

    def test_list(self, client, authenticated, group_service):
        group_service.list_groups.return_value = GroupRowFactory.create_batch(2)

        response = client.get(GROUPS_URL)

        assert response.status_code == 200
        assert response.json()["data"]["total"] == 2
        group_service.list_groups.assert_awaited_once_with(authenticated.id, include_archived=False)

    def test_create(self, client, authenticated, group_service):
        group_service.create_group.return_value = {**GroupRowFactory(name="Lisbon"), "member_count": 1}

        response = client.post(GROUPS_URL, json={"name": "  Lisbon ", "currency": "eur"})

        assert response.status_code == 201
        assert response.json()["message"] == "Group created successfully"
        user_id, request = group_service.create_group.await_args.args
        assert user_id == authenticated.id
        assert (request.name, request.currency) == ("Lisbon", "EUR")

    @pytest.mark.parametrize("payload,field", [
        ({}, "name"),
        ({"name": "   "}, "name"),
        ({"name": "Trip", "currency": "EURO"}, "currency"),
        ({"name": "Trip", "default_split_method": "manual"}, "default_split_method"),
    ])
    def test_create_validation(self, client, authenticated, group_service, payload, field):
        response = client.post(GROUPS_URL, json=payload)

        assert response.status_code == 400
        assert field in response.json()["details"]
        group_service.create_group.assert_not_called()

    def test_join_normalizes_code(self, client, authenticated, group_service):
        group = GroupRowFactory()
        group_service.join_group.return_value = {"group": group, "members": [], "balances": []}

        response = client.post(f"{GROUPS_URL}/join", json={"join_code": " ab12cd34 "})

        assert response.status_code == 200
        assert response.json()["message"] == "Successfully joined group"
        assert response.json()["data"]["group"]["join_code"] == group["join_code"]
        group_service.join_group.assert_awaited_once_with(authenticated.id, "AB12CD34")

    def test_join_blank_code(self, client, authenticated, group_service):
        response = client.post(f"{GROUPS_URL}/join", json={"join_code": "   "})

        assert response.status_code == 400
        assert response.json()["details"] == {"join_code": ["Join code is required"]}

    def test_join_unknown_code(self, client, authenticated, group_service):
        group_service.join_group.side_effect = NotFoundError(message="Invalid join code or group not found")

        response = client.post(f"{GROUPS_URL}/join", json={"join_code": "NOPE0000"})

        assert response.status_code == 404
        assert response.json()["error"] == "Invalid join code or group not found"

    def test_details(self, client, authenticated, group_service):
        group = GroupRowFactory()
        group_service.get_group_details.return_value = {
            "group": group,
            "members": [{"user_id": authenticated.id, "role": "admin"}],
            "balances": [],
            "role": "admin",
        }

        response = client.get(f"{GROUPS_URL}/{group['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["role"] == "admin"
        group_service.get_group_details.assert_awaited_once_with(str(group["id"]), authenticated.id)

    def test_details_for_non_member(self, client, authenticated, group_service):
        group_service.get_group_details.side_effect = AuthorizationError(
            message="You are not a member of this group"
        )

        response = client.get(f"{GROUPS_URL}/{uuid.uuid4()}")

        assert response.status_code == 403

    def test_details_malformed_id(self, client, authenticated, group_service):
        response = client.get(f"{GROUPS_URL}/abc")

        assert response.status_code == 400
        assert "group_id" in response.json()["details"]

    def test_details_for_missing_group(self, client, authenticated, group_service):
        group_id = uuid.uuid4()
        group_service.get_group_details.side_effect = NotFoundError(
            message="Group not found", resource_type="group", resource_id=str(group_id)
        )

        response = client.get(f"{GROUPS_URL}/{group_id}")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.integration
class TestGroupSettings:

    def test_update(self, client, authenticated, group_service):
        group = GroupRowFactory(name="Goa 2025")
        group_service.update_group.return_value = group

        response = client.put(f"{GROUPS_URL}/{group['id']}", json={"name": " Goa 2025 ", "currency": "usd"})

        assert response.status_code == 200
        assert response.json()["message"] == "Group updated successfully"
        group_id, user_id, request = group_service.update_group.await_args.args
        assert (group_id, user_id) == (str(group["id"]), authenticated.id)
        assert request.model_dump(exclude_unset=True) == {"name": "Goa 2025", "currency": "USD"}

    @pytest.mark.parametrize("payload,field,message", [
        ({}, "_root", "At least one field must be provided"),
        ({"name": None}, "name", "name cannot be null"),
        ({"is_active": None}, "is_active", "is_active cannot be null"),
        ({"join_code": "ABCDEF12"}, "join_code", None),
    ])
    def test_update_validation(self, client, authenticated, group_service, payload, field, message):
        response = client.put(f"{GROUPS_URL}/{uuid.uuid4()}", json=payload)

        assert response.status_code == 400
        details = response.json()["details"]
        assert field in details
        if message is not None:
            assert details[field] == [message]
        group_service.update_group.assert_not_called()

    def test_update_by_member(self, client, authenticated, group_service):
        group_service.update_group.side_effect = AuthorizationError("You must be a group admin to update the group")

        response = client.put(f"{GROUPS_URL}/{uuid.uuid4()}", json={"description": "Beach week"})

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_delete_archives(self, client, authenticated, group_service):
        group_id = uuid.uuid4()

        response = client.delete(f"{GROUPS_URL}/{group_id}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Group deleted successfully"}
        group_service.archive_group.assert_awaited_once_with(str(group_id), authenticated.id)

    def test_view_join_code(self, client, authenticated, group_service):
        group_service.get_join_code.return_value = "CAFE0042"

        response = client.get(f"{GROUPS_URL}/{uuid.uuid4()}/join-code")

        assert response.status_code == 200
        assert response.json()["data"] == {"join_code": "CAFE0042"}

    def test_regenerate_join_code(self, client, authenticated, group_service):
        group_id = uuid.uuid4()
        group_service.regenerate_join_code.return_value = "0000BEEF"

        response = client.post(f"{GROUPS_URL}/{group_id}/join-code")

        assert response.status_code == 200
        assert response.json()["message"] == "Join code regenerated successfully"
        assert response.json()["data"]["join_code"] == "0000BEEF"
        group_service.regenerate_join_code.assert_awaited_once_with(str(group_id), authenticated.id)


@pytest.mark.integration
class TestGroupMembers:

    def test_list(self, client, authenticated, group_service):
        group_id = uuid.uuid4()
        group_service.list_members.return_value = [{"user_id": authenticated.id, "role": "admin"}]

        response = client.get(f"{GROUPS_URL}/{group_id}/members", params={"include_inactive": "true"})

        assert response.status_code == 200
        assert response.json()["data"]["total"] == 1
        group_service.list_members.assert_awaited_once_with(str(group_id), authenticated.id, include_inactive=True)

    def test_add(self, client, authenticated, group_service):
        new_user = uuid.uuid4()
        group_service.add_member.return_value = {"user_id": str(new_user), "role": "member"}

        response = client.post(
            f"{GROUPS_URL}/{uuid.uuid4()}/members",
            json={"user_id": str(new_user), "nickname": "Sam"}
        )

        assert response.status_code == 201
        assert response.json()["message"] == "Member added successfully"
        request = group_service.add_member.await_args.args[2]
        assert (request.user_id, request.role.value, request.nickname) == (new_user, "member", "Sam")

    def test_add_existing_member(self, client, authenticated, group_service):
        group_service.add_member.side_effect = BusinessLogicError(
            message="User is already a member of this group", code="ALREADY_MEMBER"
        )

        response = client.post(f"{GROUPS_URL}/{uuid.uuid4()}/members", json={"user_id": str(uuid.uuid4())})

        assert response.status_code == 400
        assert response.json()["code"] == "ALREADY_MEMBER"

    def test_add_requires_user_id(self, client, authenticated, group_service):
        response = client.post(f"{GROUPS_URL}/{uuid.uuid4()}/members", json={"role": "member"})

        assert response.status_code == 400
        assert "user_id" in response.json()["details"]
        group_service.add_member.assert_not_called()

    def test_get_missing_member(self, client, authenticated, group_service):
        group_service.get_member.side_effect = NotFoundError(message="Member not found in this group")

        response = client.get(f"{GROUPS_URL}/{uuid.uuid4()}/members/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"] == "Member not found in this group"

    def test_update(self, client, authenticated, group_service):
        member_id = uuid.uuid4()
        group_service.update_member.return_value = {"user_id": str(member_id), "role": "admin"}

        response = client.put(f"{GROUPS_URL}/{uuid.uuid4()}/members/{member_id}", json={"role": "admin"})

        assert response.status_code == 200
        assert response.json()["message"] == "Member updated successfully"
        assert group_service.update_member.await_args.args[2] == str(member_id)

    @pytest.mark.parametrize("payload,field", [
        ({}, "_root"),
        ({"role": None}, "role"),
        ({"role": "owner"}, "role"),
    ])
    def test_update_validation(self, client, authenticated, group_service, payload, field):
        response = client.put(f"{GROUPS_URL}/{uuid.uuid4()}/members/{uuid.uuid4()}", json=payload)

        assert response.status_code == 400
        assert field in response.json()["details"]
        group_service.update_member.assert_not_called()

    def test_leave(self, client, authenticated, group_service):
        group_id = uuid.uuid4()

        response = client.delete(f"{GROUPS_URL}/{group_id}/members/{authenticated.id}")

        assert response.status_code == 200
        assert response.json()["message"] == "You have left the group"
        group_service.remove_member.assert_awaited_once_with(str(group_id), authenticated.id, authenticated.id)

    def test_remove(self, client, authenticated, group_service):
        response = client.delete(f"{GROUPS_URL}/{uuid.uuid4()}/members/{uuid.uuid4()}")

        assert response.status_code == 200
        assert response.json()["message"] == "Member removed successfully"

    def test_last_admin_cannot_leave(self, client, authenticated, group_service):
        group_service.remove_member.side_effect = BusinessLogicError(
            message="Cannot remove the last admin from the group", code="LAST_ADMIN"
        )

        response = client.delete(f"{GROUPS_URL}/{uuid.uuid4()}/members/{authenticated.id}")

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Cannot remove the last admin from the group",
            "code": "LAST_ADMIN",
        }


@pytest.mark.integration
class TestGroupSettlements:

    def test_list(self, client, authenticated, settlement_service):
        group_id = uuid.uuid4()
        settlement_service.list_group_payments.return_value = [{"id": 1}, {"id": 2}]

        response = client.get(f"{GROUPS_URL}/{group_id}/settlements")

        assert response.status_code == 200
        assert response.json()["data"] == {"settlements": [{"id": 1}, {"id": 2}], "total": 2}
        settlement_service.list_group_payments.assert_awaited_once_with(str(group_id), authenticated.id)

    def test_record(self, client, authenticated, settlement_service):
        group_id = uuid.uuid4()
        payee = uuid.uuid4()
        settlement_service.record_group_payment.return_value = {"settlement": {"id": 3}, "balances": []}

        response = client.post(
            f"{GROUPS_URL}/{group_id}/settlements",
            json={"payer_user_id": authenticated.id, "payee_user_id": str(payee), "amount": 40}
        )

        assert response.status_code == 201
        assert response.json() == {
            "success": True,
            "data": {"settlement": {"id": 3}, "balances": []},
            "message": "Settlement recorded successfully",
        }
        called_group, caller, request = settlement_service.record_group_payment.await_args.args
        assert (called_group, caller, request.payee_user_id) == (str(group_id), authenticated.id, payee)

    def test_record_non_member_parties(self, client, authenticated, settlement_service):
        settlement_service.record_group_payment.side_effect = BusinessLogicError(
            message="Both payer and payee must be active members of the group", code="NOT_GROUP_MEMBERS"
        )

        response = client.post(
            f"{GROUPS_URL}/{uuid.uuid4()}/settlements",
            json={"payer_user_id": str(uuid.uuid4()), "payee_user_id": str(uuid.uuid4()), "amount": "5.00"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "NOT_GROUP_MEMBERS"
