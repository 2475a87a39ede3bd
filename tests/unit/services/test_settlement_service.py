"""
Tests for the settlement service.
"""

import uuid
from decimal import Decimal

import pytest

from flux_api.models.settlement import SettlementCreateRequest, SettlementFilters
from flux_api.services import GroupService, SettlementService
from flux_api.services.settlement import build_settlement_filters
from flux_api.utils.constants import PaymentStatus
from flux_api.utils.exceptions import AuthorizationError, BusinessLogicError, NotFoundError

from factories.expense_factory import GroupRowFactory

USER_ID = str(uuid.uuid4())
FRIEND_ID = str(uuid.uuid4())


@pytest.fixture
def service(fake_db) -> SettlementService:
    return SettlementService(db=fake_db, groups=GroupService(db=fake_db))


def payment_request(**overrides) -> SettlementCreateRequest:
    data = {"payer_user_id": USER_ID, "payee_user_id": FRIEND_ID, "amount": "25.50"}
    data.update(overrides)
    return SettlementCreateRequest(**data)


@pytest.mark.unit
class TestSettlementFilters:

    def test_no_filters(self):
        assert build_settlement_filters(None) == ("", [])
        assert build_settlement_filters(SettlementFilters()) == ("", [])

    def test_all_filters(self):
        group_id = uuid.uuid4()
        counterparty = uuid.uuid4()

        sql, values = build_settlement_filters(
            SettlementFilters(group_id=group_id, user_id=counterparty, status=PaymentStatus.PENDING)
        )

        assert sql == (
            " AND p.group_id = $2"
            " AND (p.payer_user_id = $3 OR p.payee_user_id = $3)"
            " AND p.status = $4"
        )
        assert values == [group_id, counterparty, "pending"]


@pytest.mark.unit
class TestRecordPayment:

    @pytest.mark.asyncio
    async def test_caller_must_be_a_party(self, service, fake_db):
        request = payment_request(payer_user_id=str(uuid.uuid4()))

        with pytest.raises(AuthorizationError) as exc_info:
            await service.record_payment(USER_ID, request)

        assert exc_info.value.message == "You must be either the payer or the payee of the payment"
        assert fake_db.transactions == 0

    @pytest.mark.asyncio
    async def test_payee_may_record(self, service, fake_db):
        payment_id = uuid.uuid4()
        fake_db.conn.fetchval.return_value = payment_id
        fake_db.conn.fetchrow.return_value = {"id": payment_id, "payer_name": "Ravi"}

        result = await service.record_payment(FRIEND_ID, payment_request())

        assert result == {"id": payment_id, "payer_name": "Ravi"}
        args = fake_db.conn.fetchval.await_args.args[1:]
        assert args == (
            None, uuid.UUID(USER_ID), uuid.UUID(FRIEND_ID), Decimal("25.50"), "INR",
            "completed", "manual", None, True,
        )

    @pytest.mark.asyncio
    async def test_pending_payment_has_no_completion_time(self, service, fake_db):
        fake_db.conn.fetchval.return_value = uuid.uuid4()
        fake_db.conn.fetchrow.return_value = {}

        await service.record_payment(USER_ID, payment_request(status="pending", currency="usd"))

        args = fake_db.conn.fetchval.await_args.args
        assert args[5] == "USD"
        assert args[6] == "pending"
        assert args[9] is False

    @pytest.mark.asyncio
    async def test_group_payment_uses_group_currency(self, service, fake_db):
        group_id = uuid.uuid4()
        fake_db.conn.fetchrow.side_effect = [{"currency": "EUR", "is_active": True}, {"id": 1}]
        fake_db.conn.fetchval.side_effect = [2, uuid.uuid4()]

        await service.record_payment(USER_ID, payment_request(group_id=str(group_id)))

        insert_args = fake_db.conn.fetchval.await_args.args
        assert insert_args[1] == group_id
        assert insert_args[5] == "EUR"

    @pytest.mark.asyncio
    async def test_parties_must_be_group_members(self, service, fake_db):
        fake_db.conn.fetchrow.return_value = {"currency": "INR", "is_active": True}
        fake_db.conn.fetchval.return_value = 1

        with pytest.raises(BusinessLogicError) as exc_info:
            await service.record_payment(USER_ID, payment_request(group_id=str(uuid.uuid4())))

        assert exc_info.value.code == "NOT_GROUP_MEMBERS"
        assert fake_db.conn.fetchval.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_group(self, service, fake_db):
        fake_db.conn.fetchrow.return_value = None

        with pytest.raises(NotFoundError):
            await service.record_payment(USER_ID, payment_request(group_id=str(uuid.uuid4())))

        fake_db.conn.fetchval.assert_not_awaited()


@pytest.mark.unit
class TestGroupPayments:

    @pytest.mark.asyncio
    async def test_any_member_records_between_members(self, service, fake_db):
        group = GroupRowFactory()
        balances = [{"user_id": USER_ID, "balance": Decimal("-25.50")}]
        fake_db.fetchrow.return_value = group
        fake_db.fetchval.return_value = "member"
        fake_db.fetch.return_value = balances
        fake_db.conn.fetchrow.side_effect = [{"currency": "INR", "is_active": True}, {"id": 7}]
        fake_db.conn.fetchval.side_effect = [2, 7]

        outsider = str(uuid.uuid4())
        result = await service.record_group_payment(str(group["id"]), outsider, payment_request())

        assert result == {"settlement": {"id": 7}, "balances": balances}
        assert fake_db.conn.fetchval.await_args.args[1] == str(group["id"])

    @pytest.mark.asyncio
    async def test_missing_group(self, service, fake_db):
        fake_db.fetchrow.return_value = None

        with pytest.raises(NotFoundError):
            await service.record_group_payment(str(uuid.uuid4()), USER_ID, payment_request())

        assert fake_db.transactions == 0

    @pytest.mark.asyncio
    async def test_list_requires_membership(self, service, fake_db):
        fake_db.fetchrow.return_value = GroupRowFactory()
        fake_db.fetchval.return_value = None

        with pytest.raises(AuthorizationError):
            await service.list_group_payments(str(uuid.uuid4()), USER_ID)

        fake_db.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list(self, service, fake_db):
        group_id = str(uuid.uuid4())
        fake_db.fetchrow.return_value = GroupRowFactory()
        fake_db.fetchval.return_value = "member"
        fake_db.fetch.return_value = [{"id": 1}, {"id": 2}]

        assert await service.list_group_payments(group_id, USER_ID) == [{"id": 1}, {"id": 2}]
        assert fake_db.fetch.await_args.args[1] == group_id


@pytest.mark.unit
class TestListPayments:

    @pytest.mark.asyncio
    async def test_page_total_and_balances(self, service, fake_db):
        payments = [{"id": 1}]
        balances = [{"user_id": FRIEND_ID, "net_balance": Decimal("10.00")}]
        fake_db.fetchval.return_value = 1
        fake_db.fetch.side_effect = [payments, balances]

        result = await service.list_payments(USER_ID, limit=5, offset=10)

        assert result == (payments, 1, balances)
        page_query, *page_args = fake_db.fetch.await_args_list[0].args
        assert "LIMIT $2 OFFSET $3" in page_query
        assert page_args == [USER_ID, 5, 10]

    @pytest.mark.asyncio
    async def test_filters_shift_paging_params(self, service, fake_db):
        group_id = uuid.uuid4()
        fake_db.fetchval.return_value = 0
        fake_db.fetch.side_effect = [[], []]

        await service.list_payments(USER_ID, filters=SettlementFilters(group_id=group_id), limit=10, offset=0)

        count_query, *count_args = fake_db.fetchval.await_args.args
        assert "p.group_id = $2" in count_query
        assert count_args == [USER_ID, group_id]
        page_query, *page_args = fake_db.fetch.await_args_list[0].args
        assert "LIMIT $3 OFFSET $4" in page_query
        assert page_args == [USER_ID, group_id, 10, 0]
