"""
Factories for expense, category and group rows.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import factory
from faker import Faker

fake = Faker()


def now() -> datetime:
    return datetime.now(timezone.utc)


class CategoryRowFactory(factory.DictFactory):
    """Row of the ``expense_categories`` table."""

    id = factory.LazyFunction(uuid.uuid4)
    name = factory.Sequence(lambda n: f"Category {n}")
    description = factory.Faker("sentence")
    icon_name = "tag"
    color_hex = "#3B82F6"
    parent_category_id = None
    is_system_category = False
    is_public = False
    created_by_user_id = factory.LazyFunction(uuid.uuid4)
    created_at = factory.LazyFunction(now)
    updated_at = factory.LazyFunction(now)


class ExpenseRowFactory(factory.DictFactory):
    """Expense row as returned by the listing query."""

    id = factory.LazyFunction(uuid.uuid4)
    description = factory.Faker("sentence", nb_words=3)
    amount = factory.LazyFunction(
        lambda: Decimal(fake.random_int(min=100, max=500000)) / 100
    )
    currency = "INR"
    category_id = None
    expense_date = factory.LazyFunction(date.today)
    location = None
    paid_by_user_id = factory.LazyFunction(uuid.uuid4)
    group_id = None
    split_method = "equal"
    split_data = None
    notes = None
    receipt_url = None
    status = "active"
    is_settled = False
    is_deleted = False
    created_at = factory.LazyFunction(now)
    updated_at = factory.LazyFunction(now)
    category_name = None
    paid_by_name = factory.Faker("first_name")
    group_name = None


class GroupRowFactory(factory.DictFactory):
    """Row of the ``groups`` table."""

    id = factory.LazyFunction(uuid.uuid4)
    name = factory.Sequence(lambda n: f"Trip {n}")
    description = factory.Faker("sentence")
    currency = "INR"
    default_split_method = "equal"
    is_public = False
    join_code = factory.Sequence(lambda n: f"{n:08X}")
    created_by_user_id = factory.LazyFunction(uuid.uuid4)
    is_active = True
    created_at = factory.LazyFunction(now)
    updated_at = factory.LazyFunction(now)
