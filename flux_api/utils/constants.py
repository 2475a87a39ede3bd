"""
Application constants.
"""

from enum import Enum


class SortOrder(str, Enum):
    """Sort directions accepted by list endpoints."""
    ASC = "ASC"
    DESC = "DESC"


class ExpenseSortField(str, Enum):
    """Columns an expense listing may be ordered by."""
    CREATED_AT = "created_at"
    EXPENSE_DATE = "expense_date"
    AMOUNT = "amount"
    DESCRIPTION = "description"


class SplitMethod(str, Enum):
    """How a group expense is divided between members."""
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    EXACT = "exact"
    MANUAL = "manual"


class ExpenseStatus(str, Enum):
    """Expense lifecycle states."""
    ACTIVE = "active"
    SETTLED = "settled"
    DISPUTED = "disputed"
    DELETED = "deleted"


class GroupRole(str, Enum):
    """Member roles inside a group."""
    ADMIN = "admin"
    MEMBER = "member"


class PaymentStatus(str, Enum):
    """Settlement payment states; only completed payments move balances."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# API Response constants
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}

# Pagination constants
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
TEST_CATEGORY_LIMIT = 100

# Expense constants
DEFAULT_CURRENCY = "INR"
MAX_EXPENSE_AMOUNT = 999_999_999.99
MAX_DESCRIPTION_LENGTH = 500
MAX_NAME_LENGTH = 100

# Auth constants
MIN_PASSWORD_LENGTH = 6
PKCE_COOKIE_NAME = "flux_pkce_verifier"
PKCE_COOKIE_MAX_AGE = 600  # seconds

# Group constants
JOIN_CODE_LENGTH = 8
DEFAULT_PAYMENT_METHOD = "manual"
