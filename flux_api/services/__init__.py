"""
Business logic services.
"""
from .auth import AuthService
from .category import CategoryService
from .expense import ExpenseService
from .group import GroupService
from .migration import MigrationRunner
from .settlement import SettlementService
from .user import UserService

__all__ = [
    "AuthService",
    "CategoryService",
    "ExpenseService",
    "GroupService",
    "MigrationRunner",
    "SettlementService",
    "UserService",
]
