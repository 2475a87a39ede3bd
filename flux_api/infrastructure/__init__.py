"""
Infrastructure layer for external service clients.
"""
from .identity import IdentityProviderClient, cleanup_identity_client, get_identity_client
from .postgres import PostgresDatabase, cleanup_database, get_database

__all__ = [
    "PostgresDatabase",
    "get_database",
    "cleanup_database",
    "IdentityProviderClient",
    "get_identity_client",
    "cleanup_identity_client",
]
