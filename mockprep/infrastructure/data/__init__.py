"""
Relational persistence for interviews and answers.
"""

from .tables import MockInterview, UserAnswer
from .database import create_db_engine, init_db, session_scope
from .gateway import (
    Identity, IdentityProvider, StaticIdentityProvider,
    EnvironmentIdentityProvider, PersistenceGateway
)

__all__ = [
    'MockInterview', 'UserAnswer',
    'create_db_engine', 'init_db', 'session_scope',
    'Identity', 'IdentityProvider', 'StaticIdentityProvider',
    'EnvironmentIdentityProvider', 'PersistenceGateway',
]
