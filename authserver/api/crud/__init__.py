"""
API CRUD Operations

This package contains the database query modules used by the services.

Modules:
- authorization_history_crud: Authorization history store access layer
- client_crud: OAuth2 client lookups
- user_crud: User lookups

These modules use the SQLAlchemy ORM query API.
"""

from .authorization_history_crud import *  # noqa: F401, F403
from .client_crud import *  # noqa: F401, F403
from .user_crud import *  # noqa: F401, F403
