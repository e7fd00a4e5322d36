"""
Revocation Coordinator - user-initiated termination of an authorization.

1. Mark the active authorization history row as revoked and commit.
2. Delete every live authorization of the (client, principal) pair from the
   token store, one by one.

The history commit is the system of record. Token cleanup is best effort:
a token that could not be deleted stays usable until it expires on its own,
and the revocation is still reported as successful. Consent is left intact,
so the user is not asked again for scopes already granted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from authserver.api.crud.authorization_history_crud import get_active_authorization
from authserver.api.crud.user_crud import get_user_by_id
from authserver.models.models import utcnow

from .pair_locks import PairLockRegistry, pair_locks
from .token_store import TokenStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPurgeResult:
    found: int
    deleted: int
    failed: int


class AuthorizationRevocationService:
    """Service for revoking OAuth2 authorizations."""

    def __init__(
        self,
        db: Session,
        token_store: TokenStore,
        locks: PairLockRegistry = pair_locks,
        clock: Callable = utcnow,
    ):
        self.db = db
        self.token_store = token_store
        self.locks = locks
        self.clock = clock

    def revoke_authorization(self, user_id: str, client_id: str) -> bool:
        """
        Revoke the active authorization of a user for a client.

        Args:
            user_id: The user's id
            client_id: Internal id of the OAuth2 client

        Returns:
            True once the history row is committed as revoked, False if there
            was no active authorization (nothing is written in that case)
        """
        logger.info(f"Attempting to revoke authorization for user {user_id} and client {client_id}")

        with self.locks.hold(user_id, client_id):
            try:
                active = get_active_authorization(self.db, user_id, client_id, for_update=True)
                if active is None:
                    logger.warning(
                        f"No active authorization found for user {user_id} and client {client_id}"
                    )
                    self.db.rollback()
                    return False

                active.mark_as_revoked(self.clock())
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(f"Authorization {active.id} marked as revoked for user {user_id} and client {client_id}")

        try:
            user = get_user_by_id(self.db, user_id)
        except Exception as e:
            logger.error(
                f"Failed to look up user {user_id}, live tokens for client {client_id} "
                f"were not purged: {e}"
            )
            return True

        if user is None:
            # History is already committed; nothing to key the token lookup on
            logger.error(f"User {user_id} not found, live tokens for client {client_id} were not purged")
            return True

        result = self.purge_tokens(client_id, user.username)
        logger.info(
            f"Revoked authorization for user {user_id} and client {client_id}. "
            f"Deleted {result.deleted}/{result.found} token entries ({result.failed} failed)."
        )
        return True

    def purge_tokens(self, client_id: str, principal_name: str) -> TokenPurgeResult:
        """Delete each live authorization of the pair; failures are logged, never raised."""
        try:
            authorizations = self.token_store.find_by_client_and_principal(client_id, principal_name)
        except Exception as e:
            logger.error(
                f"Failed to list live tokens for client {client_id} and principal {principal_name}: {e}"
            )
            return TokenPurgeResult(found=0, deleted=0, failed=0)

        deleted = failed = 0
        for authorization in authorizations:
            try:
                self.token_store.delete(authorization.id)
                deleted += 1
            except Exception as e:
                failed += 1
                logger.warning(
                    f"Failed to delete token entry {authorization.id} for client {client_id} "
                    f"and principal {principal_name}: {e}"
                )

        return TokenPurgeResult(found=len(authorizations), deleted=deleted, failed=failed)
