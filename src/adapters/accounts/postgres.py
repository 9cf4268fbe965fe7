"""
PostgreSQL account directory - Implements PrincipalDirectory and AccountStatusMutator.

Principals authenticate with an API key whose bcrypt hash lives in the
``accounts`` table. The same table holds the account standing that
moderation side effects change: suspension and breeder visibility.
"""

import logging

from psycopg_pool import ConnectionPool

from src.domain.exceptions import NotFoundError
from src.domain.models import AccountStatusChange, Principal
from src.domain.ports import AccountEffect, ActorRole

from .credentials import check_api_key, hash_api_key

logger = logging.getLogger(__name__)


class PostgresAccountDirectory:
    """
    Implements PrincipalDirectory and AccountStatusMutator via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, pool: ConnectionPool, bcrypt_cost: int = 10) -> None:
        self._pool = pool
        self._bcrypt_cost = bcrypt_cost

    def ensure_principal(self, principal: Principal, api_key: str) -> bool:
        """
        Idempotently register a principal.

        INSERT ... ON CONFLICT DO NOTHING makes repeated startup seeding a no-op.

        Returns:
            True if created, False if the id was already registered
        """
        sql = """
            INSERT INTO accounts (id, role, display_name, api_key_hash,
                                  can_manage_breeders, can_manage_reports)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (id) DO NOTHING
        """
        api_key_hash = hash_api_key(api_key, self._bcrypt_cost)

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                sql,
                (
                    principal.id,
                    principal.role.value,
                    principal.display_name,
                    api_key_hash,
                    principal.can_manage_breeders,
                    principal.can_manage_reports,
                ),
            )
            conn.commit()
            return cursor.rowcount == 1

    def authenticate(self, principal_id: str, api_key: str) -> Principal | None:
        """
        Resolve credentials to an active principal.

        bcrypt always runs (dummy hash for unknown ids). A suspension whose
        end date has passed no longer blocks the principal.
        """
        sql = """
            SELECT role, display_name, api_key_hash, can_manage_breeders, can_manage_reports,
                   status = 'active'
                       OR (suspended_until IS NOT NULL AND suspended_until <= NOW()) AS active
            FROM accounts
            WHERE id = %s
        """

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (principal_id,))
            row = cursor.fetchone()

        valid = check_api_key(api_key, row[2] if row is not None else None)
        if row is None or not valid:
            return None
        if not row[5]:
            logger.info("Rejected suspended principal %s", principal_id)
            return None

        return Principal(
            id=principal_id,
            role=ActorRole(row[0]),
            display_name=row[1],
            can_manage_breeders=row[3],
            can_manage_reports=row[4],
        )

    def apply(self, change: AccountStatusChange) -> None:
        """
        Apply an account standing change.

        Raises:
            NotFoundError: No account with this id (logged by the engine)
        """
        if change.effect == AccountEffect.PUBLISH_VERIFIED_BREEDER:
            sql = """
                UPDATE accounts
                SET breeder_verified = TRUE, breeder_public = TRUE, updated_at = NOW()
                WHERE id = %s
            """
            params: tuple = (change.subject_id,)
        elif change.effect == AccountEffect.REVOKE_BREEDER_VERIFICATION:
            sql = """
                UPDATE accounts
                SET breeder_verified = FALSE, breeder_public = FALSE, updated_at = NOW()
                WHERE id = %s
            """
            params = (change.subject_id,)
        else:
            sql = """
                UPDATE accounts
                SET status = 'suspended',
                    suspension_reason = %s,
                    suspended_until = CASE
                        WHEN %s::int IS NULL THEN NULL
                        ELSE NOW() + make_interval(days => %s::int)
                    END,
                    updated_at = NOW()
                WHERE id = %s
            """
            params = (
                change.reason,
                change.suspension_days,
                change.suspension_days,
                change.subject_id,
            )

        with self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            conn.commit()
            if cursor.rowcount != 1:
                raise NotFoundError(f"Account not found: {change.subject_id}")

        logger.info("Account %s: %s", change.subject_id, change.effect.value)
