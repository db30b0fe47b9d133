from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from psycopg2 import sql

from .risk_store import RiskStore

"""Tenant-scoped transaction boundary.

Every tenant owns a PostgreSQL schema holding its risk tables. Instead of
interpolating the tenant id into table references, the transaction sets
search_path with SET LOCAL, composed through psycopg2.sql.Identifier after an
allow-list check. SET LOCAL ends with the transaction, so a pooled connection
never leaks one tenant's scope into the next request.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "TenantScopeError",
    "validate_tenant_id",
    "tenant_transaction",
]

_TENANT_ID_RE = re.compile(r"^[A-Za-z0-9_]{1,63}$")


class TenantScopeError(Exception):
    pass


def validate_tenant_id(tenant_id: str | None) -> str:
    if not tenant_id or not _TENANT_ID_RE.match(tenant_id):
        raise TenantScopeError(f"invalid tenant identifier: {tenant_id!r}")
    return tenant_id


@contextmanager
def tenant_transaction(connection: Any, tenant_id: str, *, read_only: bool = False) -> Iterator[RiskStore]:
    """Open one transaction scoped to ``tenant_id`` and yield a RiskStore.

    Commits when the block exits normally (rolls back instead when
    ``read_only``); any exception, including a failed COMMIT, rolls back and
    propagates.
    """
    schema = validate_tenant_id(tenant_id)
    cursor = connection.cursor()
    try:
        cursor.execute(sql.SQL("SET LOCAL search_path TO {}").format(sql.Identifier(schema)))
        yield RiskStore(cursor)
        if read_only:
            connection.rollback()
        else:
            connection.commit()
    except BaseException:
        try:
            connection.rollback()
        except Exception:  # pragma: no cover - connection already gone
            logger.debug("rollback failed for tenant=%s", schema, exc_info=True)
        raise
    finally:
        cursor.close()
