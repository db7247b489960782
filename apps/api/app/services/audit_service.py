"""Audit logging service - append-only record of mutating actions.

Audit writes are best-effort companions to the primary write: they run after
the primary mutation has committed, and a failure is logged, never raised.

Security guidelines:
- NEVER log secrets (password hashes, tokens)
- Store entity snapshots (before/after), not request payloads
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel

from app.db.enums import AuditAction, AuditEntityType
from app.db.gateway import PersistenceGateway
from app.schemas.audit import AuditLogRead
from app.schemas.auth import UserSession

logger = logging.getLogger(__name__)


def snapshot(entity: BaseModel | None) -> dict[str, Any] | None:
    """JSON-safe snapshot of a record for before_json/after_json."""
    if entity is None:
        return None
    return json.loads(entity.model_dump_json())


def record(
    gw: PersistenceGateway,
    session: UserSession,
    entity_type: AuditEntityType,
    entity_id: str,
    action: AuditAction,
    *,
    site_id: str | None = None,
    before: BaseModel | None = None,
    after: BaseModel | None = None,
    reason: str | None = None,
) -> AuditLogRead | None:
    """
    Append an audit entry. Returns None if the write failed.

    Call only after the primary mutation has committed.
    """
    entry = AuditLogRead(
        id=f"audit-{uuid4().hex}",
        org_id=session.org_id,
        user_id=session.user_id,
        site_id=site_id,
        entity_type=entity_type.value,
        entity_id=entity_id,
        action=action.value,
        before_json=snapshot(before),
        after_json=snapshot(after),
        reason=reason,
        created_at=datetime.now(timezone.utc),
    )
    try:
        gw.add_audit(entry)
    except Exception:
        logger.exception(
            "Audit write failed for %s %s %s", entity_type.value, action.value, entity_id,
            extra={"user_id": session.user_id, "org_id": session.org_id, "site_id": site_id},
        )
        return None
    return entry


def list_entries(
    gw: PersistenceGateway,
    session: UserSession,
    limit: int,
) -> list[AuditLogRead]:
    """Newest entries of the caller's org."""
    return gw.list_audit(session.org_id, limit)
