# core_portal/services/audit_service.py

from uuid import UUID
from typing import Optional, Dict, Any
from loguru import logger

from core_portal.models.audit import AuditLog
from core_portal.models.user import User
from core_portal.core.database import AsyncSessionLocal


async def log_activity(
    action: str,
    actor: User,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
    remarks: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
):
    """
    Writes an audit entry in its own session so it can run from
    BackgroundTasks after the request session has closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            session.add(AuditLog(
                actor_id=actor.id,
                actor_role=actor.role.value,
                actor_name=actor.name,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                remarks=remarks,
                details=details or {},
            ))
            await session.commit()
        except Exception as e:
            logger.error(f"Audit log write failed for {action}: {e}")
            await session.rollback()
