"""Fire-and-forget audit log sink."""

from __future__ import annotations

import logging
from typing import Optional, Union

from .models import AuditAction
from .repository import LeagueRepository


log = logging.getLogger(__name__)


class AuditLog:
    def __init__(self, repository: LeagueRepository) -> None:
        self._repository = repository

    def record(
        self,
        user_id: Optional[str],
        action: Union[AuditAction, str],
        entity_type: str,
        summary: str,
        entity_id: Optional[Union[int, str]] = None,
    ) -> None:
        """Write one audit row. Failures are logged, never raised."""

        if not user_id:
            return
        action_value = action.value if isinstance(action, AuditAction) else action
        try:
            self._repository.add_audit_entry(
                user_id,
                action=action_value,
                summary=summary,
                entity_type=entity_type,
                entity_id=None if entity_id is None else str(entity_id),
            )
        except Exception:
            log.exception("Failed to record audit entry for %s on %s", action_value, entity_type)


__all__ = ["AuditLog"]
