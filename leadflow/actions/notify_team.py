from __future__ import annotations

import logging
from typing import Any, Dict

from ..contracts import WorkflowExecutionContext
from ..persistence.models import utcnow
from .base import BaseAction

logger = logging.getLogger(__name__)


class NotifyTeamAction(BaseAction):
    type = "notify_team"

    async def execute(
        self, params: Dict[str, Any], context: WorkflowExecutionContext
    ) -> Dict[str, Any]:
        team = params.get("team")
        priority = params.get("priority") or "normal"
        logger.info(f"[NOTIFICATION] Team: {team}, Priority: {priority}")
        logger.info(f"Message: {params.get('message')}")
        return {"notified": True, "team": team, "timestamp": utcnow().isoformat()}
