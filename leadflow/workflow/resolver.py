"""Selects the workflow definition for a (business, intent) pair."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from ..constants import UNKNOWN_INTENT
from ..errors import NotFoundError
from ..persistence.models import WorkflowDefinitionRecord
from ..persistence.repository import Directory
from .models import ResolvedWorkflow, WorkflowDefinition

logger = logging.getLogger(__name__)


def _resolved(record: WorkflowDefinitionRecord) -> ResolvedWorkflow:
    return ResolvedWorkflow(
        workflow_id=record.workflow_id,
        workflow_key=record.workflow_key,
        workflow_name=record.workflow_name,
        definition=WorkflowDefinition.parse(record.definition),
    )


class WorkflowResolver:
    """Resolve workflows through the four-level fallback chain.

    1. business workflow assigned to the intent
    2. business workflow assigned to ``UNKNOWN``
    3. business-type default for the intent
    4. business-type default for ``UNKNOWN``

    With ``cache=True`` resolutions are memoised per (business, intent) until
    :meth:`invalidate` is called.
    """

    def __init__(self, directory: Directory, cache: bool = False) -> None:
        self._directory = directory
        self._cache_enabled = cache
        self._cache: Dict[Tuple[str, str], ResolvedWorkflow] = {}

    async def resolve(self, business_id: str, intent_name: str) -> ResolvedWorkflow:
        key = (business_id, intent_name)
        if self._cache_enabled and key in self._cache:
            return self._cache[key]

        business = await self._directory.get_business(business_id)
        if business is None:
            raise NotFoundError(f"Business {business_id} not found")

        record = await self._directory.find_business_workflow(business_id, intent_name)
        if record is None and intent_name != UNKNOWN_INTENT:
            logger.debug(
                f"No workflow found for intent {intent_name}, trying {UNKNOWN_INTENT} for business"
            )
            record = await self._directory.find_business_workflow(business_id, UNKNOWN_INTENT)
        if record is None:
            logger.debug(
                f"No business-specific workflow found, checking defaults for "
                f"business type {business.business_type}"
            )
            record = await self._directory.find_default_workflow(
                business.business_type, intent_name
            )
        if record is None and intent_name != UNKNOWN_INTENT:
            record = await self._directory.find_default_workflow(
                business.business_type, UNKNOWN_INTENT
            )
        if record is None:
            raise NotFoundError(
                f"No workflow found for business {business_id} "
                f"(type: {business.business_type}) and intent {intent_name}"
            )

        resolved = _resolved(record)
        logger.info(
            f"Resolved workflow {resolved.workflow_key} for business {business_id} "
            f"and intent {intent_name}"
        )
        if self._cache_enabled:
            self._cache[key] = resolved
        return resolved

    async def list_business_workflows(
        self, business_id: str
    ) -> list[Tuple[str, ResolvedWorkflow]]:
        pairs = await self._directory.list_business_workflows(business_id)
        return [(intent, _resolved(record)) for intent, record in pairs]

    def invalidate(self, business_id: Optional[str] = None) -> None:
        """Drop cached resolutions, for one business or all of them."""
        if business_id is None:
            self._cache.clear()
            return
        for key in [k for k in self._cache if k[0] == business_id]:
            del self._cache[key]
