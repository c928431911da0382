"""Runs the business-configured workflow for an AI classification result."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..contracts import AiProcessResult, BusinessInfo, WorkflowExecutionContext
from ..errors import NotFoundError
from ..persistence.repository import Directory
from ..security.tokens import decrypt_token
from .executor import WorkflowExecutor
from .models import WorkflowExecutionResult
from .resolver import WorkflowResolver

logger = logging.getLogger(__name__)


class WorkflowRunner:
    def __init__(
        self,
        directory: Directory,
        resolver: WorkflowResolver,
        executor: WorkflowExecutor,
        encryption_key: Optional[str] = None,
    ) -> None:
        self._directory = directory
        self._resolver = resolver
        self._executor = executor
        self._encryption_key = encryption_key

    async def run(
        self, ai_result: AiProcessResult, tenant_id: Optional[str] = None
    ) -> WorkflowExecutionResult:
        """Resolve and execute the workflow for ``ai_result``.

        Raises:
            NotFoundError: If the lead, its active conversation, the channel
                account or a matching workflow is missing.
        """
        intent = ai_result.intent.intent
        logger.info(f"Processing AI result for lead {ai_result.lead_id}, intent: {intent}")
        context = await self.build_context(ai_result, tenant_id)
        workflow = await self._resolver.resolve(ai_result.business_id, intent)
        return await self._executor.execute(
            workflow.workflow_id,
            workflow.workflow_key,
            intent,
            workflow.definition,
            context,
        )

    async def build_context(
        self, ai_result: AiProcessResult, tenant_id: Optional[str] = None
    ) -> WorkflowExecutionContext:
        lead = await self._directory.get_lead(ai_result.lead_id)
        if lead is None:
            raise NotFoundError(f"Lead {ai_result.lead_id} not found")

        conversation = await self._directory.get_active_conversation(lead.lead_id)
        if conversation is None:
            raise NotFoundError(f"No active conversation found for lead {lead.lead_id}")

        channel_config = await self.channel_config(ai_result.business_id, conversation.channel)
        business = await self._directory.get_business(ai_result.business_id)

        entities = dict(ai_result.entities)
        selection = ai_result.metadata.interactive_selection
        if selection:
            logger.info(f"Interactive selection detected: {selection}")
            entities["category_slug"] = selection

        return WorkflowExecutionContext(
            lead_id=lead.lead_id,
            business_id=ai_result.business_id,
            tenant_id=tenant_id or ai_result.tenant_id or lead.tenant_id,
            lead_name=lead.full_name,
            lead_phone=lead.phone,
            platform_user_id=lead.platform_user_id,
            conversation_id=conversation.conversation_id,
            channel=conversation.channel,
            message_id=ai_result.metadata.message_id,
            channel_config=channel_config,
            intent=ai_result.intent.intent,
            intent_confidence=ai_result.intent.confidence,
            entities=entities,
            suggested_actions=list(ai_result.suggested_actions),
            suggested_response=ai_result.suggested_response,
            business=BusinessInfo(
                name=business.business_name if business else None,
                type=business.business_type if business else None,
            ),
            ai_result=ai_result.model_dump(mode="json"),
        )

    async def channel_config(self, business_id: str, channel: str) -> Dict[str, Any]:
        account = await self._directory.get_channel_account(business_id, channel)
        if account is None:
            raise NotFoundError(f"No active {channel} account for business {business_id}")
        if channel != "whatsapp":
            return {}
        return {
            "phoneNumberId": account.page_id,
            "accessToken": decrypt_token(account.access_token or "", self._encryption_key),
            "catalogId": account.catalog_id,
        }
