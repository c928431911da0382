"""Task-creating actions run by the message saga."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from ..contracts import WorkflowExecutionContext
from ..errors import ActionFailed
from ..persistence.models import LeadActivity, TaskRecord, utcnow
from ..persistence.repository import RecordStore
from .base import BaseAction

logger = logging.getLogger(__name__)


class TaskAction(BaseAction):
    """Base for actions that materialise their side effect as a task."""

    def __init__(self, records: RecordStore) -> None:
        self._records = records

    async def execute(
        self, params: Dict[str, Any], context: WorkflowExecutionContext
    ) -> Dict[str, Any]:
        logger.info(f"Executing action {self.type} for lead {context.lead_id}")
        try:
            result = await self.run(params, context)
        except ActionFailed:
            raise
        except Exception as exc:
            raise ActionFailed(
                f"{self.type} failed: {exc}", retryable=self.retryable, action_type=self.type
            ) from exc
        logger.info(f"Action {self.type} completed successfully for lead {context.lead_id}")
        return result

    async def run(
        self, params: Dict[str, Any], context: WorkflowExecutionContext
    ) -> Dict[str, Any]:
        raise NotImplementedError

    async def _create_task(
        self,
        context: WorkflowExecutionContext,
        task_type: str,
        title: str,
        description: str,
        priority: str,
        assigned_to_type: str,
        assigned_to_id: str,
        due_in_hours: int,
        metadata: Dict[str, Any],
    ) -> TaskRecord:
        return await self._records.create_task(
            TaskRecord(
                lead_id=context.lead_id,
                business_id=context.business_id,
                tenant_id=context.tenant_id,
                task_type=task_type,
                title=title,
                description=description,
                priority=priority,
                assigned_to_type=assigned_to_type,
                assigned_to_id=assigned_to_id,
                due_date=utcnow() + timedelta(hours=due_in_hours),
                metadata=metadata,
            )
        )

    async def _log(
        self,
        context: WorkflowExecutionContext,
        activity_type: str,
        description: str,
        metadata: Dict[str, Any],
    ) -> None:
        await self._records.log_activity(
            LeadActivity(
                lead_id=context.lead_id,
                business_id=context.business_id,
                tenant_id=context.tenant_id,
                activity_type=activity_type,
                activity_description=description,
                metadata=metadata,
            )
        )

    async def _cancel_task(self, task_id: Optional[str], context: WorkflowExecutionContext) -> None:
        if not task_id:
            return
        task = await self._records.get_task(task_id)
        metadata = dict(task.metadata) if task else {}
        metadata["cancelledReason"] = "Compensating transaction"
        await self._records.update_task(task_id, status="cancelled", metadata=metadata)
        logger.info(f"Compensated {self.type} task {task_id} for lead {context.lead_id}")


class CreateOrderAction(TaskAction):
    """Create a draft order as an ``order_processing`` task."""

    type = "create_order"
    retryable = False

    async def run(self, params, context):
        product = context.entities.get("product")
        quantity = context.entities.get("quantity")
        urgency = context.entities.get("urgency")
        urgent = urgency == "urgent"
        order_details = {"product": product, "quantity": quantity, "urgency": urgency}

        task = await self._create_task(
            context,
            task_type="order_processing",
            title="Process order request from lead",
            description=f"Create order: {quantity or 'N/A'} units of "
            f"{product or 'unspecified product'}",
            priority="high" if urgent else "normal",
            assigned_to_type="team",
            assigned_to_id="order_processing_team",
            due_in_hours=4 if urgent else 48,
            metadata={
                "intent": context.intent,
                "orderDetails": order_details,
                "entities": context.entities,
            },
        )
        await self._log(
            context,
            "order_initiated",
            f"Draft order created for {quantity or 'N/A'} units",
            {"taskId": task.task_id, "orderDetails": order_details},
        )
        return {"taskId": task.task_id, "orderDetails": order_details}

    async def compensate(self, context: WorkflowExecutionContext, original_result: Any) -> None:
        await self._cancel_task((original_result or {}).get("taskId"), context)


class CreateSupportTicketAction(TaskAction):
    type = "create_support_ticket"
    retryable = False

    async def run(self, params, context):
        severity = context.entities.get("severity")
        category = context.entities.get("category")
        order_id = context.entities.get("orderId")
        intent_metadata = context.get_variable("intentMetadata") or {}
        critical = bool(
            severity in ("critical", "urgent")
            or intent_metadata.get("requiresImmediateAction")
        )

        ticket = await self._create_task(
            context,
            task_type="support_ticket",
            title=f"Support needed: {category or 'General complaint'}",
            description="Customer complaint/issue reported via WhatsApp",
            priority="critical" if critical else "high",
            assigned_to_type="team",
            assigned_to_id="support_team",
            due_in_hours=1 if critical else 24,
            metadata={
                "intent": context.intent,
                "ticketDetails": {
                    "severity": severity,
                    "category": category,
                    "orderId": order_id,
                },
                "entities": context.entities,
                "isCritical": critical,
            },
        )
        await self._log(
            context,
            "support_ticket_created",
            f"Support ticket #{ticket.task_id} created - {category or 'General'}",
            {
                "ticketId": ticket.task_id,
                "severity": severity,
                "category": category,
                "orderId": order_id,
            },
        )
        return {"ticketId": ticket.task_id, "severity": "critical" if critical else "high"}

    async def compensate(self, context: WorkflowExecutionContext, original_result: Any) -> None:
        await self._cancel_task((original_result or {}).get("ticketId"), context)


class NotifySalesAction(TaskAction):
    type = "notify_sales"

    async def run(self, params, context):
        task = await self._create_task(
            context,
            task_type="sales_notification",
            title=f"New {context.intent} from lead",
            description=f"Lead requires sales attention. Intent: {context.intent}",
            priority="high",
            assigned_to_type="team",
            assigned_to_id="sales_team",
            due_in_hours=24,
            metadata={"intent": context.intent, "entities": context.entities},
        )
        await self._log(
            context,
            "sales_notified",
            f"Sales team notified about {context.intent}",
            {"taskId": task.task_id},
        )
        logger.info(f"Created sales notification task: {task.task_id}")
        return {"taskId": task.task_id}


class FlagForReviewAction(TaskAction):
    """Mark the lead ``needs_review`` and queue a manual review task."""

    type = "flag_for_review"

    async def run(self, params, context):
        await self._records.update_lead_status(context.lead_id, "needs_review")
        task = await self._create_task(
            context,
            task_type="manual_review",
            title="Lead requires manual review",
            description="AI confidence was low or intent unclear. Manual review needed.",
            priority="medium",
            assigned_to_type="role",
            assigned_to_id="agent",
            due_in_hours=8,
            metadata={
                "intent": context.intent,
                "reason": "low_confidence_or_unclear_intent",
                "entities": context.entities,
            },
        )
        await self._log(
            context,
            "flagged_for_review",
            "Lead flagged for manual review due to low AI confidence",
            {"taskId": task.task_id, "reason": "low_confidence"},
        )
        return {"taskId": task.task_id}
