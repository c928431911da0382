"""Saga controller coordinating the processing of one AI classification result."""

from __future__ import annotations

import functools
import logging
import traceback
from datetime import datetime
from typing import Any, List, Optional, Tuple

from opentelemetry.trace import Status, StatusCode

from .actions.registry import ActionRegistry
from .constants import UNKNOWN_INTENT
from .contracts import AiProcessResult, ProcessingOutcome, WorkflowExecutionContext
from .errors import NotFoundError, ValidationError, is_retryable
from .intents import IntentContext, IntentHandlerFactory, IntentHandlerResult
from .metrics import observe_action, observe_intent, observe_message
from .otel import get_tracer
from .persistence.models import LeadActivity, utcnow
from .persistence.repository import Directory, RecordStore
from .resilience import CircuitBreakerRegistry, DeadLetterQueue, IdempotencyLedger
from .workflow.runner import WorkflowRunner

logger = logging.getLogger(__name__)

ExecutedAction = Tuple[str, Any, Any]


class MessageOrchestrator:
    """Deduplicate, classify and act on one AI result, compensating on failure.

    ``process`` never raises for processing errors. Transient failures are
    reported through ``retry_in_ms`` so the transport can redeliver with the
    next attempt number; once retries are exhausted, or immediately for
    non-retryable errors, the message is written to the dead-letter store.
    """

    def __init__(
        self,
        ledger: IdempotencyLedger,
        dead_letters: DeadLetterQueue,
        circuit_breakers: CircuitBreakerRegistry,
        intent_handlers: IntentHandlerFactory,
        actions: ActionRegistry,
        directory: Directory,
        records: Optional[RecordStore] = None,
        workflow_runner: Optional[WorkflowRunner] = None,
    ) -> None:
        self._ledger = ledger
        self._dlq = dead_letters
        self._breakers = circuit_breakers
        self._intent_handlers = intent_handlers
        self._actions = actions
        self._directory = directory
        self._records = records
        self._workflow_runner = workflow_runner
        self._tracer = get_tracer(__name__)

    async def process(
        self,
        ai_result: AiProcessResult,
        attempt: int = 1,
        first_attempt_at: Optional[datetime] = None,
        dead_letter_id: Optional[str] = None,
    ) -> ProcessingOutcome:
        first_attempt_at = first_attempt_at or utcnow()
        with self._tracer.start_as_current_span("message_processing") as span:
            span.set_attribute("processing_id", ai_result.processing_id)
            span.set_attribute("lead_id", ai_result.lead_id or "")
            span.set_attribute("attempt", attempt)
            try:
                if await self._check_duplicate(ai_result):
                    observe_message("duplicate")
                    return ProcessingOutcome(success=True, duplicate=True)

                self._validate(ai_result)
                tenant_id = await self._ensure_tenant_id(ai_result)
                self._track_ai(ai_result, span)
                intent_result = await self._process_intent(ai_result, tenant_id)
                workflow_status = await self._run_workflow(ai_result, tenant_id)
                succeeded, failed = await self._execute_actions(
                    intent_result, ai_result, tenant_id
                )

                await self._ledger.mark_as_processed(
                    ai_result.processing_id, ai_result.lead_id, "success"
                )
                observe_message("success")
                logger.info(
                    f"Processed message {ai_result.processing_id} for lead "
                    f"{ai_result.lead_id}: {len(succeeded)} succeeded, {len(failed)} failed"
                )
                return ProcessingOutcome(
                    success=True,
                    response_message=intent_result.response_message,
                    actions=intent_result.actions,
                    executed_actions=succeeded,
                    failed_actions=failed,
                    workflow_status=workflow_status,
                )
            except Exception as exc:
                logger.error(
                    f"Error processing message {ai_result.processing_id} for lead "
                    f"{ai_result.lead_id} (attempt {attempt}): {exc}"
                )
                span.record_exception(exc)
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                observe_message("failure")
                return await self._handle_failure(
                    ai_result, exc, attempt, first_attempt_at, dead_letter_id
                )

    async def replay_dead_letter(self, dlq_id: str) -> ProcessingOutcome:
        """Reprocess a dead-lettered message from scratch.

        The dead letter is marked ``resolved`` when processing succeeds.
        Otherwise it returns to ``failed`` with its attempt count bumped,
        and no new dead letter is written.
        """
        record = await self._dlq.retry_message(dlq_id)
        if record is None:
            raise NotFoundError(f"Dead letter {dlq_id} not found")

        await self._ledger.forget(record.message_id)
        ai_result = AiProcessResult.model_validate(record.original_payload)
        outcome = await self.process(
            ai_result,
            attempt=record.attempt_count + 1,
            first_attempt_at=record.first_attempt_at,
            dead_letter_id=dlq_id,
        )
        if outcome.success:
            await self._dlq.mark_resolved(dlq_id)
            logger.info(f"Dead letter {dlq_id} resolved after replay")
        return outcome

    # ------------------------------------------------------------------
    # Pipeline steps
    async def _check_duplicate(self, ai_result: AiProcessResult) -> bool:
        with self._tracer.start_as_current_span("deduplication_check") as span:
            duplicate = await self._ledger.is_duplicate(
                ai_result.processing_id, ai_result.lead_id
            )
            span.set_attribute("duplicate", duplicate)
        return duplicate

    def _validate(self, ai_result: AiProcessResult) -> None:
        with self._tracer.start_as_current_span("validation"):
            if not ai_result.lead_id or not ai_result.business_id:
                raise ValidationError("Invalid AI result: missing required fields")

    async def _ensure_tenant_id(self, ai_result: AiProcessResult) -> str:
        if ai_result.tenant_id:
            return ai_result.tenant_id
        with self._tracer.start_as_current_span("fetch_tenant_id"):
            lead = await self._directory.get_lead(ai_result.lead_id)
            if lead is None or not lead.tenant_id:
                raise NotFoundError(f"No tenant_id found for lead {ai_result.lead_id}")
            return lead.tenant_id

    def _track_ai(self, ai_result: AiProcessResult, span: Any) -> None:
        intent = ai_result.intent.intent or UNKNOWN_INTENT
        observe_intent(intent, ai_result.processing_time_ms)
        span.set_attribute("intent", intent)
        span.set_attribute("confidence", ai_result.intent.confidence)
        span.set_attribute("processing_time_ms", ai_result.processing_time_ms)

    async def _process_intent(
        self, ai_result: AiProcessResult, tenant_id: str
    ) -> IntentHandlerResult:
        with self._tracer.start_as_current_span("intent_processing"):
            context = IntentContext(
                lead_id=ai_result.lead_id,
                business_id=ai_result.business_id,
                tenant_id=tenant_id,
                intent=ai_result.intent.intent or UNKNOWN_INTENT,
                confidence=ai_result.intent.confidence,
                entities=ai_result.entities,
                original_message=getattr(ai_result, "original_message", None) or "",
            )
            handler = self._intent_handlers.get_handler(context)
            result = await handler.handle(context)
            await self._log_ai_activity(ai_result, tenant_id, result)
            return result

    async def _run_workflow(
        self, ai_result: AiProcessResult, tenant_id: str
    ) -> Optional[str]:
        if self._workflow_runner is None:
            return None
        with self._tracer.start_as_current_span("workflow_execution") as span:
            try:
                result = await self._workflow_runner.run(ai_result, tenant_id)
            except NotFoundError as exc:
                logger.warning(f"Skipping business workflow: {exc}")
                span.set_attribute("workflow_status", "skipped")
                return "skipped"
            span.set_attribute("workflow_status", result.status)
            return result.status

    async def _execute_actions(
        self,
        intent_result: IntentHandlerResult,
        ai_result: AiProcessResult,
        tenant_id: str,
    ) -> Tuple[List[str], List[str]]:
        with self._tracer.start_as_current_span("action_execution") as span:
            context = self._saga_context(ai_result, tenant_id, intent_result)
            succeeded: List[str] = []
            failed: List[str] = []
            executed: List[ExecutedAction] = []

            for action in intent_result.actions:
                handler = self._actions.get(action)
                if handler is None:
                    logger.warning(f"No handler found for action: {action}")
                    failed.append(action)
                    observe_action(action, "missing")
                    continue

                try:
                    result = await self._breakers.execute(
                        f"action_{action}", functools.partial(handler.execute, {}, context)
                    )
                except Exception as exc:
                    logger.error(f"Error executing action {action}: {exc}")
                    failed.append(action)
                    observe_action(action, "failed")
                    if not getattr(handler, "retryable", True):
                        await self._compensate(executed, context)
                        break
                    continue

                succeeded.append(action)
                executed.append((action, handler, result))
                observe_action(action, "success")

            span.set_attribute("succeeded_count", len(succeeded))
            span.set_attribute("failed_count", len(failed))
            if failed:
                span.set_status(Status(StatusCode.ERROR))
            return succeeded, failed

    async def _compensate(
        self, executed: List[ExecutedAction], context: WorkflowExecutionContext
    ) -> None:
        logger.warning(
            f"Compensating {len(executed)} executed actions for lead {context.lead_id}"
        )
        for action, handler, result in reversed(executed):
            compensate = getattr(handler, "compensate", None)
            if compensate is None:
                continue
            try:
                await compensate(context, result)
                logger.info(f"Compensated action: {action}")
            except Exception:
                logger.exception(f"Error compensating action {action}")

    def _saga_context(
        self,
        ai_result: AiProcessResult,
        tenant_id: str,
        intent_result: IntentHandlerResult,
    ) -> WorkflowExecutionContext:
        context = WorkflowExecutionContext(
            lead_id=ai_result.lead_id,
            business_id=ai_result.business_id,
            tenant_id=tenant_id,
            conversation_id=ai_result.metadata.conversation_id,
            channel=ai_result.metadata.channel or "whatsapp",
            message_id=ai_result.metadata.message_id,
            intent=ai_result.intent.intent,
            intent_confidence=ai_result.intent.confidence,
            entities=dict(ai_result.entities),
            suggested_actions=list(ai_result.suggested_actions),
            suggested_response=ai_result.suggested_response,
            ai_result=ai_result.model_dump(mode="json"),
        )
        context.set_variable("intentMetadata", intent_result.metadata)
        return context

    async def _log_ai_activity(
        self, ai_result: AiProcessResult, tenant_id: str, result: IntentHandlerResult
    ) -> None:
        if self._records is None:
            return
        try:
            await self._records.log_activity(
                LeadActivity(
                    lead_id=ai_result.lead_id,
                    business_id=ai_result.business_id,
                    tenant_id=tenant_id,
                    activity_type="ai_processed",
                    activity_description=f"AI detected intent: {ai_result.intent.intent} "
                    f"(confidence: {ai_result.intent.confidence})",
                    channel="ai",
                    metadata={
                        "processing_id": ai_result.processing_id,
                        "intent": ai_result.intent.intent,
                        "confidence": ai_result.intent.confidence,
                        "entities": ai_result.entities,
                        "suggested_actions": result.actions,
                        "processing_time_ms": ai_result.processing_time_ms,
                    },
                )
            )
        except Exception:
            logger.exception("Failed to log AI activity")

    async def _handle_failure(
        self,
        ai_result: AiProcessResult,
        error: Exception,
        attempt: int,
        first_attempt_at: datetime,
        dead_letter_id: Optional[str] = None,
    ) -> ProcessingOutcome:
        if dead_letter_id is not None:
            return await self._fail_replay(ai_result, error, dead_letter_id)

        retryable = is_retryable(error)
        if retryable and self._dlq.should_retry(attempt):
            await self._ledger.mark_as_processed(
                ai_result.processing_id, ai_result.lead_id, "retrying"
            )
            delay = self._dlq.get_retry_delay(attempt)
            logger.info(f"Will retry processing after {delay}ms (attempt {attempt})")
            return ProcessingOutcome(success=False, retry_in_ms=delay, error=str(error))

        dead_lettered = False
        try:
            await self._dlq.send_to_dead_letter(
                message_id=ai_result.processing_id,
                lead_id=ai_result.lead_id,
                original_payload=ai_result.model_dump(mode="json"),
                error=str(error),
                error_stack="".join(traceback.format_exception(error)),
                attempt_count=attempt,
                first_attempt_at=first_attempt_at,
                last_attempt_at=utcnow(),
                reason="max_retries_exceeded" if retryable else "non_retryable",
            )
            dead_lettered = True
        except Exception:
            logger.exception(f"Failed to send message {ai_result.processing_id} to DLQ")

        await self._ledger.mark_as_processed(
            ai_result.processing_id, ai_result.lead_id, "failed"
        )
        return ProcessingOutcome(success=False, dead_lettered=dead_lettered, error=str(error))

    async def _fail_replay(
        self, ai_result: AiProcessResult, error: Exception, dlq_id: str
    ) -> ProcessingOutcome:
        # A replayed message stays on its existing dead letter.
        await self._dlq.mark_failed(
            dlq_id, str(error), "".join(traceback.format_exception(error))
        )
        await self._ledger.mark_as_processed(
            ai_result.processing_id, ai_result.lead_id, "failed"
        )
        return ProcessingOutcome(success=False, dead_lettered=True, error=str(error))
