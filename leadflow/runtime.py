"""Assemble the processing object graph from a loaded configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .actions import ActionRegistry, build_default_registry
from .channels import ChannelRegistry, WhatsAppClient
from .config import LeadflowConfig, load_config
from .consumer import AiResultConsumer
from .intents import IntentHandlerFactory
from .orchestrator import MessageOrchestrator
from .persistence import (
    InMemoryDirectory,
    InMemoryRecordStore,
    LedgerStore,
    Repository,
    get_repository,
)
from .resilience import (
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    DeadLetterQueue,
    IdempotencyLedger,
)
from .transports import BaseTransport, get_transport
from .workflow import WorkflowExecutor, WorkflowResolver, WorkflowRunner

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    config: LeadflowConfig
    repository: Repository
    directory: InMemoryDirectory
    records: InMemoryRecordStore
    channels: ChannelRegistry
    actions: ActionRegistry
    ledger: IdempotencyLedger
    dead_letters: DeadLetterQueue
    circuit_breakers: CircuitBreakerRegistry
    resolver: WorkflowResolver
    executor: WorkflowExecutor
    runner: WorkflowRunner
    orchestrator: MessageOrchestrator

    def consumer(self, transport: Optional[BaseTransport] = None) -> AiResultConsumer:
        return AiResultConsumer(
            transport or get_transport(config=self.config),
            self.orchestrator,
            topic=self.config.transport.topic,
        )


def ledger_store(config: LeadflowConfig, repository: Repository) -> LedgerStore:
    if config.ledger.backend == "redis":
        from .resilience.redis_store import RedisLedgerStore

        redis_conf = config.transport.redis
        return RedisLedgerStore(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
        )
    return repository


def build_runtime(
    config: Optional[LeadflowConfig] = None,
    repository: Optional[Repository] = None,
    directory: Optional[InMemoryDirectory] = None,
    channels: Optional[ChannelRegistry] = None,
) -> Runtime:
    """Wire every collaborator the worker and the CLI need.

    Business configuration comes from ``workflow.definitions_path`` when no
    ``directory`` is given.
    """
    config = config or load_config()
    repository = repository or get_repository()

    if directory is None:
        path = config.workflow.definitions_path
        directory = InMemoryDirectory.from_yaml(path) if path else InMemoryDirectory()
        if path:
            logger.info(f"Loaded business configuration from {path}")
    records = InMemoryRecordStore(directory)

    if channels is None:
        channels = ChannelRegistry()
        channels.register(WhatsAppClient(config.channels))
    actions = build_default_registry(directory, records, channels)

    ledger = IdempotencyLedger(ledger_store(config, repository), config.ledger.ttl_hours)
    dead_letters = DeadLetterQueue(
        repository,
        records,
        max_attempts=config.dead_letter.max_attempts,
        retry_delays_ms=config.dead_letter.retry_delays_ms,
    )
    breakers = CircuitBreakerRegistry(
        CircuitBreakerConfig.from_settings(config.circuit_breaker)
    )

    resolver = WorkflowResolver(directory, cache=config.workflow.cache_definitions)
    executor = WorkflowExecutor(
        actions, repository, max_iterations=config.workflow.max_iterations
    )
    runner = WorkflowRunner(directory, resolver, executor, config.encryption_key)

    orchestrator = MessageOrchestrator(
        ledger=ledger,
        dead_letters=dead_letters,
        circuit_breakers=breakers,
        intent_handlers=IntentHandlerFactory(),
        actions=actions,
        directory=directory,
        records=records,
        workflow_runner=runner,
    )
    return Runtime(
        config=config,
        repository=repository,
        directory=directory,
        records=records,
        channels=channels,
        actions=actions,
        ledger=ledger,
        dead_letters=dead_letters,
        circuit_breakers=breakers,
        resolver=resolver,
        executor=executor,
        runner=runner,
        orchestrator=orchestrator,
    )
