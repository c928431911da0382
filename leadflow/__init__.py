"""Leadflow: resilient AI-result processing and business workflows for lead automation."""

__version__ = "0.1.0"

from .config import LeadflowConfig, load_config
from .contracts import (
    AiProcessResult,
    ProcessingOutcome,
    QueueEnvelope,
    WorkflowExecutionContext,
)
from .consumer import AiResultConsumer
from .orchestrator import MessageOrchestrator
from .persistence import get_repository
from .runtime import Runtime, build_runtime
from .transports import get_transport

__all__ = [
    "AiProcessResult",
    "AiResultConsumer",
    "LeadflowConfig",
    "MessageOrchestrator",
    "ProcessingOutcome",
    "QueueEnvelope",
    "Runtime",
    "WorkflowExecutionContext",
    "build_runtime",
    "get_repository",
    "get_transport",
    "load_config",
]
