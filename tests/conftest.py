"""Shared fixtures: an in-memory business with one WhatsApp lead."""

from typing import Any, Dict, List, Mapping, Tuple

import pytest

import leadflow.persistence as persistence
from leadflow.channels import ChannelRegistry, SendReceipt
from leadflow.contracts import AiProcessResult, WorkflowExecutionContext
from leadflow.persistence import InMemoryDirectory, InMemoryRecordStore, InMemoryRepository
from leadflow.persistence.models import (
    BusinessRecord,
    ChannelAccount,
    ConversationRecord,
    LeadRecord,
)
from leadflow.security import encrypt_token

ENCRYPTION_KEY = "0f1e2d3c4b5a69788796a5b4c3d2e1f00f1e2d3c4b5a69788796a5b4c3d2e1f0"


class RecordingChannel:
    """Channel client that keeps every message instead of calling an API."""

    channel = "whatsapp"

    def __init__(self) -> None:
        self.sent: List[Tuple[str, Dict[str, Any], Dict[str, Any]]] = []

    async def send(
        self, recipient: str, content: Mapping[str, Any], config: Mapping[str, Any]
    ) -> SendReceipt:
        self.sent.append((recipient, dict(content), dict(config)))
        return SendReceipt(message_id=f"wamid.{len(self.sent)}")


@pytest.fixture(autouse=True)
def reset_repository_singleton():
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None


@pytest.fixture
def directory() -> InMemoryDirectory:
    d = InMemoryDirectory()
    d.add_business(
        BusinessRecord(business_id="biz-1", business_name="Acme Supplies", business_type="retail")
    )
    d.add_lead(
        LeadRecord(
            lead_id="lead-1",
            business_id="biz-1",
            tenant_id="tenant-1",
            first_name="Ada",
            last_name="Lovelace",
            phone="+15550001",
            platform_user_id="15550001",
        )
    )
    d.conversations.append(
        ConversationRecord(conversation_id="conv-1", lead_id="lead-1", channel="whatsapp")
    )
    d.channel_accounts.append(
        ChannelAccount(
            business_id="biz-1",
            platform="whatsapp",
            page_id="phone-123",
            access_token=encrypt_token("secret-token", ENCRYPTION_KEY),
            catalog_id="catalog-9",
        )
    )
    return d


@pytest.fixture
def records(directory) -> InMemoryRecordStore:
    return InMemoryRecordStore(directory)


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def channels(channel) -> ChannelRegistry:
    registry = ChannelRegistry()
    registry.register(channel)
    return registry


@pytest.fixture
def context() -> WorkflowExecutionContext:
    return WorkflowExecutionContext(
        lead_id="lead-1",
        business_id="biz-1",
        tenant_id="tenant-1",
        lead_name="Ada Lovelace",
        platform_user_id="15550001",
        conversation_id="conv-1",
        channel="whatsapp",
        channel_config={"phoneNumberId": "phone-123", "accessToken": "secret-token"},
        intent="ORDER_REQUEST",
        intent_confidence=0.9,
    )


def make_ai_result(**overrides: Any) -> AiProcessResult:
    data: Dict[str, Any] = {
        "processing_id": "proc-1",
        "lead_id": "lead-1",
        "business_id": "biz-1",
        "tenant_id": "tenant-1",
        "intent": {"intent": "ORDER_REQUEST", "confidence": 0.9},
        "entities": {},
        "suggested_actions": [],
        "processing_time_ms": 120,
        "metadata": {"message_id": "wamid.in.1", "channel": "whatsapp", "conversation_id": "conv-1"},
    }
    data.update(overrides)
    return AiProcessResult.model_validate(data)


@pytest.fixture
def ai_result_factory():
    return make_ai_result


@pytest.fixture
def encryption_key() -> str:
    return ENCRYPTION_KEY
