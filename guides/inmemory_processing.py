"""Process one AI result end to end without any external services.

Run from the repository root:

    LEADFLOW_ENCRYPTION_KEY=<64 hex chars> python guides/inmemory_processing.py
"""

import asyncio
import logging
import os
from pathlib import Path

from leadflow import AiProcessResult, LeadflowConfig, build_runtime
from leadflow.channels import ChannelRegistry, SendReceipt
from leadflow.persistence import InMemoryDirectory
from leadflow.security import encrypt_token

BUSINESS_FILE = Path(__file__).parent / "business.example.yaml"


class PrintingChannel:
    """Stands in for the WhatsApp API and prints outgoing messages."""

    channel = "whatsapp"

    async def send(self, recipient, content, config):
        print(f"-> {recipient}: {content}")
        return SendReceipt(message_id="wamid.local.1")


async def main():
    logging.basicConfig(level=logging.INFO)
    key = os.environ.get("LEADFLOW_ENCRYPTION_KEY", "11" * 32)

    directory = InMemoryDirectory.from_yaml(BUSINESS_FILE)
    # Tokens are stored encrypted; encrypt the sample one with the local key.
    for account in directory.channel_accounts:
        account.access_token = encrypt_token(account.access_token or "", key)

    channels = ChannelRegistry()
    channels.register(PrintingChannel())
    runtime = build_runtime(
        LeadflowConfig(encryption_key=key), directory=directory, channels=channels
    )

    result = AiProcessResult(
        processing_id="msg-0001",
        lead_id="lead-1",
        business_id="biz-1",
        intent={"intent": "ORDER_REQUEST", "confidence": 0.92},
        entities={"product": "hex bolts", "quantity": 200},
        metadata={"channel": "whatsapp"},
    )
    outcome = await runtime.orchestrator.process(result)
    print(f"Workflow: {outcome.workflow_status}")
    print(f"Executed actions: {outcome.executed_actions}")

    # A redelivery of the same message is ignored
    again = await runtime.orchestrator.process(result)
    print(f"Duplicate on redelivery: {again.duplicate}")


if __name__ == "__main__":
    asyncio.run(main())
