"""Simple example showing how an AI service hands a classification to leadflow."""

import asyncio

from leadflow import AiProcessResult, QueueEnvelope, get_transport, load_config


async def main():
    config = load_config()
    transport = get_transport(config=config)
    await transport.connect()

    result = AiProcessResult(
        processing_id="msg-0001",
        lead_id="lead-1",
        business_id="biz-1",
        intent={"intent": "ORDER_REQUEST", "confidence": 0.92},
        entities={"product": "hex bolts", "quantity": 200},
        processing_time_ms=340,
        metadata={"message_id": "wamid.in.1", "channel": "whatsapp"},
    )
    envelope = QueueEnvelope(payload=result)
    await transport.publish(config.transport.topic, envelope)

    print(f"Published {result.processing_id} to {config.transport.topic}")
    print(f"Envelope: {envelope.envelope_id} (attempt {envelope.attempt})")

    await transport.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
