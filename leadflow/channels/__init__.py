from .base import ChannelClient, ChannelRegistry, SendReceipt
from .whatsapp import WhatsAppClient, build_whatsapp_payload

__all__ = [
    "ChannelClient",
    "ChannelRegistry",
    "SendReceipt",
    "WhatsAppClient",
    "build_whatsapp_payload",
]
