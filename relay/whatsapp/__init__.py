from .delivery import WhatsAppSender
from .webhook import InboundMessage, extract_message, is_test_ping

__all__ = ["WhatsAppSender", "InboundMessage", "extract_message", "is_test_ping"]
