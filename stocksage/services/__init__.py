"""Service layer for insight streaming use-cases."""

from stocksage.services.chat_stream import ChatStream, ChatStreamDecoder, StreamTransportError, decode_chat_stream
from stocksage.services.conversation import ConversationStore
from stocksage.services.gateway_client import AIGatewayClient, GatewayClientError
from stocksage.services.insight_client import InsightClient
from stocksage.services.insight_service import InsightService

__all__ = [
    "AIGatewayClient",
    "ChatStream",
    "ChatStreamDecoder",
    "ConversationStore",
    "GatewayClientError",
    "InsightClient",
    "InsightService",
    "StreamTransportError",
    "decode_chat_stream",
]
