from relay.upstream.base import ChatBackend, ProgressCallback
from relay.upstream.gemini import GeminiChatBackend

__all__ = ["ChatBackend", "GeminiChatBackend", "ProgressCallback"]
