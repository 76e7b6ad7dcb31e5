"""Transport and logging infrastructure."""

from .api import ApiClient
from .sse import ServerSentEvent, SSEDecoder, iter_events

__all__ = ["ApiClient", "SSEDecoder", "ServerSentEvent", "iter_events"]
