"""
Transport integrations.

- producer: The callback protocol integrations drive
- aiohttp_tracer: aiohttp client tracing into a network logger
"""

from pulse_netlog.integration.producer import TaskEventConsumer
from pulse_netlog.integration.aiohttp_tracer import AiohttpNetworkTracer

__all__ = [
    "TaskEventConsumer",
    "AiohttpNetworkTracer",
]
