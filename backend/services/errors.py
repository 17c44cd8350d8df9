"""Exceptions raised by the relay and its client"""

from __future__ import annotations


class ConfigurationError(Exception):
    """Required credential or assistant identifier is missing"""


class UpstreamError(Exception):
    """A call to the assistant API returned a non-success response"""

    def __init__(self, status: int, body: str, operation: str = "request"):
        self.status = status
        self.body = body
        self.operation = operation
        super().__init__(f"Assistant API {operation} failed ({status}): {body}")


class RelayTransportError(Exception):
    """The relay request failed before a usable stream was received"""


class RelayStreamError(Exception):
    """The relay reported an error event inside the stream"""
