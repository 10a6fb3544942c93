"""Exception hierarchy for the latency agent"""

from typing import Optional


class AgentError(Exception):
    """Base class for all agent errors"""


class ConfigError(AgentError, ValueError):
    """Configuration is missing or invalid. Fatal at startup."""


class MetricsClientError(AgentError):
    """A single APM query failed. The cycle is skipped."""


class TransportError(MetricsClientError):
    """Connection, DNS or timeout failure talking to the APM backend"""


class ResponseError(MetricsClientError):
    """APM backend answered with a non-success HTTP status"""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(message or f"APM backend returned HTTP {status_code}")


class DecodeError(MetricsClientError):
    """APM response body does not have the expected structure"""


class DeliveryError(AgentError):
    """
    Alert could not be delivered.

    reason is one of 'marshal', 'transport' or 'status'.
    """

    MARSHAL = 'marshal'
    TRANSPORT = 'transport'
    STATUS = 'status'

    def __init__(self, reason: str, message: str, status_code: Optional[int] = None):
        self.reason = reason
        self.status_code = status_code
        super().__init__(message)
