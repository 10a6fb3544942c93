"""
Alert module for the latency agent.
"""

from latency_agent.alerts.alert_gate import (
    AlertDecision,
    AlertGate,
    AlertGateState,
    AlertOutcome,
    evaluate_threshold,
)
from latency_agent.alerts.channels.base_channel import BaseChannel
from latency_agent.alerts.channels.sms_channel import SmsChannel

__all__ = [
    'AlertDecision',
    'AlertGate',
    'AlertGateState',
    'AlertOutcome',
    'evaluate_threshold',
    'BaseChannel',
    'SmsChannel',
]
