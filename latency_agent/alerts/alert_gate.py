"""
Alert gate: threshold decision and cooldown-throttled delivery.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from latency_agent.alerts.channels.base_channel import BaseChannel
from latency_agent.utils.helpers import utc_now

logger = logging.getLogger(__name__)


class AlertGateState:
    """Alert gate state constants"""
    IDLE = 'idle'                  # Nothing sent yet, or cooldown elapsed
    SENDING = 'sending'            # Delivery in progress
    COOLING_DOWN = 'cooling_down'  # Sent successfully, cooldown running


class AlertOutcome:
    """Result of a single gate evaluation"""
    NO_ALERT = 'no_alert'
    SUPPRESSED = 'suppressed'
    SENT = 'sent'
    FAILED = 'failed'


@dataclass
class AlertDecision:
    """Whether this cycle should alert, and which transactions caused it"""
    should_alert: bool
    offenders: Dict[str, float] = field(default_factory=dict)


def evaluate_threshold(means: Dict[str, float], threshold_ms: float) -> AlertDecision:
    """
    Decide whether any transaction mean strictly exceeds the threshold.

    Args:
        means: Transaction name to mean latency in milliseconds
        threshold_ms: Latency threshold in milliseconds

    Returns:
        AlertDecision with the offending transactions
    """
    offenders = {name: mean for name, mean in means.items() if mean > threshold_ms}
    return AlertDecision(should_alert=bool(offenders), offenders=offenders)


class AlertGate:
    """
    Sends at most one alert per cooldown window.

    The cooldown check, the delivery and the last-sent update happen under one
    lock, so concurrent callers can never both pass the check. Only a
    successful delivery starts a new cooldown.
    """

    def __init__(self, channel: BaseChannel, threshold_ms: float, cooldown: timedelta,
                 alert_code: str, clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize alert gate.

        Args:
            channel: Notification channel used for delivery
            threshold_ms: Mean latency above which an alert fires
            cooldown: Minimum time between two successful deliveries
            alert_code: Code sent to the channel for every alert
            clock: Returns the current aware datetime (defaults to UTC now)
        """
        self.channel = channel
        self.threshold_ms = threshold_ms
        self.alert_code = alert_code
        self._cooldown = cooldown
        self._clock = clock or utc_now
        self._lock = threading.Lock()
        self._last_sent_at: Optional[datetime] = None
        self._sending = False

        logger.info(
            f"Alert gate initialized (threshold: {threshold_ms}ms, cooldown: {cooldown})"
        )

    @property
    def cooldown(self) -> timedelta:
        return self._cooldown

    @property
    def last_sent_at(self) -> Optional[datetime]:
        return self._last_sent_at

    @property
    def state(self) -> str:
        if self._sending:
            return AlertGateState.SENDING
        if self.cooldown_remaining() > timedelta(0):
            return AlertGateState.COOLING_DOWN
        return AlertGateState.IDLE

    def cooldown_remaining(self, now: Optional[datetime] = None) -> timedelta:
        """Time left before another alert may be sent"""
        last_sent_at = self._last_sent_at
        if last_sent_at is None:
            return timedelta(0)
        now = now or self._clock()
        return max(timedelta(0), last_sent_at + self._cooldown - now)

    def evaluate(self, means: Dict[str, float]) -> str:
        """
        Evaluate one cycle's mean latencies and send an alert if needed.

        Args:
            means: Transaction name to mean latency in milliseconds

        Returns:
            One of the AlertOutcome constants
        """
        decision = evaluate_threshold(means, self.threshold_ms)
        if not decision.should_alert:
            logger.debug(f"No transaction above {self.threshold_ms}ms")
            return AlertOutcome.NO_ALERT

        for name, mean in sorted(decision.offenders.items()):
            logger.warning(f"Transaction Name: {name}, Average Latency: {mean:.2f} ms")

        return self.fire()

    def fire(self) -> str:
        """
        Send the alert code unless the cooldown is still running.

        Safe to call from any thread.

        Returns:
            AlertOutcome.SENT, SUPPRESSED or FAILED
        """
        with self._lock:
            now = self._clock()

            if self._last_sent_at is not None and now - self._last_sent_at < self._cooldown:
                logger.info(
                    f"Alert {self.alert_code} not sent. Last alert was sent at "
                    f"{self._last_sent_at.isoformat()}, {self.cooldown_remaining(now)} of cooldown left"
                )
                return AlertOutcome.SUPPRESSED

            self._sending = True
            try:
                success = self.channel.send(self.alert_code)
            except Exception as e:
                logger.error(f"Error sending alert {self.alert_code}: {e}", exc_info=True)
                success = False
            finally:
                self._sending = False

            if not success:
                logger.error(f"Alert {self.alert_code} delivery failed, will retry next cycle")
                return AlertOutcome.FAILED

            self._last_sent_at = now
            logger.info(f"Alert {self.alert_code} sent at {now.isoformat()}")
            return AlertOutcome.SENT
