"""
Base notification channel interface.
"""

from abc import ABC, abstractmethod
import logging

from latency_agent.errors import DeliveryError

logger = logging.getLogger(__name__)


class BaseChannel(ABC):
    """Abstract base class for notification channels"""

    name = 'base'

    @abstractmethod
    def deliver(self, alert_code: str) -> None:
        """
        Deliver an alert code.

        Args:
            alert_code: Opaque alert identifier understood by the receiver

        Raises:
            DeliveryError: If the alert was not delivered
        """
        pass

    def send(self, alert_code: str) -> bool:
        """
        Send alert notification.

        Args:
            alert_code: Opaque alert identifier

        Returns:
            True if notification sent successfully, False otherwise
        """
        try:
            self.deliver(alert_code)
        except DeliveryError as e:
            logger.error(f"Failed to send {self.name} alert {alert_code} ({e.reason}): {e}")
            return False

        logger.info(f"{self.name} alert {alert_code} sent successfully")
        return True
