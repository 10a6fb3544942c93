"""
SMS notification channel using a pattern-message HTTP API.
"""

import json
import logging
from typing import Dict

import requests

from latency_agent.alerts.channels.base_channel import BaseChannel
from latency_agent.errors import DeliveryError

logger = logging.getLogger(__name__)


class SmsChannel(BaseChannel):
    """SMS notification channel: posts an OTP pattern id to the messaging API"""

    name = 'sms'

    def __init__(self, config: Dict):
        """
        Initialize SMS channel.

        Args:
            config: The 'notifier' configuration section with api_url,
                api_key, sender_number, receiver_number and timeout
        """
        self.api_url = config['api_url']
        self.api_key = config['api_key']
        self.sender_number = config['sender_number']
        self.receiver_number = config['receiver_number']
        self.timeout = config.get('timeout', 10)

        logger.info(f"SMS channel initialized (url: {self.api_url})")

    def build_payload(self, alert_code: str) -> Dict:
        """Create the pattern-message request body"""
        return {
            'OtpId': alert_code,
            'ReplaceToken': [],
            'SenderNumber': self.sender_number,
            'MobileNumber': self.receiver_number,
        }

    def deliver(self, alert_code: str) -> None:
        try:
            body = json.dumps(self.build_payload(alert_code))
        except (TypeError, ValueError) as e:
            raise DeliveryError(DeliveryError.MARSHAL, f"Failed to marshal SMS request: {e}") from e

        try:
            response = requests.post(
                self.api_url,
                data=body,
                headers={
                    'Content-Type': 'application/json',
                    'ApiKey': self.api_key,
                },
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise DeliveryError(DeliveryError.TRANSPORT, f"Failed to send SMS: {e}") from e

        if response.status_code != 200:
            raise DeliveryError(
                DeliveryError.STATUS,
                f"Failed to send SMS. Status code: {response.status_code}",
                status_code=response.status_code
            )
