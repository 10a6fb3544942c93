"""Main agent orchestration"""

import time
import signal
import threading
from datetime import datetime, timedelta
from typing import Dict, Any, Callable, Optional

from latency_agent import __version__
from latency_agent.apm.aggregator import aggregate_latencies
from latency_agent.apm.client import MetricsClient
from latency_agent.apm.query_builder import build_search_query
from latency_agent.alerts.alert_gate import AlertGate
from latency_agent.alerts.channels.sms_channel import SmsChannel
from latency_agent.errors import MetricsClientError
from latency_agent.exporters.prometheus_exporter import PrometheusExporter
from latency_agent.utils.helpers import get_hostname, is_within_monitoring_window, utc_now
from latency_agent.utils.logger import get_logger


class Agent:
    """Runs the query -> aggregate -> alert cycle on a fixed interval"""

    def __init__(self, config: Dict[str, Any],
                 metrics_client: Optional[MetricsClient] = None,
                 alert_gate: Optional[AlertGate] = None,
                 exporter: Optional[PrometheusExporter] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize agent

        Args:
            config: Configuration dictionary
            metrics_client: APM client (built from config['apm'] if omitted)
            alert_gate: Alert gate (built from config if omitted)
            exporter: Self-metrics exporter (built when prometheus is enabled)
            clock: Returns the current aware datetime
        """
        self.config = config
        self.logger = get_logger(self.__class__.__name__)
        self.clock = clock or utc_now
        self.running = False
        self._stop_event = threading.Event()

        monitoring = config['monitoring']
        self.interval = monitoring['interval']
        self.off_hours_interval = monitoring['off_hours_interval']
        self.window = monitoring['business_hours']

        if config['agent']['hostname'] == 'auto':
            self.hostname = get_hostname()
        else:
            self.hostname = config['agent']['hostname']

        self.logger.info(f"Initializing agent for host: {self.hostname}")

        self.metrics_client = metrics_client or MetricsClient(config['apm'])

        if alert_gate is None:
            alert_gate = AlertGate(
                SmsChannel(config['notifier']),
                threshold_ms=monitoring['latency_threshold_ms'],
                cooldown=timedelta(minutes=monitoring['alert_cooldown_minutes']),
                alert_code=str(monitoring['alert_code']),
                clock=self.clock,
            )
        self.alert_gate = alert_gate

        if exporter is None and config.get('prometheus', {}).get('enabled', False):
            exporter = PrometheusExporter(config)
        self.exporter = exporter

    def _setup_signal_handlers(self):
        """Setup signal handlers for graceful shutdown"""
        if threading.current_thread() is not threading.main_thread():
            return

        def signal_handler(signum, frame):
            self.logger.info(f"Received signal {signum}, initiating graceful shutdown...")
            self.stop()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def start(self):
        """Start the agent and block until stop() is called"""
        if self._stop_event.is_set():
            # stop() arrived before the loop started
            self.logger.info("Stop requested before start, not starting")
            self._stop_event.clear()
            return

        self.logger.info("Starting agent...")
        self.running = True
        self._setup_signal_handlers()

        if self.exporter:
            self.exporter.start()
            self.exporter.agent_info.labels(
                version=__version__,
                hostname=self.hostname
            ).set(1)

        self.logger.info(f"Agent started, polling every {self.interval}s")

        while not self._stop_event.is_set():
            try:
                delay = self.tick()
            except Exception as e:
                self.logger.error(f"Agent error: {e}", exc_info=True)
                delay = self.interval

            self._stop_event.wait(delay)

        self.running = False
        self._stop_event.clear()
        self.logger.info("Agent stopped")

    def stop(self):
        """Stop the agent, or keep a pending start() from entering its loop"""
        self._stop_event.set()
        if not self.running:
            return

        self.logger.info("Stopping agent...")
        self.running = False

        if self.exporter:
            self.exporter.stop()

    def tick(self) -> float:
        """
        Run one scheduler tick.

        Returns:
            Seconds to sleep before the next tick
        """
        now = self.clock()

        if self.window.get('enabled', True) and not is_within_monitoring_window(now, self.window):
            self.logger.info(
                f"Current time {now.isoformat()} is outside of monitoring hours. Skipping monitoring."
            )
            if self.exporter:
                self.exporter.record_cycle('skipped', 0.0)
            return self.off_hours_interval

        self.run_cycle(now)
        return self.interval

    def run_cycle(self, now: Optional[datetime] = None) -> bool:
        """
        Query APM, aggregate latencies and evaluate the alert gate once.

        Args:
            now: Reference instant for the query window

        Returns:
            True if the cycle completed, False if it failed
        """
        now = now or self.clock()
        apm_config = self.config['apm']
        start_time = time.time()
        self.logger.info(f"Monitoring APM started at: {now.isoformat()}")

        try:
            query = build_search_query(now, apm_config)
            samples = self.metrics_client.fetch_samples(query)
            means = aggregate_latencies(samples, apm_config['sample_unit_divisor'])
            self.logger.info(
                f"Aggregated {len(samples)} samples across {len(means)} transactions"
            )
            if self.exporter:
                self.exporter.record_latencies(means)

            outcome = self.alert_gate.evaluate(means)
            if self.exporter:
                self.exporter.record_alert(outcome)

        except MetricsClientError as e:
            self._record_failure(e, start_time)
            self.logger.error(f"Error monitoring APM: {e}")
            return False
        except Exception as e:
            self._record_failure(e, start_time)
            self.logger.error(f"Unexpected error monitoring APM: {e}", exc_info=True)
            return False
        finally:
            self.logger.info("Monitoring APM finished")

        if self.exporter:
            self.exporter.record_cycle('ok', time.time() - start_time, time.time())
        return True

    def _record_failure(self, error: Exception, start_time: float):
        if self.exporter:
            self.exporter.record_error(error)
            self.exporter.record_cycle('error', time.time() - start_time)
