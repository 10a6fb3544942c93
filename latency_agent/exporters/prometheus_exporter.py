"""Prometheus HTTP exporter for agent self-metrics"""

from typing import Dict

from prometheus_client import start_http_server, Gauge, Counter
from prometheus_client.core import CollectorRegistry

from latency_agent.utils.logger import get_logger


class PrometheusExporter:
    """Prometheus HTTP server exposing cycle, alert and latency metrics"""

    def __init__(self, config):
        """
        Initialize Prometheus exporter

        Args:
            config: Configuration dictionary
        """
        self.config = config
        self.logger = get_logger(self.__class__.__name__)

        self.host = config.get('prometheus', {}).get('host', '0.0.0.0')
        self.port = config.get('prometheus', {}).get('port', 9100)

        self.registry = CollectorRegistry()
        self.running = False

        self._setup_agent_metrics()

    def _setup_agent_metrics(self):
        """Setup agent self-monitoring metrics"""
        self.agent_info = Gauge(
            'latency_agent_info',
            'Agent information',
            ['version', 'hostname'],
            registry=self.registry
        )

        self.cycles = Counter(
            'latency_agent_cycles_total',
            'Monitoring cycles by result',
            ['result'],
            registry=self.registry
        )

        self.cycle_errors = Counter(
            'latency_agent_cycle_errors_total',
            'Failed monitoring cycles by error type',
            ['error'],
            registry=self.registry
        )

        self.cycle_duration = Gauge(
            'latency_agent_cycle_duration_seconds',
            'Duration of the last monitoring cycle in seconds',
            registry=self.registry
        )

        self.last_success = Gauge(
            'latency_agent_last_success_timestamp',
            'Last successful cycle timestamp',
            registry=self.registry
        )

        self.transaction_latency = Gauge(
            'latency_agent_transaction_latency_ms',
            'Mean transaction latency over the last window in milliseconds',
            ['transaction'],
            registry=self.registry
        )

        self.alerts = Counter(
            'latency_agent_alerts_total',
            'Alert gate outcomes',
            ['outcome'],
            registry=self.registry
        )

    def start(self):
        """Start HTTP server"""
        try:
            self.logger.info(f"Starting Prometheus HTTP server on {self.host}:{self.port}")
            start_http_server(self.port, addr=self.host, registry=self.registry)
            self.running = True
            self.logger.info(f"Metrics available at http://{self.host}:{self.port}/metrics")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus HTTP server: {e}")
            raise

    def stop(self):
        """Stop HTTP server"""
        self.running = False
        self.logger.info("Prometheus HTTP server stopped")

    def record_cycle(self, result: str, duration: float, timestamp: float = None):
        """
        Record the outcome of one cycle

        Args:
            result: ok, error or skipped
            duration: Cycle duration in seconds
            timestamp: Unix time of the cycle end (set as last success when ok)
        """
        self.cycles.labels(result=result).inc()
        if result == 'skipped':
            return

        self.cycle_duration.set(duration)
        if result == 'ok' and timestamp is not None:
            self.last_success.set(timestamp)

    def record_error(self, error: Exception):
        self.cycle_errors.labels(error=type(error).__name__).inc()

    def record_latencies(self, means: Dict[str, float]):
        """Replace the per-transaction latency gauges with this cycle's means"""
        self.transaction_latency.clear()
        for name, mean in means.items():
            self.transaction_latency.labels(transaction=name).set(mean)

    def record_alert(self, outcome: str):
        self.alerts.labels(outcome=outcome).inc()
