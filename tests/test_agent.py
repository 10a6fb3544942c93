"""Tests for the agent monitoring cycle and scheduler loop"""

import threading
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from latency_agent.agent import Agent
from latency_agent.alerts.alert_gate import AlertGate, AlertOutcome
from latency_agent.alerts.channels.base_channel import BaseChannel
from latency_agent.config.settings import get_default_config
from latency_agent.errors import ResponseError, TransportError, DecodeError
from latency_agent.exporters.prometheus_exporter import PrometheusExporter


class RecordingChannel(BaseChannel):
    """Channel that records every delivered code"""

    def __init__(self):
        self.sent = []

    def deliver(self, alert_code):
        self.sent.append(alert_code)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


# 10:00 in Tehran, inside business hours
IN_HOURS = datetime(2024, 5, 1, 6, 30, tzinfo=timezone.utc)
# 02:30 in Tehran, outside business hours
OFF_HOURS = datetime(2024, 5, 1, 23, 0, tzinfo=timezone.utc)


@pytest.fixture
def config():
    config = get_default_config()
    config['agent']['hostname'] = 'test-host'
    config['apm']['base_url'] = 'http://elastic:9200'
    config['apm']['index_pattern'] = 'apm-*'
    config['notifier']['api_key'] = 'key'
    config['notifier']['sender_number'] = '1'
    config['notifier']['receiver_number'] = '2'
    config['monitoring']['latency_threshold_ms'] = 500.0
    return config


@pytest.fixture
def clock():
    return FakeClock(IN_HOURS)


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def metrics_client():
    client = MagicMock()
    client.fetch_samples.return_value = [
        ('checkout', 600000.0),
        ('checkout', 700000.0),
        ('search', 100000.0),
    ]
    return client


@pytest.fixture
def agent(config, metrics_client, channel, clock):
    gate = AlertGate(channel, 500.0, timedelta(minutes=30), '673', clock=clock)
    return Agent(config, metrics_client=metrics_client, alert_gate=gate, clock=clock)


class TestRunCycle:
    """Test a single query -> aggregate -> alert cycle"""

    def test_slow_transaction_sends_alert(self, agent, metrics_client, channel):
        """Test checkout averaging 650ms over a 500ms threshold alerts once"""
        assert agent.run_cycle() is True

        assert channel.sent == ['673']
        query = metrics_client.fetch_samples.call_args[0][0]
        assert query['query']['bool']['filter'][1]['term']['service.name'] == 'production-search-afra'
        assert query['query']['bool']['filter'][0]['range']['@timestamp']['lte'] == '2024-05-01T06:30:00+00:00'

    def test_empty_samples_no_alert(self, agent, metrics_client, channel):
        """Test an empty window never attempts delivery"""
        metrics_client.fetch_samples.return_value = []

        assert agent.run_cycle() is True
        assert channel.sent == []

    def test_cooldown_across_cycles(self, agent, channel, clock):
        """Test back-to-back cycles inside the cooldown alert once"""
        agent.run_cycle()
        clock.now += timedelta(minutes=5)
        agent.run_cycle()
        assert channel.sent == ['673']

        clock.now += timedelta(minutes=30)
        agent.run_cycle()
        assert channel.sent == ['673', '673']

    @pytest.mark.parametrize('error', [
        ResponseError(500),
        TransportError("connection refused"),
        DecodeError("bad body"),
    ])
    def test_backend_errors_are_contained(self, agent, metrics_client, channel, error):
        """Test client errors fail the cycle without raising or alerting"""
        metrics_client.fetch_samples.side_effect = error

        assert agent.run_cycle() is False
        assert channel.sent == []

    def test_http_500_skips_aggregation(self, agent, metrics_client, monkeypatch):
        """Test aggregation never runs when the backend returns 500"""
        metrics_client.fetch_samples.side_effect = ResponseError(500)
        aggregate = MagicMock()
        monkeypatch.setattr('latency_agent.agent.aggregate_latencies', aggregate)

        assert agent.run_cycle() is False
        aggregate.assert_not_called()

    def test_unexpected_error_is_contained(self, agent, metrics_client):
        """Test any other exception is logged and reported as failure"""
        metrics_client.fetch_samples.side_effect = RuntimeError("boom")

        assert agent.run_cycle() is False


class TestTick:
    """Test scheduler ticks and the business-hours gate"""

    def test_tick_inside_hours_runs_cycle(self, agent, metrics_client, config):
        """Test a tick in hours runs the cycle and sleeps one interval"""
        assert agent.tick() == config['monitoring']['interval']
        metrics_client.fetch_samples.assert_called_once()

    def test_tick_outside_hours_skips(self, agent, metrics_client, clock, config):
        """Test a tick outside hours skips the cycle"""
        clock.now = OFF_HOURS

        assert agent.tick() == config['monitoring']['off_hours_interval']
        metrics_client.fetch_samples.assert_not_called()

    def test_window_disabled(self, config, metrics_client, channel, clock):
        """Test disabling business hours monitors around the clock"""
        config['monitoring']['business_hours']['enabled'] = False
        clock.now = OFF_HOURS
        gate = AlertGate(channel, 500.0, timedelta(minutes=30), '673', clock=clock)
        agent = Agent(config, metrics_client=metrics_client, alert_gate=gate, clock=clock)

        agent.tick()

        metrics_client.fetch_samples.assert_called_once()

    def test_tick_after_failed_cycle_keeps_interval(self, agent, metrics_client, config):
        """Test a failed cycle still waits the normal interval"""
        metrics_client.fetch_samples.side_effect = ResponseError(500)
        assert agent.tick() == config['monitoring']['interval']


class TestAgentLoop:
    """Test the start/stop loop"""

    def test_loop_continues_after_errors(self, config, metrics_client, channel, clock):
        """Test failing cycles do not end the loop"""
        config['monitoring']['interval'] = 0.01
        calls = []

        def fetch(query):
            calls.append(query)
            if len(calls) >= 3:
                agent.stop()
            raise TransportError("down")

        metrics_client.fetch_samples.side_effect = fetch
        gate = AlertGate(channel, 500.0, timedelta(minutes=30), '673', clock=clock)
        agent = Agent(config, metrics_client=metrics_client, alert_gate=gate, clock=clock)

        thread = threading.Thread(target=agent.start)
        thread.start()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert len(calls) == 3
        assert agent.running is False

    def test_stop_before_start_returns(self, agent, metrics_client):
        """Test a stop issued before the loop starts keeps start() from blocking"""
        agent.stop()

        thread = threading.Thread(target=agent.start)
        thread.start()
        thread.join(timeout=5)

        assert not thread.is_alive()
        metrics_client.fetch_samples.assert_not_called()
        assert agent.running is False

    def test_restart_after_stop(self, config, metrics_client, channel, clock):
        """Test the agent can be started again after a completed run"""
        config['monitoring']['interval'] = 0.01
        gate = AlertGate(channel, 500.0, timedelta(minutes=30), '673', clock=clock)
        agent = Agent(config, metrics_client=metrics_client, alert_gate=gate, clock=clock)

        def fetch(query):
            agent.stop()
            return []

        metrics_client.fetch_samples.side_effect = fetch

        for _ in range(2):
            thread = threading.Thread(target=agent.start)
            thread.start()
            thread.join(timeout=5)
            assert not thread.is_alive()

        assert metrics_client.fetch_samples.call_count == 2


class TestAgentExporter:
    """Test self-metrics recorded by the agent"""

    def test_cycle_metrics(self, config, metrics_client, channel, clock):
        """Test latency gauges and alert outcomes are exported"""
        exporter = PrometheusExporter(config)
        gate = AlertGate(channel, 500.0, timedelta(minutes=30), '673', clock=clock)
        agent = Agent(config, metrics_client=metrics_client, alert_gate=gate,
                      exporter=exporter, clock=clock)

        agent.run_cycle()

        registry = exporter.registry
        assert registry.get_sample_value(
            'latency_agent_transaction_latency_ms', {'transaction': 'checkout'}
        ) == pytest.approx(650.0)
        assert registry.get_sample_value(
            'latency_agent_alerts_total', {'outcome': AlertOutcome.SENT}
        ) == 1.0
        assert registry.get_sample_value('latency_agent_cycles_total', {'result': 'ok'}) == 1.0

    def test_error_metrics(self, config, metrics_client, clock):
        """Test failed cycles are counted by error type"""
        exporter = PrometheusExporter(config)
        metrics_client.fetch_samples.side_effect = ResponseError(500)
        agent = Agent(config, metrics_client=metrics_client, exporter=exporter, clock=clock)

        agent.run_cycle()

        registry = exporter.registry
        assert registry.get_sample_value(
            'latency_agent_cycle_errors_total', {'error': 'ResponseError'}
        ) == 1.0
        assert registry.get_sample_value('latency_agent_cycles_total', {'result': 'error'}) == 1.0

    def test_latency_gauges_reset_each_cycle(self, config, metrics_client, clock, channel):
        """Test transactions absent from a cycle drop out of the gauges"""
        exporter = PrometheusExporter(config)
        gate = AlertGate(channel, 500.0, timedelta(minutes=30), '673', clock=clock)
        agent = Agent(config, metrics_client=metrics_client, alert_gate=gate,
                      exporter=exporter, clock=clock)

        agent.run_cycle()
        metrics_client.fetch_samples.return_value = [('search', 1000.0)]
        agent.run_cycle()

        registry = exporter.registry
        assert registry.get_sample_value(
            'latency_agent_transaction_latency_ms', {'transaction': 'checkout'}
        ) is None
        assert registry.get_sample_value(
            'latency_agent_transaction_latency_ms', {'transaction': 'search'}
        ) == pytest.approx(1.0)
