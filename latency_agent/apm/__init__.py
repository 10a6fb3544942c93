"""
APM query, client and aggregation module for the latency agent.
"""

from latency_agent.apm.query_builder import build_search_query
from latency_agent.apm.client import MetricsClient, parse_search_response
from latency_agent.apm.aggregator import TransactionAggregate, group_samples, aggregate_latencies

__all__ = [
    'build_search_query',
    'MetricsClient',
    'parse_search_response',
    'TransactionAggregate',
    'group_samples',
    'aggregate_latencies',
]
