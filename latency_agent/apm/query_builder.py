"""
Elasticsearch query construction for APM transaction latency samples.
"""

from datetime import datetime, timedelta
from typing import Dict, Any, List

SOURCE_FIELDS: List[str] = [
    'transaction.name',
    'transaction.duration.histogram.values',
]


def format_timestamp(instant: datetime) -> str:
    """Render an aware datetime as RFC 3339 with an explicit UTC offset"""
    return instant.replace(microsecond=0).isoformat()


def build_search_query(now: datetime, apm_config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the search body selecting latency samples in [now - lookback, now].

    Args:
        now: Timezone-aware reference instant
        apm_config: The 'apm' configuration section (service_name,
            lookback_minutes, max_results)

    Returns:
        Query body ready to be serialised as JSON

    Raises:
        ValueError: If now is naive
    """
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware")

    window_start = now - timedelta(minutes=apm_config.get('lookback_minutes', 5))

    return {
        'query': {
            'bool': {
                'filter': [
                    {
                        'range': {
                            '@timestamp': {
                                'gte': format_timestamp(window_start),
                                'lte': format_timestamp(now),
                            }
                        }
                    },
                    {
                        'term': {
                            'service.name': apm_config['service_name'],
                        }
                    },
                ]
            }
        },
        '_source': list(SOURCE_FIELDS),
        'size': apm_config.get('max_results', 10000),
    }
