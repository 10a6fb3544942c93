"""
HTTP client for the APM Elasticsearch backend.
"""

import logging
from typing import Any, Dict, List, Tuple

import requests

from latency_agent.errors import TransportError, ResponseError, DecodeError

logger = logging.getLogger(__name__)

Sample = Tuple[str, float]


class MetricsClient:
    """Runs latency queries against {base_url}/{index_pattern}/_search"""

    def __init__(self, config: Dict):
        """
        Initialize metrics client.

        Args:
            config: The 'apm' configuration section with base_url,
                index_pattern and timeout
        """
        self.base_url = config['base_url']
        self.index_pattern = config['index_pattern']
        self.timeout = config.get('timeout', 10)

        logger.info(f"Metrics client initialized (url: {self.search_url})")

    @property
    def search_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.index_pattern}/_search"

    def fetch_samples(self, query: Dict[str, Any]) -> List[Sample]:
        """
        Execute the query and flatten the response into samples.

        Args:
            query: Search body from build_search_query

        Returns:
            List of (transaction_name, raw_value) pairs, one per histogram value

        Raises:
            TransportError: Connection, DNS or timeout failure
            ResponseError: Non-2xx HTTP status
            DecodeError: Body is not JSON or has an unexpected shape
        """
        logger.debug(f"Querying {self.search_url}")

        try:
            response = requests.post(
                self.search_url,
                json=query,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Error querying {self.search_url}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ResponseError(
                response.status_code,
                f"{self.search_url} returned HTTP {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise DecodeError(f"Response from {self.search_url} is not valid JSON: {e}") from e

        samples = parse_search_response(body)
        logger.debug(f"Fetched {len(samples)} samples")
        return samples


def parse_search_response(body: Any) -> List[Sample]:
    """
    Flatten hits.hits[]._source.transaction into (name, value) pairs.

    Raises:
        DecodeError: If the body does not have the expected structure
    """
    try:
        hits = body['hits']['hits']
    except (KeyError, TypeError):
        raise DecodeError("Response has no hits.hits list")
    if not isinstance(hits, list):
        raise DecodeError("hits.hits is not a list")

    samples = []
    for index, hit in enumerate(hits):
        try:
            transaction = hit['_source']['transaction']
            name = transaction['name']
            histogram = _histogram(transaction)
            values = histogram['values']
        except (KeyError, TypeError):
            raise DecodeError(f"Hit {index} is missing transaction name or histogram values")

        if not isinstance(name, str):
            raise DecodeError(f"Hit {index} has a non-string transaction name")
        if not isinstance(values, list):
            raise DecodeError(f"Hit {index} histogram values is not a list")

        for value in values:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise DecodeError(f"Hit {index} has a non-numeric histogram value: {value!r}")
            samples.append((name, float(value)))

    return samples


def _histogram(transaction: Dict) -> Dict:
    # Stored either under the dotted field name or as nested objects
    if 'duration.histogram' in transaction:
        return transaction['duration.histogram']
    return transaction['duration']['histogram']
