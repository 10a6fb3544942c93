"""
Reduce raw latency samples into per-transaction mean latency.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple


@dataclass
class TransactionAggregate:
    """Latency samples for one transaction in the current window"""
    name: str
    samples_ms: List[float] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.samples_ms)

    @property
    def mean_ms(self) -> float:
        return sum(self.samples_ms) / len(self.samples_ms)


def group_samples(samples: Iterable[Tuple[str, float]],
                  unit_divisor: float) -> Dict[str, TransactionAggregate]:
    """
    Convert samples to milliseconds and group them by transaction name.

    Args:
        samples: (transaction_name, raw_value) pairs
        unit_divisor: Raw unit per millisecond (1000 for microseconds)

    Returns:
        Dict of transaction name to aggregate. Only transactions with at
        least one sample appear.
    """
    if unit_divisor <= 0:
        raise ValueError(f"unit_divisor must be > 0, got {unit_divisor}")

    grouped: Dict[str, List[float]] = defaultdict(list)
    for name, value in samples:
        grouped[name].append(value / unit_divisor)

    return {
        name: TransactionAggregate(name=name, samples_ms=values)
        for name, values in grouped.items()
    }


def aggregate_latencies(samples: Iterable[Tuple[str, float]],
                        unit_divisor: float) -> Dict[str, float]:
    """Mean latency in milliseconds per transaction name"""
    return {
        name: aggregate.mean_ms
        for name, aggregate in group_samples(samples, unit_divisor).items()
    }
