"""Node-labeled metric registry exposed through prometheus_client."""

import threading
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily
from prometheus_client.metrics_core import Metric

from ..utils.metrics import MetricSample

NAMESPACE = "rabbitmq"
NODE_LABEL = "node"


@dataclass(frozen=True)
class SeriesDefinition:
    """Static description of one exported series."""
    name: str
    help: str
    sample_key: str
    kind: str = "gauge"  # "gauge" or "counter"

    def full_name(self, namespace: str) -> str:
        return f"{namespace}_{self.name}"


SERIES: Tuple[SeriesDefinition, ...] = (
    SeriesDefinition("connections_total", "Total number of open connections.", "connections"),
    SeriesDefinition("channels_total", "Total number of open channels.", "channels"),
    SeriesDefinition("queues_total", "Total number of queues in use.", "queues"),
    SeriesDefinition("consumers_total", "Total number of message consumers.", "consumers"),
    SeriesDefinition("exchanges_total", "Total number of exchanges in use.", "exchanges"),
    SeriesDefinition("messages_published", "Total number of messages published.", "publish", kind="counter"),
    SeriesDefinition("messages", "Total number of messages in all queues.", "messages"),
    SeriesDefinition(
        "messages_unacknowledged",
        "Total number of messages unacknowledged in all queues.",
        "messages_unacknowledged",
    ),
)


class _Series:
    """Value holder for one (series, node label) pair."""

    __slots__ = ("_lock", "_value")

    def __init__(self, value: float = 0.0):
        self._lock = threading.Lock()
        self._value = value

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    def get(self) -> float:
        with self._lock:
            return self._value


class Registry:
    """
    Process-wide store of node-labeled series.

    Writers (one poll loop per node) call update(); the scrape handler
    enumerates values through the prometheus_client collector protocol.
    Series are created lazily on first update of a node label and are
    never evicted unless explicitly removed. A scrape running while an
    update is in flight may see some series from the new cycle and some
    from the previous one.
    """

    def __init__(self, namespace: str = NAMESPACE, registry: Optional[CollectorRegistry] = None):
        """
        Initialize registry and register it with prometheus_client.

        Args:
            namespace: Prefix for all series names
            registry: Target CollectorRegistry; a fresh one is created if omitted
        """
        self.namespace = namespace
        self.definitions = SERIES
        self._series: Dict[Tuple[str, str], _Series] = {}
        self._create_lock = threading.Lock()
        self._prometheus_registry = registry if registry is not None else CollectorRegistry()
        self._prometheus_registry.register(self)

    @property
    def prometheus_registry(self) -> CollectorRegistry:
        return self._prometheus_registry

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update(self, sample: MetricSample, node_label: str) -> None:
        """
        Overwrite every series for node_label from a sample.

        Keys missing from the sample are written as zero. The published
        counter is set to the broker's cumulative value, not incremented.

        Args:
            sample: Extracted metric values
            node_label: Value for the node label
        """
        for definition in self.definitions:
            self._get_or_create(definition.name, node_label).set(sample.get(definition.sample_key))

    def seed(self, node_label: str) -> None:
        """Create all series for node_label at zero, keeping existing values."""
        for definition in self.definitions:
            self._get_or_create(definition.name, node_label)

    def remove_label(self, node_label: str) -> None:
        """Drop every series carrying node_label."""
        with self._create_lock:
            for definition in self.definitions:
                self._series.pop((definition.name, node_label), None)

    def _get_or_create(self, name: str, node_label: str) -> _Series:
        key = (name, node_label)
        series = self._series.get(key)
        if series is not None:
            return series
        with self._create_lock:
            series = self._series.get(key)
            if series is None:
                series = _Series()
                self._series[key] = series
            return series

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def value(self, name: str, node_label: str) -> Optional[float]:
        """
        Read the current value of one series.

        Args:
            name: Series name without namespace (e.g. "connections_total")
            node_label: Node label value

        Returns:
            The value, or None if the series was never created
        """
        series = self._series.get((name, node_label))
        return series.get() if series is not None else None

    def labels(self) -> Set[str]:
        """Return the node labels currently present."""
        with self._create_lock:
            return {label for _, label in self._series}

    def snapshot(self) -> Dict[str, Dict[str, float]]:
        """Return {series name: {node label: value}} for all series."""
        with self._create_lock:
            items = list(self._series.items())
        result: Dict[str, Dict[str, float]] = {}
        for (name, label), series in items:
            result.setdefault(name, {})[label] = series.get()
        return result

    def collect(self) -> Iterator[Metric]:
        """Yield one metric family per series definition (collector protocol)."""
        snapshot = self.snapshot()
        for definition in self.definitions:
            full_name = definition.full_name(self.namespace)
            values = sorted(snapshot.get(definition.name, {}).items())
            if definition.kind == "counter":
                family = CounterMetricFamily(full_name, definition.help, labels=[NODE_LABEL])
            else:
                family = GaugeMetricFamily(full_name, definition.help, labels=[NODE_LABEL])
            for label, value in values:
                family.add_metric([label], value)
            yield family

    def describe(self) -> List[Metric]:
        return list(self.collect())

    def render(self) -> bytes:
        """Render all series in the Prometheus text exposition format."""
        return generate_latest(self._prometheus_registry)
