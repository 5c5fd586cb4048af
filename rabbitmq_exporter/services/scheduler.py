"""Per-node polling loops feeding the metric registry."""

import asyncio
import logging
from functools import wraps
from typing import List, Optional

from ..collectors.base import BaseCollector, FetchError
from ..collectors.extractor import OverviewExtractor
from ..collectors.overview_collector import OverviewCollector
from ..config.models import NodeTarget
from ..utils.duration import resolve_interval
from .registry import Registry


def safe_cycle(func):
    """
    Decorator that keeps a poll loop alive across unexpected errors.

    Any exception escaping a cycle is logged with its traceback and the
    cycle is reported as failed. Cancellation is not intercepted.

    Args:
        func: Poll cycle coroutine to wrap

    Returns:
        Wrapped coroutine returning False on failure
    """
    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except Exception as e:
            self.logger.error(f"Poll cycle failed: {e}", exc_info=True)
            return False
    return wrapper


class NodePoller:
    """
    Polling loop for a single node.

    Each cycle fetches the overview document, extracts a sample and
    writes it to the registry, then the loop sleeps for the node's
    interval. Failures skip the update and leave previous values in
    place.
    """

    def __init__(
        self,
        target: NodeTarget,
        registry: Registry,
        logger: logging.Logger,
        collector: Optional[BaseCollector] = None,
        extractor: Optional[OverviewExtractor] = None,
    ):
        """
        Initialize node poller.

        Args:
            target: Node to poll
            registry: Registry receiving updates
            logger: Parent logger; a child named after the node is used
            collector: Fetcher for the overview document
            extractor: Payload extractor
        """
        self.target = target
        self.registry = registry
        self.logger = logger.getChild(f"node.{target.name}")
        self.collector = collector or OverviewCollector(self.logger)
        self.extractor = extractor or OverviewExtractor(self.logger)
        self.interval = resolve_interval(target.interval, self.logger)
        self.identity = ""  # Last identity reported by the node itself
        self.cycles = 0

    @property
    def label(self) -> str:
        """Label used for this node's series: discovered identity, else configured name."""
        return self.identity or self.target.name

    def seed(self) -> None:
        """Make the node visible at zero before its first successful poll."""
        self.registry.seed(self.label)

    @safe_cycle
    async def poll_once(self) -> bool:
        """
        Run one fetch, extract and update cycle.

        Returns:
            bool: True if the registry was updated
        """
        self.cycles += 1

        try:
            payload = await self.collector.fetch(self.target)
        except FetchError as e:
            self.logger.error(str(e))
            return False

        sample = self.extractor.extract(payload)
        if sample.is_empty:
            self.logger.error("Overview document yielded no data, keeping previous values")
            return False

        if sample.node and sample.node != self.identity:
            self._adopt_identity(sample.node)

        self.registry.update(sample, self.label)
        self.logger.info(
            "Metrics updated successfully.",
            extra={"node": self.target.name, "label": self.label, "metrics": len(sample)}
        )
        return True

    def _adopt_identity(self, identity: str) -> None:
        previous = self.label
        self.identity = identity
        if previous == self.target.name and previous != identity:
            # Placeholder seeded under the configured name
            self.registry.remove_label(previous)
        self.logger.info(f"Node {self.target.name} reports identity {identity}")

    async def run(self) -> None:
        """Poll forever, sleeping for the node interval after every cycle."""
        self.logger.info(f"Polling {self.target.url} every {self.interval:g}s")
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)


class Scheduler:
    """Starts and owns one NodePoller task per configured node."""

    def __init__(
        self,
        targets: List[NodeTarget],
        registry: Registry,
        logger: logging.Logger,
        collector: Optional[BaseCollector] = None,
    ):
        self.logger = logger.getChild(self.__class__.__name__)
        self.registry = registry
        self.pollers = [
            NodePoller(target, registry, logger, collector=collector)
            for target in targets
        ]
        self.tasks: List[asyncio.Task] = []

    def start(self) -> List[asyncio.Task]:
        """
        Seed every node and launch its polling loop.

        Must be called from a running event loop.

        Returns:
            List[asyncio.Task]: One task per node
        """
        if self.tasks:
            return self.tasks

        for poller in self.pollers:
            poller.seed()
            self.tasks.append(
                asyncio.create_task(poller.run(), name=f"poll:{poller.target.name}")
            )

        self.logger.info(f"Started {len(self.tasks)} polling loop(s)")
        return self.tasks

    async def stop(self) -> None:
        """Cancel all polling loops and wait for them to finish."""
        for task in self.tasks:
            task.cancel()
        await asyncio.gather(*self.tasks, return_exceptions=True)
        self.tasks = []
        self.logger.info("Polling loops stopped")

    async def run_once(self) -> List[bool]:
        """Poll every node once concurrently."""
        for poller in self.pollers:
            poller.seed()
        return list(await asyncio.gather(*(poller.poll_once() for poller in self.pollers)))

    async def run_forever(self) -> None:
        """Start all loops and wait until they are cancelled."""
        tasks = self.start()
        try:
            await asyncio.gather(*tasks)
        finally:
            await self.stop()
