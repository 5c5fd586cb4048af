"""Tests for node polling loops and the scheduler."""

import asyncio
import json
import logging
from unittest.mock import AsyncMock, patch

import pytest

from rabbitmq_exporter.collectors.base import BaseCollector, FetchError
from rabbitmq_exporter.config.models import NodeTarget
from rabbitmq_exporter.services.scheduler import NodePoller, Scheduler
from rabbitmq_exporter.utils.duration import DEFAULT_INTERVAL_SECONDS


class FakeCollector(BaseCollector):
    """Collector returning scripted responses per node."""

    def __init__(self, responses=None, logger=None):
        super().__init__(logger or logging.getLogger(__name__))
        self.responses = responses or {}
        self.calls = []

    async def fetch(self, target):
        self.calls.append(target.name)
        queue = self.responses[target.name]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response


def body(**overrides):
    document = {
        "object_totals": {"connections": 5, "channels": 2},
        "queue_totals": {"messages": 100, "messages_unacknowledged": 3},
        "message_stats": {"publish": 42},
        "node": "rabbit@a",
    }
    document.update(overrides)
    return json.dumps(document).encode("utf-8")


def make_target(name="rabbit-a", interval="30s"):
    return NodeTarget(name=name, url=f"http://{name}:15672", interval=interval)


class TestNodePoller:
    @pytest.mark.asyncio
    async def test_successful_cycle(self, registry, logger):
        collector = FakeCollector({"rabbit-a": [body()]})
        poller = NodePoller(make_target(), registry, logger, collector=collector)

        assert await poller.poll_once() is True

        assert registry.value("connections_total", "rabbit@a") == 5.0
        assert registry.value("channels_total", "rabbit@a") == 2.0
        assert registry.value("messages", "rabbit@a") == 100.0
        assert registry.value("messages_unacknowledged", "rabbit@a") == 3.0
        assert registry.value("messages_published", "rabbit@a") == 42.0
        assert registry.value("queues_total", "rabbit@a") == 0.0
        assert registry.value("consumers_total", "rabbit@a") == 0.0
        assert registry.value("exchanges_total", "rabbit@a") == 0.0

    @pytest.mark.asyncio
    async def test_configured_name_until_identity_discovered(self, registry, logger):
        collector = FakeCollector({"rabbit-a": [body()]})
        poller = NodePoller(make_target(), registry, logger, collector=collector)

        poller.seed()
        assert poller.label == "rabbit-a"
        assert registry.labels() == {"rabbit-a"}

        await poller.poll_once()

        assert poller.label == "rabbit@a"
        assert registry.labels() == {"rabbit@a"}

    @pytest.mark.asyncio
    async def test_missing_identity_uses_configured_name(self, registry, logger):
        collector = FakeCollector({"rabbit-a": [body(node=None)]})
        poller = NodePoller(make_target(), registry, logger, collector=collector)

        await poller.poll_once()

        assert registry.labels() == {"rabbit-a"}
        assert registry.value("connections_total", "rabbit-a") == 5.0

    @pytest.mark.asyncio
    async def test_missing_identity_keeps_discovered_label(self, registry, logger):
        collector = FakeCollector({"rabbit-a": [body(), body(node=None, object_totals={"connections": 8})]})
        poller = NodePoller(make_target(), registry, logger, collector=collector)

        await poller.poll_once()
        await poller.poll_once()

        assert registry.labels() == {"rabbit@a"}
        assert registry.value("connections_total", "rabbit@a") == 8.0

    @pytest.mark.asyncio
    async def test_fetch_error_keeps_previous_values(self, registry, logger):
        collector = FakeCollector({
            "rabbit-a": [body(), FetchError("rabbit-a", ConnectionError("refused"))]
        })
        poller = NodePoller(make_target(), registry, logger, collector=collector)

        assert await poller.poll_once() is True
        before = registry.snapshot()

        assert await poller.poll_once() is False
        assert registry.snapshot() == before

    @pytest.mark.asyncio
    async def test_malformed_body_keeps_previous_values(self, registry, logger):
        collector = FakeCollector({"rabbit-a": [body(), b"<html>502</html>"]})
        poller = NodePoller(make_target(), registry, logger, collector=collector)

        await poller.poll_once()
        before = registry.snapshot()

        assert await poller.poll_once() is False
        assert registry.snapshot() == before

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_escape(self, registry, logger):
        collector = FakeCollector({"rabbit-a": [RuntimeError("boom")]})
        poller = NodePoller(make_target(), registry, logger, collector=collector)

        assert await poller.poll_once() is False

    def test_invalid_interval_falls_back(self, registry, caplog):
        logger = logging.getLogger("scheduler-test")

        with caplog.at_level(logging.WARNING):
            poller = NodePoller(make_target(interval="notaduration"), registry, logger,
                                collector=FakeCollector())

        assert poller.interval == DEFAULT_INTERVAL_SECONDS
        assert "notaduration" in caplog.text

    def test_valid_interval(self, registry, logger):
        poller = NodePoller(make_target(interval="1m30s"), registry, logger, collector=FakeCollector())
        assert poller.interval == 90.0

    @pytest.mark.asyncio
    async def test_loop_continues_after_failure(self, registry, logger):
        collector = FakeCollector({
            "rabbit-a": [FetchError("rabbit-a", ConnectionError("refused")), body()]
        })
        poller = NodePoller(make_target(interval="notaduration"), registry, logger, collector=collector)

        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)
            if len(sleeps) >= 2:
                raise asyncio.CancelledError()

        with patch("rabbitmq_exporter.services.scheduler.asyncio.sleep", fake_sleep):
            with pytest.raises(asyncio.CancelledError):
                await poller.run()

        assert collector.calls == ["rabbit-a", "rabbit-a"]
        assert sleeps == [DEFAULT_INTERVAL_SECONDS, DEFAULT_INTERVAL_SECONDS]
        assert registry.value("connections_total", "rabbit@a") == 5.0


class TestScheduler:
    @pytest.mark.asyncio
    async def test_one_loop_per_node(self, registry, logger):
        targets = [make_target("rabbit-a"), make_target("rabbit-b"), make_target("rabbit-c")]
        collector = FakeCollector({t.name: [FetchError(t.name, ConnectionError("down"))] for t in targets})
        scheduler = Scheduler(targets, registry, logger, collector=collector)

        tasks = scheduler.start()
        try:
            assert len(tasks) == 3
            assert {t.get_name() for t in tasks} == {"poll:rabbit-a", "poll:rabbit-b", "poll:rabbit-c"}
            await asyncio.sleep(0.05)
        finally:
            await scheduler.stop()

        assert all(task.done() for task in tasks)
        # Unreachable nodes stay visible at zero under their configured names
        assert registry.labels() == {"rabbit-a", "rabbit-b", "rabbit-c"}
        assert registry.value("connections_total", "rabbit-b") == 0.0

    @pytest.mark.asyncio
    async def test_labels_follow_discovered_identities(self, registry, logger):
        targets = [make_target("rabbit-a"), make_target("rabbit-b")]
        collector = FakeCollector({
            "rabbit-a": [body(node="rabbit@a")],
            "rabbit-b": [body(node="rabbit@b", object_totals={"connections": 7})],
        })
        scheduler = Scheduler(targets, registry, logger, collector=collector)

        results = await scheduler.run_once()

        assert results == [True, True]
        assert registry.labels() == {"rabbit@a", "rabbit@b"}
        assert registry.value("connections_total", "rabbit@a") == 5.0
        assert registry.value("connections_total", "rabbit@b") == 7.0

    @pytest.mark.asyncio
    async def test_slow_node_does_not_block_others(self, registry, logger):
        targets = [make_target("slow"), make_target("fast")]

        class SlowCollector(FakeCollector):
            async def fetch(self, target):
                if target.name == "slow":
                    await asyncio.sleep(3600)
                return await super().fetch(target)

        collector = SlowCollector({"fast": [body(node="rabbit@fast")]})
        scheduler = Scheduler(targets, registry, logger, collector=collector)

        scheduler.start()
        try:
            for _ in range(50):
                if registry.value("connections_total", "rabbit@fast") is not None:
                    break
                await asyncio.sleep(0.01)
        finally:
            await scheduler.stop()

        assert registry.value("connections_total", "rabbit@fast") == 5.0
        assert registry.value("connections_total", "slow") == 0.0

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, registry, logger):
        collector = FakeCollector({"rabbit-a": [FetchError("rabbit-a", ConnectionError("down"))]})
        scheduler = Scheduler([make_target()], registry, logger, collector=collector)

        first = scheduler.start()
        try:
            assert scheduler.start() is first
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_default_collector(self, registry, logger):
        scheduler = Scheduler([make_target()], registry, logger)
        with patch.object(scheduler.pollers[0].collector, "fetch", AsyncMock(return_value=body())):
            assert await scheduler.run_once() == [True]
