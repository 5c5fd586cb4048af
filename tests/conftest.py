"""Shared pytest configuration and fixtures."""

import json
import pytest
from pathlib import Path

from rabbitmq_exporter.config.loader import ConfigLoader
from rabbitmq_exporter.config.models import NodeTarget
from rabbitmq_exporter.services.registry import Registry
from rabbitmq_exporter.utils.logger import setup_logger


# Path to example config file
CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.example.yaml"


@pytest.fixture(scope="session")
def config():
    """Load the example configuration."""
    if not CONFIG_PATH.exists():
        pytest.skip(f"Config file not found: {CONFIG_PATH}")

    return ConfigLoader.load_from_file(str(CONFIG_PATH))


@pytest.fixture
def logger():
    """Create logger for tests."""
    return setup_logger("test")


@pytest.fixture
def node_targets(config):
    """Get resolved node targets from the example config."""
    if not config.nodes:
        pytest.skip("No nodes configured in config.example.yaml")
    return config.node_targets()


@pytest.fixture
def target():
    """A single node target."""
    return NodeTarget(
        name="rabbit-a",
        url="http://rabbit-a:15672",
        username="guest",
        password="guest",
        interval="30s",
    )


@pytest.fixture
def registry():
    """Fresh registry per test."""
    return Registry()


@pytest.fixture
def overview_document():
    """Overview document as returned by the management API."""
    return {
        "object_totals": {"connections": 5, "channels": 2},
        "queue_totals": {"messages": 100, "messages_unacknowledged": 3},
        "message_stats": {"publish": 42},
        "node": "rabbit@a",
    }


@pytest.fixture
def overview_body(overview_document):
    """Overview document encoded as a response body."""
    return json.dumps(overview_document).encode("utf-8")
