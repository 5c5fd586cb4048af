"""Base collector class and errors shared by node collectors."""

from abc import ABC, abstractmethod
import logging

from ..config.models import NodeTarget


class FetchError(Exception):
    """Raised when a node status document cannot be retrieved."""

    def __init__(self, node: str, cause: Exception):
        """
        Initialize fetch error.

        Args:
            node: Configured name of the node that failed
            cause: Underlying transport or HTTP error
        """
        super().__init__(f"Failed to fetch status from {node}: {cause}")
        self.node = node
        self.cause = cause


class BaseCollector(ABC):
    """Abstract base class for node collectors."""

    def __init__(self, logger: logging.Logger):
        """
        Initialize base collector.

        Args:
            logger: Logger instance
        """
        self.logger = logger.getChild(self.__class__.__name__)

    @abstractmethod
    async def fetch(self, target: NodeTarget) -> bytes:
        """
        Retrieve the raw status document for a node.

        Args:
            target: Node to query

        Returns:
            bytes: Undecoded response body

        Raises:
            FetchError: If the document could not be retrieved
        """
        pass
