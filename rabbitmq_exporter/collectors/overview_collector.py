"""Broker management API overview collector."""

import logging

import httpx

from ..config.models import NodeTarget
from .base import BaseCollector, FetchError

OVERVIEW_PATH = "/api/overview"


class OverviewCollector(BaseCollector):
    """Fetches the overview document from a node's management API."""

    def __init__(self, logger: logging.Logger):
        super().__init__(logger)

    @staticmethod
    def overview_url(target: NodeTarget) -> str:
        return target.url.rstrip("/") + OVERVIEW_PATH

    async def fetch(self, target: NodeTarget) -> bytes:
        """
        Issue one authenticated GET against the node's overview endpoint.

        Args:
            target: Node to query

        Returns:
            bytes: Response body, left for the extractor to decode

        Raises:
            FetchError: On transport failure or a non-2xx response
        """
        url = self.overview_url(target)
        self.logger.debug(f"Fetching {url}")

        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    url,
                    auth=httpx.BasicAuth(target.username, target.password),
                )
                response.raise_for_status()

        except httpx.HTTPStatusError as e:
            raise FetchError(target.name, e) from e

        except httpx.RequestError as e:
            raise FetchError(target.name, e) from e

        return response.content
