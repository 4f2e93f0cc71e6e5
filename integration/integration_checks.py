"""
Integration Manager - Integration Health Checks.

============================================================
PURPOSE
============================================================
Decides whether a registered integration is healthy during
maintenance. The result flips the integration between
'active' and 'error'.

- RandomIntegrationHealthCheck: placeholder coin flip
- HttpIntegrationHealthCheck: GET the integration endpoint

============================================================
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from typing import Optional

import aiohttp

from integration.config import MaintenanceSettings
from integration.models import SystemIntegration


logger = logging.getLogger(__name__)


class IntegrationHealthCheck(ABC):
    """Health check for one registered integration."""

    @abstractmethod
    async def check(self, integration: SystemIntegration) -> bool:
        """True if the integration is healthy."""

    async def close(self) -> None:
        """Release any held resources."""


class RandomIntegrationHealthCheck(IntegrationHealthCheck):
    """Healthy with a fixed probability. Stand-in for a real probe."""

    def __init__(self, healthy_probability: float = 0.9, rng: Optional[random.Random] = None) -> None:
        self._healthy_probability = healthy_probability
        self._rng = rng or random.Random()

    async def check(self, integration: SystemIntegration) -> bool:
        return self._rng.random() < self._healthy_probability


class HttpIntegrationHealthCheck(IntegrationHealthCheck):
    """
    Healthy iff a GET on the endpoint answers below HTTP 500.

    Integrations without an endpoint are reported healthy; there
    is nothing to reach.
    """

    def __init__(self, timeout_seconds: float = 10.0) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def check(self, integration: SystemIntegration) -> bool:
        if not integration.endpoint:
            return True

        headers = {}
        if integration.api_key:
            headers["Authorization"] = f"Bearer {integration.api_key}"

        session = await self._get_session()
        try:
            async with session.get(integration.endpoint, headers=headers) as response:
                healthy = response.status < 500
                if not healthy:
                    logger.warning(f"Integration {integration.name} answered HTTP {response.status}")
                return healthy
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Integration {integration.name} unreachable: {e}")
            return False


def build_integration_check(settings: MaintenanceSettings) -> IntegrationHealthCheck:
    """Integration check selected by configuration."""
    if settings.integration_check == "http":
        return HttpIntegrationHealthCheck(timeout_seconds=settings.http_timeout_seconds)
    return RandomIntegrationHealthCheck(healthy_probability=settings.healthy_probability)
