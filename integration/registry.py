"""
Integration Manager - Service Registry.

Ordered name -> service container handed to the health
aggregator and the maintenance tasks. Built once at startup and
frozen; registration order is the order of every health report.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple


logger = logging.getLogger(__name__)


class ServiceRegistry:
    """Insertion-ordered service container."""

    def __init__(self) -> None:
        self._services: Dict[str, Any] = {}
        self._frozen = False

    def register(self, name: str, service: Any) -> None:
        """
        Add a service under a unique name.

        Raises:
            RuntimeError if the registry is frozen
            ValueError if the name is already registered
        """
        if self._frozen:
            raise RuntimeError(f"Service registry is frozen, cannot register {name}")
        if name in self._services:
            raise ValueError(f"Service already registered: {name}")
        self._services[name] = service
        logger.debug(f"Registered service: {name}")

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Optional[Any]:
        return self._services.get(name)

    def require(self, name: str) -> Any:
        """
        Look up a service that must exist.

        Raises:
            KeyError if it is not registered
        """
        try:
            return self._services[name]
        except KeyError:
            raise KeyError(f"Service not registered: {name}") from None

    def names(self) -> List[str]:
        return list(self._services)

    def items(self) -> List[Tuple[str, Any]]:
        return list(self._services.items())

    def __contains__(self, name: object) -> bool:
        return name in self._services

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._services))

    def __len__(self) -> int:
        return len(self._services)

    @classmethod
    def from_mapping(cls, services: Dict[str, Any], freeze: bool = True) -> "ServiceRegistry":
        """Build a registry from an ordered mapping."""
        registry = cls()
        for name, service in services.items():
            registry.register(name, service)
        if freeze:
            registry.freeze()
        return registry
