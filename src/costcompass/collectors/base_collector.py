# src/costcompass/collectors/base_collector.py
"""
This module defines the abstract base class for all data collectors.
Enforcing this interface ensures that all collectors have a consistent
method signature, making them interchangeable for the Collector service
and easy to replace with fakes in tests.
"""

from abc import ABC, abstractmethod
from typing import Any, List


class BaseCollector(ABC):
    """
    Abstract Base Class for all source collectors.
    """

    @abstractmethod
    async def collect(self) -> List[Any]:
        """
        The main method for a collector. It should fetch data from its
        source, parse it, and return a list of Pydantic models. Source
        failures are raised as SourceUnavailable or MetricsUnavailable.
        """
        pass

    async def close(self):
        """
        Clean up resources (e.g., close HTTP sessions or API clients).
        """
        pass
