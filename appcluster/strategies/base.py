from abc import ABC, abstractmethod

from ..cluster.models import ResourceNodeDnsResult, ResourceSynchronizationResult, ResourceTestResult


class SynchronizationStrategy(ABC):
    """Transport-specific eligibility rules and actions for one resource type.

    ``can_synchronize`` and ``can_test`` must be pure: they only look at the two
    DNS results they are given. ``synchronize`` and ``test`` are only called after
    the matching predicate returned True for the same pair of results, and they
    report failures through the returned result instead of raising.
    """

    name: str = ""

    @abstractmethod
    def can_synchronize(self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult) -> bool:
        ...

    @abstractmethod
    async def synchronize(
        self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult
    ) -> ResourceSynchronizationResult:
        ...

    @abstractmethod
    def can_test(self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult) -> bool:
        ...

    @abstractmethod
    async def test(self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult) -> ResourceTestResult:
        ...

    def __repr__(self):
        return f"{type(self).__name__}()"
