"""Workload management abstraction used by the operator endpoints."""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from cortex_cli.config.settings import get_settings


class WorkloadManager(ABC):
    """Abstract base for deleting deployed apps."""

    @abstractmethod
    async def delete_app(self, app_name: str, keep_cache: bool = False) -> bool:
        """Tear down an app. Returns False if it wasn't deployed."""
        ...


class InMemoryWorkloadManager(WorkloadManager):
    """Tracks deployed app names in memory."""

    def __init__(self, deployed: Iterable[str] = ()):
        self._deployed: set[str] = set(deployed)
        self.cached: set[str] = set()

    def deploy(self, app_name: str) -> None:
        self._deployed.add(app_name)

    def is_deployed(self, app_name: str) -> bool:
        return app_name in self._deployed

    async def delete_app(self, app_name: str, keep_cache: bool = False) -> bool:
        if app_name not in self._deployed:
            return False
        self._deployed.discard(app_name)
        if keep_cache:
            self.cached.add(app_name)
        else:
            self.cached.discard(app_name)
        return True


_manager: WorkloadManager | None = None


def get_workload_manager() -> WorkloadManager:
    """Get the workload manager singleton, seeded from DEPLOYED_APPS."""
    global _manager
    if _manager is None:
        _manager = InMemoryWorkloadManager(get_settings().deployed_apps_list)
    return _manager
