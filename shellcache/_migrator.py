from __future__ import annotations

import logging
import typing as tp

from ._config import ARCHITECTURE_KEY, ARCHITECTURE_VERSION
from ._models import InstallContext, MigrationDecision
from ._tasks import BackgroundTasks
from ._version_store import AsyncBaseVersionStore

logger = logging.getLogger("shellcache.migrator")

__all__ = ("VersionMigrator", "Clients", "WindowClient", "needs_reload")


class WindowClient(tp.Protocol):
    url: str

    async def navigate(self, url: str) -> tp.Any: ...


class Clients(tp.Protocol):
    """The open pages of the site, as exposed by the hosting runtime."""

    async def claim(self) -> None: ...

    async def match_all(
        self, *, include_uncontrolled: bool = False, type: str = "window"
    ) -> tp.Sequence[WindowClient]: ...


def needs_reload(context: InstallContext, previous_architecture: tp.Optional[str], architecture: str) -> bool:
    """
    Decide whether open pages must be reloaded on activation.

    Only an upgrade over an active worker that recorded a different architecture
    forces a reload; fresh installs and unrecorded predecessors upgrade in due course.
    """
    if not context.replacing_previous_worker:
        return False
    if previous_architecture is None:
        return False
    return previous_architecture != architecture


class VersionMigrator:
    """
    Reloads open pages when the worker architecture changes incompatibly.

    :param store: Durable store holding the last activated architecture
    :type store: AsyncBaseVersionStore
    :param clients: Open pages of the site
    :type clients: Clients
    :param tasks: Task group the page navigations are spawned on
    :type tasks: BackgroundTasks
    """

    def __init__(
        self,
        store: AsyncBaseVersionStore,
        clients: Clients,
        tasks: BackgroundTasks,
        architecture: str = ARCHITECTURE_VERSION,
        key: str = ARCHITECTURE_KEY,
    ) -> None:
        self._store = store
        self._clients = clients
        self._tasks = tasks
        self.architecture = architecture
        self._key = key

    async def migrate(self, context: InstallContext) -> MigrationDecision:
        previous_architecture = await self._store.get(self._key)

        if not needs_reload(context, previous_architecture, self.architecture):
            return MigrationDecision(
                previous_architecture=previous_architecture,
                current_architecture=self.architecture,
                reloaded=False,
            )

        if not self._tasks.running:
            raise RuntimeError("Page reloads can only be spawned inside `async with BackgroundTasks()`")

        logger.info(f"Worker upgrade from arch {previous_architecture} to arch {self.architecture}")

        await self._clients.claim()

        window_clients = await self._clients.match_all(include_uncontrolled=True, type="window")
        # Navigations need this very worker to answer them, so they must not be awaited here.
        for client in window_clients:
            self._tasks.start_soon(client.navigate, client.url, name=f"reload {client.url}")

        await self._store.set(self._key, self.architecture)

        return MigrationDecision(
            previous_architecture=previous_architecture,
            current_architecture=self.architecture,
            reloaded=True,
            reloaded_clients=len(window_clients),
        )
