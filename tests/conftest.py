import os
import typing as tp

import pytest

from shellcache import (
    AsyncContentWorker,
    AsyncInMemoryStorage,
    AsyncInMemoryVersionStore,
    ManifestEntry,
    MockAsyncTransport,
    WorkerConfig,
)

ORIGIN = "https://example.com"
TEMPLATE = "<html>%_CONTENT_REPLACE_%</html>"


class FakeWindowClient:
    def __init__(self, url: str, navigations: tp.List[str]) -> None:
        self.url = url
        self._navigations = navigations

    async def navigate(self, url: str) -> None:
        self._navigations.append(url)


class FakeClients:
    def __init__(self, urls: tp.Sequence[str] = ()) -> None:
        self.events: tp.List[str] = []
        self.navigations: tp.List[str] = []
        self._urls = list(urls)

    async def claim(self) -> None:
        self.events.append("claim")

    async def match_all(
        self, *, include_uncontrolled: bool = False, type: str = "window"
    ) -> tp.Sequence[FakeWindowClient]:
        self.events.append(f"match_all(include_uncontrolled={include_uncontrolled}, type={type})")
        return [FakeWindowClient(url, self.navigations) for url in self._urls]


@pytest.fixture()
def use_temp_dir(tmpdir):
    cur_dir = os.getcwd()
    os.chdir(tmpdir)
    yield
    os.chdir(cur_dir)


@pytest.fixture()
def transport() -> MockAsyncTransport:
    return MockAsyncTransport()


@pytest.fixture()
def storage() -> AsyncInMemoryStorage:
    return AsyncInMemoryStorage()


@pytest.fixture()
def version_store() -> AsyncInMemoryVersionStore:
    return AsyncInMemoryVersionStore()


@pytest.fixture()
def clients() -> FakeClients:
    return FakeClients([f"{ORIGIN}/", f"{ORIGIN}/blog/"])


@pytest.fixture()
def make_worker(
    transport: MockAsyncTransport,
    storage: AsyncInMemoryStorage,
    version_store: AsyncInMemoryVersionStore,
    clients: FakeClients,
) -> tp.Callable[..., AsyncContentWorker]:
    def factory(manifest: tp.Sequence[ManifestEntry] = (), template: str = TEMPLATE, **config: tp.Any):
        return AsyncContentWorker(
            transport,
            template,
            WorkerConfig(origin=ORIGIN, **config),
            manifest=manifest,
            storage=storage,
            version_store=version_store,
            clients=clients,
        )

    return factory
