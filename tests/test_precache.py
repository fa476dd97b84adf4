import httpx
import pytest

from shellcache import (
    AsyncNetwork,
    AsyncPrecacheStrategy,
    ManifestEntry,
    NetworkFailure,
    NotFound,
    PrecacheIndex,
    UpstreamNonOk,
)

ORIGIN = "https://example.com"


def make_index(storage, *entries: ManifestEntry) -> PrecacheIndex:
    return PrecacheIndex(entries, storage, ORIGIN)


@pytest.mark.anyio
async def test_install_fetches_every_path(transport, storage):
    transport.add_responses(f"{ORIGIN}/offline/index.json", [httpx.Response(200, content=b'{"raw": "", "title": ""}')])
    transport.add_responses(f"{ORIGIN}/about/index.html", [httpx.Response(200, content=b"<h1>About</h1>")])
    index = make_index(
        storage,
        ManifestEntry("/offline/index.json", "a"),
        ManifestEntry("/about/index.html", "b"),
    )

    fetched = await index.install(AsyncNetwork(transport))

    assert fetched == ["/offline/index.json", "/about/index.html"]
    response = await index.match("/about/index.html")
    assert response is not None
    assert response.content == b"<h1>About</h1>"
    assert response.extensions["from_cache"]


@pytest.mark.anyio
async def test_match_is_exact(transport, storage):
    transport.add_responses(f"{ORIGIN}/about/index.html", [httpx.Response(200, content=b"about")])
    index = make_index(storage, ManifestEntry("/about/index.html", "a"))
    await index.install(AsyncNetwork(transport))

    assert await index.match("/about/") is None
    assert await index.match("/about/index.html?x=1") is None
    assert "/about/index.html" in index
    assert "/about/" not in index


@pytest.mark.anyio
async def test_match_before_install(storage):
    index = make_index(storage, ManifestEntry("/404/index.json", "a"))

    assert await index.match("/404/index.json") is None


@pytest.mark.anyio
async def test_install_skips_unchanged_revisions(transport, storage):
    transport.add_responses(f"{ORIGIN}/a/index.html", [httpx.Response(200, content=b"a")])
    transport.add_responses(f"{ORIGIN}/b/index.html", [httpx.Response(200, content=b"b1"), httpx.Response(200, content=b"b2")])
    network = AsyncNetwork(transport)

    await make_index(storage, ManifestEntry("/a/index.html", "1"), ManifestEntry("/b/index.html", "1")).install(network)
    index = make_index(storage, ManifestEntry("/a/index.html", "1"), ManifestEntry("/b/index.html", "2"))
    fetched = await index.install(network)

    assert fetched == ["/b/index.html"]
    response = await index.match("/b/index.html")
    assert response is not None
    assert response.content == b"b2"


@pytest.mark.anyio
async def test_install_always_refetches_unrevisioned_paths(transport, storage):
    transport.add_responses(f"{ORIGIN}/a/index.html", [httpx.Response(200, content=b"a")])
    network = AsyncNetwork(transport)
    index = make_index(storage, ManifestEntry("/a/index.html"))

    await index.install(network)
    assert await index.install(network) == ["/a/index.html"]


@pytest.mark.anyio
async def test_install_drops_paths_of_previous_manifest(transport, storage):
    transport.add_responses(f"{ORIGIN}/a/index.html", [httpx.Response(200, content=b"a")])
    transport.add_responses(f"{ORIGIN}/b/index.html", [httpx.Response(200, content=b"b")])
    network = AsyncNetwork(transport)

    await make_index(storage, ManifestEntry("/a/index.html", "1"), ManifestEntry("/b/index.html", "1")).install(network)
    await make_index(storage, ManifestEntry("/b/index.html", "1")).install(network)

    assert [key for key, _ in await storage.list_keys("precache-v2")] == [f"GET {ORIGIN}/b/index.html"]


@pytest.mark.anyio
@pytest.mark.parametrize(
    "mocked, error",
    [
        (httpx.Response(404), NotFound),
        (httpx.Response(500), UpstreamNonOk),
        (httpx.ConnectError("offline"), NetworkFailure),
    ],
)
async def test_install_fails_on_unusable_response(transport, storage, mocked, error):
    transport.add_responses(f"{ORIGIN}/a/index.html", [mocked])
    index = make_index(storage, ManifestEntry("/a/index.html", "1"))

    with pytest.raises(error):
        await index.install(AsyncNetwork(transport))


def test_manifest_paths_must_be_absolute(storage):
    with pytest.raises(ValueError, match="absolute"):
        make_index(storage, ManifestEntry("a/index.html", "1"))


@pytest.mark.anyio
async def test_precache_strategy_falls_back_to_network(transport, storage):
    transport.add_responses(f"{ORIGIN}/a/index.html", [httpx.Response(200, content=b"from network")])
    index = make_index(storage, ManifestEntry("/a/index.html", "1"))
    strategy = AsyncPrecacheStrategy(AsyncNetwork(transport), index)

    response = await strategy.handle(httpx.Request("GET", f"{ORIGIN}/a/index.html"))

    assert response.content == b"from network"
    assert await index.match("/a/index.html") is None


@pytest.mark.anyio
async def test_failed_install_keeps_previous_precache(transport, storage):
    transport.add_responses(
        f"{ORIGIN}/a/index.html", [httpx.Response(200, content=b"old a"), httpx.Response(200, content=b"new a")]
    )
    transport.add_responses(f"{ORIGIN}/b/index.html", [httpx.Response(200, content=b"old b"), httpx.Response(500)])
    transport.add_responses(f"{ORIGIN}/c/index.html", [httpx.Response(200, content=b"c")])
    network = AsyncNetwork(transport)
    previous = make_index(
        storage,
        ManifestEntry("/a/index.html", "1"),
        ManifestEntry("/b/index.html", "1"),
        ManifestEntry("/c/index.html", "1"),
    )
    await previous.install(network)

    with pytest.raises(UpstreamNonOk):
        await make_index(storage, ManifestEntry("/a/index.html", "2"), ManifestEntry("/b/index.html", "2")).install(
            network
        )

    a = await previous.match("/a/index.html")
    assert a is not None and a.content == b"old a"
    c = await previous.match("/c/index.html")
    assert c is not None and c.content == b"c"
