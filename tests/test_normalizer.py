import httpx
import pytest

from shellcache import AsyncNetwork, ManifestEntry, PathNormalizer, PrecacheIndex

ORIGIN = "https://example.com"


async def make_normalizer(transport, storage, manifest=()) -> PathNormalizer:
    network = AsyncNetwork(transport)
    precache = PrecacheIndex(manifest, storage, ORIGIN)
    await precache.install(network)
    return PathNormalizer(network, precache)


@pytest.mark.anyio
async def test_redirects_when_network_fails(transport, storage):
    normalizer = await make_normalizer(transport, storage)

    response = await normalizer.normalize(httpx.Request("GET", f"{ORIGIN}/blog/some-post"))

    assert response.status_code == 301
    assert response.headers["Location"] == f"{ORIGIN}/blog/some-post/"


@pytest.mark.anyio
async def test_network_response_is_returned_verbatim(transport, storage):
    transport.add_responses(
        f"{ORIGIN}/vanity", [httpx.Response(302, headers=[("Location", "https://elsewhere.example/")])]
    )
    normalizer = await make_normalizer(transport, storage)

    response = await normalizer.normalize(httpx.Request("GET", f"{ORIGIN}/vanity"))

    assert response.status_code == 302
    assert response.headers["Location"] == "https://elsewhere.example/"


@pytest.mark.anyio
async def test_network_404_is_returned_verbatim(transport, storage):
    transport.add_responses(f"{ORIGIN}/nothing", [httpx.Response(404, content=b"server 404")])
    normalizer = await make_normalizer(transport, storage)

    response = await normalizer.normalize(httpx.Request("GET", f"{ORIGIN}/nothing"))

    assert response.status_code == 404
    assert response.content == b"server 404"


@pytest.mark.anyio
async def test_precached_page_redirects_without_network(transport, storage):
    transport.add_responses(f"{ORIGIN}/about/index.html", [httpx.Response(200, content=b"<h1>About</h1>")])
    transport.add_responses(f"{ORIGIN}/about", [httpx.Response(200, content=b"network about")])
    normalizer = await make_normalizer(transport, storage, [ManifestEntry("/about/index.html", "a")])

    response = await normalizer.normalize(httpx.Request("GET", f"{ORIGIN}/about"))

    assert response.status_code == 301
    assert response.headers["Location"] == f"{ORIGIN}/about/"
    assert response.content == b""
    assert f"{ORIGIN}/about" not in transport.requested_urls()


@pytest.mark.anyio
async def test_redirect_keeps_query_string(transport, storage):
    normalizer = await make_normalizer(transport, storage)

    response = await normalizer.normalize(httpx.Request("GET", f"{ORIGIN}/blog?utm_source=feed"))

    assert response.headers["Location"] == f"{ORIGIN}/blog/?utm_source=feed"
