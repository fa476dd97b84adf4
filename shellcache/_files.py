from __future__ import annotations

import json
import typing as tp
from pathlib import Path

import anyio

from ._config import CONTENT_REPLACE_MARKER
from ._models import ManifestEntry


class AsyncBaseFileManager:
    def __init__(self, is_binary: bool) -> None:
        self.is_binary = is_binary

    async def write_to(self, path: str, data: bytes | str, is_binary: bool | None = None) -> None:
        raise NotImplementedError()

    async def read_from(self, path: str, is_binary: bool | None = None) -> bytes | str:
        raise NotImplementedError()


class AsyncFileManager(AsyncBaseFileManager):
    async def write_to(self, path: str, data: bytes | str, is_binary: bool | None = None) -> None:
        is_binary = self.is_binary if is_binary is None else is_binary
        mode = "wb" if is_binary else "wt"
        async with await anyio.open_file(path, mode) as f:  # type: ignore[call-overload]
            await f.write(data)

    async def read_from(self, path: str, is_binary: bool | None = None) -> bytes | str:
        is_binary = self.is_binary if is_binary is None else is_binary
        mode = "rb" if is_binary else "rt"

        async with await anyio.open_file(path, mode) as f:  # type: ignore[call-overload]
            return tp.cast(tp.Union[bytes, str], await f.read())


def parse_manifest(document: tp.Any) -> tp.List[ManifestEntry]:
    """
    Build manifest entries from decoded JSON.

    Accepts the build step's `[{"url": "/a/index.html", "revision": "abc"}, ...]` shape;
    `path` is accepted in place of `url`, and a bare string means an unrevisioned path.
    """
    if not isinstance(document, list):
        raise ValueError("Manifest must be a JSON array")

    entries: tp.List[ManifestEntry] = []
    for item in document:
        if isinstance(item, str):
            entries.append(ManifestEntry(path=item))
            continue
        if not isinstance(item, dict):
            raise ValueError(f"Manifest entry must be a string or an object: {item!r}")
        path = item.get("url", item.get("path"))
        if not isinstance(path, str):
            raise ValueError(f"Manifest entry without a path: {item!r}")
        revision = item.get("revision")
        entries.append(ManifestEntry(path=path, revision=None if revision is None else str(revision)))
    return entries


async def load_manifest(path: tp.Union[str, Path]) -> tp.List[ManifestEntry]:
    data = await AsyncFileManager(is_binary=False).read_from(str(path))
    return parse_manifest(json.loads(data))


def validate_template(template: str, marker: str = CONTENT_REPLACE_MARKER) -> str:
    occurrences = template.count(marker)
    if occurrences != 1:
        raise ValueError(f"Template must contain {marker!r} exactly once, found {occurrences}")
    return template


async def load_template(path: tp.Union[str, Path], marker: str = CONTENT_REPLACE_MARKER) -> str:
    data = await AsyncFileManager(is_binary=False).read_from(str(path))
    assert isinstance(data, str)
    return validate_template(data, marker)
