from __future__ import annotations

import json
import time
import typing as tp
from dataclasses import dataclass, field

import httpx

from ._exceptions import DecodeFailure
from ._utils import filter_headers

__all__ = ("CacheEntry", "ManifestEntry", "Partial", "InstallContext", "MigrationDecision")

STRIPPED_HEADERS = ("Content-Encoding", "Content-Length", "Transfer-Encoding")


@dataclass
class CacheEntry:
    """
    A response stored in a named cache.

    :param key: Request identity, see `shellcache._utils.generate_key`
    :param stored_at: Unix timestamp of the moment the entry was written
    :param extra: Free-form data kept next to the response (e.g. precache revisions)
    """

    key: str
    status_code: int
    headers: tp.List[tp.Tuple[str, str]] = field(default_factory=list)
    content: bytes = b""
    stored_at: float = field(default_factory=time.time)
    extra: tp.Dict[str, tp.Any] = field(default_factory=dict)

    @classmethod
    def from_response(
        cls, key: str, response: httpx.Response, extra: tp.Optional[tp.Dict[str, tp.Any]] = None
    ) -> "CacheEntry":
        # The body must already be read. It is stored decoded, so the framing headers go.
        return cls(
            key=key,
            status_code=response.status_code,
            headers=filter_headers(response.headers.multi_items(), STRIPPED_HEADERS),
            content=response.content,
            extra=dict(extra or {}),
        )

    def to_response(self, cache_name: tp.Optional[str] = None) -> httpx.Response:
        return httpx.Response(
            status_code=self.status_code,
            headers=self.headers,
            content=self.content,
            extensions={"from_cache": True, "cache_name": cache_name, "stored_at": self.stored_at},
        )

    def age(self, now: tp.Optional[float] = None) -> float:
        now = time.time() if now is None else now
        return now - self.stored_at


@dataclass(frozen=True)
class ManifestEntry:
    path: str
    revision: tp.Optional[str] = None


@dataclass(frozen=True)
class Partial:
    """A content fragment merged into the page template."""

    raw: str
    title: str
    offline: bool = False

    @classmethod
    def decode(cls, data: tp.Union[str, bytes]) -> "Partial":
        try:
            document = json.loads(data)
        except ValueError as exc:
            raise DecodeFailure(f"Fragment is not valid JSON: {exc}") from exc

        if not isinstance(document, dict):
            raise DecodeFailure(f"Fragment must be a JSON object, got {type(document).__name__}")

        raw = document.get("raw")
        title = document.get("title")
        offline = document.get("offline", False)

        if not isinstance(raw, str):
            raise DecodeFailure("Fragment field `raw` must be a string")
        if not isinstance(title, str):
            raise DecodeFailure("Fragment field `title` must be a string")
        if not isinstance(offline, bool):
            raise DecodeFailure("Fragment field `offline` must be a boolean")

        return cls(raw=raw, title=title, offline=offline)

    def encode(self) -> bytes:
        document: tp.Dict[str, tp.Any] = {"raw": self.raw, "title": self.title}
        if self.offline:
            document["offline"] = True
        return json.dumps(document).encode("utf-8")


@dataclass(frozen=True)
class InstallContext:
    """
    Carries what `install` observed into `activate`.

    :param replacing_previous_worker: An earlier worker was already active when this one installed
    """

    replacing_previous_worker: bool = False


@dataclass(frozen=True)
class MigrationDecision:
    previous_architecture: tp.Optional[str]
    current_architecture: str
    reloaded: bool
    reloaded_clients: int = 0
