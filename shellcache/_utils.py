from __future__ import annotations

import hashlib
import typing as tp
from pathlib import Path

import httpx

T = tp.TypeVar("T")


def generate_key(request: httpx.Request) -> str:
    """
    Build the identity of a request inside a named cache.

    Example:
        ```
        generate_key(httpx.Request("GET", "https://example.com/a/"))
        # 'GET https://example.com/a/'
        ```
    """
    return f"{request.method.upper()} {request.url}"


def hash_key(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def is_same_host(url: httpx.URL, host: str) -> bool:
    return url.netloc.decode("ascii").lower() == host.lower()


def with_trailing_slash(url: httpx.URL) -> httpx.URL:
    """Append "/" to the path of `url`, keeping the query string."""
    return url.copy_with(path=url.path + "/")


def filter_headers(
    headers: tp.Iterable[tp.Tuple[str, str]], names_to_exclude: tp.Iterable[str]
) -> tp.List[tp.Tuple[str, str]]:
    """
    Drop headers by name, compared case-insensitively.

    Example:
        ```
        filter_headers([("Content-Length", "4"), ("ETag", "x")], ["content-length"])
        # [("ETag", "x")]
        ```
    """
    exclude_set = {name.lower() for name in names_to_exclude}
    return [(name, value) for name, value in headers if name.lower() not in exclude_set]


def partition(iterable: tp.Iterable[T], predicate: tp.Callable[[T], bool]) -> tp.Tuple[tp.List[T], tp.List[T]]:
    """
    Partition an iterable into two lists: one for matching items and one for non-matching items.
    """
    matching, non_matching = [], []
    for item in iterable:
        if predicate(item):
            matching.append(item)
        else:
            non_matching.append(item)
    return matching, non_matching


def ensure_cache_dict(base_path: Path | None = None) -> Path:
    _base_path = base_path if base_path is not None else Path(".cache/shellcache")
    _gitignore_file = _base_path / ".gitignore"

    _base_path.mkdir(parents=True, exist_ok=True)

    if not _gitignore_file.is_file():
        with open(_gitignore_file, "w", encoding="utf-8") as f:
            f.write("# Automatically created by shellcache\n*")
    return _base_path
