"""Mapping from URLs to cache file names.

A cache key is the URL's canonical string with every ``/`` turned into ``|``
so the whole URL fits in a single path segment. Existing ``\\`` and ``|``
characters are backslash-escaped first, so ``a/b`` and a literal ``a|b`` never
produce the same key.
"""

from __future__ import annotations

from pydantic import HttpUrl, TypeAdapter, ValidationError

from monitorbot.errors import ErrorCode, MonitorbotError

_HTTP_URL = TypeAdapter(HttpUrl)


def cache_key(url: str) -> str:
    """Return the filesystem-safe key for ``url``.

    ``https://demon.horse/hireme/#fragment`` becomes
    ``https:||demon.horse|hireme|#fragment``.
    """
    # Would collide with directory entries; URLs are never this by construction.
    assert url not in ("", ".", ".."), f"invalid URL for cache key: {url!r}"
    return url.replace("\\", "\\\\").replace("|", "\\|").replace("/", "|")


def canonical_url(url: str) -> str:
    """Validate an absolute http(s) URL and return its canonical string form.

    Uses WHATWG URL serialisation, so ``https://example.com`` and
    ``https://EXAMPLE.com/`` both yield ``https://example.com/``.
    """
    try:
        return str(_HTTP_URL.validate_python(url))
    except ValidationError as exc:
        raise MonitorbotError(
            code=ErrorCode.INVALID_INPUT,
            message=f"Invalid URL: {url}",
            suggestion="Provide an absolute http:// or https:// URL.",
        ) from exc
