"""Unit tests for monitorbot.cache_key."""

from __future__ import annotations

import pytest

from monitorbot.cache_key import cache_key, canonical_url
from monitorbot.errors import ErrorCode, MonitorbotError

# ---------------------------------------------------------------------------
# cache_key
# ---------------------------------------------------------------------------


class TestCacheKey:
    def test_url_with_fragment(self) -> None:
        assert (
            cache_key("https://demon.horse/hireme/#fragment")
            == "https:||demon.horse|hireme|#fragment"
        )

    def test_short_url(self) -> None:
        assert cache_key("a://a/b") == "a:||a|b"

    def test_backslashes_and_pipes_are_escaped(self) -> None:
        assert (
            cache_key(r"a://a/foo\back|pipe\|backpipe")
            == r"a:||a|foo\\back\|pipe\\\|backpipe"
        )

    def test_no_path_separator_in_key(self) -> None:
        assert "/" not in cache_key("https://example.com/a/b/c?d=/e")

    def test_deterministic(self) -> None:
        url = "https://example.com/a/b"
        assert cache_key(url) == cache_key(url)

    def test_slash_and_encoded_slash_differ(self) -> None:
        assert cache_key("https://example.com/a/b") != cache_key("https://example.com/a%2Fb")

    def test_slash_and_literal_pipe_differ(self) -> None:
        assert cache_key("https://example.com/a/b") != cache_key("https://example.com/a|b")

    @pytest.mark.parametrize("url", ["", ".", ".."])
    def test_reserved_names_rejected(self, url: str) -> None:
        with pytest.raises(AssertionError):
            cache_key(url)


# ---------------------------------------------------------------------------
# canonical_url
# ---------------------------------------------------------------------------


class TestCanonicalUrl:
    def test_bare_host_gains_trailing_slash(self) -> None:
        assert canonical_url("https://example.com") == "https://example.com/"

    def test_host_is_lowercased(self) -> None:
        assert canonical_url("https://EXAMPLE.com/Path") == "https://example.com/Path"

    def test_fragment_kept(self) -> None:
        assert (
            canonical_url("https://demon.horse/hireme/#fragment")
            == "https://demon.horse/hireme/#fragment"
        )

    def test_idempotent(self) -> None:
        url = canonical_url("http://example.com/a?b=c")
        assert canonical_url(url) == url

    @pytest.mark.parametrize("url", ["not a url", "/relative/path", "ftp://example.com/file"])
    def test_invalid_url_raises(self, url: str) -> None:
        with pytest.raises(MonitorbotError) as exc_info:
            canonical_url(url)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
