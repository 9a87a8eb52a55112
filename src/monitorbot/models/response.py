from __future__ import annotations

import re
from dataclasses import dataclass

import webencodings
from pydantic import BaseModel, ConfigDict

from monitorbot.errors import ErrorCode, MonitorbotError

# RFC 9110 token characters
_TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
_TOKEN_RE = re.compile(_TOKEN)
_MEDIA_TYPE_RE = re.compile(rf"({_TOKEN})/({_TOKEN})")


@dataclass(frozen=True)
class MediaType:
    """A parsed ``Content-Type`` value, e.g. ``text/html; charset=utf-8``."""

    type: str
    subtype: str
    params: tuple[tuple[str, str], ...] = ()

    @property
    def essence(self) -> str:
        return f"{self.type}/{self.subtype}"

    def param(self, name: str) -> str | None:
        name = name.lower()
        for key, value in self.params:
            if key == name:
                return value
        return None


def parse_media_type(value: str) -> MediaType:
    """Parse a media type string. Raises ``ValueError`` if it is malformed."""
    head, *rest = value.split(";")
    match = _MEDIA_TYPE_RE.fullmatch(head.strip())
    if match is None:
        raise ValueError(f"invalid media type: {value!r}")

    params: list[tuple[str, str]] = []
    for item in rest:
        item = item.strip()
        if not item:
            continue
        name, sep, raw = item.partition("=")
        name = name.strip()
        if not sep or not _TOKEN_RE.fullmatch(name):
            raise ValueError(f"invalid media type parameter: {item!r}")
        raw = raw.strip()
        if len(raw) >= 2 and raw[0] == raw[-1] == '"':
            raw = raw[1:-1].replace('\\"', '"')
        params.append((name.lower(), raw))

    return MediaType(
        type=match.group(1).lower(),
        subtype=match.group(2).lower(),
        params=tuple(params),
    )


class ResponseRecord(BaseModel):
    """Snapshot of one completed HTTP exchange.

    Immutable: every fetch produces a new record that replaces the old one.
    The body is kept as the exact bytes received and serialised as base64 so
    the JSON form round-trips any payload.
    """

    model_config = ConfigDict(
        frozen=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    url: str  # Final URL, after redirects
    version: str  # e.g. "HTTP/1.1"
    status: int
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes = b""

    def header(self, name: str) -> str | None:
        """Return the first value of a header (case-insensitive), or None."""
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None

    def content_type(self) -> MediaType | None:
        # Only the first Content-Type header is considered.
        value = self.header("content-type")
        if value is None:
            return None
        if not _is_visible_ascii(value):
            raise MonitorbotError(
                code=ErrorCode.INVALID_HEADER,
                message=f"Could not convert Content-Type header to string for {self.url}",
                suggestion="The server sent a Content-Type header with non-ASCII bytes.",
            )
        try:
            return parse_media_type(value)
        except ValueError as exc:
            raise MonitorbotError(
                code=ErrorCode.INVALID_MEDIA_TYPE,
                message=f"Could not parse Content-Type {value!r} for {self.url}",
                suggestion="The server sent a malformed media type.",
            ) from exc

    def charset(self) -> str | None:
        media_type = self.content_type()
        if media_type is None:
            return None
        return media_type.param("charset")

    def charset_encoding(self) -> webencodings.Encoding | None:
        """Resolve the declared charset through the WHATWG label table.

        Legacy labels map the way browsers map them, so ``iso-8859-1`` and
        ``us-ascii`` both mean windows-1252. Raises UNKNOWN_CHARSET for labels
        the table does not list.
        """
        charset = self.charset()
        if charset is None:
            return None
        encoding = webencodings.lookup(charset)
        if encoding is None:
            raise _unknown_charset(charset, self.url)
        return encoding

    def text(self) -> str:
        """Decode the body as text.

        Defaults to UTF-8 when no charset is declared. A byte order mark
        overrides the declared charset and is dropped. Undecodable bytes are
        replaced rather than raising.
        """
        encoding = self.charset_encoding() or webencodings.UTF8
        text, _ = webencodings.decode(self.body, encoding, errors="replace")
        return text


def _unknown_charset(charset: str, url: str) -> MonitorbotError:
    return MonitorbotError(
        code=ErrorCode.UNKNOWN_CHARSET,
        message=f"Unknown charset {charset} for {url}",
        suggestion="The server declared a character encoding that is not supported.",
    )


def _is_visible_ascii(value: str) -> bool:
    return all(char == "\t" or " " <= char <= "~" for char in value)
