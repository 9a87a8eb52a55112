"""Unit tests for monitorbot.models.response."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from pydantic import ValidationError

from monitorbot.errors import ErrorCode, MonitorbotError
from monitorbot.models.response import ResponseRecord, parse_media_type

MakeRecord = Callable[..., ResponseRecord]

# ---------------------------------------------------------------------------
# parse_media_type
# ---------------------------------------------------------------------------


class TestParseMediaType:
    def test_type_and_subtype(self) -> None:
        media_type = parse_media_type("text/html")
        assert media_type.essence == "text/html"
        assert media_type.params == ()

    def test_charset_param(self) -> None:
        assert parse_media_type("text/html; charset=ISO-8859-1").param("charset") == "ISO-8859-1"

    def test_quoted_param(self) -> None:
        assert parse_media_type('text/html; charset="utf-8"').param("charset") == "utf-8"

    def test_param_names_case_insensitive(self) -> None:
        assert parse_media_type("text/html; Charset=utf-8").param("CHARSET") == "utf-8"

    def test_type_lowercased(self) -> None:
        assert parse_media_type("Text/HTML").essence == "text/html"

    def test_trailing_semicolon_ignored(self) -> None:
        assert parse_media_type("text/plain;").essence == "text/plain"

    @pytest.mark.parametrize("value", ["", "html", "text/", "/html", "text/html; charset"])
    def test_malformed(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_media_type(value)


# ---------------------------------------------------------------------------
# ResponseRecord
# ---------------------------------------------------------------------------


class TestResponseRecordHeaders:
    def test_header_lookup_case_insensitive(self, make_record: MakeRecord) -> None:
        record = make_record(headers=(("Content-Type", "text/html"), ("X-Thing", "1")))
        assert record.header("content-type") == "text/html"
        assert record.header("x-thing") == "1"
        assert record.header("missing") is None

    def test_first_content_type_wins(self, make_record: MakeRecord) -> None:
        record = make_record(
            headers=(
                ("content-type", "text/html; charset=latin1"),
                ("content-type", "text/plain; charset=utf-8"),
            )
        )
        assert record.charset() == "latin1"

    def test_no_content_type(self, make_record: MakeRecord) -> None:
        record = make_record(headers=())
        assert record.content_type() is None
        assert record.charset() is None
        assert record.charset_encoding() is None

    def test_invalid_media_type(self, make_record: MakeRecord) -> None:
        record = make_record(headers=(("content-type", "not a media type"),))
        with pytest.raises(MonitorbotError) as exc_info:
            record.content_type()
        assert exc_info.value.code == ErrorCode.INVALID_MEDIA_TYPE

    def test_non_ascii_header(self, make_record: MakeRecord) -> None:
        record = make_record(headers=(("content-type", "text/html; charset=ütf-8"),))
        with pytest.raises(MonitorbotError) as exc_info:
            record.charset()
        assert exc_info.value.code == ErrorCode.INVALID_HEADER


class TestResponseRecordText:
    def test_missing_charset_defaults_to_utf8(self, make_record: MakeRecord) -> None:
        record = make_record(body="café".encode(), headers=(("content-type", "text/html"),))
        assert record.text() == "café"

    def test_missing_header_defaults_to_utf8(self, make_record: MakeRecord) -> None:
        record = make_record(body="naïve".encode(), headers=())
        assert record.text() == "naïve"

    def test_declared_charset_used(self, make_record: MakeRecord) -> None:
        record = make_record(
            body="café".encode("latin-1"),
            headers=(("content-type", "text/html; charset=iso-8859-1"),),
        )
        assert record.text() == "café"

    def test_invalid_bytes_replaced(self, make_record: MakeRecord) -> None:
        record = make_record(body=b"ok \xff\xfe end")
        assert record.text() == "ok \ufffd\ufffd end"

    def test_utf8_bom_dropped(self, make_record: MakeRecord) -> None:
        record = make_record(body=b"\xef\xbb\xbf<p>x</p>")
        assert record.text() == "<p>x</p>"

    def test_unknown_charset_is_distinct_error(self, make_record: MakeRecord) -> None:
        record = make_record(headers=(("content-type", "text/html; charset=klingon-8"),))
        with pytest.raises(MonitorbotError) as exc_info:
            record.text()
        assert exc_info.value.code == ErrorCode.UNKNOWN_CHARSET
        assert "klingon-8" in exc_info.value.message

    def test_non_text_codec_rejected(self, make_record: MakeRecord) -> None:
        record = make_record(headers=(("content-type", "text/html; charset=base64"),))
        with pytest.raises(MonitorbotError) as exc_info:
            record.text()
        assert exc_info.value.code == ErrorCode.UNKNOWN_CHARSET

    @pytest.mark.parametrize("label", ["iso-8859-1", "latin1", "us-ascii", "windows-1252"])
    def test_legacy_labels_mean_windows_1252(self, make_record: MakeRecord, label: str) -> None:
        record = make_record(
            body=b"\x93quoted\x94",
            headers=(("content-type", f"text/html; charset={label}"),),
        )
        assert record.charset_encoding().name == "windows-1252"
        assert record.text() == "\u201cquoted\u201d"

    def test_mac_roman_label(self, make_record: MakeRecord) -> None:
        record = make_record(
            body=b"caf\x8e",
            headers=(("content-type", "text/html; charset=x-mac-roman"),),
        )
        assert record.text() == "caf\u00e9"

    @pytest.mark.parametrize("label", ["utf-7", "idna", "punycode"])
    def test_non_web_encodings_rejected(self, make_record: MakeRecord, label: str) -> None:
        record = make_record(headers=(("content-type", f"text/html; charset={label}"),))
        with pytest.raises(MonitorbotError) as exc_info:
            record.text()
        assert exc_info.value.code == ErrorCode.UNKNOWN_CHARSET

    def test_bom_overrides_declared_charset(self, make_record: MakeRecord) -> None:
        record = make_record(
            body=b"\xef\xbb\xbfcaf\xc3\xa9",
            headers=(("content-type", "text/html; charset=iso-8859-1"),),
        )
        assert record.text() == "caf\u00e9"


class TestResponseRecordSerialisation:
    def test_json_round_trip_preserves_raw_bytes(self, make_record: MakeRecord) -> None:
        record = make_record(
            body=b"\x00\xff<p>not utf-8 \xe9</p>",
            headers=(("content-type", "text/html"), ("set-cookie", "a=1"), ("set-cookie", "b=2")),
        )
        restored = ResponseRecord.model_validate_json(record.model_dump_json())
        assert restored == record
        assert restored.body == b"\x00\xff<p>not utf-8 \xe9</p>"
        assert restored.headers[1:] == (("set-cookie", "a=1"), ("set-cookie", "b=2"))

    def test_field_order_is_stable(self, make_record: MakeRecord) -> None:
        assert list(make_record().model_dump()) == ["url", "version", "status", "headers", "body"]

    def test_records_are_immutable(self, make_record: MakeRecord) -> None:
        record = make_record()
        with pytest.raises(ValidationError):
            record.body = b"changed"  # type: ignore[misc]
