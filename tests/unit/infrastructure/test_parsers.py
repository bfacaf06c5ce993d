"""Tests for infrastructure parsers."""

from __future__ import annotations

from resolvarr.infrastructure.common.parsers import (
    encode_filename_spaces,
    extract_size,
    filename_from_content_disposition,
    filename_from_url,
    format_size,
    parse_size_to_bytes,
    parse_size_to_mb,
)


class TestParseSizeToBytes:
    def test_empty_string_returns_zero(self) -> None:
        assert parse_size_to_bytes("") == 0

    def test_none_returns_zero(self) -> None:
        assert parse_size_to_bytes(None) == 0

    def test_raw_digits(self) -> None:
        assert parse_size_to_bytes("1234") == 1234

    def test_megabytes_without_space(self) -> None:
        assert parse_size_to_bytes("500MB") == 500 * 1024**2

    def test_gigabytes(self) -> None:
        assert parse_size_to_bytes("4.5 GB") == int(4.5 * 1024**3)

    def test_thousands_separator(self) -> None:
        assert parse_size_to_bytes("1,024 KB") == 1024 * 1024

    def test_case_insensitive(self) -> None:
        assert parse_size_to_bytes("2 gb") == 2 * 1024**3

    def test_garbage_returns_zero(self) -> None:
        assert parse_size_to_bytes("unknown") == 0


class TestParseSizeToMb:
    def test_gigabyte(self) -> None:
        assert parse_size_to_mb("1 GB") == 1024.0

    def test_unknown(self) -> None:
        assert parse_size_to_mb(None) == 0.0


class TestFormatSize:
    def test_zero_is_empty(self) -> None:
        assert format_size(0) == ""

    def test_kilobytes(self) -> None:
        assert format_size(1536) == "1.5 KB"

    def test_gigabytes(self) -> None:
        assert format_size(int(2.1 * 1024**3)) == "2.1 GB"

    def test_terabytes(self) -> None:
        assert format_size(3 * 1024**4) == "3 TB"


class TestExtractSize:
    def test_normalizes_unit(self) -> None:
        assert extract_size("Size: 1.4gb here") == "1.4 GB"

    def test_no_size(self) -> None:
        assert extract_size("no size") == ""


class TestFilenames:
    def test_content_disposition_quoted(self) -> None:
        header = 'attachment; filename="Movie%20Name.mkv"'
        assert filename_from_content_disposition(header) == "Movie Name.mkv"

    def test_content_disposition_rfc5987(self) -> None:
        header = "attachment; filename*=UTF-8''Movie.2010.mkv"
        assert filename_from_content_disposition(header) == "Movie.2010.mkv"

    def test_content_disposition_missing(self) -> None:
        assert filename_from_content_disposition(None) == ""

    def test_from_url_ignores_query(self) -> None:
        url = "https://cdn.example.com/a/Movie%20Name.mkv?token=1"
        assert filename_from_url(url) == "Movie Name.mkv"

    def test_encode_spaces_in_last_segment_only(self) -> None:
        url = "https://x.workers.dev/my dir/My File.mkv"
        assert encode_filename_spaces(url) == "https://x.workers.dev/my dir/My%20File.mkv"
