"""Tests for r2manager services and file sources."""
import hashlib

import pytest

from r2manager.services.checksum import ChecksumService, normalize_etag
from r2manager.services.validation import FileTypeConfig, FileTypePolicy, format_size
from r2manager.upload.source import BytesSource, LocalFileSource, guess_content_type


class TestChecksumService:
    def test_digest_is_md5_hex(self):
        assert ChecksumService().digest(b"hello world") == hashlib.md5(b"hello world").hexdigest()

    def test_digest_deterministic(self):
        service = ChecksumService()
        payload = bytes(range(256)) * 10
        assert service.digest(payload) == service.digest(bytes(payload))

    def test_single_bit_change_changes_digest(self):
        service = ChecksumService()
        payload = bytearray(b"\x00" * 1024)
        original = service.digest(bytes(payload))
        payload[512] ^= 0x01
        assert service.digest(bytes(payload)) != original

    def test_stream_matches_whole(self):
        service = ChecksumService()
        assert service.digest_stream([b"hello ", b"world"]) == service.digest(b"hello world")

    @pytest.mark.asyncio
    async def test_digest_file_range(self, tmp_path):
        path = tmp_path / "data.bin"
        path.write_bytes(b"0123456789" * 10000)
        service = ChecksumService()

        whole = await service.digest_file(path)
        part = await service.digest_file(path, offset=5, length=70000)

        assert whole == service.digest(b"0123456789" * 10000)
        assert part == service.digest((b"0123456789" * 10000)[5:70005])

    @pytest.mark.parametrize(
        "etag, expected",
        [
            ('"5EB63BBBE01EEED093CB22BB8F5ACDC3"', "5eb63bbbe01eeed093cb22bb8f5acdc3"),
            ('W/"abc"', "abc"),
            (" abc ", "abc"),
            (None, ""),
        ],
    )
    def test_normalize_etag(self, etag, expected):
        assert normalize_etag(etag) == expected

    def test_matches_ignores_quotes_and_case(self):
        service = ChecksumService()
        digest = service.digest(b"hello world")
        assert service.matches(f'"{digest.upper()}"', digest) is True
        assert service.matches('"deadbeef"', digest) is False
        assert service.matches("", "") is False


class TestFileTypePolicy:
    def test_accepts_known_type_within_limit(self):
        assert FileTypePolicy().validate("a.jpg", 1024, "image/jpeg") is None

    def test_rejects_unknown_type(self):
        error = FileTypePolicy().validate("a.exe", 10, "application/x-msdownload")
        assert error.startswith("File type not allowed")
        assert "Images" in error

    def test_rejects_oversize(self):
        error = FileTypePolicy().validate("a.jpg", 16 * 1024 * 1024, "image/jpeg")
        assert error == "File size exceeds the limit of 15.0 MB for images"

    def test_custom_types(self):
        policy = FileTypePolicy({"any": FileTypeConfig(max_size=5, description="Blobs", accept=("application/octet-stream",))})
        assert policy.validate("x", 5, "application/octet-stream") is None
        assert policy.validate("x", 6, "application/octet-stream") is not None
        assert policy.allowed_mime_types() == ("application/octet-stream",)

    def test_format_size(self):
        assert format_size(1024 * 1024 * 1024) == "1.0 GB"


class TestSources:
    def test_guess_content_type(self):
        assert guess_content_type("a.txt") == "text/plain"
        assert guess_content_type("noext") == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_bytes_source(self):
        source = BytesSource("a.txt", b"abcdef")
        assert source.size == 6
        assert await source.read(2, 3) == b"cde"

    @pytest.mark.asyncio
    async def test_local_file_source(self, tmp_path):
        path = tmp_path / "report.pdf"
        path.write_bytes(b"%PDF-1.4 data")

        source = LocalFileSource(path)

        assert source.name == "report.pdf"
        assert source.size == 13
        assert source.content_type == "application/pdf"
        assert await source.read(0, 4) == b"%PDF"
