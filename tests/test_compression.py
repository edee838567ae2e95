"""
Tests for Zstandard frame detection and decompression.
"""

import pytest

from anki_decoder.compression import ZSTD_MAGIC, is_zstd_frame, maybe_decompress
from anki_decoder.errors import DecompressionError
from builders import zstd_compress

PAYLOAD = bytes(range(256)) * 64


class TestMaybeDecompress:
    """Tests for maybe_decompress()."""

    def test_plain_bytes_pass_through(self):
        """Data without the frame magic is returned unchanged."""
        data = b"SQLite format 3\x00rest of database"
        assert maybe_decompress(data) is data

    def test_empty_input(self):
        assert maybe_decompress(b"") == b""

    def test_decompresses_frame(self):
        compressed = zstd_compress(PAYLOAD)
        assert is_zstd_frame(compressed)
        assert maybe_decompress(compressed) == PAYLOAD

    def test_decompresses_once(self):
        """A second pass over decompressed data is a no-op."""
        once = maybe_decompress(zstd_compress(PAYLOAD))
        assert maybe_decompress(once) == once

    def test_truncated_frame(self):
        compressed = zstd_compress(PAYLOAD)
        with pytest.raises(DecompressionError):
            maybe_decompress(compressed[: len(compressed) // 2])

    def test_magic_only(self):
        with pytest.raises(DecompressionError):
            maybe_decompress(ZSTD_MAGIC)

    def test_corrupt_frame(self):
        """The magic followed by garbage is an error, not a pass-through."""
        with pytest.raises(DecompressionError):
            maybe_decompress(ZSTD_MAGIC + b"\xff" * 32)


class TestIsZstdFrame:
    def test_detects_magic(self):
        assert is_zstd_frame(b"\x28\xb5\x2f\xfd\x00")

    def test_short_input(self):
        assert not is_zstd_frame(b"\x28\xb5")

    def test_json_manifest(self):
        assert not is_zstd_frame(b'{"0": "a.mp3"}')
