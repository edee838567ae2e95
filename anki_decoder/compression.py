"""
Detect and reverse Zstandard framing.

Modern packages compress the collection database, the media manifest and
(since Anki 2.1.50) the individual media members with Zstandard. Legacy
packages compress nothing, so callers never assume compression: a buffer
without the frame magic passes through unchanged.
"""

import zstandard

from anki_decoder.errors import DecompressionError

# Zstd magic: 0x28 0xB5 0x2F 0xFD (little-endian 0xFD2FB528)
ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"


def is_zstd_frame(data: bytes) -> bool:
    """Return True if the buffer starts with the Zstandard frame magic."""
    return data[:4] == ZSTD_MAGIC


def maybe_decompress(data: bytes) -> bytes:
    """
    Decompress a Zstandard frame, or return the input unchanged.

    :param data: Possibly compressed bytes.
    :returns: Decompressed bytes, or ``data`` itself when the magic is absent.
    :raises DecompressionError: If the magic is present but the frame is
        truncated or corrupt.
    """
    if not is_zstd_frame(data):
        return data

    # decompressobj handles frames without a content size in the header,
    # and unlike stream_reader it tells us whether the frame ended.
    dobj = zstandard.ZstdDecompressor().decompressobj()
    try:
        decompressed = dobj.decompress(data)
    except zstandard.ZstdError as exc:
        raise DecompressionError(f"Corrupt Zstandard frame: {exc}") from exc

    if not dobj.eof:
        raise DecompressionError(
            f"Truncated Zstandard frame ({len(data)} bytes, frame not terminated)"
        )
    return decompressed
