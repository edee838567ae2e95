"""
Resolve media files referenced by the package manifest.

Media File Format
-----------------
Legacy: JSON object mapping file ID strings to filenames
    {"0": "audio.mp3", "1": "image.png"}

Anki21b: zstd-compressed protobuf with repeated MediaEntry messages
    Entry order = file ID (0, 1, 2, ...)
    Each entry contains filename, file size, and SHA1 hash

The numeric file IDs correspond to members named ``0``, ``1``, ``2``, etc.
in the archive root. In modern packages each of those members is itself
zstd-compressed.
"""

import json
import logging
import mimetypes
from concurrent.futures import ThreadPoolExecutor

from anki_decoder.compression import maybe_decompress
from anki_decoder.container import ContainerReader
from anki_decoder.errors import MalformedMediaManifest
from anki_decoder.manifest import decode_media_manifest
from anki_decoder.models import MediaFile, MediaManifestEntry, MediaResolution

logger = logging.getLogger(__name__)

MANIFEST_ENTRY = "media"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def _parse_json_manifest(mapping) -> list[MediaManifestEntry]:
    if not isinstance(mapping, dict):
        raise MalformedMediaManifest(
            f"JSON media manifest must be an object, got {type(mapping).__name__}"
        )
    entries = []
    for index, filename in mapping.items():
        if not isinstance(filename, str):
            raise MalformedMediaManifest(
                f"JSON media manifest entry {index!r} is not a filename: {filename!r}"
            )
        entries.append(MediaManifestEntry(str(index), filename))
    return entries


def parse_manifest(data: bytes) -> tuple[list[MediaManifestEntry], str]:
    """
    Decode the ``media`` member in whichever format it uses.

    JSON is tried first (legacy format: ``{"0": "file.mp3", ...}``); when
    the payload is not JSON the protobuf decoder takes over. That fallback
    is silent; only a failure of the protobuf decoder is reported.

    :param data: Raw ``media`` member contents, possibly zstd-compressed.
    :returns: Tuple of (entries, format) where format is ``"json"``,
        ``"protobuf"`` or ``"none"`` for an empty manifest.
    :raises DecompressionError: If the manifest frame is corrupt.
    :raises MalformedMediaManifest: If neither format decodes.
    """
    content = maybe_decompress(data)
    if not content.strip():
        return [], "none"

    try:
        mapping = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        pass
    else:
        return _parse_json_manifest(mapping), "json"

    return decode_media_manifest(content), "protobuf"


def _load_media(reader: ContainerReader, entry: MediaManifestEntry) -> MediaFile:
    data = maybe_decompress(reader.read(entry.index))
    return MediaFile(
        name=entry.filename,
        content_type=guess_content_type(entry.filename),
        data=data,
    )


def resolve_media(
    reader: ContainerReader,
    manifest_bytes: bytes | None = None,
    *,
    max_workers: int | None = None,
) -> MediaResolution:
    """
    Reconcile the manifest with the archive and load every resolvable file.

    :param reader: Open archive.
    :param manifest_bytes: Contents of the ``media`` member, or None to read
        it from the archive (an absent member means no media).
    :param max_workers: Thread count for extraction; None lets
        :class:`~concurrent.futures.ThreadPoolExecutor` decide.
    :returns: Resolved files plus the missing and unreferenced reports.
    :raises MalformedMediaManifest: If the manifest cannot be decoded, or a
        protobuf manifest shares no index at all with the archive.
    :raises DecompressionError: If a compressed media member is corrupt.
    """
    if manifest_bytes is None:
        if not reader.has_entry(MANIFEST_ENTRY):
            logger.debug("No media manifest in archive")
            return MediaResolution()
        manifest_bytes = reader.read(MANIFEST_ENTRY)

    entries, manifest_format = parse_manifest(manifest_bytes)
    logger.debug("Media manifest: %d entries (%s)", len(entries), manifest_format)

    numbered = {entry.name for entry in reader.list_entries() if entry.is_numbered}
    present = [entry for entry in entries if reader.has_entry(entry.index)]
    missing = tuple(entry for entry in entries if not reader.has_entry(entry.index))
    referenced = {entry.index for entry in entries}
    unreferenced = tuple(sorted(numbered - referenced, key=int))

    # Protobuf manifests carry no ids: entry n is member "n". If not a single
    # position lines up, that assumption does not hold for this archive.
    if manifest_format == "protobuf" and entries and numbered and not present:
        raise MalformedMediaManifest(
            f"Media manifest indices 0..{len(entries) - 1} match none of the "
            f"{len(numbered)} numbered archive entries"
        )

    if missing:
        logger.warning("%d media files listed in the manifest are missing", len(missing))
    if unreferenced:
        logger.warning("%d numbered archive entries are not in the manifest", len(unreferenced))

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        loaded = list(executor.map(lambda entry: _load_media(reader, entry), present))

    files = {}
    for media_file in loaded:
        if media_file.name in files:
            logger.warning("Duplicate media filename in manifest: %s", media_file.name)
        files[media_file.name] = media_file

    return MediaResolution(
        files=files,
        missing=missing,
        unreferenced=unreferenced,
        manifest_format=manifest_format,
    )
