"""
Hand-rolled decoder for the protobuf media manifest of modern packages.

Anki publishes no schema for this message. The layout below was worked out
from real exports and is all the decoder relies on::

    0x0a <varint:msg_len>                 # outer field 1, wire type 2: one entry
        0x0a <varint:str_len> <filename>  # field 1: filename (UTF-8)
        0x10 <varint:size>                # field 2: file size, discarded
        0x1a <varint:20> <sha1>           # field 3: SHA1 hash, discarded

Any other field at either level is skipped with the generic varint /
length-delimited rules, so unknown additions do not break decoding.

Entry order is the media index: the n-th decoded filename describes archive
member ``str(n)``. Field 2 is NOT a usable id (several files can share a
size). Nothing in the format enforces this coupling, so the media resolver
checks it against the archive (see :mod:`anki_decoder.media`).
"""

from anki_decoder.errors import MalformedMediaManifest, WireFormatError
from anki_decoder.models import MediaManifestEntry
from anki_decoder.protobuf import (
    WIRE_LENGTH_DELIMITED,
    WIRE_VARINT,
    read_length_delimited,
    read_tag,
    skip_field,
)

ENTRY_FIELD = 1
FILENAME_FIELD = 1


def decode_entry(payload: bytes) -> str | None:
    """
    Decode one entry message.

    :param payload: Bytes of a single entry message.
    :returns: The filename, or None if the entry has none.
    :raises WireFormatError: On truncation or an unsupported wire type.
    """
    filename = None
    pos = 0
    while pos < len(payload):
        field_number, wire_type, pos = read_tag(payload, pos)
        if field_number == FILENAME_FIELD and wire_type == WIRE_LENGTH_DELIMITED:
            raw, pos = read_length_delimited(payload, pos)
            filename = raw.decode("utf-8")
        else:
            # field 2 (size varint), field 3 (sha1) and anything newer
            pos = skip_field(payload, pos, wire_type)
    return filename


def decode_media_manifest(data: bytes) -> list[MediaManifestEntry]:
    """
    Decode a (decompressed) protobuf media manifest.

    :param data: Manifest bytes.
    :returns: Manifest entries; indices are assigned from ``"0"`` in
        encounter order, one per decoded filename. An entry message without
        a filename is skipped and takes no index.
    :raises MalformedMediaManifest: On truncated data, a wire type other
        than varint / length-delimited, or a filename that is not UTF-8.
    """
    entries = []
    index = 0
    pos = 0
    try:
        while pos < len(data):
            field_number, wire_type, pos = read_tag(data, pos)
            if field_number == ENTRY_FIELD and wire_type == WIRE_LENGTH_DELIMITED:
                payload, pos = read_length_delimited(data, pos)
                filename = decode_entry(payload)
                if filename:
                    entries.append(MediaManifestEntry(str(index), filename))
                    index += 1
            elif wire_type in (WIRE_VARINT, WIRE_LENGTH_DELIMITED):
                pos = skip_field(data, pos, wire_type)
            else:
                raise WireFormatError(
                    f"Unexpected wire type {wire_type} for field {field_number}"
                )
    except (WireFormatError, UnicodeDecodeError) as exc:
        raise MalformedMediaManifest(
            f"Cannot decode media manifest near offset {pos}: {exc}"
        ) from exc
    return entries
