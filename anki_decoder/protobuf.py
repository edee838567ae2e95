"""
Protocol Buffer wire format decoding.

Two layers live here:

- Reader combinators over ``(buffer, offset) -> (value, new_offset)``. They
  hold no state, so every field can be decoded and tested in isolation.
- A schema-driven decoder for the config blobs of the modern
  ``notetypes``, ``fields`` and ``templates`` tables.

Wire format reminder::

    tag      = varint: (field_number << 3) | wire_type
    varint   = 7 bits per byte, MSB set on every byte but the last
    wire 0   = varint
    wire 2   = varint length, then that many bytes (string/bytes/message)
    wire 1/5 = fixed 64/32 bits (never used by Anki's config messages)

The media manifest has no schema and is decoded by hand in
:mod:`anki_decoder.manifest`, on top of the same readers.
"""

from dataclasses import dataclass

from anki_decoder.errors import MalformedConfigBlob, WireFormatError

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5

_MAX_VARINT_BYTES = 10


# =============================================================================
# Reader combinators
# =============================================================================


def read_varint(data: bytes, pos: int) -> tuple[int, int]:
    """
    Read a protobuf varint from data starting at pos.

    :param data: Binary data to read from.
    :param pos: Starting position in data.
    :returns: Tuple of (value, new_position).
    :raises WireFormatError: If the varint runs past the end of the buffer
        or is longer than 10 bytes.

    Varints use 7 bits per byte with MSB as continuation flag.
    Example: ``0xac 0x02`` = ``0x2c | (0x02 << 7)`` = 300
    """
    result = 0
    shift = 0
    start = pos
    while pos < len(data):
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if (byte & 0x80) == 0:
            return result, pos
        shift += 7
        if pos - start >= _MAX_VARINT_BYTES:
            raise WireFormatError(f"Varint at offset {start} is too long")
    raise WireFormatError(f"Truncated varint at offset {start}")


def read_tag(data: bytes, pos: int) -> tuple[int, int, int]:
    """
    Read a field tag.

    :returns: Tuple of (field_number, wire_type, new_position).
    """
    tag, pos = read_varint(data, pos)
    return tag >> 3, tag & 0x07, pos


def read_length_delimited(data: bytes, pos: int) -> tuple[bytes, int]:
    """
    Read a length-prefixed payload.

    :returns: Tuple of (payload, new_position).
    :raises WireFormatError: If the payload extends past the buffer.
    """
    length, pos = read_varint(data, pos)
    end = pos + length
    if end > len(data):
        raise WireFormatError(
            f"Length-delimited field at offset {pos} needs {length} bytes, "
            f"{len(data) - pos} available"
        )
    return bytes(data[pos:end]), end


def skip_field(data: bytes, pos: int, wire_type: int) -> int:
    """
    Skip the value of a field whose tag has already been read.

    Only varint and length-delimited values can be skipped; Anki never
    writes fixed-width fields, so they are treated as corruption.

    :returns: Position after the value.
    :raises WireFormatError: For any other wire type.
    """
    if wire_type == WIRE_VARINT:
        _, pos = read_varint(data, pos)
        return pos
    if wire_type == WIRE_LENGTH_DELIMITED:
        _, pos = read_length_delimited(data, pos)
        return pos
    raise WireFormatError(f"Unsupported wire type {wire_type} before offset {pos}")


def to_signed64(value: int) -> int:
    """Reinterpret an unsigned varint as a two's complement int64."""
    value &= (1 << 64) - 1
    return value - (1 << 64) if value >= (1 << 63) else value


# =============================================================================
# Schema-driven decoding
# =============================================================================

_VARINT_KINDS = {"bool", "uint32", "int64", "enum"}
_BYTES_KINDS = {"string", "bytes", "message"}

_DEFAULTS = {
    "string": "",
    "bytes": b"",
    "bool": False,
    "uint32": 0,
    "int64": 0,
    "enum": 0,
}


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of one message field.

    :param name: Key in the decoded dict.
    :param kind: One of string, bytes, bool, uint32, int64, enum, message.
    :param repeated: Collect every occurrence into a list (packed varints
        are accepted too).
    :param optional: Explicit presence; the default is None instead of the
        type's zero value.
    :param schema: Nested message schema, for kind ``message``.
    """

    name: str
    kind: str
    repeated: bool = False
    optional: bool = False
    schema: "dict[int, FieldSpec] | None" = None


MessageSchema = dict[int, FieldSpec]


def _default(spec: FieldSpec):
    if spec.repeated:
        return []
    if spec.optional:
        return None
    if spec.kind == "message":
        return decode_message(spec.schema or {}, b"")
    return _DEFAULTS[spec.kind]


def _convert_varint(spec: FieldSpec, value: int):
    if spec.kind == "bool":
        return value != 0
    if spec.kind == "int64":
        return to_signed64(value)
    if spec.kind == "uint32":
        return value & 0xFFFFFFFF
    return value


def _convert_bytes(spec: FieldSpec, payload: bytes):
    if spec.kind == "string":
        return payload.decode("utf-8")
    if spec.kind == "message":
        return _decode(spec.schema or {}, payload)
    return payload


def _decode(schema: MessageSchema, data: bytes) -> dict:
    message = {spec.name: _default(spec) for spec in schema.values()}
    pos = 0
    while pos < len(data):
        field_number, wire_type, pos = read_tag(data, pos)
        spec = schema.get(field_number)
        if spec is None:
            pos = skip_field(data, pos, wire_type)
            continue

        if spec.kind in _VARINT_KINDS:
            if wire_type == WIRE_VARINT:
                value, pos = read_varint(data, pos)
                values = [_convert_varint(spec, value)]
            elif wire_type == WIRE_LENGTH_DELIMITED and spec.repeated:
                packed, pos = read_length_delimited(data, pos)
                values = []
                inner = 0
                while inner < len(packed):
                    value, inner = read_varint(packed, inner)
                    values.append(_convert_varint(spec, value))
            else:
                raise WireFormatError(
                    f"Field {spec.name} ({field_number}) has wire type {wire_type}"
                )
        elif spec.kind in _BYTES_KINDS:
            if wire_type != WIRE_LENGTH_DELIMITED:
                raise WireFormatError(
                    f"Field {spec.name} ({field_number}) has wire type {wire_type}"
                )
            payload, pos = read_length_delimited(data, pos)
            values = [_convert_bytes(spec, payload)]
        else:
            raise ValueError(f"Unknown field kind {spec.kind!r} for {spec.name}")

        if spec.repeated:
            message[spec.name].extend(values)
        else:
            # Last occurrence wins for singular fields
            message[spec.name] = values[-1]
    return message


def decode_message(schema: MessageSchema, data: bytes | None) -> dict:
    """
    Decode a protobuf message against a schema.

    Unknown fields are skipped. Absent fields take their proto3 default.

    :param schema: Field number to :class:`FieldSpec`.
    :param data: Encoded message; None is treated as empty.
    :returns: Dict keyed by field name.
    :raises MalformedConfigBlob: On truncation, an unsupported wire type, a
        wire type that does not match the schema, or invalid UTF-8.
    """
    try:
        return _decode(schema, bytes(data or b""))
    except (WireFormatError, UnicodeDecodeError) as exc:
        raise MalformedConfigBlob(f"Cannot decode config blob: {exc}") from exc


# =============================================================================
# Anki config message schemas (anki/proto/anki/notetypes.proto)
# =============================================================================

CARD_REQUIREMENT: MessageSchema = {
    1: FieldSpec("kind", "enum"),
    2: FieldSpec("field_ords", "uint32", repeated=True),
}

NOTETYPE_CONFIG: MessageSchema = {
    1: FieldSpec("kind", "enum"),
    2: FieldSpec("sort_field_idx", "uint32"),
    3: FieldSpec("css", "string"),
    4: FieldSpec("target_deck_id_unused", "int64"),
    5: FieldSpec("latex_pre", "string"),
    6: FieldSpec("latex_post", "string"),
    7: FieldSpec("latex_svg", "bool"),
    8: FieldSpec("reqs", "message", repeated=True, schema=CARD_REQUIREMENT),
    9: FieldSpec("original_stock_kind", "enum"),
    10: FieldSpec("original_id", "int64", optional=True),
    255: FieldSpec("other", "bytes"),
}

FIELD_CONFIG: MessageSchema = {
    1: FieldSpec("sticky", "bool"),
    2: FieldSpec("rtl", "bool"),
    3: FieldSpec("font_name", "string"),
    4: FieldSpec("font_size", "uint32"),
    5: FieldSpec("description", "string"),
    6: FieldSpec("plain_text", "bool"),
    7: FieldSpec("collapsed", "bool"),
    8: FieldSpec("exclude_from_search", "bool"),
    9: FieldSpec("id", "int64", optional=True),
    10: FieldSpec("tag", "uint32", optional=True),
    11: FieldSpec("prevent_deletion", "bool"),
    255: FieldSpec("other", "bytes"),
}

TEMPLATE_CONFIG: MessageSchema = {
    1: FieldSpec("q_format", "string"),
    2: FieldSpec("a_format", "string"),
    3: FieldSpec("q_format_browser", "string"),
    4: FieldSpec("a_format_browser", "string"),
    5: FieldSpec("target_deck_id", "int64"),
    6: FieldSpec("browser_font_name", "string"),
    7: FieldSpec("browser_font_size", "uint32"),
    8: FieldSpec("id", "int64", optional=True),
    255: FieldSpec("other", "bytes"),
}


def decode_notetype_config(data: bytes | None) -> dict:
    return decode_message(NOTETYPE_CONFIG, data)


def decode_field_config(data: bytes | None) -> dict:
    return decode_message(FIELD_CONFIG, data)


def decode_template_config(data: bytes | None) -> dict:
    return decode_message(TEMPLATE_CONFIG, data)
