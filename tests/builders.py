"""
Build Anki collections, config blobs and archives in memory for tests.
"""

import io
import json
import os
import sqlite3
import tempfile
import zipfile

import zstandard


# =============================================================================
# Protobuf writer
# =============================================================================


def write_varint(value: int) -> bytes:
    """Write a varint to bytes."""
    if value < 0:
        value += 1 << 64
    result = b""
    while value > 127:
        result += bytes([(value & 0x7F) | 0x80])
        value >>= 7
    result += bytes([value])
    return result


def write_tag(field_num: int, wire_type: int) -> bytes:
    return write_varint((field_num << 3) | wire_type)


def proto_varint(field_num: int, value: int) -> bytes:
    """Write a protobuf varint field."""
    return write_tag(field_num, 0) + write_varint(value)


def proto_bytes(field_num: int, data: bytes) -> bytes:
    """Write a protobuf length-delimited field."""
    return write_tag(field_num, 2) + write_varint(len(data)) + data


def proto_string(field_num: int, value: str) -> bytes:
    """Write a protobuf length-delimited string field."""
    return proto_bytes(field_num, value.encode("utf-8"))


def notetype_config(
    css: str = "",
    latex_pre: str = "",
    latex_post: str = "",
    kind: int = 0,
    latex_svg: bool = False,
) -> bytes:
    blob = b""
    if kind:
        blob += proto_varint(1, kind)
    blob += proto_string(3, css)
    blob += proto_string(5, latex_pre)
    blob += proto_string(6, latex_post)
    if latex_svg:
        blob += proto_varint(7, 1)
    return blob


def field_config(font_name: str = "Arial", font_size: int = 20) -> bytes:
    return proto_string(3, font_name) + proto_varint(4, font_size)


def template_config(qfmt: str, afmt: str) -> bytes:
    return proto_string(1, qfmt) + proto_string(2, afmt)


def media_manifest(filenames: list[str], with_extras: bool = True) -> bytes:
    """Encode a protobuf media manifest the way modern Anki writes it."""
    data = b""
    for filename in filenames:
        entry = proto_string(1, filename)
        if with_extras:
            entry += proto_varint(2, 1234) + proto_bytes(3, b"\x01" * 20)
        data += proto_bytes(1, entry)
    return data


# =============================================================================
# Collections
# =============================================================================

LEGACY_SCHEMA = """
CREATE TABLE col (
    id INTEGER PRIMARY KEY, crt INTEGER NOT NULL, mod INTEGER NOT NULL,
    scm INTEGER NOT NULL, ver INTEGER NOT NULL, dty INTEGER NOT NULL,
    usn INTEGER NOT NULL, ls INTEGER NOT NULL, conf TEXT NOT NULL,
    models TEXT NOT NULL, decks TEXT NOT NULL, dconf TEXT NOT NULL,
    tags TEXT NOT NULL
);
CREATE TABLE notes (
    id INTEGER PRIMARY KEY, guid TEXT NOT NULL, mid INTEGER NOT NULL,
    mod INTEGER NOT NULL, usn INTEGER NOT NULL, tags TEXT NOT NULL,
    flds TEXT NOT NULL, sfld TEXT NOT NULL, csum INTEGER NOT NULL,
    flags INTEGER NOT NULL, data TEXT NOT NULL
);
CREATE TABLE cards (
    id INTEGER PRIMARY KEY, nid INTEGER NOT NULL, did INTEGER NOT NULL,
    ord INTEGER NOT NULL
);
"""

MODERN_SCHEMA = """
CREATE TABLE col (
    id INTEGER PRIMARY KEY, crt INTEGER NOT NULL, mod INTEGER NOT NULL,
    scm INTEGER NOT NULL, ver INTEGER NOT NULL, dty INTEGER NOT NULL,
    usn INTEGER NOT NULL, ls INTEGER NOT NULL, conf TEXT NOT NULL,
    models TEXT NOT NULL, decks TEXT NOT NULL, dconf TEXT NOT NULL,
    tags TEXT NOT NULL
);
CREATE TABLE notetypes (
    id INTEGER PRIMARY KEY, name TEXT NOT NULL, mtime_secs INTEGER NOT NULL,
    usn INTEGER NOT NULL, config BLOB NOT NULL
);
CREATE TABLE fields (
    ntid INTEGER NOT NULL, ord INTEGER NOT NULL, name TEXT NOT NULL,
    config BLOB NOT NULL, PRIMARY KEY (ntid, ord)
) WITHOUT ROWID;
CREATE TABLE templates (
    ntid INTEGER NOT NULL, ord INTEGER NOT NULL, name TEXT NOT NULL,
    mtime_secs INTEGER NOT NULL, usn INTEGER NOT NULL, config BLOB NOT NULL,
    PRIMARY KEY (ntid, ord)
) WITHOUT ROWID;
CREATE TABLE notes (
    id INTEGER PRIMARY KEY, guid TEXT NOT NULL, mid INTEGER NOT NULL,
    mod INTEGER NOT NULL, usn INTEGER NOT NULL, tags TEXT NOT NULL,
    flds TEXT NOT NULL, sfld TEXT NOT NULL, csum INTEGER NOT NULL,
    flags INTEGER NOT NULL, data TEXT NOT NULL
);
CREATE TABLE decks (
    id INTEGER PRIMARY KEY, name TEXT NOT NULL, mtime_secs INTEGER NOT NULL,
    usn INTEGER NOT NULL, common BLOB NOT NULL, kind BLOB NOT NULL
);
CREATE TABLE cards (
    id INTEGER PRIMARY KEY, nid INTEGER NOT NULL, did INTEGER NOT NULL,
    ord INTEGER NOT NULL
);
"""


def build_database(script: str, populate) -> bytes:
    """
    Create an SQLite database file and return its bytes.

    :param script: Schema DDL.
    :param populate: Callable receiving the open connection.
    """
    temp_dir = tempfile.mkdtemp()
    path = os.path.join(temp_dir, "collection.db")
    conn = sqlite3.connect(path)
    try:
        conn.executescript(script)
        populate(conn)
        conn.commit()
    finally:
        conn.close()
    with open(path, "rb") as f:
        data = f.read()
    os.remove(path)
    os.rmdir(temp_dir)
    return data


def legacy_model(
    model_id: str,
    fields: list[str],
    templates: list[tuple[str, str, str]] | None = None,
    name: str = "Basic",
) -> dict:
    templates = templates or [("Card 1", "{{%s}}" % fields[0], "{{FrontSide}}<hr id=answer>")]
    return {
        "id": int(model_id),
        "name": name,
        "css": ".card { font-family: arial; }",
        "latexPre": "\\documentclass[12pt]{article}",
        "latexPost": "\\end{document}",
        "flds": [{"name": f, "ord": i} for i, f in enumerate(fields)],
        "tmpls": [
            {"name": n, "qfmt": q, "afmt": a, "ord": i}
            for i, (n, q, a) in enumerate(templates)
        ],
    }


def build_legacy_collection(
    models: dict,
    notes: list[tuple[int, str, str, str]],
    decks: dict | None = None,
    cards: list[tuple[int, int, int, int]] | None = None,
    ver: int = 11,
    models_json: str | None = None,
) -> bytes:
    """
    :param models: Model id to model dict (see :func:`legacy_model`).
    :param notes: ``(id, mid, flds, tags)`` rows.
    :param decks: Deck id to ``{"name": ...}``.
    :param cards: ``(id, nid, did, ord)`` rows.
    """
    decks = decks if decks is not None else {"1": {"id": 1, "name": "Default"}}

    def populate(conn):
        conn.execute(
            "INSERT INTO col VALUES (1, 0, 0, 0, ?, 0, 0, 0, '{}', ?, ?, '{}', '{}')",
            (ver, models_json if models_json is not None else json.dumps(models), json.dumps(decks)),
        )
        for note_id, mid, flds, tags in notes:
            conn.execute(
                "INSERT INTO notes VALUES (?, ?, ?, 0, 0, ?, ?, '', 0, 0, '')",
                (note_id, f"guid{note_id}", int(mid), tags, flds),
            )
        for row in cards or []:
            conn.execute("INSERT INTO cards VALUES (?, ?, ?, ?)", row)

    return build_database(LEGACY_SCHEMA, populate)


def build_modern_collection(
    notetypes: list[tuple[str, str, bytes]],
    fields: list[tuple[str, int, str, bytes]],
    templates: list[tuple[str, int, str, bytes]],
    notes: list[tuple[int, str, str, str]],
    decks: list[tuple[int, str]] | None = None,
    cards: list[tuple[int, int, int, int]] | None = None,
) -> bytes:
    """
    :param notetypes: ``(id, name, config)`` rows.
    :param fields: ``(ntid, ord, name, config)`` rows.
    :param templates: ``(ntid, ord, name, config)`` rows.
    :param notes: ``(id, mid, flds, tags)`` rows.
    :param decks: ``(id, name)`` rows; names use 0x1f between levels.
    :param cards: ``(id, nid, did, ord)`` rows.
    """
    decks = decks if decks is not None else [(1, "Default")]

    def populate(conn):
        conn.execute(
            "INSERT INTO col VALUES (1, 0, 0, 0, 18, 0, 0, 0, '', '', '', '', '')"
        )
        for nt_id, name, config in notetypes:
            conn.execute("INSERT INTO notetypes VALUES (?, ?, 0, 0, ?)", (int(nt_id), name, config))
        for ntid, ord_, name, config in fields:
            conn.execute("INSERT INTO fields VALUES (?, ?, ?, ?)", (int(ntid), ord_, name, config))
        for ntid, ord_, name, config in templates:
            conn.execute(
                "INSERT INTO templates VALUES (?, ?, ?, 0, 0, ?)", (int(ntid), ord_, name, config)
            )
        for note_id, mid, flds, tags in notes:
            conn.execute(
                "INSERT INTO notes VALUES (?, ?, ?, 0, 0, ?, ?, '', 0, 0, '')",
                (note_id, f"guid{note_id}", int(mid), tags, flds),
            )
        for deck_id, name in decks:
            conn.execute("INSERT INTO decks VALUES (?, ?, 0, 0, x'', x'')", (deck_id, name))
        for row in cards or []:
            conn.execute("INSERT INTO cards VALUES (?, ?, ?, ?)", row)

    return build_database(MODERN_SCHEMA, populate)


# =============================================================================
# Archives
# =============================================================================


def zstd_compress(data: bytes) -> bytes:
    return zstandard.ZstdCompressor().compress(data)


def build_archive(entries: dict[str, bytes]) -> bytes:
    """Zip the given members, in order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()
