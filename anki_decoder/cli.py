"""
CLI tools for inspecting Anki package (.apkg) files.

Commands:
    inspect identify - Container format, archive members and collection era
    inspect cards    - Decoded cards with their fields
    inspect decks    - Deck overview with counts
    inspect models   - Note types, fields and templates
    inspect media    - Media manifest reconciliation, optional extraction
"""

import logging
import os
import re
import sys
from pathlib import Path

import cyclopts

from anki_decoder.compression import ZSTD_MAGIC, maybe_decompress
from anki_decoder.container import ZIP_MAGIC, ContainerReader
from anki_decoder.errors import AnkiDecodeError
from anki_decoder.models import AnkiPackage
from anki_decoder.package import decode_package, find_collection_entry
from anki_decoder.schema import identify as identify_collection
from anki_decoder.schema import resolve
from anki_decoder.store import SQLITE_MAGIC, TabularStore

_LOG_LEVEL = os.environ.get("ANKI_DECODER_LOG_LEVEL", "WARNING").upper()
_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

app = cyclopts.App(name="anki-decoder", help="Decode and inspect Anki package (.apkg) files")


# =============================================================================
# Inspect commands - diagnostic tools for .apkg files
# =============================================================================

inspect_app = cyclopts.App(name="inspect", help="Inspect Anki package (.apkg) files")
app.command(inspect_app)


def _fail(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _load(apkg_path: Path) -> AnkiPackage:
    try:
        return decode_package(apkg_path.read_bytes())
    except AnkiDecodeError as exc:
        _fail(f"{type(exc).__name__}: {exc}")
    except OSError as exc:
        _fail(str(exc))


def _strip_html(value: str | None) -> str:
    if value is None:
        return "(empty)"
    return re.sub(r"<[^>]+>", "", value)


def container_format(data: bytes) -> str:
    """Describe a file by its magic bytes."""
    if data.startswith(ZIP_MAGIC):
        return "ZIP archive (.apkg/.colpkg)"
    if data.startswith(SQLITE_MAGIC):
        return "SQLite 3 database (.anki2/.anki21)"
    if data.startswith(ZSTD_MAGIC):
        return "Zstandard compressed (.anki21b)"
    return "Unknown format"


def _print_collection(collection: bytes, names: list[str]) -> None:
    with TabularStore.from_bytes(collection) as store:
        info = identify_collection(store)
        schema = resolve(names, store)
    print(f"  Schema: {schema.value}")
    print(f"  Era: {info.era}")
    print(f"  Collection version: {info.version}")
    print(f"  Schema modified: {info.schema_mod_time}")
    print(f"  Models column: {'yes' if info.has_models_column else 'no'}")
    print(f"  Tables: {', '.join(sorted(info.tables))}")


@inspect_app.command
def identify(apkg_path: Path):
    """Identify the container format and collection era of a file.

    :param apkg_path: Path to .apkg, .colpkg, .anki2 or .anki21b file.
    """
    try:
        data = apkg_path.read_bytes()
    except OSError as exc:
        _fail(str(exc))

    print(f"File: {apkg_path.name}")
    print(f"Size: {len(data) / 1024:.1f} KB")
    print(f"Format: {container_format(data)}")
    print(f"Magic bytes: {data[:16].hex(' ').upper()}")
    print()

    try:
        if data.startswith(ZIP_MAGIC):
            with ContainerReader.open(data) as reader:
                print("Archive entries:")
                for entry in reader.list_entries():
                    print(f"  {entry.name} ({entry.size} bytes)")
                print()
                entry_name = find_collection_entry(reader)
                print(f"Collection: {entry_name}")
                _print_collection(maybe_decompress(reader.read(entry_name)), [entry_name])
        elif data.startswith(SQLITE_MAGIC) or data.startswith(ZSTD_MAGIC):
            print("Collection:")
            _print_collection(maybe_decompress(data), [])
    except AnkiDecodeError as exc:
        _fail(f"{type(exc).__name__}: {exc}")


@inspect_app.command
def cards(
    apkg_path: Path,
    *,
    limit: int = 10,
    search: str | None = None,
):
    """List decoded cards.

    :param apkg_path: Path to .apkg file.
    :param limit: Maximum cards to show (0 for all).
    :param search: Filter cards containing this text.
    """
    pkg = _load(apkg_path)
    print(f"Total cards: {len(pkg.cards)}\n")

    shown = 0
    for i, card in enumerate(pkg.cards):
        if search:
            text = " ".join(v for v in card.values.values() if v)
            if search.lower() not in text.lower():
                continue

        print(f"Card {i}:")
        print(f"  Deck: {card.deck_name or 'Unknown'}")
        for name, value in card.values.items():
            print(f"  {name}: {_strip_html(value)[:100]}")
        if card.tags:
            print(f"  Tags: {' '.join(card.tags)}")
        print(f"  Templates: {', '.join(t.name for t in card.templates)}")
        print()

        shown += 1
        if limit and shown >= limit:
            remaining = len(pkg.cards) - i - 1
            if remaining > 0:
                print(f"... and {remaining} more cards")
            break


@inspect_app.command
def decks(apkg_path: Path):
    """Show the deck overview.

    :param apkg_path: Path to .apkg file.
    """
    pkg = _load(apkg_path)
    info = pkg.deck_info()

    print(f"Deck: {info.name}")
    print(f"  Cards: {info.card_count}")
    print(f"  Templates: {info.template_count}")
    print()
    print(f"Decks with cards ({len(info.subdecks)}):\n")
    for subdeck in info.subdecks:
        print(f"  {subdeck.name}")
        print(f"    ID: {subdeck.id}")
        print(f"    Cards: {subdeck.card_count}")
        print(f"    Templates: {subdeck.template_count}")
        print()


@inspect_app.command
def models(apkg_path: Path, *, verbose: bool = False):
    """List note types with their fields and templates.

    :param apkg_path: Path to .apkg file.
    :param verbose: If True, print template sources.
    """
    pkg = _load(apkg_path)

    # Fields and templates per notetype, as seen on the cards
    seen = {}
    for card in pkg.cards:
        seen.setdefault(card.notetype_id, (list(card.values), card.templates))

    names = {nt.id: nt for nt in pkg.notetypes or ()}
    print(f"Note Types ({len(seen)}):\n")
    for notetype_id, (field_names, templates) in seen.items():
        notetype = names.get(notetype_id)
        print(f"  {notetype.name if notetype else 'Unknown'}")
        print(f"    ID: {notetype_id}")
        if notetype:
            print(f"    Kind: {notetype.kind.name.lower()}")
            print(f"    CSS length: {len(notetype.css)}")
        print(f"    Fields: {', '.join(field_names)}")
        print(f"    Templates: {', '.join(t.name for t in templates)}")
        if verbose:
            for tmpl in templates:
                print(f"    Template '{tmpl.name}':")
                print(f"      Front: {tmpl.question_format}")
                print(f"      Back: {tmpl.answer_format}")
        print()


@inspect_app.command
def media(apkg_path: Path, *, extract: Path | None = None, data_uris: bool = False):
    """Show media reconciliation and optionally extract files.

    :param apkg_path: Path to .apkg file.
    :param extract: Directory to extract resolved media files to.
    :param data_uris: Print each resolved file as a data: URI for inlining in HTML.
    """
    pkg = _load(apkg_path)
    report = pkg.media

    print("Media:")
    print(f"  Manifest format: {report.manifest_format}")
    print(f"  Resolved: {len(report.files)}")
    print(f"  Missing: {len(report.missing)}")
    print(f"  Unreferenced: {len(report.unreferenced)}")
    for entry in report.missing[:10]:
        print(f"    missing {entry.index}: {entry.filename}")
    for name in report.unreferenced[:10]:
        print(f"    unreferenced entry {name}")
    print()

    types = {}
    for media_file in report.files.values():
        types[media_file.content_type] = types.get(media_file.content_type, 0) + 1
    for content_type, count in sorted(types.items()):
        print(f"  {content_type}: {count}")

    if data_uris:
        print()
        for name, media_file in sorted(report.files.items()):
            print(f"{name}\t{media_file.data_uri()}")

    if extract:
        for media_file in report.files.values():
            media_file.save(extract)
        print(f"\nExtracted {len(report.files)} files to: {extract}")


def main() -> None:
    """Main entry point. Configures logging and invokes the cyclopts app."""
    logging.basicConfig(level=getattr(logging, _LOG_LEVEL, logging.WARNING), format=_LOG_FORMAT)
    app()


if __name__ == "__main__":
    main()
