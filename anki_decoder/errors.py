"""
Exception types raised while decoding Anki packages.

Every error is terminal for the decode call that raised it. Callers can
catch :class:`AnkiDecodeError` to handle any failure, or one of the
subclasses to react to a specific kind.
"""


class AnkiDecodeError(Exception):
    """Base class for all decoder errors."""


class ContainerError(AnkiDecodeError):
    """The outer archive could not be read."""


class NotAContainer(ContainerError):
    """The input bytes are not a ZIP archive."""


class EntryNotFound(ContainerError):
    """A requested archive entry does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Archive entry not found: {name!r}")
        self.name = name


class DecompressionError(AnkiDecodeError):
    """A Zstandard frame was detected but could not be decompressed."""


class UnrecognizedCollection(AnkiDecodeError):
    """No collection database could be found or classified."""


class WireFormatError(AnkiDecodeError):
    """Low-level protobuf wire format violation (truncation, bad wire type)."""


class MalformedConfigBlob(AnkiDecodeError):
    """A notetype, field or template config blob failed to decode."""


class MalformedMediaManifest(AnkiDecodeError):
    """The media manifest could not be decoded."""


class InvalidLegacyModelJson(AnkiDecodeError):
    """The JSON model or deck definitions in ``col`` are invalid."""


class NotetypeNotFound(AnkiDecodeError):
    """A note references a notetype that does not exist in the collection."""

    def __init__(self, note_id: str, notetype_id: str) -> None:
        super().__init__(
            f"Note {note_id} references unknown notetype {notetype_id}"
        )
        self.note_id = note_id
        self.notetype_id = notetype_id


class ModelNotFound(NotetypeNotFound):
    """Legacy schema: a note's ``mid`` matches no model in ``col.models``."""


class TemplateGroupNotFound(NotetypeNotFound):
    """Modern schema: a note's ``mid`` has no rows in the ``templates`` table."""
