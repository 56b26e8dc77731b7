"""
archive_restore.models - Entity codecs

Typed representations of the documents a restore produces. Pure data, no I/O.
"""

from archive_restore.models.contact import (
    Contact,
    ContactAddress,
    ContactCozy,
    ContactEmail,
    ContactName,
    ContactPhone,
)
from archive_restore.models.document import (
    CONTACTS,
    FILES,
    PHOTOS_ALBUMS,
    DocReference,
    strip_identity,
)
from archive_restore.models.references import (
    AlbumReferences,
    DuplicateAlbumIdError,
    Reference,
)

__all__ = [
    "AlbumReferences",
    "CONTACTS",
    "Contact",
    "ContactAddress",
    "ContactCozy",
    "ContactEmail",
    "ContactName",
    "ContactPhone",
    "DocReference",
    "DuplicateAlbumIdError",
    "FILES",
    "PHOTOS_ALBUMS",
    "Reference",
    "strip_identity",
]
