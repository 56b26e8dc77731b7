"""
Document store primitives shared by every entity the importer persists.

Provides:
- Doctype constants for the documents written during a restore
- DocReference, the ``{id, type}`` pair used for back-references
- strip_identity(), the normalization step applied to any document read from
  an archive before it is handed to the document store
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Doctypes
CONTACTS = "io.cozy.contacts"
FILES = "io.cozy.files"
PHOTOS_ALBUMS = "io.cozy.photos.albums"

# Reserved document fields owned by the document store
ID_FIELD = "_id"
REV_FIELD = "_rev"

# Discriminator field some exporters write into album records
TYPE_FIELD = "type"


@dataclass(frozen=True)
class DocReference:
    """
    A pointer to another document, stored on files as ``referenced_by``.

    Attributes:
        id: Identifier assigned by the document store
        type: Doctype of the referenced document
    """

    id: str
    type: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocReference:
        return cls(id=str(data.get("id", "")), type=str(data.get("type", "")))


def strip_identity(doc: dict[str, Any]) -> dict[str, Any]:
    """
    Return a copy of ``doc`` without the store-owned ``_id``/``_rev`` fields.

    Documents taken from an archive carry the identity they had in the
    exporting system; the importing store must assign fresh ones.

    Example:
        strip_identity({"_id": "a1", "_rev": "3-x", "name": "Trip"})
        # {"name": "Trip"}
    """
    return {k: v for k, v in doc.items() if k not in (ID_FIELD, REV_FIELD)}
