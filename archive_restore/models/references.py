"""
Album reference table and file-to-album reference records.

Photo albums are recreated with new identifiers, so the archive-local ids
found in the export must be translated before files can point at them.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from archive_restore.models.document import PHOTOS_ALBUMS, DocReference


class DuplicateAlbumIdError(KeyError):
    """Raised when an archive-local album id is registered twice."""


class AlbumReferences:
    """
    Mapping from archive-local album ids to their new DocReference.

    Entries are write-once: registering the same local id twice raises
    DuplicateAlbumIdError. The table lives for a single import run.

    Usage:
        albums = AlbumReferences()
        albums.register("a1", "9f2c...")
        albums.resolve("a1")   # DocReference(id="9f2c...", type=PHOTOS_ALBUMS)
        albums.resolve("zz")   # None
    """

    def __init__(self) -> None:
        self._refs: dict[str, DocReference] = {}

    def register(self, local_id: str, new_id: str) -> DocReference:
        if local_id in self._refs:
            raise DuplicateAlbumIdError(local_id)
        ref = DocReference(id=new_id, type=PHOTOS_ALBUMS)
        self._refs[local_id] = ref
        return ref

    def resolve(self, local_id: str) -> DocReference | None:
        return self._refs.get(local_id)

    def __contains__(self, local_id: object) -> bool:
        return local_id in self._refs

    def __len__(self) -> int:
        return len(self._refs)

    def __iter__(self) -> Iterator[str]:
        return iter(self._refs)


@dataclass
class Reference:
    """
    One line of the album references entry.

    Attributes:
        filepath: File path relative to the import destination
        album_id: Archive-local album id
    """

    filepath: str
    album_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Reference:
        """
        Build a Reference from a decoded JSON object.

        Keys are matched case-insensitively (``albumId`` and ``albumid`` are
        both found in exports). Missing values decode as empty strings.

        Raises:
            ValueError: If a present value is not a string
        """
        lowered = {str(k).lower(): v for k, v in data.items()}
        filepath = lowered.get("filepath", "")
        album_id = lowered.get("albumid", "")
        if not isinstance(filepath, str) or not isinstance(album_id, str):
            raise ValueError("filepath and albumId must be strings")
        return cls(filepath=filepath, album_id=album_id)
