"""
Integration tests for the archive dispatcher.

Archives are built in memory with tarfile and replayed into an in-memory
instance.
"""

import io
import random
import re
import tarfile

import pytest

from archive_restore import import_archive, untar
from archive_restore.config import ImportConfig
from archive_restore.models import CONTACTS, PHOTOS_ALBUMS
from archive_restore.restore import (
    ArchiveFormatError,
    ArchiveImportError,
    ArchiveImporter,
    ImportSummary,
    StorageError,
    resolve_destination,
    split_entry_name,
)
from archive_restore.storage import FileDoc, NotFoundError

MANIFEST = b'{"_id":"a1","name":"Trip"}\n'
REFERENCES = b'{"filepath":"/photo.jpg","albumId":"a1"}\n'
VCARD = b"BEGIN:VCARD\r\nVERSION:3.0\r\nFN:Ada Lovelace\r\nN:Lovelace;Ada;;;\r\nEND:VCARD\r\n"


@pytest.fixture
def destination(fs):
    return fs.mkdir_all("/Imported")


class TestSplitEntryName:
    """Tests for split_entry_name."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("files/Photos/a.jpg", ("files", "Photos/a.jpg")),
            ("./contacts/c.vcf", ("contacts", "c.vcf")),
            ("albums/albums.json", ("albums", "albums.json")),
            ("files/", ("", "")),
            ("files", ("", "")),
            ("README", ("", "")),
        ],
    )
    def test_split(self, name, expected):
        assert split_entry_name(name) == expected


class TestImportSummary:
    """Tests for ImportSummary."""

    def test_to_dict(self):
        summary = ImportSummary(files=2, contacts=1)
        assert summary.to_dict()["files"] == 2
        assert summary.to_dict()["contacts"] == 1
        assert summary.to_dict()["albums"] == 0


class TestFullImport:
    """End-to-end imports of well-formed archives."""

    def test_file_album_and_reference(self, instance, destination, make_archive):
        archive = make_archive(
            [
                ("files/photo.jpg", b"0123456789"),
                ("albums/albums.json", MANIFEST),
                ("albums/references.json", REFERENCES),
            ]
        )
        summary = untar(archive, destination, instance)

        photo = instance.fs.file_by_path("/Imported/photo.jpg")
        assert photo.size == 10
        assert photo.klass == "image"

        [album] = instance.db.all_docs(PHOTOS_ALBUMS)
        assert album["name"] == "Trip"
        assert album["_id"] != "a1"
        assert [r.id for r in photo.referenced_by] == [album["_id"]]
        assert [r.type for r in photo.referenced_by] == [PHOTOS_ALBUMS]

        assert summary.files == 1
        assert summary.albums == 1
        assert summary.references_attached == 1
        assert summary.references_skipped == 0

    def test_reference_to_missing_file_skipped(self, instance, destination, make_archive):
        archive = make_archive(
            [
                ("albums/albums.json", MANIFEST),
                ("albums/references.json", REFERENCES),
            ]
        )
        summary = untar(archive, destination, instance)

        assert instance.db.count(PHOTOS_ALBUMS) == 1
        assert summary.references_attached == 0
        assert summary.references_skipped == 1

    def test_reference_to_unknown_album_skipped(self, instance, destination, make_archive):
        archive = make_archive(
            [
                ("files/photo.jpg", b"0123456789"),
                ("albums/albums.json", MANIFEST),
                ("albums/references.json", b'{"filepath":"/photo.jpg","albumId":"zz"}\n'),
            ]
        )
        summary = untar(archive, destination, instance)

        assert summary.albums == 1
        assert summary.references_attached == 0
        assert summary.references_skipped == 1
        assert instance.fs.file_by_path("/Imported/photo.jpg").referenced_by == []

    def test_reference_outside_destination_skipped(self, instance, destination, make_archive):
        instance.fs.mkdir_all("/Private")
        archive = make_archive(
            [
                ("albums/albums.json", MANIFEST),
                (
                    "albums/references.json",
                    b'{"filepath":"/../Private/photo.jpg","albumId":"a1"}\n',
                ),
            ]
        )
        summary = untar(archive, destination, instance)

        assert summary.references_attached == 0
        assert summary.references_skipped == 1

    def test_directories_and_nested_files(self, instance, destination, make_archive):
        archive = make_archive(
            [
                ("files/", None),
                ("files/Photos", None),
                ("files/Photos/2020", None),
                ("files/Photos/2020/a.jpg", b"abc"),
                ("files/Docs/notes.md", b"# hi"),
            ]
        )
        summary = untar(archive, destination, instance)

        fs = instance.fs
        assert fs.dir_exists("/Imported/Photos/2020")
        assert fs.file_by_path("/Imported/Photos/2020/a.jpg").size == 3
        assert fs.dir_exists("/Imported/Docs")
        assert summary.directories == 2
        assert summary.files == 2

    def test_contacts(self, instance, destination, make_archive):
        archive = make_archive(
            [
                ("contacts/ada.vcf", VCARD),
                ("contacts/nobody.vcf", b"BEGIN:VCARD\r\nVERSION:3.0\r\nEND:VCARD\r\n"),
            ]
        )
        summary = untar(archive, destination, instance)

        names = sorted(doc["fullname"] for doc in instance.db.all_docs(CONTACTS))
        assert names == ["Ada Lovelace", "John Doe"]
        assert summary.contacts == 2

    def test_unknown_sections_skipped(self, instance, destination, make_archive):
        archive = make_archive(
            [
                ("notes/readme.txt", b"hello"),
                ("albums/other.json", b"{}"),
                ("toplevel.txt", b"x"),
                ("notes/", None),
                ("files/a.txt", b"a"),
            ]
        )
        summary = untar(archive, destination, instance)

        assert summary.skipped_entries == 3
        assert summary.files == 1
        assert summary.directories == 0
        with pytest.raises(NotFoundError):
            instance.fs.file_by_path("/Imported/readme.txt")

    def test_collision_with_existing_file(self, instance, destination, make_archive):
        with instance.fs.create_file(FileDoc.new("a.txt", destination.id(), 3)) as f:
            f.write(b"old")
        summary = untar(make_archive([("files/a.txt", b"new")]), destination, instance)

        assert summary.files == 1
        assert summary.renamed_files == 1
        names = [c.name for c in instance.fs.children(destination)]
        assert names[0] == "a.txt"
        assert re.match(r"^a-conflict-\d+\.txt$", names[1])

    def test_executable_mode_preserved(self, instance, destination, make_archive):
        untar(make_archive([("files/run.sh", b"ls")], mode=0o755), destination, instance)
        assert instance.fs.file_by_path("/Imported/run.sh").executable is True

    def test_custom_section_names(self, instance, destination, make_archive):
        config = ImportConfig(
            albums_manifest_name="manifest.ndjson",
            album_references_name="refs.ndjson",
        )
        archive = make_archive(
            [
                ("files/photo.jpg", b"x"),
                ("albums/manifest.ndjson", MANIFEST),
                ("albums/refs.ndjson", REFERENCES),
            ]
        )
        summary = untar(archive, destination, instance, config)
        assert summary.albums == 1
        assert summary.references_attached == 1

    def test_empty_archive(self, instance, destination, make_archive):
        summary = untar(make_archive([]), destination, instance)
        assert summary == ImportSummary()


class TestImportFailures:
    """Archives that abort the import."""

    def test_not_gzip(self, instance, destination):
        with pytest.raises(ArchiveFormatError) as exc_info:
            untar(io.BytesIO(b"plain text, no gzip"), destination, instance)
        assert exc_info.value.domain == "alice.example.net"

    def test_truncated_archive(self, instance, destination, make_archive):
        payload = random.Random(0).randbytes(50000)
        data = make_archive([("files/a.bin", payload)]).getvalue()
        with pytest.raises(ArchiveFormatError):
            untar(io.BytesIO(data[: len(data) // 2]), destination, instance)

    def test_symlink_rejected(self, instance, destination, make_archive):
        link = tarfile.TarInfo("files/link")
        link.type = tarfile.SYMTYPE
        link.linkname = "photo.jpg"
        archive = make_archive([("files/photo.jpg", b"x"), link])

        with pytest.raises(ArchiveFormatError, match="Unknown typeflag") as exc_info:
            untar(archive, destination, instance)
        assert exc_info.value.entry == "files/link"
        assert exc_info.value.domain == "alice.example.net"
        # Entries before the failure stay imported
        assert instance.fs.file_by_path("/Imported/photo.jpg").size == 1

    def test_invalid_vcard_aborts(self, instance, destination, make_archive):
        archive = make_archive(
            [("contacts/bad.vcf", b"garbage"), ("files/a.txt", b"a")]
        )
        with pytest.raises(ArchiveFormatError) as exc_info:
            untar(archive, destination, instance)
        assert exc_info.value.entry == "contacts/bad.vcf"
        with pytest.raises(NotFoundError):
            instance.fs.file_by_path("/Imported/a.txt")

    def test_invalid_manifest_line(self, instance, destination, make_archive):
        archive = make_archive([("albums/albums.json", b"{not json}\n")])
        with pytest.raises(ArchiveFormatError, match="albums/albums.json"):
            untar(archive, destination, instance)

    def test_second_collision_is_storage_error(
        self, instance, destination, make_archive, monkeypatch
    ):
        monkeypatch.setattr(
            "archive_restore.restore.files.conflict_name", lambda name, rng=None: name
        )
        with instance.fs.create_file(FileDoc.new("a.txt", destination.id(), 3)) as f:
            f.write(b"old")
        with pytest.raises(StorageError) as exc_info:
            untar(make_archive([("files/a.txt", b"new")]), destination, instance)
        assert exc_info.value.entry == "files/a.txt"

    def test_error_message_carries_context(self, instance, destination, make_archive):
        link = tarfile.TarInfo("files/link")
        link.type = tarfile.SYMTYPE
        with pytest.raises(ArchiveFormatError) as exc_info:
            untar(make_archive([link]), destination, instance)
        assert "domain=alice.example.net" in str(exc_info.value)
        assert "entry=files/link" in str(exc_info.value)


class TestResolveDestination:
    """Tests for resolve_destination."""

    def test_existing_directory(self, instance, destination):
        assert resolve_destination(instance, "/Imported").id() == destination.id()

    def test_creates_missing_directory(self, instance):
        created = resolve_destination(instance, "/Backups/2024")
        assert created.fullpath == "/Backups/2024"
        assert instance.fs.dir_exists("/Backups")

    def test_file_in_the_way(self, instance):
        with instance.fs.create_file(
            FileDoc.new("Imported", instance.fs.root().id(), 0)
        ):
            pass
        with pytest.raises(StorageError):
            resolve_destination(instance, "/Imported")


class TestImportArchive:
    """Tests for import_archive."""

    def test_imports_from_file(self, instance, tmp_path, make_archive):
        path = tmp_path / "export.tar.gz"
        path.write_bytes(
            make_archive(
                [
                    ("files/photo.jpg", b"0123456789"),
                    ("albums/albums.json", MANIFEST),
                    ("albums/references.json", REFERENCES),
                    ("contacts/ada.vcf", VCARD),
                ]
            ).getvalue()
        )
        summary = import_archive(instance, path, "/Restored")

        assert instance.fs.file_by_path("/Restored/photo.jpg").referenced_by
        assert summary.files == 1
        assert summary.contacts == 1
        assert summary.references_attached == 1

    def test_root_destination(self, instance, tmp_path, make_archive):
        path = tmp_path / "export.tar.gz"
        path.write_bytes(make_archive([("files/a.txt", b"a")]).getvalue())
        import_archive(instance, str(path), "/")
        assert instance.fs.file_by_path("/a.txt").size == 1

    def test_missing_archive(self, instance, tmp_path):
        with pytest.raises(ArchiveImportError, match="Can't open archive"):
            import_archive(instance, tmp_path / "missing.tar.gz", "/Imported")


class TestArchiveImporter:
    """Tests for ArchiveImporter state."""

    def test_album_table_scoped_to_run(self, instance, destination, make_archive):
        first = ArchiveImporter(instance, destination)
        first.run(make_archive([("albums/albums.json", MANIFEST)]))
        assert "a1" in first.albums

        second = ArchiveImporter(instance, destination)
        summary = second.run(make_archive([("albums/references.json", REFERENCES)]))
        assert len(second.albums) == 0
        assert summary.references_skipped == 1

    def test_default_config(self, instance, destination):
        assert ArchiveImporter(instance, destination).config == ImportConfig()
