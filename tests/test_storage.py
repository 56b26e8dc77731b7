"""
Tests for the SQLite document store.

Tests cover:
- Schema initialization
- Identity assignment on creation
- Revision checks on update
- Lookups by id, by doctype and by field values
"""

import sqlite3

import pytest

from archive_restore.storage.db import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    RevisionConflictError,
)

ALBUMS = "io.cozy.photos.albums"


@pytest.fixture
def store():
    """Create an in-memory document store for testing."""
    db = DocumentStore(":memory:")
    db.initialize()
    yield db
    db.close()


class TestDocumentStoreInitialization:
    """Tests for schema creation."""

    def test_initialize_creates_table(self, store):
        with store.connection() as conn:
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='documents'"
            ).fetchone()
        assert row is not None

    def test_initialize_is_idempotent(self, store):
        store.initialize()
        assert store.count(ALBUMS) == 0

    def test_file_database_persists(self, tmp_path):
        path = str(tmp_path / "documents.db")
        db = DocumentStore(path)
        db.initialize()
        created = db.create_doc(ALBUMS, {"name": "Trip"})

        reopened = DocumentStore(path)
        assert reopened.get_doc(ALBUMS, created["_id"])["name"] == "Trip"


class TestCreateDoc:
    """Tests for create_doc and create_named_doc."""

    def test_assigns_id_and_rev(self, store):
        doc = store.create_doc(ALBUMS, {"name": "Trip"})
        assert doc["_id"]
        assert doc["_rev"].startswith("1-")
        assert doc["name"] == "Trip"

    def test_ids_are_unique(self, store):
        first = store.create_doc(ALBUMS, {"name": "Trip"})
        second = store.create_doc(ALBUMS, {"name": "Trip"})
        assert first["_id"] != second["_id"]

    def test_does_not_mutate_input(self, store):
        body = {"name": "Trip"}
        store.create_doc(ALBUMS, body)
        assert body == {"name": "Trip"}

    def test_rejects_preset_id(self, store):
        with pytest.raises(DocumentStoreError, match="must not carry"):
            store.create_doc(ALBUMS, {"_id": "a1", "name": "Trip"})

    def test_rejects_preset_rev(self, store):
        with pytest.raises(DocumentStoreError):
            store.create_doc(ALBUMS, {"_rev": "1-x", "name": "Trip"})

    def test_create_named_doc(self, store):
        doc = store.create_named_doc(ALBUMS, {"_id": "fixed", "name": "Trip"})
        assert doc["_id"] == "fixed"
        assert store.get_doc(ALBUMS, "fixed")["name"] == "Trip"

    def test_create_named_doc_twice_conflicts(self, store):
        store.create_named_doc(ALBUMS, {"_id": "fixed"})
        with pytest.raises(RevisionConflictError, match="already exists"):
            store.create_named_doc(ALBUMS, {"_id": "fixed"})

    def test_create_named_doc_requires_id(self, store):
        with pytest.raises(DocumentStoreError):
            store.create_named_doc(ALBUMS, {"name": "Trip"})


class TestUpdateDoc:
    """Tests for update_doc."""

    def test_update_bumps_revision(self, store):
        doc = store.create_doc(ALBUMS, {"name": "Trip"})
        doc["name"] = "Road trip"
        updated = store.update_doc(ALBUMS, doc)
        assert updated["_rev"].startswith("2-")
        assert store.get_doc(ALBUMS, doc["_id"])["name"] == "Road trip"

    def test_stale_revision_conflicts(self, store):
        doc = store.create_doc(ALBUMS, {"name": "Trip"})
        store.update_doc(ALBUMS, dict(doc, name="Second"))
        with pytest.raises(RevisionConflictError, match="stale revision"):
            store.update_doc(ALBUMS, dict(doc, name="Third"))
        assert store.get_doc(ALBUMS, doc["_id"])["name"] == "Second"

    def test_update_missing_document(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.update_doc(ALBUMS, {"_id": "nope", "_rev": "1-x"})

    def test_update_without_id(self, store):
        with pytest.raises(DocumentStoreError):
            store.update_doc(ALBUMS, {"name": "Trip"})


class TestReads:
    """Tests for get_doc, all_docs, find and count."""

    def test_get_missing_document(self, store):
        with pytest.raises(DocumentNotFoundError) as exc_info:
            store.get_doc(ALBUMS, "nope")
        assert exc_info.value.doc_id == "nope"

    def test_doctypes_are_separate(self, store):
        doc = store.create_doc(ALBUMS, {"name": "Trip"})
        with pytest.raises(DocumentNotFoundError):
            store.get_doc("io.cozy.contacts", doc["_id"])
        assert store.count("io.cozy.contacts") == 0

    def test_all_docs_in_creation_order(self, store):
        for name in ("a", "b", "c"):
            store.create_doc(ALBUMS, {"name": name})
        assert [d["name"] for d in store.all_docs(ALBUMS)] == ["a", "b", "c"]
        assert store.count(ALBUMS) == 3

    def test_find_by_fields(self, store):
        store.create_doc(ALBUMS, {"name": "Trip", "year": 2020})
        store.create_doc(ALBUMS, {"name": "Trip", "year": 2021})
        store.create_doc(ALBUMS, {"name": "Home", "year": 2021})

        found = store.find(ALBUMS, name="Trip", year=2021)
        assert len(found) == 1
        assert found[0]["year"] == 2021
        assert len(store.find(ALBUMS, year=2021)) == 2
        assert store.find(ALBUMS, name="Nowhere") == []

    def test_find_rejects_unsafe_field_names(self, store):
        with pytest.raises(DocumentStoreError, match="Invalid field name"):
            store.find(ALBUMS, **{"name') OR 1=1 --": "x"})


class TestConnectionErrors:
    """Tests for SQLite error wrapping."""

    def test_sqlite_errors_are_wrapped(self, store):
        with pytest.raises(DocumentStoreError) as exc_info:
            with store.connection() as conn:
                conn.execute("SELECT * FROM missing_table")
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)
