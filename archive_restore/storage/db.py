"""
SQLite document store.

Stores schemaless JSON documents grouped by doctype. The store owns document
identity: it assigns ``_id`` on creation and a new ``_rev`` on every write.
"""

import hashlib
import json
import re
import sqlite3
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any, Optional

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY,
    doctype TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    rev TEXT NOT NULL,
    body TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(doctype, doc_id)
);

CREATE INDEX IF NOT EXISTS idx_documents_doctype ON documents(doctype);
"""

# Field names usable in find() queries
_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DocumentStoreError(Exception):
    """Raised when a document cannot be stored or read."""

    pass


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a document does not exist."""

    def __init__(self, doctype: str, doc_id: str):
        super().__init__(f"{doctype}/{doc_id} not found")
        self.doctype = doctype
        self.doc_id = doc_id


class RevisionConflictError(DocumentStoreError):
    """Raised when a write is based on a stale revision or reuses an id."""

    pass


def _next_rev(current: Optional[str], body: str) -> str:
    generation = 1
    if current:
        generation = int(current.split("-", 1)[0]) + 1
    digest = hashlib.md5(f"{generation}:{body}".encode()).hexdigest()
    return f"{generation}-{digest}"


def _encode(doc: dict[str, Any]) -> str:
    body = {k: v for k, v in doc.items() if k not in ("_id", "_rev")}
    return json.dumps(body, sort_keys=True, ensure_ascii=False)


class DocumentStore:
    """
    SQLite database holding JSON documents.

    Usage:
        db = DocumentStore('/path/to/documents.db')
        db.initialize()

        # Or use in-memory for testing:
        db = DocumentStore(':memory:')
        db.initialize()

        doc = db.create_doc("io.cozy.photos.albums", {"name": "Trip"})
        doc["name"] = "Road trip"
        db.update_doc("io.cozy.photos.albums", doc)
    """

    def __init__(self, db_path: str):
        """
        Initialize the document store.

        Args:
            db_path: Path to SQLite database file, or ':memory:' for in-memory database
        """
        self.db_path = db_path
        self._shared_connection: Optional[sqlite3.Connection] = None

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        For in-memory databases, returns a shared connection so the data
        persists across operations. For file databases, creates a new
        connection each time.
        """
        if self.db_path == ":memory:":
            if self._shared_connection is None:
                self._shared_connection = sqlite3.connect(":memory:")
                self._shared_connection.row_factory = sqlite3.Row
            return self._shared_connection

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Commits on success, rolls back on error. SQLite errors are raised as
        DocumentStoreError.

        Usage:
            with db.connection() as conn:
                conn.execute("SELECT count(*) FROM documents")
        """
        conn = self._get_connection()
        is_shared = self.db_path == ":memory:"
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DocumentStoreError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            if not is_shared:
                conn.close()

    def initialize(self) -> None:
        """Create the schema if it doesn't exist."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)

    def close(self) -> None:
        """Close the shared in-memory connection, if any."""
        if self._shared_connection is not None:
            self._shared_connection.close()
            self._shared_connection = None

    # =========================================================================
    # Writes
    # =========================================================================

    def create_doc(self, doctype: str, doc: dict[str, Any]) -> dict[str, Any]:
        """
        Create a document and assign its identifier and first revision.

        Args:
            doctype: Document type (e.g. 'io.cozy.contacts')
            doc: Document body; must not carry ``_id`` or ``_rev``

        Returns:
            A copy of the document with ``_id`` and ``_rev`` set

        Raises:
            DocumentStoreError: If the document already has an identity
        """
        if doc.get("_id") or doc.get("_rev"):
            raise DocumentStoreError(
                f"New {doctype} document must not carry _id/_rev"
            )
        return self._insert(doctype, uuid.uuid4().hex, doc)

    def create_named_doc(self, doctype: str, doc: dict[str, Any]) -> dict[str, Any]:
        """
        Create a document under a caller-chosen ``_id``.

        Raises:
            DocumentStoreError: If ``_id`` is missing or ``_rev`` is set
            RevisionConflictError: If the id is already taken
        """
        doc_id = doc.get("_id")
        if not doc_id or doc.get("_rev"):
            raise DocumentStoreError(
                f"Named {doctype} document needs an _id and no _rev"
            )
        return self._insert(doctype, doc_id, doc)

    def _insert(self, doctype: str, doc_id: str, doc: dict[str, Any]) -> dict[str, Any]:
        body = _encode(doc)
        rev = _next_rev(None, body)
        try:
            with self.connection() as conn:
                conn.execute(
                    "INSERT INTO documents (doctype, doc_id, rev, body) "
                    "VALUES (?, ?, ?, ?)",
                    (doctype, doc_id, rev, body),
                )
        except DocumentStoreError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                raise RevisionConflictError(
                    f"{doctype}/{doc_id} already exists"
                ) from e.__cause__
            raise
        return {**json.loads(body), "_id": doc_id, "_rev": rev}

    def update_doc(self, doctype: str, doc: dict[str, Any]) -> dict[str, Any]:
        """
        Replace a document's body.

        Args:
            doctype: Document type
            doc: Document with the ``_id`` and the current ``_rev``

        Returns:
            A copy of the document with its new ``_rev``

        Raises:
            DocumentNotFoundError: If the document doesn't exist
            RevisionConflictError: If ``_rev`` is not the current revision
        """
        doc_id = doc.get("_id")
        if not doc_id:
            raise DocumentStoreError(f"Cannot update {doctype} document without _id")

        body = _encode(doc)
        with self.connection() as conn:
            row = conn.execute(
                "SELECT rev FROM documents WHERE doctype = ? AND doc_id = ?",
                (doctype, doc_id),
            ).fetchone()
            if row is None:
                raise DocumentNotFoundError(doctype, doc_id)
            if row["rev"] != doc.get("_rev"):
                raise RevisionConflictError(
                    f"{doctype}/{doc_id}: stale revision {doc.get('_rev')!r}, "
                    f"current is {row['rev']!r}"
                )
            rev = _next_rev(row["rev"], body)
            conn.execute(
                """
                UPDATE documents SET rev = ?, body = ?, updated_at = CURRENT_TIMESTAMP
                WHERE doctype = ? AND doc_id = ?
                """,
                (rev, body, doctype, doc_id),
            )
        return {**json.loads(body), "_id": doc_id, "_rev": rev}

    # =========================================================================
    # Reads
    # =========================================================================

    @staticmethod
    def _row_to_doc(row: sqlite3.Row) -> dict[str, Any]:
        return {**json.loads(row["body"]), "_id": row["doc_id"], "_rev": row["rev"]}

    def get_doc(self, doctype: str, doc_id: str) -> dict[str, Any]:
        """
        Get a document by identifier.

        Raises:
            DocumentNotFoundError: If the document doesn't exist
        """
        with self.connection() as conn:
            row = conn.execute(
                "SELECT doc_id, rev, body FROM documents "
                "WHERE doctype = ? AND doc_id = ?",
                (doctype, doc_id),
            ).fetchone()
        if row is None:
            raise DocumentNotFoundError(doctype, doc_id)
        return self._row_to_doc(row)

    def all_docs(self, doctype: str) -> list[dict[str, Any]]:
        """All documents of a doctype, in creation order."""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT doc_id, rev, body FROM documents WHERE doctype = ? ORDER BY id",
                (doctype,),
            ).fetchall()
        return [self._row_to_doc(row) for row in rows]

    def find(self, doctype: str, **equals: Any) -> list[dict[str, Any]]:
        """
        Documents of a doctype whose top-level fields equal the given values.

        Example:
            db.find("io.cozy.files", dir_id=parent_id, name="photo.jpg")
        """
        clauses = ["doctype = ?"]
        params: list[Any] = [doctype]
        for key, value in equals.items():
            if not _FIELD_RE.match(key):
                raise DocumentStoreError(f"Invalid field name: {key!r}")
            clauses.append(f"json_extract(body, '$.{key}') = ?")
            params.append(value)

        with self.connection() as conn:
            rows = conn.execute(
                "SELECT doc_id, rev, body FROM documents WHERE "
                + " AND ".join(clauses)
                + " ORDER BY id",
                params,
            ).fetchall()
        return [self._row_to_doc(row) for row in rows]

    def count(self, doctype: str) -> int:
        """Number of documents of a doctype."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM documents WHERE doctype = ?", (doctype,)
            ).fetchone()
        return int(row["n"])
