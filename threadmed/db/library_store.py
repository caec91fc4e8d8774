"""
Local library storage using SQLite.

Holds papers, their ordered authors and key/value sync metadata. An FTS5
index over title, abstract and full text is kept in sync by triggers.
"""

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from threadmed.models.paper import Paper, PaperInput, SearchHit
from threadmed.models.sync import SyncCursor


logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS papers (
    id             TEXT PRIMARY KEY,
    zotero_key     TEXT UNIQUE,
    title          TEXT NOT NULL,
    year           INTEGER,
    doi            TEXT,
    journal        TEXT,
    abstract       TEXT,
    pdf_filename   TEXT,
    full_text      TEXT,
    date_added     TEXT NOT NULL DEFAULT (datetime('now')),
    date_modified  TEXT NOT NULL DEFAULT (datetime('now')),
    zotero_version INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS authors (
    id   TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS paper_authors (
    paper_id  TEXT NOT NULL REFERENCES papers(id) ON DELETE CASCADE,
    author_id TEXT NOT NULL REFERENCES authors(id) ON DELETE CASCADE,
    position  INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (paper_id, author_id)
);

CREATE TABLE IF NOT EXISTS sync_meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);

CREATE INDEX IF NOT EXISTS idx_papers_zotero_key ON papers(zotero_key);
CREATE INDEX IF NOT EXISTS idx_papers_year ON papers(year);
CREATE INDEX IF NOT EXISTS idx_paper_authors_paper ON paper_authors(paper_id);
CREATE INDEX IF NOT EXISTS idx_paper_authors_author ON paper_authors(author_id);
"""

FTS_SCHEMA = """
CREATE VIRTUAL TABLE IF NOT EXISTS papers_fts USING fts5(
    title,
    abstract,
    full_text,
    content='papers',
    content_rowid='rowid'
);

CREATE TRIGGER IF NOT EXISTS papers_ai AFTER INSERT ON papers BEGIN
    INSERT INTO papers_fts(rowid, title, abstract, full_text)
    VALUES (new.rowid, new.title, new.abstract, new.full_text);
END;

CREATE TRIGGER IF NOT EXISTS papers_ad AFTER DELETE ON papers BEGIN
    INSERT INTO papers_fts(papers_fts, rowid, title, abstract, full_text)
    VALUES ('delete', old.rowid, old.title, old.abstract, old.full_text);
END;

CREATE TRIGGER IF NOT EXISTS papers_au AFTER UPDATE ON papers BEGIN
    INSERT INTO papers_fts(papers_fts, rowid, title, abstract, full_text)
    VALUES ('delete', old.rowid, old.title, old.abstract, old.full_text);
    INSERT INTO papers_fts(rowid, title, abstract, full_text)
    VALUES (new.rowid, new.title, new.abstract, new.full_text);
END;
"""

# sync_meta keys
LIBRARY_VERSION_KEY = "library_version"
LAST_SYNC_KEY = "last_sync"
USER_ID_KEY = "zotero_user_id"


class LibraryStore:
    """
    SQLite-backed store for the local paper library.

    The store is the only writer of the database file; connections are
    opened with check_same_thread=False so the API's worker threads can
    read through the same instance.
    """

    def __init__(self, db_path: Path):
        """
        Initialize library store.

        Args:
            db_path: Path to the SQLite database file (":memory:" for tests)
        """
        self.db_path = db_path
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn: Optional[sqlite3.Connection] = sqlite3.connect(
            str(db_path), check_same_thread=False
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        if str(db_path) != ":memory:":
            self.conn.execute("PRAGMA journal_mode = WAL")
            self.conn.execute("PRAGMA synchronous = NORMAL")

        self._ensure_schema()
        logger.info(f"Initialized LibraryStore at {db_path}")

    def _ensure_schema(self):
        """Create tables, indices and the FTS index if they don't exist."""
        with self.conn:
            self.conn.executescript(SCHEMA)
            self.conn.executescript(FTS_SCHEMA)

    # Papers

    def _insert_authors(self, paper_id: str, authors: list[str]):
        for position, name in enumerate(authors):
            row = self.conn.execute("SELECT id FROM authors WHERE name = ?", (name,)).fetchone()
            if row:
                author_id = row["id"]
            else:
                author_id = str(uuid.uuid4())
                self.conn.execute(
                    "INSERT INTO authors (id, name) VALUES (?, ?)", (author_id, name)
                )
            # The same name twice on one paper keeps its first position
            self.conn.execute(
                "INSERT OR IGNORE INTO paper_authors (paper_id, author_id, position) VALUES (?, ?, ?)",
                (paper_id, author_id, position),
            )

    def _get_authors(self, paper_id: str) -> list[str]:
        rows = self.conn.execute(
            """
            SELECT a.name FROM authors a
            JOIN paper_authors pa ON pa.author_id = a.id
            WHERE pa.paper_id = ?
            ORDER BY pa.position
            """,
            (paper_id,),
        ).fetchall()
        return [r["name"] for r in rows]

    def _row_to_paper(self, row: sqlite3.Row) -> Paper:
        return Paper(**dict(row), authors=self._get_authors(row["id"]))

    def create_paper(self, paper: PaperInput) -> Paper:
        """
        Insert a new paper with its authors.

        Args:
            paper: Paper fields

        Returns:
            The stored paper
        """
        paper_id = str(uuid.uuid4())
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO papers
                (id, zotero_key, title, year, doi, journal, abstract, pdf_filename, zotero_version)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    paper_id,
                    paper.zotero_key,
                    paper.title,
                    paper.year,
                    paper.doi,
                    paper.journal,
                    paper.abstract,
                    paper.pdf_filename,
                    paper.zotero_version,
                ),
            )
            self._insert_authors(paper_id, paper.authors)
        return self.get_paper(paper_id)

    def upsert_paper(self, paper: PaperInput) -> tuple[str, bool]:
        """
        Insert or update a paper keyed by its Zotero key.

        An existing paper keeps its local ID and, when the input carries no
        filename, its current attachment; its author list is replaced.

        Args:
            paper: Paper fields

        Returns:
            (paper_id, created) tuple
        """
        existing_id = self.get_paper_id_by_key(paper.zotero_key) if paper.zotero_key else None
        if existing_id is None:
            return self.create_paper(paper).id, True

        with self.conn:
            self.conn.execute(
                """
                UPDATE papers SET
                    title = ?, year = ?, doi = ?, journal = ?, abstract = ?,
                    pdf_filename = COALESCE(?, pdf_filename),
                    zotero_version = ?,
                    date_modified = datetime('now')
                WHERE id = ?
                """,
                (
                    paper.title,
                    paper.year,
                    paper.doi,
                    paper.journal,
                    paper.abstract,
                    paper.pdf_filename,
                    paper.zotero_version,
                    existing_id,
                ),
            )
            self.conn.execute("DELETE FROM paper_authors WHERE paper_id = ?", (existing_id,))
            self._insert_authors(existing_id, paper.authors)
        return existing_id, False

    def get_paper_id_by_key(self, zotero_key: str) -> Optional[str]:
        """Return the local ID of the paper synced from a Zotero key, if any."""
        row = self.conn.execute(
            "SELECT id FROM papers WHERE zotero_key = ?", (zotero_key,)
        ).fetchone()
        return row["id"] if row else None

    def get_paper(self, paper_id: str) -> Optional[Paper]:
        """Get a single paper with its authors."""
        row = self.conn.execute("SELECT * FROM papers WHERE id = ?", (paper_id,)).fetchone()
        return self._row_to_paper(row) if row else None

    def list_papers(self) -> list[Paper]:
        """List all papers, most recently added first."""
        rows = self.conn.execute(
            "SELECT * FROM papers ORDER BY date_added DESC, rowid DESC"
        ).fetchall()
        return [self._row_to_paper(row) for row in rows]

    def count_papers(self) -> int:
        """Get total paper count."""
        return self.conn.execute("SELECT COUNT(*) FROM papers").fetchone()[0]

    def delete_paper(self, paper_id: str, pdf_dir: Optional[Path] = None) -> bool:
        """
        Delete a paper and, if pdf_dir is given, its attachment file.

        Returns:
            True if a paper was deleted
        """
        filename = self.get_pdf_filename(paper_id)
        with self.conn:
            cursor = self.conn.execute("DELETE FROM papers WHERE id = ?", (paper_id,))

        if cursor.rowcount and filename and pdf_dir is not None:
            pdf_path = Path(pdf_dir) / filename
            try:
                pdf_path.unlink(missing_ok=True)
                logger.info(f"Deleted PDF: {filename}")
            except OSError as e:
                logger.error(f"Failed to delete PDF file {pdf_path}: {e}")
        return cursor.rowcount > 0

    def search_papers(self, query: str, limit: int = 50) -> list[SearchHit]:
        """
        Full-text search over title, abstract and extracted text.

        Args:
            query: FTS5 match expression
            limit: Maximum number of hits

        Returns:
            Hits ordered by relevance, with highlighted snippets
        """
        rows = self.conn.execute(
            """
            SELECT p.id, p.title,
                   snippet(papers_fts, 2, '<mark>', '</mark>', '...', 40) AS snippet,
                   rank
            FROM papers_fts
            JOIN papers p ON p.rowid = papers_fts.rowid
            WHERE papers_fts MATCH ?
            ORDER BY rank
            LIMIT ?
            """,
            (query, limit),
        ).fetchall()
        return [SearchHit(**dict(row)) for row in rows]

    # Attachments and extracted text

    def get_pdf_filename(self, paper_id: str) -> Optional[str]:
        """Return the attachment filename recorded for a paper."""
        row = self.conn.execute(
            "SELECT pdf_filename FROM papers WHERE id = ?", (paper_id,)
        ).fetchone()
        return row["pdf_filename"] if row else None

    def set_pdf_filename(self, paper_id: str, filename: str):
        """Record the attachment filename for a paper."""
        with self.conn:
            self.conn.execute(
                "UPDATE papers SET pdf_filename = ? WHERE id = ?", (filename, paper_id)
            )

    def update_full_text(self, paper_id: str, full_text: str):
        """Store text extracted from a paper's attachment."""
        with self.conn:
            self.conn.execute(
                "UPDATE papers SET full_text = ?, date_modified = datetime('now') WHERE id = ?",
                (full_text, paper_id),
            )

    def papers_needing_extraction(self) -> list[dict[str, Any]]:
        """Papers that have an attachment but no extracted text yet."""
        rows = self.conn.execute(
            """
            SELECT id, pdf_filename, title FROM papers
            WHERE pdf_filename IS NOT NULL AND (full_text IS NULL OR full_text = '')
            """
        ).fetchall()
        return [dict(row) for row in rows]

    # Sync metadata

    def get_meta(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM sync_meta WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_meta(self, key: str, value: str):
        with self.conn:
            self.conn.execute(
                "INSERT INTO sync_meta (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def delete_meta(self, *keys: str):
        with self.conn:
            self.conn.executemany("DELETE FROM sync_meta WHERE key = ?", [(k,) for k in keys])

    def get_cursor(self) -> SyncCursor:
        """
        Get the persisted sync cursor.

        Returns:
            SyncCursor with version 0 if the library has never been synced
        """
        version = self.get_meta(LIBRARY_VERSION_KEY)
        try:
            library_version = int(version) if version else 0
        except ValueError:
            logger.warning(f"Ignoring malformed stored library version: {version}")
            library_version = 0
        return SyncCursor(library_version=library_version, last_sync=self.get_meta(LAST_SYNC_KEY))

    def set_cursor(self, library_version: int, timestamp: Optional[str] = None):
        """
        Persist the sync cursor.

        Args:
            library_version: Library version reached by the completed sync
            timestamp: ISO timestamp of the sync (defaults to now, UTC)
        """
        timestamp = timestamp or datetime.now(timezone.utc).isoformat()
        with self.conn:
            for key, value in ((LIBRARY_VERSION_KEY, str(library_version)), (LAST_SYNC_KEY, timestamp)):
                self.conn.execute(
                    "INSERT INTO sync_meta (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
        logger.info(f"Sync cursor set to library version {library_version}")

    def clear_sync_state(self):
        """Forget the connected account and the sync cursor."""
        self.delete_meta(USER_ID_KEY, LIBRARY_VERSION_KEY, LAST_SYNC_KEY)

    def close(self):
        """Close the database connection."""
        if self.conn is not None:
            try:
                self.conn.close()
                logger.debug("Closed LibraryStore connection")
            except sqlite3.Error as e:
                logger.warning(f"Error closing LibraryStore connection: {e}")
            finally:
                self.conn = None

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensures cleanup."""
        self.close()
        return False
