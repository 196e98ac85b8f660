"""SQLite storage backing the local FAISS vector store.

Stores:
- Chunk payloads keyed by collection and point ID
- Mapping between FAISS vector IDs and points
- Metadata about ingestion runs
"""
import sqlite3
import json
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
import structlog

from docsqa import config

logger = structlog.get_logger()

DB_PATH = config.DB_PATH


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_connection() -> sqlite3.Connection:
    """Get a connection to the SQLite database.

    Returns:
        sqlite3.Connection with row_factory set to sqlite3.Row
    """
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def init_database() -> None:
    """Initialize the database schema.

    Creates tables if they don't exist:
    - index_metadata: tracks ingestion runs and configuration
    - chunks: stores chunk payloads with their FAISS vector IDs
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS index_metadata (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                indexed_at TEXT NOT NULL,
                collection TEXT NOT NULL,
                backend TEXT NOT NULL,
                embedding_model TEXT NOT NULL,
                embedding_dimension INTEGER,
                total_chunks INTEGER NOT NULL,
                total_documents INTEGER NOT NULL,
                source TEXT NOT NULL,
                metadata_json TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS chunks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL,
                point_id TEXT NOT NULL,
                vector_id INTEGER NOT NULL,
                content TEXT NOT NULL,
                payload_json TEXT NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE(collection, point_id)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_chunks_vector_id
            ON chunks(collection, vector_id)
        """)

        conn.commit()
        logger.debug("database_initialized", db_path=str(DB_PATH))

    except Exception as e:
        conn.rollback()
        logger.error("database_init_failed", error=str(e))
        raise
    finally:
        conn.close()


def insert_index_metadata(
    collection: str,
    backend: str,
    embedding_model: str,
    embedding_dimension: Optional[int],
    total_chunks: int,
    total_documents: int,
    source: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> int:
    """Record a new ingestion run.

    Returns:
        ID of the inserted metadata row
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("""
            INSERT INTO index_metadata (
                indexed_at, collection, backend, embedding_model,
                embedding_dimension, total_chunks, total_documents,
                source, metadata_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            _now(),
            collection,
            backend,
            embedding_model,
            embedding_dimension,
            total_chunks,
            total_documents,
            source,
            json.dumps(metadata) if metadata else None,
        ))

        conn.commit()
        row_id = cursor.lastrowid
        logger.info("index_metadata_inserted", id=row_id, total_chunks=total_chunks)
        return row_id

    except Exception as e:
        conn.rollback()
        logger.error("index_metadata_insert_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_vector_ids(collection: str, point_ids: List[str]) -> Dict[str, int]:
    """Look up the FAISS vector IDs already assigned to points.

    Returns:
        Mapping of point_id -> vector_id for the points that exist
    """
    if not point_ids:
        return {}

    conn = get_connection()
    cursor = conn.cursor()

    try:
        placeholders = ",".join("?" * len(point_ids))
        cursor.execute(f"""
            SELECT point_id, vector_id FROM chunks
            WHERE collection = ? AND point_id IN ({placeholders})
        """, [collection, *point_ids])
        return {row["point_id"]: row["vector_id"] for row in cursor.fetchall()}

    except Exception as e:
        logger.error("vector_id_lookup_failed", error=str(e), collection=collection)
        raise
    finally:
        conn.close()


def upsert_chunks(collection: str, rows: List[Dict[str, Any]]) -> int:
    """Insert or replace chunk payloads.

    Args:
        collection: Collection the chunks belong to
        rows: Dicts with 'point_id', 'vector_id' and 'payload' keys

    Returns:
        Number of rows written
    """
    if not rows:
        return 0

    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.executemany("""
            INSERT OR REPLACE INTO chunks (
                collection, point_id, vector_id, content,
                payload_json, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
        """, [
            (
                collection,
                row["point_id"],
                row["vector_id"],
                row["payload"].get("text", ""),
                json.dumps(row["payload"]),
                _now(),
            )
            for row in rows
        ])

        conn.commit()
        return len(rows)

    except Exception as e:
        conn.rollback()
        logger.error("chunk_upsert_failed", error=str(e), collection=collection)
        raise
    finally:
        conn.close()


def get_chunks_by_vector_ids(collection: str, vector_ids: List[int]) -> List[Dict[str, Any]]:
    """Retrieve chunks by their FAISS vector IDs.

    Returns:
        List of dicts with 'point_id', 'vector_id' and the decoded 'payload'
    """
    if not vector_ids:
        return []

    conn = get_connection()
    cursor = conn.cursor()

    try:
        placeholders = ",".join("?" * len(vector_ids))
        cursor.execute(f"""
            SELECT point_id, vector_id, payload_json
            FROM chunks
            WHERE collection = ? AND vector_id IN ({placeholders})
        """, [collection, *vector_ids])

        return [
            {
                "point_id": row["point_id"],
                "vector_id": row["vector_id"],
                "payload": json.loads(row["payload_json"]),
            }
            for row in cursor.fetchall()
        ]

    except Exception as e:
        logger.error("chunks_retrieval_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_latest_index_metadata(collection: str) -> Optional[Dict[str, Any]]:
    """Get the most recent ingestion run metadata for a collection.

    Returns:
        Dictionary with metadata fields, or None if nothing was ingested
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("""
            SELECT * FROM index_metadata
            WHERE collection = ?
            ORDER BY id DESC
            LIMIT 1
        """, (collection,))

        row = cursor.fetchone()
        if row:
            metadata = dict(row)
            if metadata["metadata_json"]:
                metadata["metadata"] = json.loads(metadata["metadata_json"])
            return metadata
        return None

    except Exception as e:
        logger.error("index_metadata_retrieval_failed", error=str(e))
        raise
    finally:
        conn.close()


def clear_collection_chunks(collection: str) -> int:
    """Delete all chunks of a collection.

    Returns:
        Number of chunks deleted
    """
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("DELETE FROM chunks WHERE collection = ?", (collection,))
        conn.commit()

        logger.info("chunks_cleared", collection=collection, count=cursor.rowcount)
        return cursor.rowcount

    except Exception as e:
        conn.rollback()
        logger.error("chunks_clear_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_chunk_count(collection: str) -> int:
    conn = get_connection()
    cursor = conn.cursor()

    try:
        cursor.execute("SELECT COUNT(*) FROM chunks WHERE collection = ?", (collection,))
        return cursor.fetchone()[0]

    except Exception as e:
        logger.error("chunk_count_failed", error=str(e))
        raise
    finally:
        conn.close()
