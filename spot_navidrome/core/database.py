"""
Thread-safe SQLite storage for the export cache.

One export record is kept per Spotify playlist (and one for Liked Songs).
The record header lives in `export_records`; the per-track outcomes live in
`export_tracks`, one row per Spotify track, in playlist order.

Schema:
    export_records:  Playlist-level state (snapshot id, Navidrome playlist id,
                     last export time, statistics as JSON)
    export_tracks:   Per-track match outcome (Navidrome song id, status,
                     strategy, score, matched_at)

Records cross this module boundary in their JSON shape (the camelCase
dictionary produced by PlaylistExportRecord.to_dict()), so the storage
layer does not depend on the cache models.

Usage:
    db = Database(output_dir / "export_cache.db")

    db.save_export_record(record.to_dict())
    data = db.get_export_record("37i9dQZF1DXcBWIGoYBM5M")
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from spot_navidrome.core.exceptions import DatabaseError


DATABASE_VERSION = 1


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS export_records (
    source_playlist_id TEXT PRIMARY KEY,
    playlist_name TEXT,
    source_snapshot_id TEXT NOT NULL DEFAULT '',
    destination_playlist_id TEXT,
    exported_at TEXT,
    track_count INTEGER DEFAULT 0,
    statistics TEXT,  -- JSON object
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS export_tracks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_playlist_id TEXT NOT NULL,
    source_track_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    destination_song_id TEXT,
    status TEXT NOT NULL,
    match_strategy TEXT NOT NULL,
    match_score REAL NOT NULL DEFAULT 0,
    matched_at TEXT,
    FOREIGN KEY (source_playlist_id) REFERENCES export_records(source_playlist_id)
        ON DELETE CASCADE,
    UNIQUE(source_playlist_id, source_track_id)
);

CREATE INDEX IF NOT EXISTS idx_export_tracks_playlist ON export_tracks(source_playlist_id);
"""


class Database:
    """
    Thread-safe SQLite database for export records.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise DatabaseError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to initialize database: {e}",
                details={"path": str(db_path)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get the persistent database connection as a context manager.

        The connection is created once and reused for all operations.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # Thread safety is handled with _lock
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
        yield self._conn

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            row = cursor.fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif row[0] != DATABASE_VERSION:
                raise DatabaseError(
                    f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )
            conn.commit()

    def _now_iso(self) -> str:
        return datetime.now(timezone.utc).isoformat()

    # =========================================================================
    # Export Records
    # =========================================================================

    def save_export_record(self, record: dict[str, Any]) -> None:
        """
        Insert or fully replace the export record of one playlist.

        Args:
            record: Record in its JSON shape (sourcePlaylistId, sourceSnapshotId,
                    playlistName, destinationPlaylistId, exportedAt, trackCount,
                    tracks, statistics).

        Raises:
            DatabaseError: If the record lacks sourcePlaylistId or the write fails.
                           A failed write leaves the previous record untouched.
        """
        playlist_id = record.get("sourcePlaylistId")
        if not playlist_id:
            raise DatabaseError(
                "Export record has no sourcePlaylistId",
                details={"keys": sorted(record)}
            )

        with self._lock:
            with self._get_connection() as conn:
                try:
                    conn.execute("""
                        INSERT INTO export_records (
                            source_playlist_id, playlist_name, source_snapshot_id,
                            destination_playlist_id, exported_at, track_count,
                            statistics, updated_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT(source_playlist_id) DO UPDATE SET
                            playlist_name = excluded.playlist_name,
                            source_snapshot_id = excluded.source_snapshot_id,
                            destination_playlist_id = excluded.destination_playlist_id,
                            exported_at = excluded.exported_at,
                            track_count = excluded.track_count,
                            statistics = excluded.statistics,
                            updated_at = excluded.updated_at
                    """, (
                        playlist_id,
                        record.get("playlistName"),
                        record.get("sourceSnapshotId") or "",
                        record.get("destinationPlaylistId"),
                        record.get("exportedAt"),
                        record.get("trackCount", 0),
                        json.dumps(record.get("statistics") or {}),
                        self._now_iso(),
                    ))

                    conn.execute(
                        "DELETE FROM export_tracks WHERE source_playlist_id = ?",
                        (playlist_id,)
                    )
                    conn.executemany("""
                        INSERT INTO export_tracks (
                            source_playlist_id, source_track_id, position,
                            destination_song_id, status, match_strategy,
                            match_score, matched_at
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """, [
                        (
                            playlist_id,
                            track_id,
                            position,
                            entry.get("destinationSongId"),
                            entry.get("status"),
                            entry.get("matchStrategy"),
                            entry.get("matchScore", 0),
                            entry.get("matchedAt"),
                        )
                        for position, (track_id, entry)
                        in enumerate((record.get("tracks") or {}).items())
                    ])
                    conn.commit()
                except sqlite3.Error as e:
                    conn.rollback()
                    raise DatabaseError(
                        f"Failed to save export record: {e}",
                        details={"playlist_id": playlist_id}
                    ) from e

    def get_export_record(self, playlist_id: str) -> dict[str, Any] | None:
        """
        Get the export record of a playlist in its JSON shape.

        Returns:
            The record dictionary, or None if the playlist was never exported.
        """
        with self._lock:
            with self._get_connection() as conn:
                try:
                    cursor = conn.execute(
                        "SELECT * FROM export_records WHERE source_playlist_id = ?",
                        (playlist_id,)
                    )
                    row = cursor.fetchone()
                    if row is None:
                        return None
                    return self._build_record(conn, row)
                except sqlite3.Error as e:
                    raise DatabaseError(
                        f"Failed to read export record: {e}",
                        details={"playlist_id": playlist_id}
                    ) from e

    def list_export_records(self) -> list[dict[str, Any]]:
        """Get every stored export record, ordered by playlist name."""
        with self._lock:
            with self._get_connection() as conn:
                try:
                    cursor = conn.execute(
                        "SELECT * FROM export_records ORDER BY playlist_name"
                    )
                    return [self._build_record(conn, row) for row in cursor.fetchall()]
                except sqlite3.Error as e:
                    raise DatabaseError(f"Failed to list export records: {e}") from e

    def delete_export_record(self, playlist_id: str) -> bool:
        """
        Delete the export record of a playlist (its tracks cascade).

        Returns:
            True if a record was deleted, False if none existed.
        """
        with self._lock:
            with self._get_connection() as conn:
                try:
                    cursor = conn.execute(
                        "DELETE FROM export_records WHERE source_playlist_id = ?",
                        (playlist_id,)
                    )
                    conn.commit()
                    return cursor.rowcount > 0
                except sqlite3.Error as e:
                    raise DatabaseError(
                        f"Failed to delete export record: {e}",
                        details={"playlist_id": playlist_id}
                    ) from e

    def _build_record(self, conn: sqlite3.Connection, row: sqlite3.Row) -> dict[str, Any]:
        """Convert a header row plus its track rows back into the JSON shape."""
        cursor = conn.execute("""
            SELECT * FROM export_tracks
            WHERE source_playlist_id = ?
            ORDER BY position
        """, (row["source_playlist_id"],))

        tracks = {
            track_row["source_track_id"]: {
                "sourceTrackId": track_row["source_track_id"],
                "destinationSongId": track_row["destination_song_id"],
                "status": track_row["status"],
                "matchStrategy": track_row["match_strategy"],
                "matchScore": track_row["match_score"],
                "matchedAt": track_row["matched_at"],
            }
            for track_row in cursor.fetchall()
        }

        try:
            statistics = json.loads(row["statistics"]) if row["statistics"] else {}
        except (json.JSONDecodeError, TypeError):
            statistics = {}

        return {
            "sourcePlaylistId": row["source_playlist_id"],
            "sourceSnapshotId": row["source_snapshot_id"],
            "playlistName": row["playlist_name"],
            "destinationPlaylistId": row["destination_playlist_id"],
            "exportedAt": row["exported_at"],
            "trackCount": row["track_count"],
            "tracks": tracks,
            "statistics": statistics,
        }
